"""Unit tests for AdminService user oversight and the audit trail."""

import pytest

from taskhub.core.exceptions import AuthorizationError, ResourceConflictError, ResourceNotFoundError
from taskhub.models.audit_log import AuditLog
from taskhub.models.bid import Bid
from taskhub.models.task import Task, TaskStatus
from taskhub.models.user import RefreshToken, User, UserRole
from taskhub.services.admin_service import AdminService
from taskhub.services.audit_service import AuditService
from taskhub.services.auth_service import AuthService
from taskhub.services.filters import Page, UserFilters

from tests.helpers import make_user


class TestUserStatus:

    @pytest.mark.unit
    def test_suspension_revokes_refresh_tokens_and_is_audited(self, db, admin_user, freelancer_a):
        AuthService.issue_tokens(db, freelancer_a)

        updated = AdminService.update_user_status(db, admin_user, freelancer_a.id, is_suspended=True)

        assert updated.is_suspended is True
        live = db.query(RefreshToken).filter(
            RefreshToken.user_id == freelancer_a.id, RefreshToken.revoked_at.is_(None),
        ).count()
        assert live == 0
        actions = [a.action for a in db.query(AuditLog).filter(AuditLog.actor_id == admin_user.id)]
        assert actions == ["user.suspended"]

    @pytest.mark.unit
    def test_role_change(self, db, admin_user, client_user):
        updated = AdminService.update_user_status(
            db, admin_user, client_user.id, is_suspended=False, role=UserRole.FREELANCER,
        )
        assert updated.role == UserRole.FREELANCER

    @pytest.mark.unit
    def test_admin_accounts_are_protected(self, db, admin_user):
        other_admin = make_user(db, "second-admin@example.com", UserRole.ADMIN)
        with pytest.raises(AuthorizationError):
            AdminService.update_user_status(db, admin_user, admin_user.id, is_suspended=True)
        with pytest.raises(AuthorizationError):
            AdminService.update_user_status(db, admin_user, other_admin.id, is_suspended=True)

    @pytest.mark.unit
    def test_unknown_user(self, db, admin_user):
        with pytest.raises(ResourceNotFoundError):
            AdminService.update_user_status(db, admin_user, 4242, is_suspended=True)


class TestDeleteUser:

    @pytest.mark.unit
    def test_deleting_client_cascades_to_their_tasks_and_bids(
        self, db, admin_user, client_user, freelancer_a, make_task
    ):
        task = make_task()
        db.add(Bid(task_id=task.id, freelancer_id=freelancer_a.id, amount=100, proposal="Count me in."))
        db.commit()
        client_id = client_user.id

        AdminService.delete_user(db, admin_user, client_id)

        assert db.query(User).filter(User.id == client_id).first() is None
        assert db.query(Task).count() == 0
        assert db.query(Bid).count() == 0
        assert db.query(User).filter(User.id == freelancer_a.id).one()

    @pytest.mark.unit
    @pytest.mark.parametrize("status", [TaskStatus.IN_PROGRESS, TaskStatus.IN_REVIEW, TaskStatus.COMPLETED])
    def test_assigned_freelancer_cannot_be_deleted(self, db, admin_user, freelancer_a, make_task, status):
        task = make_task(status=status, freelancer=freelancer_a)
        task_id = task.id

        with pytest.raises(ResourceConflictError):
            AdminService.delete_user(db, admin_user, freelancer_a.id)

        db.expire_all()
        kept = db.query(Task).filter(Task.id == task_id).one()
        assert kept.status == status
        assert kept.freelancer_id == freelancer_a.id
        assert db.query(User).filter(User.id == freelancer_a.id).count() == 1

    @pytest.mark.unit
    def test_unassigned_freelancer_is_deleted_with_their_bids(self, db, admin_user, freelancer_a, make_task):
        task = make_task()
        db.add(Bid(task_id=task.id, freelancer_id=freelancer_a.id, amount=100, proposal="Count me in."))
        db.commit()
        freelancer_id = freelancer_a.id

        AdminService.delete_user(db, admin_user, freelancer_id)

        assert db.query(User).filter(User.id == freelancer_id).first() is None
        assert db.query(Bid).count() == 0
        for t in db.query(Task):
            assert (t.freelancer_id is not None) == (t.status != TaskStatus.OPEN)

    @pytest.mark.unit
    def test_admins_cannot_be_deleted(self, db, admin_user):
        with pytest.raises(AuthorizationError):
            AdminService.delete_user(db, admin_user, admin_user.id)


class TestListingAndAudit:

    @pytest.mark.unit
    def test_filter_users_by_role_and_search(self, db, admin_user, client_user, freelancer_a, freelancer_b):
        freelancers = AdminService.get_all_users(db, UserFilters(role=UserRole.FREELANCER), Page())
        alice = AdminService.get_all_users(db, UserFilters(q="alice"), Page())

        assert freelancers["total_users"] == 2
        assert [u.id for u in alice["users"]] == [freelancer_a.id]

    @pytest.mark.unit
    def test_query_logs_filters_by_action(self, db, admin_user, client_user):
        AuditService.record(db, admin_user, "category.created", "category", 1, {"name": "Design"})
        AuditService.record(db, admin_user, "user.suspended", "user", client_user.id)
        db.commit()

        result = AuditService.query_logs(db, action="category")

        assert result["total_logs"] == 1
        assert result["logs"][0].resource_type == "category"
