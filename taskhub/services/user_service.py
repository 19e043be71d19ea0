"""User service — own profile, password change and the public freelancer directory."""

from sqlalchemy.orm import Session

from taskhub.core.exceptions import AuthenticationError, ResourceNotFoundError
from taskhub.core.security import hash_password, verify_password
from taskhub.models.user import User, Profile, UserRole
from taskhub.services.effects import Outbox
from taskhub.services.email_service import EmailService
from taskhub.services.filters import FreelancerFilters, Page, paginate

PROFILE_FIELDS = ("first_name", "last_name", "bio", "skills", "portfolio_links", "avatar_url")


class UserService:

    @staticmethod
    def get_user(db: Session, user_id: int) -> User:
        """Get a user by id."""
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise ResourceNotFoundError(f"User {user_id} not found")
        return user

    @staticmethod
    def update_my_profile(db: Session, user_id: int, changes: dict) -> User:
        """Apply the given profile fields; keys outside the profile are ignored."""
        user = UserService.get_user(db, user_id)
        if user.profile is None:
            user.profile = Profile(first_name="", last_name="", skills=[], portfolio_links=[])
        for field in PROFILE_FIELDS:
            if field in changes and changes[field] is not None:
                setattr(user.profile, field, changes[field])
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def change_password(
        db: Session, outbox: Outbox, user_id: int, current_password: str, new_password: str
    ) -> None:
        user = UserService.get_user(db, user_id)
        if not verify_password(current_password, user.hashed_password):
            raise AuthenticationError("Current password is incorrect")
        user.hashed_password = hash_password(new_password)
        db.commit()
        EmailService.password_changed(outbox, user.email, user.profile.first_name)

    @staticmethod
    def list_freelancers(db: Session, filters: FreelancerFilters, page: Page) -> dict:
        query = filters.apply(db.query(User))
        rows, total, total_pages = paginate(query, page, User.created_at.desc(), User.id.desc())
        return {
            "freelancers": rows,
            "page": page.page,
            "limit": page.limit,
            "total_pages": total_pages,
            "total_freelancers": total,
        }

    @staticmethod
    def get_freelancer(db: Session, user_id: int) -> User:
        user = (
            db.query(User)
            .filter(User.id == user_id, User.role == UserRole.FREELANCER)
            .first()
        )
        if not user:
            raise ResourceNotFoundError("Freelancer not found")
        return user
