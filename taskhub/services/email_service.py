"""Templated transactional emails, queued on the outbox."""

from taskhub.core.config import settings
from taskhub.services.effects import Outbox


class EmailService:
    """Builds subject/body pairs for account emails."""

    @staticmethod
    def verification_otp(outbox: Outbox, to: str, first_name: str, otp: str) -> None:
        outbox.email(
            to,
            f"Verify your {settings.APP_NAME} account",
            (
                f"Hi {first_name},\n\n"
                f"Your verification code is {otp}. "
                f"It expires in {settings.OTP_EXPIRY_MINUTES} minutes.\n\n"
                f"If you did not create an account you can ignore this email."
            ),
        )

    @staticmethod
    def password_reset_otp(outbox: Outbox, to: str, first_name: str, otp: str) -> None:
        outbox.email(
            to,
            f"Reset your {settings.APP_NAME} password",
            (
                f"Hi {first_name},\n\n"
                f"Use the code {otp} to reset your password. "
                f"It expires in {settings.OTP_EXPIRY_MINUTES} minutes.\n\n"
                f"If you did not request a reset, no action is needed."
            ),
        )

    @staticmethod
    def password_changed(outbox: Outbox, to: str, first_name: str) -> None:
        outbox.email(
            to,
            f"Your {settings.APP_NAME} password was changed",
            (
                f"Hi {first_name},\n\n"
                f"The password on your account was just changed. "
                f"If this was not you, reset it at {settings.FRONTEND_URL}/forgot-password."
            ),
        )
