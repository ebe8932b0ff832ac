"""
User account service: registration, login, logout, password reset and profile.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

import structlog
from pymongo.errors import DuplicateKeyError

from research.database import MongoDBManager
from utilities.config import AppConfig, config
from .email_service import EmailService
from .exceptions import NotFound, Unauthorized, ValidationFailed
from .models import AuthContext, User
from .security import (
    generate_reset_token, generate_security_stamp, hash_password, hash_reset_token,
    reset_token_matches, sign_jwt_token, validate_password_strength, verify_jwt_token,
    verify_password
)

logger = structlog.get_logger(__name__)

USER_EXISTS = "User already exists!"


class UserService:
    """Account operations backed by the users collection."""

    def __init__(
        self,
        db_manager: MongoDBManager,
        email_service: Optional[EmailService] = None,
        app_config: Optional[AppConfig] = None
    ):
        self.db_manager = db_manager
        self.email_service = email_service or EmailService()
        self.config = app_config or config
        self.logger = logger.bind(component="user_service")

    async def register(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        organization: str,
        contact_details: str
    ) -> Tuple[bool, List[str]]:
        """
        Create a user account.

        Returns:
            (success, errors). errors is empty on success and lists every
            reason otherwise; no user is stored on failure.
        """
        if await self.db_manager.get_user_by_email(email) is not None:
            self.logger.warning("Registration rejected, email already registered")
            return False, [USER_EXISTS]

        errors = validate_password_strength(password)
        if errors:
            return False, errors

        user = User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            organization=organization,
            contact_details=contact_details,
            password_hash=hash_password(password),
            security_stamp=generate_security_stamp(),
        )
        try:
            created = await self.db_manager.insert_user(user)
        except DuplicateKeyError:
            # Lost a race with a concurrent registration of the same email
            return False, [USER_EXISTS]

        self.logger.info("User registered", user_id=created.id)
        return True, []

    async def login(self, email: str, password: str) -> Tuple[str, datetime]:
        """
        Check credentials and issue an access token.

        Returns:
            (token, expiration)

        Raises:
            NotFound: No user has this email
            Unauthorized: The password is wrong
        """
        user = await self.db_manager.get_user_by_email(email)
        if user is None:
            raise NotFound("User not found!")

        if not verify_password(password, user.password_hash):
            self.logger.warning("Login failed, invalid password", user_id=user.id)
            raise Unauthorized("Invalid password.")

        token, expires_at = sign_jwt_token(user.id, user.email)
        self.logger.info("User logged in", user_id=user.id)
        return token, expires_at

    async def authenticate(self, token: str) -> AuthContext:
        """
        Turn a bearer token into the caller's AuthContext.

        Raises:
            Unauthorized: Bad signature, issuer, audience or expiry, or the token was revoked
        """
        payload = verify_jwt_token(token)

        if await self.db_manager.is_token_revoked(payload["jti"]):
            raise Unauthorized("Token has been revoked")

        return AuthContext(
            user_id=payload["sub"],
            email=payload.get("email", ""),
            jti=payload["jti"],
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )

    async def logout(self, auth: AuthContext) -> None:
        await self.db_manager.revoke_token(auth.jti, auth.expires_at)
        self.logger.info("User logged out", user_id=auth.user_id)

    async def request_password_reset(self, email: str) -> None:
        """
        Issue a single-use reset token and email it to the user.
        A new request replaces any earlier token.

        Raises:
            NotFound: No user has this email
        """
        user = await self.db_manager.get_user_by_email(email)
        if user is None:
            raise NotFound("User not found!")

        token = generate_reset_token()
        expires_at = datetime.now(timezone.utc) + timedelta(minutes=self.config.password_reset_token_minutes)
        await self.db_manager.update_user(user.id, {
            "reset_token_hash": hash_reset_token(token),
            "reset_token_expires_at": expires_at,
        })

        await self.email_service.send_password_reset_token(user.email, user.first_name, token)
        self.logger.info("Password reset requested", user_id=user.id)

    async def reset_password(self, email: str, token: str, new_password: str) -> None:
        """
        Consume a reset token and set a new password.

        Raises:
            NotFound: No user has this email
            ValidationFailed: The token is wrong, used or expired, or the password breaks the policy
        """
        user = await self.db_manager.get_user_by_email(email)
        if user is None:
            raise NotFound("User not found!")

        if (
            not user.reset_token_hash
            or user.reset_token_expires_at is None
            or user.reset_token_expires_at < datetime.now(timezone.utc)
            or not reset_token_matches(token, user.reset_token_hash)
        ):
            self.logger.warning("Password reset rejected, invalid token", user_id=user.id)
            raise ValidationFailed("Invalid or expired token.", ["Invalid token."])

        errors = validate_password_strength(new_password)
        if errors:
            raise ValidationFailed("Password does not meet requirements.", errors)

        await self.db_manager.update_user(user.id, {
            "password_hash": hash_password(new_password),
            "security_stamp": generate_security_stamp(),
            "reset_token_hash": None,
            "reset_token_expires_at": None,
        })

        when = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M")
        await self.email_service.send_password_reset_confirmation(user.email, user.first_name, when)
        self.logger.info("Password reset", user_id=user.id)

    async def change_password(self, auth: AuthContext, current_password: str, new_password: str) -> None:
        user = await self._require_user(auth)

        if not verify_password(current_password, user.password_hash):
            raise ValidationFailed("Password change failed.", ["Current password is incorrect."])

        errors = validate_password_strength(new_password)
        if errors:
            raise ValidationFailed("Password change failed.", errors)

        await self.db_manager.update_user(user.id, {
            "password_hash": hash_password(new_password),
            "security_stamp": generate_security_stamp(),
        })
        self.logger.info("Password changed", user_id=user.id)

    async def get_profile(self, auth: AuthContext) -> User:
        return await self._require_user(auth)

    async def update_profile(
        self,
        auth: AuthContext,
        email: str,
        first_name: str,
        last_name: str,
        organization: str,
        contact_details: str
    ) -> User:
        """
        Replace the caller's own profile fields.

        Raises:
            NotFound: The caller's account no longer exists
            ValidationFailed: The new email belongs to another user
        """
        user = await self._require_user(auth)

        if email != user.email:
            other = await self.db_manager.get_user_by_email(email)
            if other is not None and other.id != user.id:
                raise ValidationFailed("Profile update failed.", ["Email is already in use."])

        changes = {
            "email": email,
            "first_name": first_name,
            "last_name": last_name,
            "organization": organization,
            "contact_details": contact_details,
        }
        await self.db_manager.update_user(user.id, changes)
        self.logger.info("Profile updated", user_id=user.id)
        return user.model_copy(update=changes)

    async def _require_user(self, auth: AuthContext) -> User:
        user = await self.db_manager.get_user_by_id(auth.user_id)
        if user is None:
            raise NotFound("User not found!")
        return user
