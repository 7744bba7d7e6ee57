"""
Authentication Service

Handles user authentication, registration, and password management.
"""

from datetime import datetime, timedelta
from typing import Optional, Dict, Any, Tuple
import logging
from sqlalchemy.orm import Session

from models_rbac import User
from permissions import TenantClass, default_matrix
from rbac_middleware import store_permissions
from settings import Settings
from auth_utils import (
    hash_password,
    verify_password,
    create_access_token,
    decode_access_token,
)

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


class AuthenticationError(Exception):
    """Custom exception for authentication errors"""
    pass


class AccountDisabledError(AuthenticationError):
    pass


class EmailTakenError(AuthenticationError):
    pass


class WeakPasswordError(AuthenticationError):
    pass


def validate_password_strength(password: str) -> None:
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise WeakPasswordError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


class AuthService:
    """Service for handling authentication operations"""

    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.settings = settings

    def issue_token(self, user: User, extra_claims: Optional[Dict[str, Any]] = None) -> str:
        """Sign an access token carrying the user's id, email and role"""
        token_data = {
            "sub": str(user.id),
            "id": user.id,
            "email": user.email,
            "role": user.role,
        }
        if extra_claims:
            token_data.update(extra_claims)
        return create_access_token(
            token_data,
            self.settings.jwt_secret,
            expires_delta=timedelta(minutes=self.settings.jwt_expire_minutes),
            algorithm=self.settings.jwt_algorithm,
        )

    def login(self, email: str, password: str) -> Tuple[User, str]:
        """
        Authenticate user and generate access token

        Args:
            email: User email
            password: Plain text password

        Returns:
            Tuple of (User object, JWT token)

        Raises:
            AuthenticationError: If credentials are invalid
            AccountDisabledError: If the account is inactive
        """
        user = self.get_user_by_email(email)

        if not user:
            raise AuthenticationError("Invalid credentials")

        if not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid credentials")

        if not user.is_active:
            raise AccountDisabledError("Account is disabled")

        user.last_login_at = datetime.utcnow()
        self.db.commit()

        logger.info(f"User {user.id} logged in")
        return user, self.issue_token(user)

    def signup(self, name: str, email: str, password: str, company: Optional[str] = None) -> Tuple[User, str]:
        """
        Register a new user account with role 'user'

        Args:
            name: Display name
            email: User email
            password: Plain text password
            company: Optional company name

        Returns:
            Tuple of (User object, JWT token)

        Raises:
            EmailTakenError: If email already exists
            WeakPasswordError: If the password is too short
        """
        if self.get_user_by_email(email):
            raise EmailTakenError("Email already registered")

        validate_password_strength(password)

        user = User(
            name=name.strip(),
            email=email.lower(),
            password_hash=hash_password(password),
            company=company.strip() if company else None,
            role="user",
            account_role="admin",
            status="active",
        )
        self.db.add(user)
        self.db.flush()
        store_permissions(self.db, user, default_matrix(TenantClass.USER))

        self.db.commit()
        self.db.refresh(user)

        logger.info(f"Created user {user.id} ({user.email})")
        return user, self.issue_token(user)

    def change_password(self, user: User, current_password: str, new_password: str) -> None:
        """
        Replace a user's password after checking the current one

        Raises:
            AuthenticationError: If the current password is wrong
            WeakPasswordError: If the new password is too short
        """
        if not verify_password(current_password, user.password_hash):
            raise AuthenticationError("Current password incorrect")

        validate_password_strength(new_password)

        user.password_hash = hash_password(new_password)
        self.db.commit()
        logger.info(f"Password changed for user {user.id}")

    def verify_token(self, token: str) -> Optional[Dict[str, Any]]:
        """
        Verify and decode JWT token

        Args:
            token: JWT access token

        Returns:
            Token payload if valid, None otherwise
        """
        return decode_access_token(token, self.settings.jwt_secret, self.settings.jwt_algorithm)

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email.lower()).first()
