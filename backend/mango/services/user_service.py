"""User service - registration and credential checks"""

from functools import lru_cache
from typing import Optional
import secrets
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mango.core.clock import Clock, utc_now
from mango.core.exceptions import DuplicateEmailError, InvalidCredentialsError
from mango.core.security import RandomBytes, generate_salt, get_password_hash, verify_password
from mango.models.user import Role, User
from mango.schemas.user import AuthResponse, LoginRequest, RegisterRequest
from mango.services.token_service import TokenService, token_service as default_token_service

logger = logging.getLogger(__name__)

_DUMMY_SALT = "AAAAAAAAAAAAAAAAAAAAAA=="


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return get_password_hash("timing-normalization", _DUMMY_SALT)


class UserService:
    """Service for user identity"""

    def __init__(
        self,
        tokens: Optional[TokenService] = None,
        clock: Clock = utc_now,
        random_bytes: RandomBytes = secrets.token_bytes,
    ):
        self._tokens = tokens or default_token_service
        self._clock = clock
        self._random_bytes = random_bytes

    def create_user(
        self,
        db: Session,
        *,
        email: str,
        password: str,
        name: str,
        phone_number: str,
        role: str = Role.CUSTOMER,
    ) -> User:
        """
        Stage a new user in the session (flushed, not committed)

        Raises:
            DuplicateEmailError: a user with exactly this email exists
        """
        if self.get_user_by_email(db, email):
            raise DuplicateEmailError()

        salt = generate_salt(self._random_bytes)
        user = User(
            email=email,
            name=name,
            phone_number=phone_number,
            salt=salt,
            password_hash=get_password_hash(password, salt),
            role=role,
            is_active=True,
            email_confirmed=False,
            created_at=self._clock(),
        )
        db.add(user)
        try:
            db.flush()
        except IntegrityError:
            # lost a race with a concurrent registration for the same email
            db.rollback()
            logger.warning("Registration conflict on unique email: %s", email)
            raise DuplicateEmailError()
        return user

    def register(self, db: Session, request: RegisterRequest) -> AuthResponse:
        """
        Register a customer and open their first session

        Args:
            db: Database session
            request: Registration data

        Returns:
            Issued session for the new user
        """
        user = self.create_user(
            db,
            email=request.email,
            password=request.password,
            name=request.name,
            phone_number=request.phone_number,
        )
        access_token, refresh_token = self._tokens.issue_token_pair(db, user)

        logger.info("User registered successfully %s", user.email)
        return self._tokens.build_response(user, access_token, refresh_token)

    def authenticate_user(self, db: Session, email: str, password: str) -> User:
        """
        Check credentials

        Unknown email, wrong password and inactive account all raise the same
        error. An unknown email still pays for one key derivation.
        """
        user = self.get_user_by_email(db, email)

        if not user:
            verify_password(password, _dummy_hash(), _DUMMY_SALT)
            logger.warning("Login failed: user not found %s", email)
            raise InvalidCredentialsError()

        if not verify_password(password, user.password_hash, user.salt):
            logger.warning("Login failed: invalid password for %s", email)
            raise InvalidCredentialsError()

        if not user.is_active:
            logger.warning("Login failed: inactive account %s", email)
            raise InvalidCredentialsError()

        return user

    def login(self, db: Session, request: LoginRequest) -> AuthResponse:
        """Authenticate and open an independent new session"""
        user = self.authenticate_user(db, request.email, request.password)
        access_token, refresh_token = self._tokens.issue_token_pair(db, user)

        logger.info("User logged in successfully %s", user.email)
        return self._tokens.build_response(user, access_token, refresh_token)

    @staticmethod
    def get_user_by_id(db: Session, user_id: str) -> Optional[User]:
        """Get user by ID"""
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        """Get user by exact email"""
        return db.query(User).filter(User.email == email).first()


# Singleton instance
user_service = UserService()
