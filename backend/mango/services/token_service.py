"""Access/refresh token issuance, rotation and revocation."""

from __future__ import annotations

from datetime import timedelta
from typing import Optional, Tuple
import secrets
import uuid
import logging

from sqlalchemy.orm import Session

from mango.config import settings
from mango.core.clock import Clock, as_utc, utc_now
from mango.core.exceptions import InvalidRefreshTokenError, AuthenticationError
from mango.core.security import RandomBytes, create_access_token, generate_refresh_token
from mango.models.security import RefreshToken
from mango.models.user import User
from mango.schemas.user import AuthResponse

logger = logging.getLogger(__name__)


class TokenService:
    """Manage the refresh-token lifecycle."""

    def __init__(self, clock: Clock = utc_now, random_bytes: RandomBytes = secrets.token_bytes):
        self._clock = clock
        self._random_bytes = random_bytes

    def _access_token_for(self, user: User) -> Tuple[str, str]:
        jti = str(uuid.uuid4())
        token = create_access_token(
            {
                "sub": str(user.id),
                "email": user.email,
                "jti": jti,
                "role": user.role,
                "name": user.name,
            },
            now=self._clock(),
        )
        return token, jti

    def issue_token_pair(self, db: Session, user: User) -> Tuple[str, str]:
        """
        Issue a new access token and persist a matching refresh token

        Commits the session, so anything the caller staged (e.g. a new user)
        is written in the same transaction.
        """
        access_token, jti = self._access_token_for(user)
        refresh_token = generate_refresh_token(self._random_bytes)
        now = self._clock()

        db.add(RefreshToken(
            user_id=user.id,
            token=refresh_token,
            jwt_id=jti,
            is_used=False,
            is_revoked=False,
            issued_at=now,
            expires_at=now + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        ))
        db.commit()
        return access_token, refresh_token

    @staticmethod
    def build_response(user: User, access_token: str, refresh_token: str) -> AuthResponse:
        return AuthResponse(
            user_id=str(user.id),
            email=user.email,
            name=user.name,
            token=access_token,
            refresh_token=refresh_token,
            expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        )

    @staticmethod
    def get_by_token(db: Session, refresh_token: str) -> Optional[RefreshToken]:
        return db.query(RefreshToken).filter(RefreshToken.token == refresh_token).first()

    @staticmethod
    def consume(db: Session, record: RefreshToken) -> bool:
        """
        Flip ``is_used`` with a single conditional UPDATE.

        Returns False when no row matched, i.e. the token was already used or
        revoked by the time the update ran.
        """
        updated = (
            db.query(RefreshToken)
            .filter(
                RefreshToken.id == record.id,
                RefreshToken.is_used == False,  # noqa: E712
                RefreshToken.is_revoked == False,  # noqa: E712
            )
            .update({RefreshToken.is_used: True}, synchronize_session=False)
        )
        db.commit()
        return updated == 1

    def rotate_refresh_token(self, db: Session, refresh_token: str) -> AuthResponse:
        """
        Exchange a live refresh token for a new access/refresh pair

        Raises:
            AuthenticationError: token unknown, used, revoked or expired, or
                its owner is missing or inactive
        """
        record = self.get_by_token(db, refresh_token)
        if record is None or record.is_used or record.is_revoked:
            logger.warning("Refresh rejected: token unknown, used or revoked")
            raise InvalidRefreshTokenError()

        if as_utc(record.expires_at) < self._clock():
            logger.warning("Refresh rejected: token expired for user %s", record.user_id)
            raise InvalidRefreshTokenError("Refresh token expired")

        user = db.query(User).filter(User.id == record.user_id).first()
        if not user or not user.is_active:
            logger.warning("Refresh rejected: user %s not found or inactive", record.user_id)
            raise AuthenticationError("User not found or inactive")

        if not self.consume(db, record):
            logger.warning("Refresh rejected: token for user %s consumed concurrently", user.id)
            raise InvalidRefreshTokenError()

        access_token, new_refresh = self.issue_token_pair(db, user)
        logger.info("Token refreshed for user %s", user.email)
        return self.build_response(user, access_token, new_refresh)

    @staticmethod
    def revoke_refresh_token(db: Session, refresh_token: str, user_id: Optional[str] = None) -> bool:
        """Mark a refresh token revoked; optionally only if owned by user_id"""
        record = TokenService.get_by_token(db, refresh_token)
        if not record or (user_id is not None and record.user_id != user_id):
            return False
        if not record.is_revoked:
            record.is_revoked = True
            db.commit()
        return True


token_service = TokenService()
