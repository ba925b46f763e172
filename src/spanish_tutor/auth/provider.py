"""Local auth provider: password sign-up/sign-in and bearer token resolution."""

import uuid
from datetime import datetime, timedelta, timezone

import structlog
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

from spanish_tutor.errors import AuthFailure, ValidationFailure
from spanish_tutor.models.profile import CamelModel, utcnow
from spanish_tutor.storage.kv import KeyValueStore

logger = structlog.get_logger()

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

MIN_PASSWORD_LENGTH = 6


class AuthUser(CamelModel):
    id: str
    email: str
    name: str
    password_hash: str
    created_at: datetime

    def public(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "userMetadata": {"name": self.name},
            "createdAt": self.created_at.isoformat(),
        }


class Session(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: AuthUser


def _user_key(email: str) -> str:
    return f"auth_user:{email}"


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


class AuthProvider:
    """Issues and validates signed bearer tokens for locally stored users.

    Args:
        store: Key-value store holding ``auth_user:<email>`` records.
        secret_key: JWT signing key.
        algorithm: JWT algorithm.
        token_ttl_minutes: Token lifetime.
    """

    def __init__(
        self,
        store: KeyValueStore,
        secret_key: str,
        algorithm: str = "HS256",
        token_ttl_minutes: int = 120,
    ):
        self.store = store
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.token_ttl = timedelta(minutes=token_ttl_minutes)

    def sign_up(self, email: str | None, password: str | None, name: str | None) -> AuthUser:
        email = normalize_email(email)
        name = (name or "").strip()
        if not email or not password or not name:
            raise ValidationFailure("email, password and name are required")
        if "@" not in email:
            raise ValidationFailure("Unable to validate email address: invalid format")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationFailure(
                f"Password should be at least {MIN_PASSWORD_LENGTH} characters"
            )

        user = AuthUser(
            id=uuid.uuid4().hex,
            email=email,
            name=name,
            password_hash=pwd_context.hash(password),
            created_at=utcnow(),
        )
        if not self.store.add(_user_key(email), user.to_record()):
            raise ValidationFailure("A user with this email address has already been registered")
        logger.info("user_signed_up", user_id=user.id)
        return user

    def sign_in(self, email: str | None, password: str | None) -> Session:
        data = self.store.get(_user_key(normalize_email(email)))
        if data is None or not password:
            raise AuthFailure("Invalid login credentials")
        user = AuthUser.model_validate(data)
        if not pwd_context.verify(password, user.password_hash):
            raise AuthFailure("Invalid login credentials")
        logger.info("user_signed_in", user_id=user.id)
        return Session(access_token=self.issue_token(user.id), user=user)

    def issue_token(self, user_id: str) -> str:
        expire = datetime.now(timezone.utc) + self.token_ttl
        return jwt.encode(
            {"sub": user_id, "exp": expire}, self.secret_key, algorithm=self.algorithm
        )

    def resolve(self, token: str | None) -> str:
        """Return the user id for ``token``."""
        if not token:
            raise AuthFailure("Unauthorized")
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            raise AuthFailure("Unauthorized") from e
        user_id = payload.get("sub")
        if not user_id:
            raise AuthFailure("Unauthorized")
        return user_id
