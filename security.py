import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from jose import JWTError, jwt
from passlib.context import CryptContext

from config import Settings
from errors import Forbidden, Unauthenticated
from schemas import Identity

logger = logging.getLogger(__name__)


class IdentityService:
    """Password hashing and signed identity tokens.

    Tokens are HS256 JWTs carrying ``id``, ``email``, ``isAdmin`` and ``exp``.
    """

    def __init__(self, settings: Settings):
        self.secret_key = settings.secret_key
        self.algorithm = settings.algorithm
        self.expires = timedelta(days=settings.token_expire_days)
        self.pwd_context = CryptContext(
            schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.bcrypt_rounds
        )
        # checked against when no account matches, so misses cost as much as hits
        self.dummy_hash = self.pwd_context.hash("pogojump-dummy-password")

    def hash_password(self, password: str) -> str:
        return self.pwd_context.hash(password)

    def verify_password(self, password: str, hashed: str) -> bool:
        try:
            return self.pwd_context.verify(password, hashed)
        except (ValueError, TypeError):
            # unknown or malformed hash
            return False

    def issue_token(self, user_id: Union[str, int], email: str, is_admin: bool,
                    expires_delta: Optional[timedelta] = None) -> str:
        expire = datetime.now(timezone.utc) + (expires_delta if expires_delta is not None else self.expires)
        claims = {"id": str(user_id), "email": email, "isAdmin": bool(is_admin), "exp": expire}
        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Identity:
        try:
            payload = jwt.decode(
                token, self.secret_key, algorithms=[self.algorithm], options={"require_exp": True}
            )
        except JWTError as e:
            logger.debug("Token rejected: %s", e)
            raise Unauthenticated("Invalid token") from e
        user_id = payload.get("id")
        email = payload.get("email")
        if user_id is None or email is None:
            raise Unauthenticated("Invalid token")
        return Identity(id=str(user_id), email=email, is_admin=payload.get("isAdmin") is True)


# Guard

def authenticate(identity_service: IdentityService, token: Optional[str]) -> Identity:
    if not token:
        raise Unauthenticated("No token provided")
    return identity_service.verify_token(token)


def require_admin(identity: Identity) -> None:
    if not identity.is_admin:
        raise Forbidden("Admin access required")


def require_owner_or_admin(identity: Identity, owner_id, detail: str = "Insufficient permissions") -> None:
    if identity.is_admin or str(owner_id) == identity.id:
        return
    raise Forbidden(detail)
