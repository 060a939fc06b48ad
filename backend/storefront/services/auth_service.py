from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol

import jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from storefront.config import settings
from storefront.errors import Conflict, Forbidden, Unauthorized, UserNotFound
from storefront.models.user import User, UserRole
from storefront.repositories.user_repo import UserRepository
from storefront.utils.logging import get_logger
from storefront.utils.transactions import smart_transaction

log = get_logger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


@dataclass(frozen=True)
class Caller:
    """Identity and role of whoever invokes a service operation."""

    user_id: int
    role: UserRole = UserRole.CUSTOMER
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def require_admin(caller: Caller):
    if not caller.is_admin:
        raise Forbidden("Admin access required")


class AuthProvider(Protocol):
    def verify(self, token: str) -> Caller:
        ...


class JWTAuthProvider:
    def __init__(
        self,
        secret: str = None,
        algorithm: str = None,
        expires_seconds: int = None,
    ):
        self.secret = secret or settings.SECRET_KEY
        self.algorithm = algorithm or settings.JWT_ALGORITHM
        self.expires_seconds = expires_seconds or settings.JWT_EXPIRES_SECONDS

    def issue(self, user: User) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user.id),
            "email": user.email,
            "role": user.role.value,
            "iat": now,
            "exp": now + timedelta(seconds=self.expires_seconds),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> Caller:
        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
            return Caller(
                user_id=int(claims["sub"]),
                role=UserRole(claims.get("role", UserRole.CUSTOMER.value)),
                email=claims.get("email"),
            )
        except (jwt.PyJWTError, KeyError, ValueError) as e:
            log.debug("rejected token: %s", e)
            raise Unauthorized()


class AuthService:
    def __init__(self, db: Session, provider: JWTAuthProvider = None):
        self.db = db
        self.users = UserRepository(db)
        self.provider = provider or JWTAuthProvider()

    def register(self, email: str, password: str, first_name: str, last_name: str):
        email = email.strip().lower()
        with smart_transaction(self.db):
            if self.users.get_by_email(email):
                raise Conflict("User with this email already exists")
            user = self.users.create(
                email=email,
                password_hash=pwd_context.hash(password),
                first_name=first_name,
                last_name=last_name,
            )
        log.info("registered user %s", user.id)
        return user, self.provider.issue(user)

    def login(self, email: str, password: str):
        user = self.users.get_by_email(email.strip().lower())
        if not user or not pwd_context.verify(password, user.password_hash):
            raise Unauthorized("Invalid email or password")
        return user, self.provider.issue(user)

    def profile(self, caller: Caller) -> User:
        user = self.users.get(caller.user_id)
        if not user:
            raise UserNotFound()
        return user
