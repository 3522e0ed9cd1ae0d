# assessment_engine/core/security.py
import enum
from dataclasses import dataclass
from datetime import timedelta

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from assessment_engine.core.clock import utcnow
from assessment_engine.core.config import settings
from assessment_engine.core.errors import Forbidden


class ActingRole(str, enum.Enum):
    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"


@dataclass(frozen=True)
class Principal:
    """Authenticated caller as issued by the identity provider."""
    user_id: int
    roles: tuple[str, ...]


@dataclass(frozen=True)
class Actor:
    """A principal together with the role it is acting under for this request."""
    principal: Principal
    role: ActingRole

    @property
    def user_id(self) -> int:
        return self.principal.user_id

    @property
    def is_admin(self) -> bool:
        return self.role == ActingRole.ADMIN


def create_access_token(
    user_id: int,
    roles: list[str],
    expires_delta: timedelta | None = None,
) -> str:
    expire = utcnow() + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {"sub": str(user_id), "roles": list(roles), "exp": expire}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Principal:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        user_id = int(payload["sub"])
        roles = tuple(payload.get("roles") or ())
    except (JWTError, KeyError, TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return Principal(user_id=user_id, roles=roles)


def resolve_acting_role(principal: Principal, requested: str | None) -> ActingRole:
    """
    Pick the role the caller acts under. A requested role must be one the
    principal actually holds; without a request the first held role is used.
    """
    candidate = requested or (principal.roles[0] if principal.roles else None)
    if candidate is None or candidate not in principal.roles:
        raise Forbidden(f"Role '{candidate}' is not granted to this user")
    try:
        return ActingRole(candidate)
    except ValueError:
        raise Forbidden(f"Unknown role '{candidate}'")


_bearer = HTTPBearer(auto_error=False)


def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> Principal:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return decode_access_token(credentials.credentials)


def get_current_actor(
    principal: Principal = Depends(get_current_principal),
    x_acting_role: str | None = Header(default=None),
) -> Actor:
    return Actor(principal=principal, role=resolve_acting_role(principal, x_acting_role))


def get_current_student(actor: Actor = Depends(get_current_actor)) -> Actor:
    if actor.role != ActingRole.STUDENT:
        raise Forbidden("Only students can do this")
    return actor


def get_current_teacher(actor: Actor = Depends(get_current_actor)) -> Actor:
    # admins may act wherever teachers can
    if actor.role not in (ActingRole.TEACHER, ActingRole.ADMIN):
        raise Forbidden("Only teachers can do this")
    return actor
