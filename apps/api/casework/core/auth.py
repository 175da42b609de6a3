from dataclasses import dataclass

from jose import JWTError, jwt
from starlette.requests import Request

from casework.core.config import get_settings


@dataclass
class AuthUser:
    sub: str
    roles: list[str]
    name: str | None = None


async def get_current_user(request: Request) -> AuthUser:
    auth_header = request.headers.get("authorization", "")
    token = auth_header.replace("Bearer ", "") if auth_header.startswith("Bearer ") else ""

    if not token:
        return AuthUser(sub="anonymous", roles=["guest"])

    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return AuthUser(sub="anonymous", roles=["guest"])

    subject = str(payload.get("sub", "anonymous"))
    roles = payload.get("roles", [])
    if not isinstance(roles, list):
        roles = []
    context = getattr(request.state, "context", None)
    if context is not None:
        context.user_id = subject
    name = payload.get("name")
    return AuthUser(sub=subject, roles=[str(role) for role in roles], name=str(name) if name else None)


def issue_token(sub: str, roles: list[str], *, name: str | None = None) -> str:
    settings = get_settings()
    claims: dict[str, object] = {"sub": sub, "roles": roles}
    if name:
        claims["name"] = name
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)
