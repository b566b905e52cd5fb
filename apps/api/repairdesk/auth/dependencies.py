from typing import Callable

from fastapi import Depends, Header, HTTPException, status

from repairdesk.auth.jwt import decode_jwt, jwt_http_exception
from repairdesk.config import allowed_roles_list, settings
from repairdesk.services.policy import Actor, Role


def get_actor(authorization: str | None = Header(default=None)) -> Actor:
    if not authorization or not authorization.startswith("Bearer "):
        raise jwt_http_exception("Missing bearer token")

    token = authorization.removeprefix("Bearer ").strip()
    try:
        payload = decode_jwt(token, settings.jwt_secret)
    except Exception as err:
        raise jwt_http_exception("Invalid JWT") from err

    role = payload.get("role")
    user_id = payload.get("sub")
    if role not in allowed_roles_list() or not isinstance(user_id, str) or not user_id:
        raise jwt_http_exception("Invalid JWT claims")

    try:
        return Actor(user_id=user_id, role=Role(role))
    except ValueError as err:
        raise jwt_http_exception("Invalid JWT claims") from err


def require_roles(*roles: Role) -> Callable[[Actor], Actor]:
    def dependency(actor: Actor = Depends(get_actor)) -> Actor:
        if actor.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
        return actor

    return dependency
