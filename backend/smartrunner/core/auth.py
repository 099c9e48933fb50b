from typing import Optional

import jwt
from fastapi import Header, HTTPException

from smartrunner.core.config import settings


def get_current_user(authorization: Optional[str] = Header(None)) -> str:
    """Return the user id (`sub` claim) of the bearer token.

    Tokens come from the identity provider. When no `auth_secret` is
    configured they are only decoded, not verified.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing token")

    token = authorization.split(" ", 1)[1].strip()
    try:
        if settings.auth_secret:
            claims = jwt.decode(token, settings.auth_secret, algorithms=settings.auth_algorithms)
        else:
            claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        raise HTTPException(status_code=403, detail="Invalid token")

    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(status_code=403, detail="Invalid token")
    return str(user_id)
