"""Bearer-token authentication for the settlement API.

The identity service issues HS256 JWTs carrying ``sub`` (subject id) and
``role``. Routes depend on ``get_caller`` and pass the resulting
``CallerContext`` into every command and query explicitly.
"""

from datetime import UTC, datetime, timedelta

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from settlement import config
from settlement.access.context import CallerContext
from settlement.errors import Unauthorized

security = HTTPBearer(auto_error=False)


def get_caller(credentials: HTTPAuthorizationCredentials | None = Depends(security)) -> CallerContext:
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Missing bearer token")
    try:
        payload = jwt.decode(credentials.credentials, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token expired") from None
    except jwt.InvalidTokenError:
        raise Unauthorized("Invalid token") from None

    return CallerContext.of(payload.get("role"), payload.get("sub"))


def issue_token(subject_id: str, role: str, expires_in: timedelta = timedelta(hours=1)) -> str:
    """Sign a token the way the identity service does; used by tests and local tooling."""
    now = datetime.now(UTC)
    payload = {"sub": str(subject_id), "role": role, "iat": now, "exp": now + expires_in}
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)
