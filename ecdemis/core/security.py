# ecdemis/core/security.py
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
import jwt
from ecdemis.core.config import settings

def create_token(sub: str, minutes: Optional[int] = None, **claims: Any) -> str:
    """Mint a token shaped like the identity provider's (service and test use)."""
    now = datetime.now(tz=timezone.utc)
    payload: dict[str, Any] = {
        "sub": sub,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=minutes or settings.JWT_EXPIRES_MINUTES)).timestamp()),
    }
    if settings.JWT_AUDIENCE:
        payload["aud"] = settings.JWT_AUDIENCE
    payload.update(claims)
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)

def decode_token(token: str) -> dict[str, Any]:
    return jwt.decode(
        token,
        settings.JWT_SECRET,
        algorithms=[settings.JWT_ALG],
        audience=settings.JWT_AUDIENCE,
        options={"verify_aud": bool(settings.JWT_AUDIENCE)},
    )
