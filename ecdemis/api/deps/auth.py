# ecdemis/api/deps/auth.py
from dataclasses import dataclass, field
from typing import Optional, Tuple

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jwt import PyJWTError
from sqlalchemy import select
from sqlalchemy.orm import Session

from ecdemis.core.db import get_db
from ecdemis.core.security import decode_token
from ecdemis.models.user import Profile, UserRole

security = HTTPBearer()


@dataclass
class ActorContext:
    """The signed-in user, passed explicitly to every service call"""
    user_id: str
    full_name: Optional[str] = None
    institution_id: Optional[int] = None
    roles: Tuple[str, ...] = field(default_factory=tuple)
    claims: dict = field(default_factory=dict)

    def has_role(self, *roles: str) -> bool:
        return any(r in self.roles for r in roles)


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> ActorContext:
    """Decode the identity provider's JWT and load the caller's profile and roles"""
    token = credentials.credentials
    try:
        claims = decode_token(token)
    except PyJWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing user ID",
        )

    profile = db.get(Profile, str(user_id))
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    roles = db.execute(
        select(UserRole.role).where(UserRole.user_id == profile.id).order_by(UserRole.role)
    ).scalars().all()

    return ActorContext(
        user_id=profile.id,
        full_name=profile.full_name,
        institution_id=profile.institution_id,
        roles=tuple(roles),
        claims=claims,
    )
