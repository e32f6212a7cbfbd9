# ecdemis/api/deps/tenancy.py
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from ecdemis.api.deps.auth import ActorContext, get_current_user


def require_institution(
    ctx: ActorContext = Depends(get_current_user),
    x_institution_id: Optional[int] = Header(None, alias="X-Institution-ID"),
) -> int:
    """
    The institution every request is scoped to. County super admins may act
    on any institution through the X-Institution-ID header.
    """
    if x_institution_id is not None and ctx.has_role("super_admin"):
        return x_institution_id
    if ctx.institution_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You must be assigned to an institution",
        )
    return ctx.institution_id


def require_roles(*roles: str):
    def checker(ctx: ActorContext = Depends(get_current_user)) -> ActorContext:
        if not ctx.has_role(*roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires one of: {', '.join(roles)}",
            )
        return ctx
    return checker
