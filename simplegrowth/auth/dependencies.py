"""FastAPI dependencies for authentication and tenancy."""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from simplegrowth.auth.utils import decode_access_token
from simplegrowth.database import get_db
from simplegrowth.models import User

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """The user named by the bearer token. 401 when missing, invalid or for a deleted user."""
    if not credentials:
        raise _unauthorized("Not authenticated")

    claims = decode_access_token(credentials.credentials)
    if not claims or not claims.get("sub"):
        raise _unauthorized("Invalid or expired token")

    result = await db.execute(select(User).where(User.id == claims["sub"]))
    user = result.scalar_one_or_none()
    if user is None:
        raise _unauthorized("User not found")
    return user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """Staff-only endpoints: portal triage, the lead inbox and seeding."""
    if current_user.role != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return current_user


def require_organization(current_user: User = Depends(get_current_user)) -> str:
    """
    The caller's organization id.

    Users exist before they finish onboarding, so every tenant-scoped
    endpoint that cannot return an empty payload depends on this.
    """
    if not current_user.organization_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No organization found")
    return current_user.organization_id
