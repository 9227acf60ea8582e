"""
Exam Platform - API Dependencies
FastAPI dependencies for authentication, authorization and principal resolution
"""
import uuid
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import verify_token
from app.models.user import User, UserRole
from app.services.identity import Principal, load_principal

# Security scheme
security = HTTPBearer()


async def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Get current authenticated user from JWT token.

    The token's optional "kind" claim (which account representation the
    login path produced) is kept on request.state for principal resolution.

    Raises:
        HTTPException: If token is invalid or user not found
    """
    claims = verify_token(credentials.credentials, token_type="access")
    if not claims:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user_id = uuid.UUID(str(claims["sub"]))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated",
        )

    request.state.principal_kind = claims.get("kind") or "user"
    return user


def require_role(*roles: UserRole):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.get("/exams")
        async def faculty_only(user: User = Depends(require_role(UserRole.FACULTY))):
            ...
    """
    async def role_checker(
        current_user: Annotated[User, Depends(get_current_user)],
    ) -> User:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required: {[r.value for r in roles]}",
            )
        return current_user

    return role_checker


async def get_student_principal(
    request: Request,
    current_user: Annotated[User, Depends(require_role(UserRole.STUDENT))],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Principal:
    """Resolve the calling student once per request, academic profile included."""
    kind = getattr(request.state, "principal_kind", "user")
    return await load_principal(db, current_user, kind=kind)


# Type aliases for common dependencies
CurrentUser = Annotated[User, Depends(get_current_user)]
FacultyUser = Annotated[User, Depends(require_role(UserRole.FACULTY))]
StudentPrincipal = Annotated[Principal, Depends(get_student_principal)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
