"""API key authentication and role checks.

API keys are SHA256-hashed and looked up directly on the indexed
``users.api_key_hash`` column. The resolved ``User`` is handed to every
service call explicitly; services never read ambient session state.
"""
import hashlib
from fastapi import HTTPException, Security, Depends
from fastapi.security import APIKeyHeader
from sqlalchemy.orm import Session
from typing import Callable, Optional

from app.database import get_db
from app.errors import NotFoundError
from app.models.partner import Partner
from app.models.user import User, UserRole

# API key header
api_key_header = APIKeyHeader(name="x-api-key", auto_error=False)


def hash_api_key(api_key: str) -> str:
    """
    Hash an API key for storage using SHA256.

    Args:
        api_key: Plain text API key

    Returns:
        SHA256 hex digest of the API key
    """
    return hashlib.sha256(api_key.encode()).hexdigest()


async def get_current_user(
    api_key: Optional[str] = Security(api_key_header),
    db: Session = Depends(get_db)
) -> User:
    """
    Dependency to validate API key and get current user.

    Raises:
        HTTPException: 401 if API key is invalid or missing
    """
    if not api_key:
        raise HTTPException(
            status_code=401,
            detail="Missing API key",
            headers={"WWW-Authenticate": "ApiKey"}
        )

    user = db.query(User).filter(
        User.api_key_hash == hash_api_key(api_key)
    ).first()

    if not user:
        raise HTTPException(
            status_code=401,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "ApiKey"}
        )

    return user


def require_role(*roles: UserRole) -> Callable:
    """
    Build a dependency that only lets the given roles through.

    Usage:
        @router.get("/admin/thing")
        def admin_route(user: User = Depends(require_role(UserRole.ADMIN))):
            ...
    """
    async def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(status_code=403, detail="Access denied for this role")
        return user

    return checker


async def get_current_partner(
    user: User = Depends(require_role(UserRole.PARTNER)),
    db: Session = Depends(get_db)
) -> Partner:
    """Dependency resolving the partner profile of the calling user."""
    partner = db.query(Partner).filter(Partner.user_id == user.id).first()
    if not partner:
        raise NotFoundError("Partner not found")
    return partner


def create_user_with_api_key(db: Session, api_key: str, email: str, role: UserRole) -> User:
    """
    Helper to create a new user with an API key.

    Args:
        db: Database session
        api_key: Plain text API key (will be hashed with SHA256)
        email: Contact address, unique per user
        role: Advertiser, partner or admin

    Returns:
        Created User instance
    """
    user = User(
        api_key_hash=hash_api_key(api_key),
        email=email,
        role=role
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user
