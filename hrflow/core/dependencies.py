# =====================================================
# FILE: hrflow/core/dependencies.py
# Request dependencies: current user resolution
# =====================================================

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session
from typing import Optional
import logging

from hrflow.core.database import get_db
from hrflow.models.user import User

logger = logging.getLogger(__name__)


def get_current_user(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    db: Session = Depends(get_db)
) -> User:
    """
    Resolve the authenticated identity.

    Authentication happens upstream (gateway / session layer); this service
    trusts the X-User-Id header it forwards and only checks the user exists
    and is active.
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )

    user = db.query(User).filter(User.user_id == x_user_id).first()
    if not user or not user.is_active:
        logger.warning(f"Rejected request for unknown or inactive user '{x_user_id}'")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown or inactive user"
        )
    return user
