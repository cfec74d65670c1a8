# =====================================================
# FILE: hrflow/services/audit_service.py
# Service Layer for the workflow audit trail
# =====================================================

from sqlalchemy.orm import Session
from datetime import datetime
from typing import Optional, Dict, Any
import logging

from hrflow.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


class AuditService:
    """
    Records who did what to which document.

    Rows are added to the caller's session and committed with the rest of
    the request, so a refused action leaves no audit row behind.
    """

    def __init__(self, db: Session):
        self.db = db

    def log_action(
        self,
        action: str,
        entity_type: str,
        entity_id: Any,
        user_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> AuditLog:
        entry = AuditLog(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action,
            user_id=user_id,
            details=details or {},
            created_at=datetime.utcnow()
        )
        self.db.add(entry)
        self.db.flush()
        logger.info(f"Audit: {entity_type}#{entity_id} {action} by {user_id}")
        return entry

