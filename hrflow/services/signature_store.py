# =====================================================
# FILE: hrflow/services/signature_store.py
# Stored signature image lookup
# =====================================================

from sqlalchemy.orm import Session
from typing import Optional

from hrflow.core.exceptions import PreconditionError
from hrflow.models.user import User


class SignatureStore:
    def __init__(self, db: Session):
        self.db = db

    def get_signature_image(self, user_id: str) -> Optional[str]:
        user = self.db.query(User).filter(User.user_id == user_id).first()
        if user is None or not user.signature_image:
            return None
        return user.signature_image

    def require_signature_image(self, user_id: str) -> str:
        image = self.get_signature_image(user_id)
        if not image:
            raise PreconditionError(
                "No stored signature found. Register a signature before signing.",
                {"user_id": user_id}
            )
        return image
