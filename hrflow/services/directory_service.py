# =====================================================
# FILE: hrflow/services/directory_service.py
# Organisation directory lookups used by approver resolution
# =====================================================

from sqlalchemy.orm import Session
from typing import List, Optional, Union
import logging

from hrflow.models.user import Department, User

logger = logging.getLogger(__name__)


class DirectoryService:
    """
    Read-only view over the users/departments tables.

    Only active identities are ever returned.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_identity(self, user_id: Optional[str]) -> Optional[User]:
        if not user_id:
            return None
        user = self.db.query(User).filter(User.user_id == user_id).first()
        if user is None or not user.is_active:
            return None
        return user

    def get_department(self, dept_code: Optional[str]) -> Optional[Department]:
        if not dept_code:
            return None
        return self.db.query(Department).filter(Department.dept_code == dept_code).first()

    def list_by_job_level(self, job_level: Union[int, str], dept_code: Optional[str] = None) -> List[User]:
        query = self.db.query(User).filter(
            User.is_active.is_(True),
            User.job_level == str(int(job_level))
        )
        if dept_code:
            query = query.filter(User.dept_code == dept_code)
        return query.order_by(User.user_name, User.user_id).all()

    def list_department_members(self, dept_code: str) -> List[User]:
        return self.db.query(User).filter(
            User.is_active.is_(True),
            User.dept_code == dept_code
        ).order_by(User.job_level.desc(), User.user_name, User.user_id).all()
