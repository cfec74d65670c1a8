"""
API v1 routers
File: hrflow/api/api_v1/__init__.py
"""

from fastapi import APIRouter

from hrflow.api.api_v1.approval_lines.router import router as approval_lines_router
from hrflow.api.api_v1.approvals.pending_actions import router as pending_actions_router
from hrflow.api.api_v1.contracts.router import router as contracts_router
from hrflow.api.api_v1.work_schedules.router import router as work_schedules_router

api_router = APIRouter()
api_router.include_router(approval_lines_router)
api_router.include_router(work_schedules_router)
api_router.include_router(contracts_router)
api_router.include_router(pending_actions_router)
