from .accrual import router as accrual_router
from .admin import router as admin_router
from .engagements import router as engagements_router
from .sessions import router as sessions_router

__all__ = ["accrual_router", "admin_router", "engagements_router", "sessions_router"]
