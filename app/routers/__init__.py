"""API routers."""

from app.routers.user_data import router as user_data_router

__all__ = ["user_data_router"]
