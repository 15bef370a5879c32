"""Platform admin module - Rate limit and background job operations."""

from app.modules.admin.router import router

__all__ = ["router"]
