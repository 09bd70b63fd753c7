"""FastAPI dependencies for injection."""
from functools import lru_cache

from core.auth import get_current_principal, get_token_service, require_principal
from core.config import get_settings
from core.entities import get_entity_registry
from db.session import get_async_session
from services.crud_service import CrudService
from services.password_reset_service import LoggingResetCodeNotifier, ResetCodeNotifier


@lru_cache
def get_crud_service() -> CrudService:
    """Get the CRUD service over the application's entity registry."""
    settings = get_settings()
    return CrudService(
        get_entity_registry(),
        default_page_size=settings.api_default_page_size,
        max_page_size=settings.api_max_page_size,
    )


def get_reset_code_notifier() -> ResetCodeNotifier:
    """Override to plug in real delivery (email, SMS)."""
    return LoggingResetCodeNotifier()


__all__ = [
    "get_async_session",
    "get_crud_service",
    "get_current_principal",
    "get_reset_code_notifier",
    "get_settings",
    "get_token_service",
    "require_principal",
]
