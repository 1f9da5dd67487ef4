from .dependencies import get_current_user, require_roles
from .schemas import Actor, UserRole

__all__ = ["get_current_user", "require_roles", "Actor", "UserRole"]
