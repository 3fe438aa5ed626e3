from .permissions import check_permission
from .decorators import require_permission

__all__ = [
    "check_permission",
    "require_permission",
]
