"""HTTP surface for neo-permissions."""

from .exception_handlers import register_exception_handlers
from .app import create_app

__all__ = [
    "register_exception_handlers",
    "create_app",
]
