"""Root of the neo-permissions exception hierarchy.

Every error carries a stable ``error_code`` (the class's
``default_error_code``, else its name) and a ``details`` mapping that is
safe to return to API callers.
"""

from typing import Any, Dict, Optional


class NeoPermissionsError(Exception):
    """Base exception for all neo-permissions errors."""

    default_error_code: Optional[str] = None

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_error_code or type(self).__name__
        self.details = dict(details) if details else {}

    def to_response(self) -> Dict[str, Any]:
        """Error envelope returned by the HTTP layer."""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details,
                "type": type(self).__name__,
            }
        }


def create_error_response(exception: NeoPermissionsError) -> Dict[str, Any]:
    return exception.to_response()
