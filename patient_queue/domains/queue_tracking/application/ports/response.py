# ============================================================================
# SCOPE: APPLICATION LAYER (Queue Tracking)
# Description: External system response type.
# ============================================================================
"""External Response Type.

Contains the ExternalResponse dataclass returned by the clinical data client.
This is in a separate file to avoid circular imports.
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class ExternalResponse:
    """Structured response from the clinical data API.

    Lets adapters inspect success/failure without catching transport exceptions.
    """

    success: bool
    data: dict[str, Any] | list[Any] | None = None
    error_code: str | None = None
    error_message: str | None = None
    status_code: int | None = None

    @classmethod
    def ok(cls, data: dict[str, Any] | list[Any] | None = None, status_code: int = 200) -> "ExternalResponse":
        """Factory for successful response."""
        return cls(success=True, data=data, status_code=status_code)

    @classmethod
    def error(cls, code: str, message: str, status_code: int | None = None) -> "ExternalResponse":
        """Factory for error response."""
        return cls(success=False, error_code=code, error_message=message, status_code=status_code)

    @property
    def is_not_found(self) -> bool:
        return not self.success and self.status_code == 404

    def get_dict(self) -> dict[str, Any]:
        """Get data as dict, handling list responses (returns first item).

        Returns:
            Data as dictionary, or empty dict if data is None/empty list.
        """
        if isinstance(self.data, dict):
            return self.data
        if isinstance(self.data, list) and len(self.data) > 0:
            first = self.data[0]
            if isinstance(first, dict):
                return first
        return {}
