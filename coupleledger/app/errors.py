from typing import Any, Dict, List, Optional


class EngineError(Exception):
    """Base class for errors raised by the settlement and aggregation engine"""


class ValidationError(EngineError):
    """
    Input rejected before any state mutation.

    Carries the offending field so the API layer can report a field-level
    message instead of a generic failure.
    """

    def __init__(self, field: str, message: str, value: Optional[Any] = None):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message
        self.value = value

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "message": self.message}


class LinkageError(EngineError):
    """Partner scope requested while the couple is not connected"""

    def __init__(self, requested_scope: str):
        super().__init__(f"Scope '{requested_scope}' requires a connected partner")
        self.requested_scope = requested_scope


def validation_error_payload(errors: List[ValidationError]) -> Dict[str, Any]:
    return {"detail": [error.to_dict() for error in errors]}
