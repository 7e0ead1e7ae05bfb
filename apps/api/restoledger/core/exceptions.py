"""
Domain exceptions raised by the ledger services.

Routers never raise these themselves; the handlers registered in
``restoledger.main`` translate them into HTTP responses.
"""
from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base exception for all inventory and cost ledger errors."""

    status_code = 500

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    @property
    def default_code(self) -> str:
        return "ledger_error"

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.error_code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(LedgerError):
    """Input rejected before any lock is taken."""

    status_code = 400

    @property
    def default_code(self) -> str:
        return "validation_error"


class NotFoundError(LedgerError):
    """A recipe, order, ingredient or record does not exist for this restaurant."""

    status_code = 404

    @property
    def default_code(self) -> str:
        return "not_found"


class ConflictError(LedgerError):
    """The operation collides with state that was already applied."""

    status_code = 409

    @property
    def default_code(self) -> str:
        return "conflict"
