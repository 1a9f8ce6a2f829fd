"""
errors.py — Error kinds raised by the pricing, staffing and proposal engines.

All errors are local and synchronous; nothing here is retryable.  Each error
carries a stable ``code`` so the API layer can surface it without parsing
messages.  Mutation errors are additionally stamped with the zero-based
position of the failing operation in its batch.
"""

from typing import Any, Dict, Optional


class PricingEngineError(Exception):
    """Base class for every error raised by the computation core."""

    code: str = "PRICING_ENGINE_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        self.operation_index: Optional[int] = None
        self.operation: Optional[str] = None

    def at_operation(self, index: int, operation: str) -> "PricingEngineError":
        """Stamp the batch position of the operation that raised this error."""
        self.operation_index = index
        self.operation = operation
        return self

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code, "detail": self.message}
        if self.operation_index is not None:
            payload["operation_index"] = self.operation_index
            payload["operation"] = self.operation
        return payload


# ── Staffing query ───────────────────────────────────────────────────────────

class InvalidTarget(PricingEngineError, ValueError):
    code = "INVALID_TARGET"


class UnknownServiceType(PricingEngineError, LookupError):
    code = "INVALID_SERVICE_TYPE"


# ── Mutation engine ──────────────────────────────────────────────────────────

class SlotNotFound(PricingEngineError, LookupError):
    code = "SLOT_NOT_FOUND"


class InvalidSlot(PricingEngineError, ValueError):
    code = "INVALID_SLOT"


class InvalidAdjustment(PricingEngineError, ValueError):
    code = "INVALID_ADJUSTMENT"


class InvalidTransition(PricingEngineError, ValueError):
    code = "INVALID_TRANSITION"


class ValidationError(PricingEngineError, ValueError):
    code = "VALIDATION_ERROR"


class UnknownOperation(PricingEngineError, ValueError):
    code = "UNKNOWN_OPERATION"


# ── Store ────────────────────────────────────────────────────────────────────

class ProposalNotFound(PricingEngineError, LookupError):
    code = "PROPOSAL_NOT_FOUND"


class ConcurrentModification(PricingEngineError):
    code = "CONCURRENT_MODIFICATION"
