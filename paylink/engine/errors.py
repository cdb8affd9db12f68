"""
Error taxonomy for payment link creation and approval.

The state machine and provider adapters raise these; the orchestrator
decides whether an error changes transaction status (only a provider
decline does). Each error knows how to render itself as the structured
result returned to API callers, so callers branch on the ``status``
discriminator instead of parsing messages.
"""

from typing import Any, Optional


class PaylinkError(Exception):
    """Base exception for every error surfaced by the payment core."""

    error = "error"
    http_status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"status": "error", "error": self.error, "message": self.message}


class InvalidTransition(PaylinkError):
    """Attempted status change that is not an edge of the state machine."""

    error = "invalid transition"
    http_status = 422

    def __init__(self, from_status: str, to_status: str):
        self.from_status = str(getattr(from_status, "value", from_status))
        self.to_status = str(getattr(to_status, "value", to_status))
        super().__init__(f"Cannot change status from {self.from_status} to {self.to_status}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": "error",
            "error": self.error,
            "from": self.from_status,
            "to": self.to_status,
            "message": self.message,
        }


class UnknownProvider(PaylinkError):
    """No adapter is registered under the requested name."""

    error = "unknown provider"
    http_status = 422

    def __init__(self, name: str):
        super().__init__(f"The selected platform is not in the configuration: {name}")
        self.name = name


class ProviderUnavailable(PaylinkError):
    """Transport failure, timeout, rate limit or 5xx from a gateway. Retryable by the caller."""

    error = "provider unavailable"
    http_status = 502

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code


class InvalidRequest(PaylinkError):
    """Caller-supplied data rejected by an adapter or its gateway."""

    error = "invalid request"
    http_status = 422


class ApprovalFailed(PaylinkError):
    """The gateway explicitly declined the payment."""

    error = "approval failed"
    http_status = 402

    def to_dict(self) -> dict[str, Any]:
        return {"status": "error", "error": self.message}


class TransactionConflict(PaylinkError):
    """Another request changed the transaction between load and write."""

    error = "conflict"
    http_status = 409

    def __init__(self, transaction_id: str):
        super().__init__(f"Transaction {transaction_id} was modified concurrently")
        self.transaction_id = transaction_id


class TransactionNotFound(PaylinkError):
    error = "not found"
    http_status = 404

    def __init__(self, transaction_id: str):
        super().__init__(f"Transaction not found: {transaction_id}")
        self.transaction_id = transaction_id
