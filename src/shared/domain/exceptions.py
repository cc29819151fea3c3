"""Error taxonomy shared by every bounded context.

Concrete module exceptions subclass one of the five categories below so
the API layer can translate them without knowing every business rule:

- ``ValidationError``: malformed or out-of-range input.
- ``NotFoundError``: a product, variant or order is absent.
- ``ConflictError``: insufficient stock, duplicate pricing rule key.
- ``StateError``: illegal transition, non-cancellable order, refund over
  the refundable amount.
- ``ExternalServiceError``: catalog, pricing store or order store
  unreachable.

Every rejection carries identifying ``context`` (order id, variant key,
amounts) so it is actionable without inspecting logs.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict
from uuid import UUID


class DomainError(Exception):
    """Base class for all business rule violations."""

    code = "domain_error"

    def __init__(self, message: str = "", **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code, "detail": self.message}
        payload.update(
            {key: _normalize(value) for key, value in self.context.items()}
        )
        return payload


class ValidationError(DomainError):
    code = "validation_error"


class NotFoundError(DomainError):
    code = "not_found"


class ConflictError(DomainError):
    code = "conflict"


class StateError(DomainError):
    code = "invalid_state"


class ExternalServiceError(DomainError):
    code = "external_service_error"


def _normalize(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: _normalize(val) for key, val in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize(item) for item in value]
    return value
