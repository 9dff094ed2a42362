# ledger/services/exceptions.py

"""
LEDGER SERVICE ERRORS

Centralized domain errors for ledger services.

Each error carries:
- code: stable machine-readable identifier (returned by the API)
- http_status: status code the API layer maps it to
"""


class LedgerServiceError(Exception):
    """Base exception for all ledger service failures."""

    code = "ledger_error"
    http_status = 400


class NotFound(LedgerServiceError):
    """Raised when an obligation, account or settlement id is unknown."""

    code = "not_found"
    http_status = 404


class CounterpartyNotFound(NotFound):
    """Raised when the directory does not know a counterparty reference."""

    code = "counterparty_not_found"


class LedgerValidationError(LedgerServiceError):
    """Raised when input is rejected before any write."""

    code = "validation_error"
    http_status = 400


class InvalidAmount(LedgerValidationError):
    """Raised for zero, negative or malformed amounts."""

    code = "invalid_amount"


class ObligationLocked(LedgerServiceError):
    """Raised when an obligation can no longer be edited."""

    code = "obligation_locked"
    http_status = 409


class HasSettlements(LedgerServiceError):
    """Raised when cancelling an obligation that already has settlements."""

    code = "has_settlements"
    http_status = 409


class OversettlementRejected(LedgerServiceError):
    """Raised when a settlement exceeds the remaining amount."""

    code = "oversettlement_rejected"
    http_status = 409


class CreditLimitExceeded(LedgerServiceError):
    """Raised when a charge would push an account over its credit limit."""

    code = "credit_limit_exceeded"
    http_status = 409


class AccountInactive(LedgerServiceError):
    """Raised when charging an inactive credit account."""

    code = "account_inactive"
    http_status = 409


class InvalidStatusTransition(LedgerServiceError):
    """Raised when a status change is outside the obligation lifecycle graph."""

    code = "invalid_status_transition"
    http_status = 409


class SequenceExhausted(LedgerServiceError):
    """Raised when a numbering sequence outgrows its zero-padded width."""

    code = "sequence_exhausted"
    http_status = 503
