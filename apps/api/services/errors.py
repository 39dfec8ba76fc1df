"""Billing and ledger error taxonomy."""

from __future__ import annotations


class BillingError(Exception):
    """Base class for errors surfaced to API callers as ``{"error": message}``."""

    status_code = 400
    default_message = "Billing request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InsufficientCreditError(BillingError):
    default_message = "Insufficient credit"


class UpstreamInconsistencyError(BillingError):
    """Provider call reported success but the expected local record is missing."""

    default_message = "Create Task Error"


class UpstreamOutcomeUnknownError(UpstreamInconsistencyError):
    """Provider call timed out after the request was sent; the job may exist."""

    default_message = "Generation provider did not answer in time"


class UnbilledJobError(UpstreamInconsistencyError):
    """Provider job exists but the billing transaction did not commit."""

    default_message = "Generation was created but could not be billed"


class UnbilledInsufficientCreditError(UnbilledJobError):
    """A concurrent debit drained the balance after the provider job was created."""

    default_message = "Insufficient credit to bill the created generation"


class OrderPhaseError(BillingError):
    default_message = "Order Phase Error"


class SignatureInvalidError(BillingError):
    default_message = "Webhook signature verification failed"


class PaymentProviderError(BillingError):
    status_code = 502
    default_message = "Payment provider request failed"


class AccountNotFoundError(BillingError):
    status_code = 404
    default_message = "Credit account not found"


class CreditConstraintError(BillingError):
    """A decrement would leave the account balance negative."""

    default_message = "Insufficient credit"
