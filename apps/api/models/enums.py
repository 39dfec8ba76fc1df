"""Enumerations shared by the ledger models."""

from enum import Enum


class OrderPhase(str, Enum):
    PENDING = "Pending"
    PAID = "Paid"
    FAILED = "Failed"


class BillingType(str, Enum):
    WITHDRAW = "Withdraw"
    DEPOSIT = "Deposit"


class BillingState(str, Enum):
    DONE = "Done"
    PENDING = "Pending"


class CreditTransactionType(str, Enum):
    GENERATE = "Generate"
    CHARGE = "Charge"


class FluxModel(str, Enum):
    PRO = "pro"
    SCHNELL = "schnell"

    @property
    def provider_name(self) -> str:
        return f"black-forest-labs/flux-{self.value}"


class AspectRatio(str, Enum):
    SQUARE = "1:1"
    WIDESCREEN = "16:9"
    PORTRAIT = "9:16"
    LANDSCAPE = "3:2"
    TALL = "2:3"
