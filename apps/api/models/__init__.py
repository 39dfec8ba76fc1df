"""Models package."""

from .credit_account import UserCredit
from .credit_transaction import UserCreditTransaction
from .billing import UserBilling
from .flux_job import FluxData
from .charge_product import ChargeProduct
from .charge_order import ChargeOrder
