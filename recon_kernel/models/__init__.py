"""Read models for the local ledger tables and the external mirror tables."""

from recon_kernel.models.external import (
    MRIBudgetModel,
    MRIInvoiceModel,
    MRISyncStatusModel,
    MRITransactionModel,
)
from recon_kernel.models.local import (
    BudgetItemModel,
    InvoiceModel,
    ServiceChargeDemandModel,
    ServiceChargePaymentModel,
    TransactionModel,
)

__all__ = [
    "TransactionModel",
    "BudgetItemModel",
    "InvoiceModel",
    "ServiceChargeDemandModel",
    "ServiceChargePaymentModel",
    "MRITransactionModel",
    "MRIBudgetModel",
    "MRIInvoiceModel",
    "MRISyncStatusModel",
]
