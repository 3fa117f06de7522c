from .tenancy import Branch
from .inventory import StockItem
from .sales import Sale, SaleLineItem, Payment
from .returns import ReturnRequest, Refund
from .audit import AuditEntry

__all__ = [
    'Branch',
    'StockItem',
    'Sale', 'SaleLineItem', 'Payment',
    'ReturnRequest', 'Refund',
    'AuditEntry',
]
