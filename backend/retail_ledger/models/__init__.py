from .tenancy import Business, Outlet
from .auth import User, UserRole, SessionToken
from .inventory import Product, ProductStatus, Inventory, InventoryLine, InventoryStatus, derive_product_status
from .sales import Sale, SaleLine, SaleStatus, PaymentChannel
from .audit import AuditLog, AuditAction

__all__ = [
    'Business', 'Outlet',
    'User', 'UserRole', 'SessionToken',
    'Product', 'ProductStatus', 'Inventory', 'InventoryLine', 'InventoryStatus', 'derive_product_status',
    'Sale', 'SaleLine', 'SaleStatus', 'PaymentChannel',
    'AuditLog', 'AuditAction',
]
