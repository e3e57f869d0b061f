from .auth import User, SessionToken, ROLE_ADMIN, ROLE_USER, VALID_ROLES
from .documents import (
    EditableDocumentMixin,
    Invoice,
    Product,
    PurchaseOrder,
    PurchaseOrderItem,
    StockRegisterEntry,
)
from .edit_requests import (
    EditRequest,
    STATUS_PENDING,
    STATUS_APPROVED,
    STATUS_REJECTED,
    VALID_STATUSES,
    DOC_INVOICE,
    DOC_PURCHASE_ORDER,
    DOC_STOCK_REGISTER,
    VALID_DOCUMENT_TYPES,
)
from .searches import SavedSearch

__all__ = [
    'User', 'SessionToken', 'ROLE_ADMIN', 'ROLE_USER', 'VALID_ROLES',
    'EditableDocumentMixin',
    'Invoice', 'Product', 'PurchaseOrder', 'PurchaseOrderItem', 'StockRegisterEntry',
    'EditRequest', 'STATUS_PENDING', 'STATUS_APPROVED', 'STATUS_REJECTED', 'VALID_STATUSES',
    'DOC_INVOICE', 'DOC_PURCHASE_ORDER', 'DOC_STOCK_REGISTER', 'VALID_DOCUMENT_TYPES',
    'SavedSearch',
]
