from .transactions import (
    Transaction,
    ReferenceNumber,
    TRANSACTION_TYPE_TAKE,
    TRANSACTION_TYPE_RETURN,
    TRANSACTION_TYPES,
    STATUS_PENDING,
    STATUS_APPROVED,
    STATUS_DECLINED,
    APPROVAL_STATUSES,
)
from .auth import Requester, SessionToken
from .presence import AdminPresence

__all__ = [
    'Transaction', 'ReferenceNumber',
    'TRANSACTION_TYPE_TAKE', 'TRANSACTION_TYPE_RETURN', 'TRANSACTION_TYPES',
    'STATUS_PENDING', 'STATUS_APPROVED', 'STATUS_DECLINED', 'APPROVAL_STATUSES',
    'Requester', 'SessionToken',
    'AdminPresence',
]
