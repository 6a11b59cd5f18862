from .catalog import Product
from .cashiers import Cashier, SessionToken
from .sales import Sale, SaleLine
from .returns import Return
from .remote_orders import RemoteOrder
from .audit import AuditLogEntry
from .conversations import ConversationMessage

__all__ = [
    'Product',
    'Cashier', 'SessionToken',
    'Sale', 'SaleLine',
    'Return',
    'RemoteOrder',
    'AuditLogEntry',
    'ConversationMessage',
]
