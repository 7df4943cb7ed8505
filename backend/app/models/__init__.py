from .auth import User, SessionToken
from .quotations import Quotation, UserSelection
from .payments import Payment, PaymentQuotation
from .shipping import Shipment, ShippingReceiver

__all__ = [
    'User', 'SessionToken',
    'Quotation', 'UserSelection',
    'Payment', 'PaymentQuotation',
    'Shipment', 'ShippingReceiver',
]
