from .auth import User, SessionToken
from .security import SecurityEvent
from .clients import Client
from .measurements import Measurement
from .orders import Order
from .finance import Invoice, Payment

__all__ = [
    'User', 'SessionToken', 'SecurityEvent',
    'Client', 'Measurement', 'Order',
    'Invoice', 'Payment',
]
