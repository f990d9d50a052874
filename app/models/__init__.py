"""SQLAlchemy models package"""
from .company import Company
from .user import User
from .catalog import ServiceType, Product, Equipment
from .service_request import ServiceRequest
from .quote import Quote
from .invoice import Invoice
from .mission import Mission
from .report import Report
from .payment import Payment
from .messaging import Conversation, Message
from .notification import Notification
from .site_customization import SiteCustomization

__all__ = [
    'Company',
    'User',
    'ServiceType',
    'Product',
    'Equipment',
    'ServiceRequest',
    'Quote',
    'Invoice',
    'Mission',
    'Report',
    'Payment',
    'Conversation',
    'Message',
    'Notification',
    'SiteCustomization',
]
