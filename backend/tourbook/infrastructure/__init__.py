"""
Infrastructure layer - external system integrations.
Keeps business logic clean from implementation details.
"""

from .irembopay import IremboPayClient, InvoiceRequest, Invoice, get_irembopay_client
from .email import EmailClient, get_email_client

__all__ = [
    'IremboPayClient', 'InvoiceRequest', 'Invoice', 'get_irembopay_client',
    'EmailClient', 'get_email_client',
]
