"""
Payment gateway clients.

The ledger only talks to a ``PaymentGateway``: it asks for an order
reference when a payment is created and for the order's status when the
employer confirms it. ``settings.PAYMENT_GATEWAY`` names the class to use.
"""
import logging
import random
import string
import time
from dataclasses import dataclass, field
from decimal import Decimal

import requests
from django.conf import settings
from django.utils.module_loading import import_string
from rest_framework import status
from rest_framework.exceptions import APIException

logger = logging.getLogger(__name__)


class PaymentGatewayError(APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'Payment gateway request failed.'
    default_code = 'payment_gateway_error'


@dataclass
class GatewayOrder:
    id: str
    amount: Decimal
    currency: str
    status: str = 'created'
    notes: dict = field(default_factory=dict)

    def to_dict(self):
        return {
            'id': self.id,
            'amount': str(self.amount),
            # Minor units (paise for INR)
            'amount_minor': to_minor_units(self.amount),
            'currency': self.currency,
            'status': self.status,
            'notes': self.notes,
        }


def to_minor_units(amount):
    return int((Decimal(amount) * 100).to_integral_value())


class PaymentGateway:
    name = 'base'

    def create_order(self, amount, currency, receipt, notes=None):
        """Register an order for ``amount`` and return a GatewayOrder with a unique id."""
        raise NotImplementedError

    def confirm_order(self, order_id):
        """Return ``(transaction_status, gateway_payment_id)`` for an order."""
        raise NotImplementedError


class OfflineGateway(PaymentGateway):
    """
    Issues local order ids and never settles anything by itself.

    Used in development and for manual/bank-transfer payments; orders stay
    CREATED until an admin marks them.
    """
    name = 'offline'

    def create_order(self, amount, currency, receipt, notes=None):
        suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=9))
        order_id = f"ORDER_{int(time.time() * 1000)}_{suffix}"
        logger.info(f"Offline order {order_id} created for {amount} {currency} ({receipt})")
        return GatewayOrder(id=order_id, amount=amount, currency=currency, notes=notes or {})

    def confirm_order(self, order_id):
        return 'CREATED', None


class RazorpayGateway(PaymentGateway):
    name = 'razorpay'

    def __init__(self, key_id=None, key_secret=None, base_url=None, timeout=10):
        self.key_id = key_id or settings.RAZORPAY_KEY_ID
        self.key_secret = key_secret or settings.RAZORPAY_KEY_SECRET
        self.base_url = (base_url or settings.RAZORPAY_BASE_URL).rstrip('/')
        self.timeout = timeout

    def _request(self, method, path, **kwargs):
        try:
            response = requests.request(
                method,
                f"{self.base_url}{path}",
                auth=(self.key_id, self.key_secret),
                timeout=self.timeout,
                **kwargs
            )
            response.raise_for_status()
            return response.json()
        except requests.exceptions.HTTPError as e:
            logger.error(f"Razorpay HTTP error on {path}: {str(e)}, Response: {e.response.text}")
            raise PaymentGatewayError(f"Payment gateway rejected the request: {e.response.status_code}")
        except requests.exceptions.RequestException as e:
            logger.error(f"Razorpay request to {path} failed: {str(e)}")
            raise PaymentGatewayError("Payment gateway is unreachable")

    def create_order(self, amount, currency, receipt, notes=None):
        payload = {
            'amount': to_minor_units(amount),
            'currency': currency,
            'receipt': receipt[:40],
            'notes': {key: str(value) for key, value in (notes or {}).items()},
        }
        logger.info(f"Sending Razorpay order request: {payload}")
        data = self._request('POST', '/orders', json=payload)
        if not data.get('id'):
            logger.error(f"Razorpay order creation failed: {data}")
            raise PaymentGatewayError("Payment gateway did not return an order id")
        return GatewayOrder(
            id=data['id'],
            amount=amount,
            currency=data.get('currency', currency),
            status=data.get('status', 'created'),
            notes=payload['notes'],
        )

    def confirm_order(self, order_id):
        data = self._request('GET', f"/orders/{order_id}/payments")
        attempts = data.get('items', [])
        for attempt in attempts:
            if attempt.get('status') == 'captured':
                return 'SUCCESS', attempt.get('id')
        if attempts and all(attempt.get('status') == 'failed' for attempt in attempts):
            return 'FAILED', attempts[-1].get('id')
        return 'CREATED', None


def get_gateway():
    """Build the gateway configured in ``settings.PAYMENT_GATEWAY``."""
    return import_string(settings.PAYMENT_GATEWAY)()
