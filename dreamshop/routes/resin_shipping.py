"""
Spedizione resina: taxa de envio cobrada depois do pedido, acessada pelo token
de 64 caracteres enviado por e-mail ao cliente.
"""

import logging

from flask import Blueprint, g, jsonify, request

from ..models.connector_manager import paypal, stripe_gateway
from ..models.paypal_connector import clean_amount
from ..models.stripe_gateway import StripeGateway, to_cents
from ..services.payment_completion import PaymentCompletionService, resin_custom_id
from ..services.proxy import proxy_registry
from ..utils.auth import jwt_required
from ..utils.errors import ValidationError
from ..utils.request_helpers import body_value, frontend_origin

logger = logging.getLogger(__name__)

resin_shipping_bp = Blueprint('resin_shipping', __name__)

TOKEN_LENGTH = 64


def _valid_token(token: str) -> str:
    if not token or len(token) != TOKEN_LENGTH:
        raise ValidationError('Token non valido')
    return token


def _payable_fee(token: str):
    fee = PaymentCompletionService.get_resin_fee(_valid_token(token))
    if fee.get('payment_status') == 'paid':
        raise ValidationError('Questa spedizione è già stata pagata')
    return fee


@resin_shipping_bp.get('/resin-shipping/customer')
@jwt_required
def customer_fees():
    return jsonify(proxy_registry.dispatch('resin_shipping_customer', user=g.current_user))


@resin_shipping_bp.get('/resin-shipping/<token>')
def fee_detail(token: str):
    return jsonify(PaymentCompletionService.get_resin_fee(_valid_token(token)))


@resin_shipping_bp.post('/resin-shipping/<token>/stripe-pay')
def stripe_pay(token: str):
    fee = _payable_fee(token)
    amount = to_cents(fee.get('shipping_amount') or 0)
    if amount <= 0:
        raise ValidationError('Importo non valido')

    intent = stripe_gateway().create_payment_intent(
        amount,
        metadata={
            'type': 'resin_shipping',
            'token': token,
            'shipping_fee_id': str(fee.get('id')),
            'order_id': str(fee.get('order_id')),
            'product_id': str(fee.get('product_id')),
        },
        description=f"Spedizione resina per ordine #{fee.get('order_number')}",
        idempotency_key=StripeGateway.idempotency_key('resin_shipping', token),
    )
    return jsonify({'success': True, 'clientSecret': intent.get('client_secret'), 'paymentIntentId': intent.get('id')})


@resin_shipping_bp.post('/resin-shipping/<token>/paypal-pay')
def paypal_pay(token: str):
    fee = _payable_fee(token)
    amount = clean_amount(fee.get('shipping_amount'))
    if amount is None:
        raise ValidationError('Importo non valido')

    origin = frontend_origin()
    paypal_order = paypal().create_order(
        amount,
        description=f"Spedizione resina per ordine #{fee.get('order_number')}",
        custom_id=resin_custom_id(token),
        return_url=f'{origin}/resin-shipping/{token}?payment_success=true',
        cancel_url=f'{origin}/resin-shipping/{token}?canceled=true',
    )
    return jsonify({'success': True, 'paypalOrderId': paypal_order.get('id'), 'links': paypal_order.get('links')})


@resin_shipping_bp.post('/resin-shipping/<token>/complete-payment')
def complete_payment(token: str):
    _valid_token(token)
    data = request.get_json(silent=True) or {}
    payment_method = (data.get('paymentMethod') or '').lower()
    result = PaymentCompletionService.complete_resin_shipping(
        token,
        payment_method,
        payment_intent_id=body_value(data, 'paymentIntentId', 'payment_intent_id'),
        paypal_order_id=body_value(data, 'paypalOrderId', 'transactionId'),
    )
    result['expectedTotal'] = data.get('expectedTotal')
    return jsonify(result)
