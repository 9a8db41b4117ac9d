"""
Rate pianificate (pedidos agendados de planos com depósito).
Lista, detalhe, criação de pagamento Stripe/PayPal e conclusão do pagamento.
"""

import logging

from flask import Blueprint, current_app, g, jsonify, request

from ..models.connector_base import meta_value
from ..models.connector_manager import paypal, stripe_gateway, woocommerce, wordpress
from ..models.paypal_connector import clean_amount
from ..models.stripe_gateway import StripeGateway, to_cents
from ..services.payment_completion import PaymentCompletionService, scheduled_custom_id
from ..services.proxy import proxy_registry
from ..utils.auth import current_user_id, jwt_required
from ..utils.errors import NotFoundError, UpstreamError, ValidationError
from ..utils.request_helpers import body_value, frontend_origin

logger = logging.getLogger(__name__)

scheduled_orders_bp = Blueprint('scheduled_orders', __name__)

SCHEDULED_STATUSES = {'scheduled-payment', 'pending-deposit', 'wc-pending-deposit'}


def _serialize(order):
    wp_url = current_app.config['WORDPRESS_URL']
    return {
        'id': order.get('id'),
        'parent_id': order.get('parent_id') or 0,
        'parent_order_number': meta_value(order, '_deposit_parent_order_number') or '',
        'date_created': order.get('date_created'),
        'status': order.get('status'),
        'status_name': order.get('status_name') or order.get('status'),
        'total': order.get('total'),
        'formatted_total': f"{order.get('currency_symbol') or ''}{order.get('total')}",
        'payment_url': order.get('payment_url') or '',
        'view_url': f"{wp_url}/my-account/view-order/{order.get('id')}/",
    }


def _payable_order(order_id: int):
    """Rata do usuário autenticado ainda aguardando pagamento."""
    try:
        order = woocommerce().get_order(order_id)
    except UpstreamError as e:
        if e.is_not_found:
            raise NotFoundError(f'Rata pianificata con ID {order_id} non trovata')
        raise
    PaymentCompletionService.check_order_owner(order, current_user_id())
    if order.get('status') not in SCHEDULED_STATUSES:
        raise ValidationError('Questa rata non è in attesa di pagamento')
    return order


@scheduled_orders_bp.get('/scheduled-orders')
@jwt_required
def list_scheduled_orders():
    user_id = current_user_id()
    try:
        orders = woocommerce().list_orders(customer=user_id, per_page=100, orderby='date', order='desc')
        return jsonify([_serialize(o) for o in orders if o.get('status') in SCHEDULED_STATUSES])
    except UpstreamError as e:
        logger.warning(f"Listagem de rate via WooCommerce falhou ({e}), usando endpoint do plugin")

    data = wordpress().scheduled_orders(user_id)
    return jsonify(data)


@scheduled_orders_bp.get('/scheduled-orders/<int:order_id>')
@jwt_required
def scheduled_order_detail(order_id: int):
    return jsonify(proxy_registry.dispatch('scheduled_order_detail', user=g.current_user, order_id=order_id))


@scheduled_orders_bp.post('/scheduled-orders/<int:order_id>/stripe-pay')
@jwt_required
def stripe_pay(order_id: int):
    order = _payable_order(order_id)
    user_id = current_user_id()
    amount = to_cents(order.get('total') or 0)
    if amount <= 0:
        raise ValidationError('Importo non valido')

    parent_number = meta_value(order, '_deposit_parent_order_number') or order.get('parent_id')
    intent = stripe_gateway().create_payment_intent(
        amount,
        metadata={'order_id': str(order_id), 'user_id': str(user_id), 'type': 'scheduled_payment'},
        description=f'Pagamento rata pianificata #{order_id} per ordine #{parent_number}',
        receipt_email=g.current_user.get('email'),
        idempotency_key=StripeGateway.idempotency_key('scheduled_order', order_id, user_id),
    )
    return jsonify({'success': True, 'clientSecret': intent.get('client_secret'), 'paymentIntentId': intent.get('id')})


@scheduled_orders_bp.post('/scheduled-orders/<int:order_id>/paypal-pay')
@jwt_required
def paypal_pay(order_id: int):
    data = request.get_json(silent=True) or {}
    if not data.get('amount'):
        raise ValidationError("È necessario fornire l'importo per creare un ordine PayPal")
    amount = clean_amount(data.get('amount'))
    if amount is None:
        raise ValidationError(f"Importo non valido: {data.get('amount')}")

    _payable_order(order_id)
    origin = frontend_origin()
    paypal_order = paypal().create_order(
        amount,
        description=f'Pagamento rata pianificata #{order_id}',
        custom_id=scheduled_custom_id(order_id, current_user_id()),
        return_url=f'{origin}/account?tab=scheduled-orders&payment_success=true',
        cancel_url=f'{origin}/account?tab=scheduled-orders&canceled=true',
    )
    logger.info(f"Pedido PayPal {paypal_order.get('id')} criado para a rata {order_id}")
    return jsonify({'success': True, 'paypalOrderId': paypal_order.get('id'), 'links': paypal_order.get('links')})


@scheduled_orders_bp.post('/scheduled-orders/<int:order_id>/complete-payment')
@jwt_required
def complete_payment(order_id: int):
    data = request.get_json(silent=True) or {}
    payment_method = (data.get('paymentMethod') or 'stripe').lower()
    payment_intent_id = body_value(data, 'paymentIntentId', 'payment_intent_id')
    paypal_order_id = body_value(data, 'paypalOrderId', 'paypal_order_id')
    if payment_method == 'paypal' and not paypal_order_id:
        raise ValidationError('ID ordine PayPal mancante')
    if payment_method != 'paypal' and not payment_intent_id:
        raise ValidationError('ID pagamento mancante')

    result = PaymentCompletionService.complete_scheduled_order(
        order_id, current_user_id(), payment_method,
        payment_intent_id=payment_intent_id, paypal_order_id=paypal_order_id,
    )
    return jsonify(result)
