"""
Rotas PayPal do checkout: pedido WooCommerce pendente, captura, recuperação
de pedidos a partir do escrow e cancelamento.
"""

import logging

from flask import Blueprint, jsonify, request

from ..models.connector_base import meta_value
from ..models.connector_manager import paypal, woocommerce
from ..models.paypal_connector import capture_id, clean_amount, order_amount
from ..services.order_data_store import OrderDataStore
from ..services.payment_completion import (PAID_ORDER_STATUSES, PAYMENT_METHOD_TITLES, PAYPAL_APPROVED,
                                           PAYPAL_COMPLETED, PaymentCompletionService)
from ..utils.errors import OwnershipError, PaymentProviderError, ValidationError
from ..utils.request_helpers import body_value

logger = logging.getLogger(__name__)

paypal_bp = Blueprint('paypal', __name__)


@paypal_bp.post('/paypal/create-order')
def create_order():
    data = request.get_json(silent=True) or {}
    if not isinstance(data.get('orderData'), dict):
        raise ValidationError("Dati dell'ordine mancanti")

    payload = PaymentCompletionService.build_order_payload(
        {'orderData': data['orderData'], 'pointsDiscount': data.get('pointsDiscount') or 0},
        'paypal', '', extra_meta=[('_payment_method', 'paypal')],
        status='pending', set_paid=False,
    )
    order = woocommerce().create_order(payload)
    return jsonify({'success': True, 'orderId': order['id'], 'total': order.get('total')})


@paypal_bp.post('/paypal/capture-payment')
def capture_payment():
    data = request.get_json(silent=True) or {}
    order_id = body_value(data, 'orderId', 'order_id')
    paypal_order_id = body_value(data, 'paypalOrderId', 'paypal_order_id')
    if not order_id or not paypal_order_id:
        raise ValidationError('orderId e paypalOrderId sono richiesti')

    wc = woocommerce()
    order = wc.get_order(int(order_id))
    if meta_value(order, '_paypal_order_id') == paypal_order_id and order.get('status') in PAID_ORDER_STATUSES:
        logger.info(f"Pedido {order_id} já capturado ({paypal_order_id})")
        return jsonify({'success': True, 'alreadyProcessed': True, 'orderId': int(order_id),
                        'status': order.get('status')})

    # O pedido PayPal não pode estar em outro pedido e o valor deve ser o total WooCommerce
    holder = PaymentCompletionService.find_existing_order('_paypal_order_id', paypal_order_id, per_page=50)
    if holder and int(holder['id']) != int(order_id):
        logger.warning(f"Pedido PayPal {paypal_order_id} já usado no pedido {holder['id']}, recusado para {order_id}")
        raise OwnershipError('Il pagamento non corrisponde a questo ordine')

    client = paypal()
    paypal_order = client.get_order(paypal_order_id)
    paid_amount = order_amount(paypal_order)
    if paid_amount is None or paid_amount != clean_amount(order.get('total')):
        logger.warning(f"Valor PayPal {paid_amount} difere do total {order.get('total')} do pedido {order_id}")
        raise OwnershipError('Il pagamento non corrisponde a questo ordine')

    if paypal_order.get('status') == PAYPAL_APPROVED:
        paypal_order = client.capture_order(paypal_order_id)
    elif paypal_order.get('status') == PAYPAL_COMPLETED and meta_value(order, '_paypal_order_id') != paypal_order_id:
        # Capturado fora deste fluxo: só vale para o pedido que já guarda o id
        raise OwnershipError('Il pagamento non corrisponde a questo ordine')
    if paypal_order.get('status') != PAYPAL_COMPLETED:
        logger.error(f"Captura PayPal {paypal_order_id} não concluída: {paypal_order.get('status')}")
        raise PaymentProviderError('Il pagamento PayPal non è stato completato')

    transaction_id = capture_id(paypal_order) or paypal_order_id
    updated = wc.update_order(int(order_id), {
        'status': 'processing',
        'set_paid': True,
        'transaction_id': transaction_id,
        'meta_data': [
            {'key': '_paypal_order_id', 'value': paypal_order_id},
            {'key': '_paypal_transaction_id', 'value': transaction_id},
            {'key': '_payment_method', 'value': 'paypal'},
            {'key': '_payment_method_title', 'value': PAYMENT_METHOD_TITLES['paypal']},
            {'key': '_dreamshop_points_assigned', 'value': 'yes'},
        ],
    })
    logger.info(f"Pedido {order_id} pago via PayPal ({transaction_id})")
    return jsonify({'success': True, 'orderId': int(order_id), 'status': updated.get('status', 'processing'),
                    'transactionId': transaction_id})


@paypal_bp.post('/paypal/recover-order')
def recover_order():
    """Cria o pedido de um pagamento PayPal concluído cujo pedido não chegou a ser criado."""
    data = request.get_json(silent=True) or {}
    paypal_order_id = body_value(data, 'paypalOrderId', 'paypal_order_id')
    data_id = body_value(data, 'dataId', 'data_id')
    if not paypal_order_id:
        raise ValidationError('paypalOrderId mancante')

    existing = PaymentCompletionService.find_existing_order('_paypal_order_id', paypal_order_id, per_page=50)
    if existing:
        OrderDataStore.delete(data_id)
        return jsonify({'success': True, 'alreadyExists': True, 'orderId': existing['id'],
                        'status': existing.get('status')})

    paypal_order = PaymentCompletionService.verify_paypal_order(paypal_order_id, capture_if_approved=False)
    stored = PaymentCompletionService.load_escrow(data_id)
    transaction_id = capture_id(paypal_order) or paypal_order_id
    order = PaymentCompletionService.create_order_from_escrow(
        data_id, stored, 'paypal', transaction_id,
        extra_meta=[
            ('_paypal_order_id', paypal_order_id),
            ('_paypal_transaction_id', transaction_id),
            ('_payment_method', 'paypal'),
            ('_dreamshop_points_assigned', 'yes'),
        ],
        note=f'Ordine recuperato dopo pagamento PayPal. PayPal Order: {paypal_order_id}',
    )
    return jsonify({'success': True, 'orderId': order['id'], 'status': order.get('status', 'processing'),
                    'pointsToRedeem': stored.get('pointsToRedeem') or 0})


@paypal_bp.post('/paypal/cancel-order')
def cancel_order():
    data = request.get_json(silent=True) or {}
    order_id = body_value(data, 'orderId', 'order_id')
    if not order_id:
        raise ValidationError('orderId mancante')

    wc = woocommerce()
    order = wc.get_order(int(order_id))
    if order.get('status') in PAID_ORDER_STATUSES:
        raise ValidationError('Impossibile annullare un ordine già pagato')

    updated = wc.update_order(int(order_id), {'status': 'cancelled'})
    logger.info(f"Pedido {order_id} cancelado (PayPal abandonado)")
    return jsonify({'success': True, 'orderId': int(order_id), 'status': updated.get('status', 'cancelled')})
