"""
Rotas Stripe: escrow dos dados do pedido, PaymentIntents, Checkout Klarna,
criação do pedido após o pagamento, consultas de status (polling) e webhook.
"""

import logging

from flask import Blueprint, jsonify, request

from ..models.connector_manager import stripe_gateway, woocommerce, wordpress
from ..services.order_data_store import OrderDataStore
from ..services.payment_completion import PAID_ORDER_STATUSES, PAYMENT_METHOD_TITLES, PaymentCompletionService
from ..utils.errors import ValidationError
from ..utils.request_helpers import body_value, frontend_origin

logger = logging.getLogger(__name__)

stripe_bp = Blueprint('stripe', __name__)

WEBHOOK_PROCESSED = 'webhook_processed'
# PaymentIntent criado por uma Checkout Session: o pedido sai do evento da sessão
CHECKOUT_SESSION_SOURCE = 'checkout_session'


def _positive_cents(value) -> int:
    try:
        amount = int(value)
    except (TypeError, ValueError):
        raise ValidationError('Amount non valido')
    if amount <= 0:
        raise ValidationError('Amount non valido')
    return amount


def _already_exists(order_id, status=None):
    body = {'success': True, 'orderId': int(order_id), 'alreadyExists': True}
    if status:
        body['status'] = status
    return body


# Criação de pedido a partir do escrow (usada pelas rotas e pelo webhook)

def order_for_payment_intent(intent):
    """Pedido WooCommerce de um PaymentIntent de carrinho já confirmado."""
    gateway = stripe_gateway()
    intent_id = intent['id']
    metadata = intent.get('metadata') or {}

    if metadata.get('order_id'):
        return _already_exists(metadata['order_id'])

    existing = PaymentCompletionService.find_existing_order('_stripe_payment_intent_id', intent_id)
    if existing:
        gateway.update_payment_intent_metadata(intent_id, {'order_id': str(existing['id'])})
        OrderDataStore.delete(metadata.get('order_data_id'))
        return _already_exists(existing['id'], existing.get('status'))

    data_id = metadata.get('order_data_id')
    stored = PaymentCompletionService.load_escrow(data_id)
    order = PaymentCompletionService.create_order_from_escrow(
        data_id, stored, 'stripe', intent_id,
        extra_meta=[
            ('_stripe_payment_intent_id', intent_id),
            ('_stripe_data_id', data_id),
            ('_payment_method', 'stripe'),
            ('_dreamshop_points_assigned', 'yes'),
        ],
        note=f'Ordine creato dopo il pagamento con carta. Payment Intent: {intent_id}',
    )
    gateway.update_payment_intent_metadata(intent_id, {'order_id': str(order['id'])})
    return {
        'success': True,
        'orderId': order['id'],
        'status': order.get('status', 'processing'),
        'pointsToRedeem': stored.get('pointsToRedeem') or 0,
    }


def order_for_checkout_session(session):
    """Pedido WooCommerce de uma Checkout Session (Klarna) já paga."""
    session_id = session['id']
    metadata = session.get('metadata') or {}

    if metadata.get('order_id'):
        return _already_exists(metadata['order_id'])

    existing = PaymentCompletionService.find_existing_order('_stripe_session_id', session_id)
    intent_id = session.get('payment_intent') or ''
    if not existing and intent_id:
        existing = PaymentCompletionService.find_existing_order('_stripe_payment_intent_id', intent_id)
    if existing:
        OrderDataStore.delete(metadata.get('order_data_id'))
        return _already_exists(existing['id'], existing.get('status'))

    data_id = metadata.get('order_data_id')
    stored = PaymentCompletionService.load_escrow(data_id)
    order = PaymentCompletionService.create_order_from_escrow(
        data_id, stored, 'klarna', intent_id or session_id,
        extra_meta=[
            ('_stripe_session_id', session_id),
            ('_stripe_payment_intent_id', intent_id),
            ('_payment_method', 'klarna'),
            ('_dreamshop_points_assigned', 'yes'),
        ],
    )
    return {
        'success': True,
        'orderId': order['id'],
        'status': order.get('status', 'processing'),
        'pointsToRedeem': stored.get('pointsToRedeem') or 0,
    }


# Escrow

@stripe_bp.post('/stripe/store-order-data')
def store_order_data():
    data = request.get_json(silent=True) or {}
    if not isinstance(data.get('orderData'), dict):
        raise ValidationError("Dati dell'ordine mancanti")

    data_id = OrderDataStore.put({
        'orderData': data['orderData'],
        'pointsToRedeem': data.get('pointsToRedeem') or 0,
        'pointsDiscount': data.get('pointsDiscount') or 0,
    })
    return jsonify({'success': True, 'dataId': data_id})


@stripe_bp.get('/stripe/store-order-data')
def get_order_data():
    data_id = request.args.get('dataId')
    if not data_id:
        raise ValidationError('dataId mancante')
    stored = PaymentCompletionService.load_escrow(data_id)
    return jsonify({'success': True, 'data': stored})


# Pagamento

@stripe_bp.post('/stripe/payment-intent')
def create_payment_intent():
    data = request.get_json(silent=True) or {}
    if not data.get('amount'):
        raise ValidationError('Amount mancante')
    amount = _positive_cents(data['amount'])

    metadata = {}
    if data.get('orderId'):
        metadata['order_id'] = str(data['orderId'])
    if data.get('paymentMethod'):
        metadata['payment_method'] = str(data['paymentMethod'])
    if data.get('dataId'):
        metadata['order_data_id'] = str(data['dataId'])

    intent = stripe_gateway().create_payment_intent(amount, metadata, payment_method_types=('card', 'klarna'))
    return jsonify({'clientSecret': intent.get('client_secret'), 'paymentIntentId': intent.get('id')})


@stripe_bp.post('/stripe/checkout-klarna')
def checkout_klarna():
    data = request.get_json(silent=True) or {}
    if not data.get('amount'):
        raise ValidationError('Parametro amount mancante')
    amount = _positive_cents(data['amount'])
    gateway = stripe_gateway()

    metadata = {'payment_method': 'klarna'}
    if data.get('dataId'):
        metadata['order_data_id'] = str(data['dataId'])

    origin = frontend_origin()
    params = {
        'payment_method_types': ['klarna'],
        'line_items': [{
            'price_data': {
                'currency': gateway.currency,
                'product_data': {
                    'name': 'Ordine DreamShop',
                    'description': 'Acquisto su DreamShop con Klarna',
                },
                'unit_amount': amount,
            },
            'quantity': 1,
        }],
        'mode': 'payment',
        'success_url': f'{origin}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}&payment_method=klarna',
        'cancel_url': f'{origin}/checkout?canceled=true',
        'metadata': metadata,
        'payment_intent_data': {'metadata': {'payment_method': 'klarna', 'source': CHECKOUT_SESSION_SOURCE}},
        'locale': 'it',
    }
    if data.get('customerEmail'):
        params['customer_email'] = data['customerEmail']

    session = gateway.create_checkout_session(**params)
    logger.info(f"Sessão Klarna {session.get('id')} criada ({amount} centavos)")
    return jsonify({'url': session.get('url'), 'sessionId': session.get('id')})


@stripe_bp.get('/stripe/check-session')
def check_session():
    session_id = request.args.get('sessionId')
    if not session_id:
        raise ValidationError('Session ID mancante')

    session = stripe_gateway().retrieve_checkout_session(session_id)
    metadata = session.get('metadata') or {}
    order_id = metadata.get('order_id')
    processed = metadata.get(WEBHOOK_PROCESSED) == 'true'
    if not order_id:
        existing = PaymentCompletionService.find_existing_order('_stripe_session_id', session_id)
        if not existing and session.get('payment_intent'):
            existing = PaymentCompletionService.find_existing_order('_stripe_payment_intent_id', session['payment_intent'])
        if existing:
            order_id, processed = existing['id'], True

    return jsonify({
        'orderId': int(order_id) if order_id else None,
        'webhookProcessed': processed,
        'paymentStatus': session.get('payment_status'),
    })


@stripe_bp.post('/stripe/verify-session')
def verify_session():
    data = request.get_json(silent=True) or {}
    session_id = body_value(data, 'sessionId', 'session_id')
    order_id = body_value(data, 'orderId', 'order_id')
    if not session_id or not order_id:
        raise ValidationError('sessionId e orderId sono richiesti')

    session = PaymentCompletionService.verify_checkout_session(session_id)
    PaymentCompletionService.check_ownership(session.get('metadata'), {'order_id': order_id})

    wc = woocommerce()
    order = wc.get_order(int(order_id))
    reference = session.get('payment_intent') or session_id
    if order.get('transaction_id') == reference and order.get('status') in PAID_ORDER_STATUSES:
        return jsonify({'success': True, 'alreadyProcessed': True, 'orderId': int(order_id), 'status': order.get('status')})

    updated = wc.update_order(int(order_id), {
        'status': 'processing',
        'set_paid': True,
        'transaction_id': reference,
    })
    logger.info(f"Pedido {order_id} confirmado pela sessão {session_id}")
    return jsonify({'success': True, 'orderId': int(order_id), 'status': updated.get('status', 'processing')})


@stripe_bp.post('/stripe/create-order-after-klarna')
def create_order_after_klarna():
    data = request.get_json(silent=True) or {}
    session_id = body_value(data, 'sessionId', 'session_id')
    if not session_id:
        raise ValidationError('Session ID mancante')
    session = PaymentCompletionService.verify_checkout_session(session_id)
    return jsonify(order_for_checkout_session(session))


@stripe_bp.post('/stripe/create-order-after-card-payment')
def create_order_after_card_payment():
    data = request.get_json(silent=True) or {}
    intent_id = body_value(data, 'paymentIntentId', 'payment_intent_id')
    if not intent_id:
        raise ValidationError('Payment Intent ID mancante')
    intent = PaymentCompletionService.verify_payment_intent(intent_id)
    return jsonify(order_for_payment_intent(intent))


# Polling de status (202 enquanto o webhook não processou)

def _intent_from_query():
    intent_id = request.args.get('payment_intent_id')
    if not intent_id:
        raise ValidationError('payment_intent_id richiesto')
    return stripe_gateway().retrieve_payment_intent(intent_id)


def _status_response(intent, expected_type, extra=None):
    metadata = intent.get('metadata') or {}
    if metadata.get('type') != expected_type:
        raise ValidationError('Payment Intent non valido per questa operazione')
    if metadata.get(WEBHOOK_PROCESSED) == 'true':
        body = {'success': True, 'processed': True, 'message': 'Pagamento confermato'}
        body.update(extra or {})
        return jsonify(body)
    return jsonify({'success': True, 'processed': False, 'message': 'In elaborazione'}), 202


@stripe_bp.get('/stripe/get-scheduled-order-status')
def scheduled_order_status():
    intent = _intent_from_query()
    order_id = (intent.get('metadata') or {}).get('order_id')
    return _status_response(intent, 'scheduled_payment', {'orderId': int(order_id) if order_id else None})


@stripe_bp.get('/stripe/get-resin-shipping-status')
def resin_shipping_status():
    return _status_response(_intent_from_query(), 'resin_shipping')


@stripe_bp.get('/stripe/get-order-by-payment-intent')
def order_by_payment_intent():
    intent = _intent_from_query()
    order_id = (intent.get('metadata') or {}).get('order_id')
    if order_id:
        return jsonify({'success': True, 'orderId': int(order_id), 'paymentStatus': intent.get('status')})
    return jsonify({'success': True, 'orderId': None, 'paymentStatus': intent.get('status'),
                    'message': 'Ordine in elaborazione'}), 202


# Webhook

def _handle_checkout_completed(session):
    metadata = session.get('metadata') or {}
    if session.get('payment_status') != 'paid':
        logger.info(f"Sessão {session.get('id')} concluída sem pagamento ({session.get('payment_status')})")
        return
    if metadata.get('order_id'):
        order_id = int(metadata['order_id'])
        woocommerce().update_order(order_id, {
            'status': 'processing',
            'set_paid': True,
            'transaction_id': session.get('payment_intent') or session['id'],
        })
        logger.info(f"Pedido {order_id} marcado como pago pelo webhook")
    elif metadata.get('order_data_id'):
        result = order_for_checkout_session(session)
        logger.info(f"Webhook: pedido {result['orderId']} para a sessão {session['id']}")


def _handle_payment_intent_succeeded(intent):
    metadata = intent.get('metadata') or {}
    kind = metadata.get('type')
    if metadata.get(WEBHOOK_PROCESSED) == 'true' or metadata.get('source') == CHECKOUT_SESSION_SOURCE:
        return

    if kind == 'scheduled_payment':
        wc = woocommerce()
        order_id = int(metadata['order_id'])
        order = wc.get_order(order_id)
        if order.get('transaction_id') != intent['id']:
            wc.update_order(order_id, {
                'status': 'processing',
                'set_paid': True,
                'transaction_id': intent['id'],
                'payment_method': 'stripe',
                'payment_method_title': PAYMENT_METHOD_TITLES['stripe'],
            })
            logger.info(f"Rata {order_id} marcada como paga pelo webhook")
    elif kind == 'resin_shipping':
        token = metadata['token']
        fee = PaymentCompletionService.get_resin_fee(token)
        if fee.get('payment_status') != 'paid':
            wordpress().resin_mark_paid(token, {'stripe_payment_intent_id': intent['id']})
            logger.info(f"Spedizione resina {fee.get('id')} marcada como paga pelo webhook")
    elif metadata.get('order_data_id'):
        order_for_payment_intent(intent)
    else:
        return

    stripe_gateway().update_payment_intent_metadata(intent['id'], {WEBHOOK_PROCESSED: 'true'})


@stripe_bp.post('/stripe/webhook')
def webhook():
    event = stripe_gateway().construct_event(request.get_data(), request.headers.get('Stripe-Signature', ''))
    obj = (event.get('data') or {}).get('object') or {}
    logger.info(f"Webhook Stripe recebido: {event.get('type')} ({event.get('id')})")

    if event.get('type') == 'checkout.session.completed':
        _handle_checkout_completed(obj)
    elif event.get('type') == 'payment_intent.succeeded':
        _handle_payment_intent_succeeded(obj)

    return jsonify({'received': True})
