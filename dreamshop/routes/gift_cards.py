"""
Gift cards: saldo, transações, resgate e cupons gerados a partir do saldo.
"""

import logging

from flask import Blueprint, g, jsonify, request

from ..models.connector_manager import woocommerce, wordpress
from ..services.proxy import proxy_registry
from ..utils.auth import current_user_id, jwt_required
from ..utils.errors import OwnershipError, ValidationError

logger = logging.getLogger(__name__)

gift_cards_bp = Blueprint('gift_cards', __name__)

GIFT_CARD_COUPON_PREFIX = 'GC'
GIFT_CARD_COUPON_DESCRIPTION = 'Gift Card - Generato automaticamente'


def format_euro(amount: float) -> str:
    """12.5 -> '€12,50'"""
    return '€' + f"{amount:.2f}".replace('.', ',')


def _unwrap(data):
    return data.get('data') if isinstance(data, dict) and isinstance(data.get('data'), dict) else data


@gift_cards_bp.get('/gift-cards/balance')
@jwt_required
def balance():
    return jsonify(proxy_registry.dispatch('gift_card_balance', user=g.current_user))


@gift_cards_bp.get('/gift-cards/transactions')
@jwt_required
def transactions():
    return jsonify(proxy_registry.dispatch('gift_card_transactions', user=g.current_user,
                                           params=request.args.to_dict()))


@gift_cards_bp.get('/gift-cards/config')
def config():
    return jsonify(proxy_registry.dispatch('gift_card_config'))


@gift_cards_bp.post('/gift-cards/redeem')
@jwt_required
def redeem():
    data = request.get_json(silent=True) or {}
    code = (data.get('gift_card_code') or '').strip()
    user_id = data.get('user_id')
    if not code or not user_id:
        raise ValidationError('Codice gift card e user ID sono richiesti')
    if str(user_id) != str(current_user_id()):
        raise OwnershipError('Non puoi riscattare gift card per altri utenti')

    result = wordpress().gift_card_redeem(code, current_user_id())
    if not result.get('success'):
        raise ValidationError(result.get('message') or 'Errore nel riscatto della gift card')

    payload = _unwrap(result) or {}
    logger.info(f"Gift card resgatado pelo usuário {current_user_id()}")
    return jsonify({
        'success': True,
        'data': {
            'message': payload.get('message'),
            'amount': payload.get('amount'),
            'formatted_amount': payload.get('formatted_amount'),
            'new_balance': payload.get('new_balance'),
            'formatted_new_balance': payload.get('formatted_new_balance'),
        },
    })


@gift_cards_bp.post('/gift-cards/generate-coupon')
@jwt_required
def generate_coupon():
    data = request.get_json(silent=True) or {}
    try:
        amount = float(data.get('amount') or 0)
    except (TypeError, ValueError):
        amount = 0
    if amount <= 0:
        raise ValidationError('Importo non valido')

    payload = _unwrap(wordpress().gift_card_generate_coupon(current_user_id(), amount)) or {}
    logger.info(f"Cupom de gift card gerado para o usuário {current_user_id()} ({amount})")
    return jsonify({
        'success': True,
        'coupon_code': payload.get('coupon_code'),
        'amount': payload.get('amount'),
        'formatted_amount': payload.get('formatted_amount'),
        'new_balance': payload.get('new_balance'),
        'formatted_new_balance': payload.get('formatted_new_balance'),
    })


@gift_cards_bp.post('/gift-cards/validate-coupon')
def validate_coupon():
    data = request.get_json(silent=True) or {}
    code = (data.get('coupon_code') or '').strip()
    if not code:
        raise ValidationError('Codice coupon mancante')
    try:
        cart_total = float(data.get('cart_total') or 0)
    except (TypeError, ValueError):
        cart_total = 0.0

    coupon = woocommerce().find_coupon(code)
    if not coupon:
        return jsonify({'success': False, 'message': 'Coupon non trovato'})
    if not str(coupon.get('code', '')).upper().startswith(GIFT_CARD_COUPON_PREFIX) \
            or coupon.get('description') != GIFT_CARD_COUPON_DESCRIPTION:
        return jsonify({'success': False, 'message': 'Questo coupon non è valido per le gift card'})
    if coupon.get('status') != 'publish':
        return jsonify({'success': False, 'message': 'Coupon non attivo'})
    if coupon.get('usage_limit') and coupon.get('usage_count', 0) >= coupon['usage_limit']:
        return jsonify({'success': False, 'message': 'Coupon già utilizzato'})

    coupon_amount = float(coupon.get('amount') or 0)
    discount = 0.0
    if coupon.get('discount_type') == 'fixed_cart':
        discount = min(coupon_amount, cart_total)
    elif coupon.get('discount_type') == 'percent':
        discount = cart_total * coupon_amount / 100

    return jsonify({
        'success': True,
        'valid': True,
        'coupon_code': code,
        'coupon_amount': coupon_amount,
        'discount_amount': round(discount, 2),
        'formatted_discount': format_euro(discount),
        'cart_total': cart_total,
        'new_total': round(max(0.0, cart_total - discount), 2),
        'message': 'Coupon valido',
    })
