"""
Verificação e aplicação de cupons de desconto.
"""

import logging
from datetime import datetime, timezone

from flask import Blueprint, jsonify, request

from ..models.connector_manager import woocommerce, wordpress
from ..utils.errors import NotFoundError, UpstreamError, ValidationError

logger = logging.getLogger(__name__)

coupons_bp = Blueprint('coupons', __name__)


def _is_expired(coupon) -> bool:
    expires = coupon.get('date_expires_gmt')
    if not expires:
        return False
    expires_at = datetime.fromisoformat(expires).replace(tzinfo=timezone.utc)
    return expires_at < datetime.now(timezone.utc)


@coupons_bp.get('/coupons/verify')
def verify_coupon():
    code = (request.args.get('code') or '').strip()
    if not code:
        raise ValidationError('Codice coupon mancante')

    coupon = woocommerce().find_coupon(code)
    if not coupon:
        raise NotFoundError('Coupon non valido o inesistente')
    if _is_expired(coupon):
        raise ValidationError('Questo coupon è scaduto')
    if coupon.get('usage_limit') and coupon.get('usage_count', 0) >= coupon['usage_limit']:
        raise ValidationError('Questo coupon ha raggiunto il limite di utilizzo')
    return jsonify({'coupon': coupon})


@coupons_bp.post('/coupons/apply')
def apply_coupon():
    data = request.get_json(silent=True) or {}
    code = (data.get('code') or '').strip()
    items = data.get('items')
    if not code:
        raise ValidationError('Codice coupon mancante')
    if not isinstance(items, list) or not items:
        raise ValidationError('Carrello vuoto o non valido')

    wp_items = [{
        'id': item.get('id'),
        'quantity': item.get('quantity') or 1,
        'price': item.get('price') or item.get('regular_price') or '0',
        'sale_price': item.get('sale_price') or '',
        'variation_id': item.get('variation_id') or 0,
        'categories': item.get('categories') or [],
    } for item in items]

    try:
        result = wordpress().validate_coupon(code, wp_items, data.get('email') or '')
    except UpstreamError as e:
        raise UpstreamError(e.upstream_status or 400, e.payload,
                            message=UpstreamError.extract_message(e.payload) or 'Coupon non valido') from e
    if not result.get('valid'):
        raise ValidationError(result.get('message') or 'Coupon non valido')

    return jsonify({
        'discount': result.get('discount'),
        'free_shipping': result.get('free_shipping') or False,
        'coupon': result.get('coupon'),
        'items': items,
    })
