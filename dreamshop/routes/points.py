"""
Programa de pontos DreamShop: saldo, acúmulo, dedução e resgate.
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from ..models.connector_manager import wordpress
from ..utils.auth import current_user_id, jwt_required
from ..utils.errors import ConfigurationError, ValidationError

logger = logging.getLogger(__name__)

points_bp = Blueprint('points', __name__)


def _positive_int(value, message='Punti non validi') -> int:
    """Aceita int ou string numérica; rejeita bool, zero e negativos."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(message)
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(message)
    if number <= 0:
        raise ValidationError(message)
    return number


@points_bp.get('/points/user')
@jwt_required
def user_points():
    return jsonify(wordpress().points_user(current_user_id()))


@points_bp.post('/points/add')
@jwt_required
def add_points():
    data = request.get_json(silent=True) or {}
    points = _positive_int(data.get('points'))
    description = data.get('description') or "Punti guadagnati dall'acquisto"
    result = wordpress().points_add(current_user_id(), points, description, int(data.get('order_id') or 0))
    logger.info(f"{points} pontos adicionados ao usuário {current_user_id()}")
    return jsonify(result)


@points_bp.post('/points/deduct')
@jwt_required
def deduct_points():
    data = request.get_json(silent=True) or {}
    points = _positive_int(data.get('points'), 'points è obbligatorio e deve essere un numero positivo')
    order_id = int(data.get('orderId') or 0)
    description = data.get('description') or f'Punti utilizzati per ordine #{order_id}'

    result = wordpress().points_deduct(current_user_id(), points, description, order_id)
    logger.info(f"{points} pontos deduzidos do usuário {current_user_id()} (pedido {order_id})")
    return jsonify({
        'success': True,
        'message': result.get('message'),
        'points_deducted': points,
        'new_balance': result.get('new_balance'),
    })


@points_bp.post('/points/redeem')
@jwt_required
def redeem_points():
    data = request.get_json(silent=True) or {}
    points = _positive_int(data.get('points'))
    order_id = data.get('order_id')
    if not order_id:
        raise ValidationError('ID ordine mancante')
    if not current_app.config.get('POINTS_API_KEY'):
        raise ConfigurationError('Configurazione server mancante')

    user_id = current_user_id()
    description = data.get('description') or f'Punti utilizzati per ordine #{order_id}'
    result = wordpress().points_secure_redeem(user_id, points, description, order_id)

    logger.info(f"{points} pontos resgatados pelo usuário {user_id} no pedido {order_id}")
    return jsonify({
        'success': True,
        'message': result.get('message') or 'Punti riscattati con successo',
        'points': result.get('points', result.get('new_balance')),
        'user_id': user_id,
        'order_id': order_id,
        'points_redeemed': points,
    })
