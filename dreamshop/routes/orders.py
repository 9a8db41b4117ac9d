"""
Pedidos do cliente autenticado.
"""

import logging

from flask import Blueprint, g, jsonify

from ..models.connector_manager import woocommerce
from ..utils.auth import current_user_id, jwt_required
from ..utils.errors import NotFoundError, OwnershipError, UpstreamError

logger = logging.getLogger(__name__)

orders_bp = Blueprint('orders', __name__)


def _belongs_to_user(order, user_id, email):
    customer_id = int(order.get('customer_id') or 0)
    if customer_id == user_id:
        return True
    # E-mail só identifica pedidos de visitante
    if customer_id != 0:
        return False
    billing_email = ((order.get('billing') or {}).get('email') or '').lower()
    return bool(email) and billing_email == email.lower()


@orders_bp.get('/orders/user')
@jwt_required
def user_orders():
    user_id = current_user_id()
    email = g.current_user.get('email') or ''
    wc = woocommerce()

    orders = wc.list_orders(customer=user_id, per_page=100, orderby='date', order='desc')
    if not orders and email:
        # Pedidos feitos como convidado antes do cadastro
        orders = wc.list_orders(search=email, per_page=100, orderby='date', order='desc')

    return jsonify([o for o in orders if _belongs_to_user(o, user_id, email)])


@orders_bp.get('/orders/<int:order_id>')
@jwt_required
def order_detail(order_id: int):
    try:
        order = woocommerce().get_order(order_id)
    except UpstreamError as e:
        if e.is_not_found:
            raise NotFoundError('Ordine non trovato')
        raise

    if not _belongs_to_user(order, current_user_id(), g.current_user.get('email')):
        logger.warning(f"Usuário {current_user_id()} tentou acessar o pedido {order_id}")
        raise OwnershipError('Non sei autorizzato a visualizzare questo ordine')
    return jsonify(order)
