"""
Área do cliente: endereços, wishlist e programa de afiliados.
"""

import logging

from flask import Blueprint, g, jsonify, request

from ..models.connector_manager import woocommerce, wordpress
from ..models.wordpress_connector import WISHLIST_ACTIONS
from ..services.proxy import proxy_registry
from ..utils.auth import current_user_id, jwt_required
from ..utils.errors import NotFoundError, UpstreamError, ValidationError

logger = logging.getLogger(__name__)

account_bp = Blueprint('account', __name__)

BILLING_FIELDS = ['first_name', 'last_name', 'company', 'address_1', 'address_2', 'city',
                  'state', 'postcode', 'country', 'email', 'phone']
SHIPPING_FIELDS = ['first_name', 'last_name', 'address_1', 'address_2', 'city', 'state',
                   'postcode', 'country']
REQUIRED_ADDRESS_FIELDS = ['first_name', 'last_name', 'address_1', 'city', 'state', 'postcode', 'country']


def _address(raw, fields, fallback_email=''):
    if not raw:
        return None
    address = {f: raw.get(f) or '' for f in fields}
    address['country'] = address['country'] or 'IT'
    if 'email' in address:
        address['email'] = address['email'] or fallback_email
    return address


@account_bp.get('/user/addresses')
@jwt_required
def get_addresses():
    try:
        user = woocommerce().get_customer(current_user_id())
    except UpstreamError as e:
        if e.is_not_found:
            raise NotFoundError('Utente non trovato')
        raise
    return jsonify({
        'billing': _address(user.get('billing'), BILLING_FIELDS, user.get('email') or ''),
        'shipping': _address(user.get('shipping'), SHIPPING_FIELDS),
    })


def _save_address(kind, fields):
    data = request.get_json(silent=True) or {}
    missing = [f for f in REQUIRED_ADDRESS_FIELDS if not data.get(f)]
    if missing:
        raise ValidationError(f"Campi obbligatori mancanti: {', '.join(missing)}")

    woocommerce().update_customer(current_user_id(), {kind: {f: data.get(f) or '' for f in fields}})
    logger.info(f"Endereço {kind} salvo para o usuário {current_user_id()}")
    label = 'fatturazione' if kind == 'billing' else 'spedizione'
    return jsonify({'success': True, 'message': f'Indirizzo di {label} salvato con successo'})


@account_bp.post('/user/addresses/billing')
@jwt_required
def save_billing_address():
    return _save_address('billing', BILLING_FIELDS)


@account_bp.post('/user/addresses/shipping')
@jwt_required
def save_shipping_address():
    return _save_address('shipping', SHIPPING_FIELDS)


@account_bp.get('/wishlist')
@jwt_required
def get_wishlist():
    return jsonify(proxy_registry.dispatch('wishlist', user=g.current_user))


@account_bp.post('/wishlist')
@jwt_required
def update_wishlist():
    data = request.get_json(silent=True) or {}
    action = data.get('action')
    product_id = data.get('productId')
    if not action or not product_id:
        raise ValidationError('Parametri mancanti')
    if action not in WISHLIST_ACTIONS:
        raise ValidationError('Azione non valida')
    return jsonify(wordpress().wishlist_action(action, current_user_id(), product_id))


@account_bp.get('/affiliate/status')
@jwt_required
def affiliate_status():
    return jsonify(proxy_registry.dispatch('affiliate_status', user=g.current_user))


@account_bp.get('/affiliate/dashboard')
@jwt_required
def affiliate_dashboard():
    return jsonify(proxy_registry.dispatch('affiliate_dashboard', user=g.current_user, params=request.args.to_dict()))
