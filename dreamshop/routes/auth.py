"""
Rotas de autenticação dos clientes (login, registro, validação e atualização).
"""

import logging

from flask import Blueprint, jsonify, request

from ..models.connector_manager import woocommerce, wordpress
from ..utils.auth import current_user_id, issue_token, jwt_required
from ..utils.errors import AuthenticationError, NotFoundError, UpstreamError, ValidationError

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)


def _serialize_user(user):
    first_name = user.get('first_name') or ''
    last_name = user.get('last_name') or ''
    return {
        'id': user.get('id'),
        'username': user.get('username'),
        'email': user.get('email'),
        'firstName': first_name,
        'lastName': last_name,
        'displayName': f"{first_name} {last_name}".strip(),
    }


@auth_bp.post('/auth/login')
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip()
    password = data.get('password') or ''
    if not email or not password:
        raise ValidationError('Email e password sono richiesti')

    if not wordpress().verify_credentials(email, password):
        logger.info(f"Login recusado para {email}")
        raise AuthenticationError('Credenziali non valide')

    user = woocommerce().find_customer_by_email(email)
    if not user:
        raise AuthenticationError('Utente non trovato')

    return jsonify({'token': issue_token(user), 'user': _serialize_user(user)})


@auth_bp.post('/auth/register')
def register():
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip()
    password = data.get('password') or ''
    if not email or not password:
        raise ValidationError('Email e password sono richiesti')

    customer = {
        'email': email,
        'first_name': data.get('firstName') or '',
        'last_name': data.get('lastName') or '',
        'username': data.get('username') or email,
        'password': password,
    }
    try:
        user = woocommerce().create_customer(customer)
    except UpstreamError as e:
        if e.upstream_status and 400 <= e.upstream_status < 500:
            raise ValidationError(e.message)
        raise

    logger.info(f"Cliente {user.get('id')} registrado")
    return jsonify({'token': issue_token(user), 'user': _serialize_user(user)})


@auth_bp.get('/auth/validate')
@jwt_required
def validate():
    try:
        user = woocommerce().get_customer(current_user_id())
    except UpstreamError as e:
        if e.is_not_found:
            raise NotFoundError('Utente non trovato')
        raise
    return jsonify({'valid': True, 'user': _serialize_user(user)})


@auth_bp.put('/auth/update-user')
@jwt_required
def update_user():
    data = request.get_json(silent=True) or {}
    fields = {'firstName': 'first_name', 'lastName': 'last_name', 'email': 'email', 'password': 'password'}
    update = {wc_key: data[key] for key, wc_key in fields.items() if data.get(key) is not None}
    if not update:
        raise ValidationError('Nessun dato da aggiornare')

    try:
        user = woocommerce().update_customer(current_user_id(), update)
    except UpstreamError as e:
        if e.is_not_found:
            raise NotFoundError('Utente non trovato')
        raise
    return jsonify({'user': _serialize_user(user)})
