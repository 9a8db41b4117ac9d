"""
Autenticação via Bearer JWT.
Valida o token antes de qualquer chamada upstream e expõe o usuário em g.current_user.
"""

import logging
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Any, Dict

import jwt
from flask import current_app, g, request

from .errors import AuthenticationError, ConfigurationError

logger = logging.getLogger(__name__)


def _secret() -> str:
    secret = current_app.config.get("JWT_SECRET")
    if not secret:
        raise ConfigurationError("JWT_SECRET non configurato")
    return secret


def issue_token(user: Dict[str, Any]) -> str:
    """
    Gera um JWT para o cliente WooCommerce.

    Args:
        user: dicionário do cliente (id, email, username)

    Returns:
        str: token assinado
    """
    now = datetime.now(timezone.utc)
    payload = {
        "id": user["id"],
        "email": user.get("email"),
        "username": user.get("username"),
        "iat": now,
        "exp": now + timedelta(days=current_app.config["JWT_EXPIRES_DAYS"]),
    }
    return jwt.encode(payload, _secret(), algorithm=current_app.config["JWT_ALGORITHM"])


def decode_token(token: str) -> Dict[str, Any]:
    try:
        payload = jwt.decode(token, _secret(), algorithms=[current_app.config["JWT_ALGORITHM"]])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token scaduto")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Token non valido")
    if not payload.get("id"):
        raise AuthenticationError("Token non valido o ID utente mancante")
    return payload


def bearer_token() -> str:
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        raise AuthenticationError("Token non fornito")
    token = header[len("Bearer "):].strip()
    if not token:
        raise AuthenticationError("Token non fornito")
    return token


def current_user_id() -> int:
    return int(g.current_user["id"])


def jwt_required(fn):
    """Decorator: rejeita com 401 quando o token está ausente ou inválido."""

    @wraps(fn)
    def wrapper(*args, **kwargs):
        g.current_user = decode_token(bearer_token())
        return fn(*args, **kwargs)

    return wrapper
