"""
Exceções da aplicação e tratamento centralizado de erros.
Cada exceção carrega o status HTTP devolvido ao frontend.
"""

import logging
from typing import Any, Dict, Optional, Type

from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class DreamShopError(Exception):
    """Erro base da aplicação."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra or {}


class ValidationError(DreamShopError):
    """Entrada ausente ou inválida."""

    status_code = 400


class AuthenticationError(DreamShopError):
    """Token ausente, inválido ou expirado."""

    status_code = 401

    def __init__(self, message: str = "Token non valido"):
        super().__init__(message)


class OwnershipError(DreamShopError):
    """O recurso não pertence ao usuário autenticado."""

    status_code = 403


class NotFoundError(DreamShopError):
    status_code = 404


class ConfigurationError(DreamShopError):
    """Variável de ambiente obrigatória não configurada."""

    status_code = 500


class UpstreamError(DreamShopError):
    """
    Resposta não-2xx do WordPress/WooCommerce/PayPal.

    O status upstream é propagado quando é um erro de cliente (4xx),
    caso contrário vira 500.
    """

    def __init__(self, status: Optional[int], payload: Any = None, message: Optional[str] = None):
        self.upstream_status = status
        self.payload = payload
        if message is None:
            message = self.extract_message(payload) or f"Errore upstream ({status})"
        http_status = status if status and 400 <= status < 500 else 500
        super().__init__(message, http_status)

    @staticmethod
    def extract_message(payload: Any) -> Optional[str]:
        if isinstance(payload, dict):
            if payload.get("message"):
                return str(payload["message"])
            data = payload.get("data")
            if isinstance(data, dict) and data.get("message"):
                return str(data["message"])
            if payload.get("error"):
                return str(payload["error"])
        return None

    @property
    def is_not_found(self) -> bool:
        return self.upstream_status == 404


class PaymentProviderError(DreamShopError):
    """Falha ao consultar Stripe ou PayPal."""

    status_code = 500


class PaymentNotConfirmedError(DreamShopError):
    """O provedor não confirmou o pagamento."""

    status_code = 400

    def __init__(self, message: str = "Pagamento non confermato", payment_status: Optional[str] = None):
        extra = {"paymentStatus": payment_status} if payment_status else None
        super().__init__(message, extra=extra)


ERROR_STATUS_CODES: Dict[Type[DreamShopError], int] = {
    ValidationError: 400,
    PaymentNotConfirmedError: 400,
    AuthenticationError: 401,
    OwnershipError: 403,
    NotFoundError: 404,
    ConfigurationError: 500,
    PaymentProviderError: 500,
}


def status_for(exc: DreamShopError) -> int:
    for exc_type, status in ERROR_STATUS_CODES.items():
        if type(exc) is exc_type:
            return status
    return exc.status_code


def error_response(exc: DreamShopError):
    body = {"success": False, "error": exc.message, "error_type": type(exc).__name__}
    body.update(exc.extra)
    return jsonify(body), status_for(exc)


def register_error_handlers(app):
    """Registra os handlers JSON de erro na app Flask."""

    @app.errorhandler(DreamShopError)
    def _handle_dreamshop_error(exc: DreamShopError):
        if isinstance(exc, UpstreamError):
            logger.error(f"Erro upstream ({exc.upstream_status}): {exc.payload}")
        elif status_for(exc) >= 500:
            logger.error(f"{type(exc).__name__}: {exc.message}")
        return error_response(exc)

    @app.errorhandler(HTTPException)
    def _handle_http_error(exc: HTTPException):
        return jsonify({"success": False, "error": exc.description, "error_type": type(exc).__name__}), exc.code

    @app.errorhandler(Exception)
    def _handle_unexpected(exc: Exception):
        logger.exception(f"Erro inesperado: {exc}")
        return jsonify({"success": False, "error": "Errore interno del server", "error_type": "InternalError"}), 500
