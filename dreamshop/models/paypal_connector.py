"""
Conector PayPal REST (v2 Checkout Orders).
Token OAuth2 client credentials, guardado em memória até expirar.
"""

import logging
import re
import time
from typing import Any, Dict, Optional

from .connector_base import BaseConnector, ConnectorConfig
from ..utils.errors import PaymentProviderError, UpstreamError

logger = logging.getLogger(__name__)

PAYPAL_BASE_URLS = {
    'sandbox': 'https://api-m.sandbox.paypal.com',
    'live': 'https://api-m.paypal.com',
}

# Margem para renovar o token antes de expirar (segundos)
TOKEN_EXPIRY_MARGIN = 60


def clean_amount(value: Any) -> Optional[str]:
    """
    Normaliza um valor vindo do frontend ("€ 12,50", "12.50") para "12.50".

    Returns:
        str: valor com 2 casas decimais, ou None se inválido/não positivo
    """
    if value is None:
        return None
    cleaned = re.sub(r'[^0-9.,]', '', str(value)).replace(',', '.', 1)
    parts = cleaned.split('.')
    if len(parts) > 2:
        cleaned = parts[0] + '.' + ''.join(parts[1:])
    try:
        amount = float(cleaned)
    except ValueError:
        return None
    if amount <= 0:
        return None
    return f"{amount:.2f}"


class PayPalConnector(BaseConnector):
    """Cria, consulta e captura pedidos PayPal."""

    def __init__(self, config: ConnectorConfig):
        super().__init__(config)
        self.client_id = config.api_key
        self.client_secret = config.api_secret
        self.access_token: Optional[str] = None
        self.token_expires_at = 0.0

    @classmethod
    def base_url_for(cls, mode: str) -> str:
        return PAYPAL_BASE_URLS['live'] if mode == 'live' else PAYPAL_BASE_URLS['sandbox']

    def ping(self):
        self._get_access_token()

    def _get_access_token(self) -> str:
        """
        Obtém (ou reaproveita) um access token OAuth2.

        Returns:
            str: access token válido
        """
        if self.access_token and time.time() < self.token_expires_at:
            return self.access_token

        if not self.client_id or not self.client_secret:
            raise PaymentProviderError("Credenziali PayPal non configurate")

        try:
            result = self._request_json(
                'POST',
                f"{self.config.base_url}/v1/oauth2/token",
                data={'grant_type': 'client_credentials'},
                auth=(self.client_id, self.client_secret),
                headers={'Content-Type': 'application/x-www-form-urlencoded'},
            )
        except UpstreamError as e:
            logger.error(f"PayPal: Erro ao obter token: {e.payload}")
            raise PaymentProviderError("Errore nell'autenticazione con PayPal") from e

        token = result.get('access_token')
        if not token:
            logger.error(f"PayPal: resposta de token sem access_token: {result}")
            raise PaymentProviderError("Errore nell'autenticazione con PayPal")

        self.access_token = token
        self.token_expires_at = time.time() + int(result.get('expires_in', 0)) - TOKEN_EXPIRY_MARGIN
        logger.info("PayPal: Token obtido com sucesso")
        return token

    def _auth_headers(self) -> Dict[str, str]:
        return {'Authorization': f"Bearer {self._get_access_token()}"}

    def create_order(self, amount: str, description: str, custom_id: str,
                     return_url: str, cancel_url: str, currency: str = 'EUR') -> Dict[str, Any]:
        """
        Cria um pedido PayPal com intent CAPTURE.

        Args:
            amount: valor já normalizado por clean_amount
            description: descrição mostrada ao comprador
            custom_id: referência interna (pedido/usuário) verificada na conclusão
            return_url: URL de retorno após aprovação
            cancel_url: URL de retorno após cancelamento

        Returns:
            Dict: pedido PayPal (id, status, links)
        """
        payload = {
            'intent': 'CAPTURE',
            'purchase_units': [{
                'amount': {'currency_code': currency, 'value': amount},
                'description': description,
                'custom_id': custom_id,
            }],
            'application_context': {
                'brand_name': 'Dreamshop',
                'landing_page': 'BILLING',
                'user_action': 'PAY_NOW',
                'return_url': return_url,
                'cancel_url': cancel_url,
            },
        }
        return self._call('POST', '/v2/checkout/orders', json=payload)

    def get_order(self, paypal_order_id: str) -> Dict[str, Any]:
        return self._call('GET', f'/v2/checkout/orders/{paypal_order_id}')

    def capture_order(self, paypal_order_id: str) -> Dict[str, Any]:
        return self._call('POST', f'/v2/checkout/orders/{paypal_order_id}/capture', json={})

    def _call(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            return self._request_json(method, f"{self.config.base_url}{path}",
                                      headers=self._auth_headers(), **kwargs)
        except UpstreamError as e:
            logger.error(f"PayPal: {method} {path} falhou ({e.upstream_status}): {e.payload}")
            if e.is_not_found:
                raise
            raise PaymentProviderError(f"Errore PayPal: {e.message}") from e


def capture_id(paypal_order: Dict[str, Any]) -> Optional[str]:
    """Id da captura (transação) dentro de um pedido PayPal capturado."""
    for unit in paypal_order.get('purchase_units') or []:
        for capture in (unit.get('payments') or {}).get('captures') or []:
            if capture.get('id'):
                return capture['id']
    return None


def custom_id(paypal_order: Dict[str, Any]) -> Optional[str]:
    for unit in paypal_order.get('purchase_units') or []:
        if unit.get('custom_id'):
            return unit['custom_id']
    return None


def order_amount(paypal_order: Dict[str, Any]) -> Optional[str]:
    """Valor (normalizado) da primeira purchase unit."""
    for unit in paypal_order.get('purchase_units') or []:
        value = (unit.get('amount') or {}).get('value')
        if value is not None:
            return clean_amount(value)
    return None
