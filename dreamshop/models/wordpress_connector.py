"""
Cliente dos endpoints customizados dos plugins WordPress da DreamShop
(gift card, pontos, resin shipping, pedidos agendados, wishlist, afiliados).
"""

import logging
from typing import Any, Dict, List, Optional

from .connector_base import BaseConnector, ConnectorConfig
from ..utils.errors import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

WISHLIST_ACTIONS = {
    'add': 'dreamshop/v1/wishlist/add',
    'remove': 'dreamshop/v1/wishlist/remove',
    'check': 'dreamshop/v1/wishlist/is-in-wishlist',
}


class WordPressConnector(BaseConnector):
    """
    Endpoints /wp-json/<plugin>/v1/... autenticados com Basic (consumer key/secret).
    Os endpoints seguros de pontos usam o header X-API-Key.
    """

    def __init__(self, config: ConnectorConfig):
        super().__init__(config)
        self.api_base_url = f"{config.base_url}/wp-json"
        self.session.auth = (config.api_key, config.api_secret)
        self.points_api_key = config.options.get('points_api_key', '')

    def _url(self, path: str) -> str:
        return f"{self.api_base_url}/{path.lstrip('/')}"

    def call(self, method: str, path: str, params: Optional[Dict[str, Any]] = None,
             json: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None) -> Any:
        """Chamada genérica a um endpoint de plugin (usada pelo proxy)."""
        return self._request_json(method, self._url(path), params=params, json=json, headers=headers)

    def ping(self):
        return self.call('GET', 'gift-card/v1/config')

    def verify_credentials(self, email: str, password: str) -> bool:
        """
        Confere e-mail/senha do cliente no WordPress (wp/v2/users/me).

        Returns:
            bool: True se o WordPress aceitou as credenciais
        """
        try:
            self._make_request('GET', self._url('wp/v2/users/me'), auth=(email, password))
        except UpstreamError as e:
            if e.upstream_status in (400, 401, 403):
                return False
            raise
        return True

    # Gift card

    def gift_card_redeem(self, gift_card_code: str, user_id: int) -> Dict[str, Any]:
        return self.call('POST', 'gift-card/v1/redeem', json={'gift_card_code': gift_card_code, 'user_id': user_id})

    def gift_card_generate_coupon(self, user_id: int, amount: float) -> Dict[str, Any]:
        return self.call('POST', 'gift-card/v1/generate-coupon', json={'user_id': user_id, 'amount': amount})

    # Resin shipping

    def resin_fee(self, token: str) -> Dict[str, Any]:
        return self.call('GET', f'dreamshop-resin-shipping/v1/shipping-fee/{token}')

    def resin_mark_paid(self, token: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.call('POST', f'dreamshop-resin-shipping/v1/shipping-fee/{token}/mark-paid', json=data)

    # Pedidos agendados

    def scheduled_orders(self, user_id: int) -> List[Dict[str, Any]]:
        data = self.call('GET', 'dreamshop/v1/scheduled-orders', params={'user_id': user_id})
        return data if isinstance(data, list) else []

    # Pontos

    def _points_headers(self) -> Dict[str, str]:
        if not self.points_api_key:
            raise ConfigurationError("Configurazione server mancante")
        return {'X-API-Key': self.points_api_key}

    def points_user(self, user_id: int) -> Dict[str, Any]:
        return self.call('GET', f'dreamshop-points/v1/points/user/{user_id}')

    def points_add(self, user_id: int, points: int, description: str, order_id: int = 0) -> Dict[str, Any]:
        payload = {'user_id': user_id, 'points': points, 'description': description, 'order_id': order_id}
        return self.call('POST', 'dreamshop-points/v1/points/add', json=payload)

    def points_deduct(self, user_id: int, points: int, description: str, order_id: int = 0) -> Dict[str, Any]:
        payload = {'user_id': user_id, 'points': points, 'description': description, 'order_id': order_id}
        return self.call('POST', 'dreamshop-points/v1/points/deduct-only', json=payload,
                         headers=self._points_headers())

    def points_secure_redeem(self, user_id: int, points: int, description: str, order_id: int) -> Dict[str, Any]:
        payload = {'user_id': user_id, 'points': points, 'description': description, 'order_id': order_id}
        return self.call('POST', 'dreamshop-points/v1/points/secure-redeem', json=payload,
                         headers=self._points_headers())

    # Cupons e wishlist

    def validate_coupon(self, code: str, items: List[Dict[str, Any]], email: str = '') -> Dict[str, Any]:
        return self.call('POST', 'dreamshop/v1/validate-coupon', json={'code': code, 'items': items, 'email': email})

    def wishlist_action(self, action: str, user_id: int, product_id: int) -> Dict[str, Any]:
        return self.call('POST', WISHLIST_ACTIONS[action], json={'user_id': user_id, 'product_id': product_id})
