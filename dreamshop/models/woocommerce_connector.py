"""
Cliente da API REST do WooCommerce (wc/v3).
Autenticação HTTP Basic com consumer key/secret.
"""

import logging
from typing import Any, Dict, List, Optional

from .connector_base import BaseConnector, ConnectorConfig, meta_value
from ..utils.errors import UpstreamError

logger = logging.getLogger(__name__)


class WooCommerceConnector(BaseConnector):
    """Pedidos, clientes, cupons, produtos e zonas de envio do WooCommerce."""

    def __init__(self, config: ConnectorConfig):
        super().__init__(config)
        self.api_base_url = f"{config.base_url}/wp-json/wc/v3"
        self.session.auth = (config.api_key, config.api_secret)

    def _url(self, path: str) -> str:
        return f"{self.api_base_url}/{path.lstrip('/')}"

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self._request_json('GET', self._url(path), params=params)

    def post(self, path: str, data: Dict[str, Any]) -> Any:
        return self._request_json('POST', self._url(path), json=data)

    def put(self, path: str, data: Dict[str, Any]) -> Any:
        return self._request_json('PUT', self._url(path), json=data)

    def ping(self):
        return self.get('orders', params={'per_page': 1})

    # Pedidos

    def list_orders(self, **params) -> List[Dict[str, Any]]:
        orders = self.get('orders', params=params)
        return orders if isinstance(orders, list) else []

    def get_order(self, order_id: int) -> Dict[str, Any]:
        return self.get(f'orders/{order_id}')

    def create_order(self, data: Dict[str, Any]) -> Dict[str, Any]:
        order = self.post('orders', data)
        if not isinstance(order, dict) or 'id' not in order:
            raise UpstreamError(None, order, message="Risposta non valida dalla creazione dell'ordine")
        logger.info(f"Pedido WooCommerce {order['id']} criado")
        return order

    def update_order(self, order_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.put(f'orders/{order_id}', data)

    def add_order_note(self, order_id: int, note: str, customer_note: bool = False) -> Dict[str, Any]:
        return self.post(f'orders/{order_id}/notes', {'note': note, 'customer_note': customer_note})

    def find_order_by_meta(self, key: str, value: str, per_page: int = 20) -> Optional[Dict[str, Any]]:
        """
        Procura, entre os pedidos mais recentes, um pedido com meta_data key == value.

        Args:
            key: chave do meta (ex.: _stripe_session_id)
            value: valor procurado
            per_page: quantos pedidos recentes examinar

        Returns:
            Dict: o pedido encontrado ou None
        """
        orders = self.list_orders(per_page=per_page, orderby='date', order='desc')
        for order in orders:
            if str(meta_value(order, key)) == str(value):
                return order
        return None

    # Clientes

    def find_customer_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        customers = self.get('customers', params={'email': email})
        if isinstance(customers, list) and customers:
            return customers[0]
        return None

    def get_customer(self, customer_id: int) -> Dict[str, Any]:
        return self.get(f'customers/{customer_id}')

    def create_customer(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.post('customers', data)

    def update_customer(self, customer_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.put(f'customers/{customer_id}', data)

    # Cupons e produtos

    def find_coupon(self, code: str) -> Optional[Dict[str, Any]]:
        coupons = self.get('coupons', params={'code': code})
        if isinstance(coupons, list) and coupons:
            return coupons[0]
        return None

    def get_product(self, product_id: int, variation_id: Optional[int] = None) -> Dict[str, Any]:
        if variation_id:
            return self.get(f'products/{product_id}/variations/{variation_id}')
        return self.get(f'products/{product_id}')

    # Envio

    def shipping_zones(self) -> List[Dict[str, Any]]:
        zones = self.get('shipping/zones')
        return zones if isinstance(zones, list) else []

    def shipping_zone_methods(self, zone_id: int) -> List[Dict[str, Any]]:
        methods = self.get(f'shipping/zones/{zone_id}/methods')
        return methods if isinstance(methods, list) else []

    def shipping_zone_locations(self, zone_id: int) -> List[Dict[str, Any]]:
        locations = self.get(f'shipping/zones/{zone_id}/locations')
        return locations if isinstance(locations, list) else []
