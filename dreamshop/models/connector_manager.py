"""
Gerenciador dos clientes upstream.
Constrói os conectores a partir da configuração da app e os entrega por nome.
"""

from typing import Any, Dict, List, Optional
import logging

from flask import current_app

from .connector_base import BaseConnector, ConnectorConfig
from .paypal_connector import PayPalConnector
from .stripe_gateway import StripeGateway
from .woocommerce_connector import WooCommerceConnector
from .wordpress_connector import WordPressConnector
from ..utils.errors import ConfigurationError

logger = logging.getLogger(__name__)

EXTENSION_KEY = 'dreamshop_connectors'


class ConnectorManager:
    """
    Registro central dos conectores (woocommerce, wordpress, paypal, stripe).
    Conectores são criados sob demanda na primeira utilização.
    """

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.connectors: Dict[str, Any] = {}

    def register_connector(self, name: str, connector: Any):
        """Substitui (ou antecipa) o conector construído a partir da configuração."""
        self.connectors[name] = connector
        logger.info(f"Conector {name} registrado")

    def get_connector(self, name: str) -> Any:
        """
        Obtém um conector, construindo-o a partir da configuração se necessário.

        Args:
            name: Nome do conector

        Returns:
            Instância do conector
        """
        if name not in self.connectors:
            self.connectors[name] = self._build(name)
        return self.connectors[name]

    def list_connectors(self, check: bool = False) -> List[Dict[str, Any]]:
        """
        Resumo dos conectores já construídos.

        Args:
            check: também executa o ping de cada conector HTTP (lento)
        """
        out = []
        for name, connector in self.connectors.items():
            entry = {'name': name}
            if isinstance(connector, BaseConnector):
                entry.update(connector.describe())
                if check:
                    entry['reachable'] = connector.is_reachable()
            out.append(entry)
        return out

    def _connector_config(self, name: str, api_key: str, api_secret: str, base_url: str,
                          options: Optional[Dict[str, Any]] = None) -> ConnectorConfig:
        return ConnectorConfig(
            name=name,
            api_key=api_key,
            api_secret=api_secret,
            base_url=base_url,
            timeout=self.config['UPSTREAM_TIMEOUT'],
            max_retries=self.config['UPSTREAM_MAX_RETRIES'],
            options=options or {},
        )

    def _build(self, name: str) -> Any:
        cfg = self.config
        if name == 'woocommerce':
            return WooCommerceConnector(self._connector_config(
                name, cfg['WC_CONSUMER_KEY'], cfg['WC_CONSUMER_SECRET'], cfg['WORDPRESS_URL']))
        if name == 'wordpress':
            return WordPressConnector(self._connector_config(
                name, cfg['WC_CONSUMER_KEY'], cfg['WC_CONSUMER_SECRET'], cfg['WORDPRESS_URL'],
                {'points_api_key': cfg['POINTS_API_KEY']}))
        if name == 'paypal':
            return PayPalConnector(self._connector_config(
                name, cfg['PAYPAL_CLIENT_ID'], cfg['PAYPAL_CLIENT_SECRET'],
                PayPalConnector.base_url_for(cfg['PAYPAL_MODE'])))
        if name == 'stripe':
            return StripeGateway(cfg['STRIPE_SECRET_KEY'], cfg['STRIPE_WEBHOOK_SECRET'], cfg['STRIPE_CURRENCY'])
        raise ConfigurationError(f"Conector {name} não encontrado")


def init_connectors(app) -> ConnectorManager:
    manager = ConnectorManager(app.config)
    app.extensions[EXTENSION_KEY] = manager
    return manager


def get_manager() -> ConnectorManager:
    return current_app.extensions[EXTENSION_KEY]


def woocommerce() -> WooCommerceConnector:
    return get_manager().get_connector('woocommerce')


def wordpress() -> WordPressConnector:
    return get_manager().get_connector('wordpress')


def paypal() -> PayPalConnector:
    return get_manager().get_connector('paypal')


def stripe_gateway() -> StripeGateway:
    return get_manager().get_connector('stripe')
