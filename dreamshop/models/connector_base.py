"""
Base dos clientes HTTP upstream (WooCommerce, plugins WordPress, PayPal).

Cada cliente compartilha uma requests.Session com timeout fixo. Leituras
(GET/HEAD) são repetidas em falha de rede; escritas nunca. Respostas não-2xx
viram UpstreamError com o status e o corpo originais.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

from ..utils.errors import DreamShopError, UpstreamError

logger = logging.getLogger(__name__)

RETRYABLE_METHODS = {"GET", "HEAD"}


@dataclass
class ConnectorConfig:
    """Credenciais e limites de um cliente upstream."""
    name: str
    api_key: str
    api_secret: str
    base_url: str
    timeout: int = 30
    max_retries: int = 2  # novas tentativas além da primeira, só leituras
    options: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.base_url = self.base_url.rstrip("/")


class BaseConnector(ABC):

    def __init__(self, config: ConnectorConfig):
        self.config = config
        self.session = requests.Session()
        self.session.headers.update({
            'User-Agent': f'DreamShop-API/{config.name}',
            'Accept': 'application/json',
        })

    @abstractmethod
    def ping(self):
        """Chamada leve de leitura usada pelo diagnóstico."""

    def is_reachable(self) -> bool:
        """
        Executa ping() e informa se o serviço respondeu 2xx.

        Returns:
            bool: False em qualquer erro upstream ou de credenciais (o erro fica no log)
        """
        try:
            self.ping()
        except DreamShopError as e:
            logger.warning(f"{self.config.name} não respondeu ao ping: {e.message}")
            return False
        return True

    def _make_request(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        Envia a requisição aplicando timeout e, só para leituras, novas tentativas.

        Args:
            method: verbo HTTP
            url: URL absoluta
            **kwargs: repassados para Session.request (params, json, auth, headers...)

        Returns:
            requests.Response: resposta 2xx

        Raises:
            UpstreamError: status não-2xx (upstream_status preenchido) ou serviço
                inacessível (upstream_status None)
        """
        method = method.upper()
        attempts = max(0, self.config.max_retries) + 1 if method in RETRYABLE_METHODS else 1
        kwargs.setdefault('timeout', self.config.timeout)

        for attempt in range(1, attempts + 1):
            try:
                response = self.session.request(method, url, **kwargs)
            except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
                logger.warning(f"{method} {url} falhou (tentativa {attempt}/{attempts}): {e}")
                if attempt < attempts:
                    continue
                raise UpstreamError(None, message=f"Servizio {self.config.name} non raggiungibile") from e
            except requests.exceptions.RequestException as e:
                raise UpstreamError(None, message=f"Errore di comunicazione con {self.config.name}") from e

            if not response.ok:
                raise UpstreamError(response.status_code, self._safe_json(response))
            return response

    def _request_json(self, method: str, url: str, **kwargs) -> Any:
        return self._safe_json(self._make_request(method, url, **kwargs))

    @staticmethod
    def _safe_json(response: requests.Response) -> Any:
        # Corpo vazio (204) ou HTML de erro do proxy reverso
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {"message": response.text[:500]}

    def describe(self) -> Dict[str, Any]:
        return {
            'name': self.config.name,
            'base_url': self.config.base_url,
            'timeout': self.config.timeout,
            'max_retries': self.config.max_retries,
        }


def meta_value(entity: Optional[Dict[str, Any]], key: str) -> Optional[Any]:
    """Lê um valor de meta_data de um pedido/cliente WooCommerce."""
    for meta in (entity or {}).get('meta_data') or []:
        if meta.get('key') == key:
            return meta.get('value')
    return None
