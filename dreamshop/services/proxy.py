"""
Proxy configurável para os endpoints que só repassam dados do WordPress.

Cada rota declara: caminho upstream, exigência de autenticação, como montar a
requisição, como remodelar a resposta e o que devolver quando o plugin
responde 404 ou está indisponível.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from ..models.connector_manager import wordpress
from ..utils.errors import UpstreamError

logger = logging.getLogger(__name__)

# Contexto: user (payload JWT ou None), params (query string), body (JSON) e path_args
RequestShaper = Callable[[Dict[str, Any]], Dict[str, Any]]
ResponseShaper = Callable[[Any, Dict[str, Any]], Any]
Fallback = Callable[[Dict[str, Any]], Any]


def _passthrough(data: Any, ctx: Dict[str, Any]) -> Any:
    return data


def _no_params(ctx: Dict[str, Any]) -> Dict[str, Any]:
    return {}


@dataclass
class ProxyRoute:
    """Definição de uma rota repassada ao WordPress."""
    name: str
    path: str
    method: str = 'GET'
    auth_required: bool = True
    build_params: RequestShaper = _no_params
    build_body: Optional[RequestShaper] = None
    reshape: ResponseShaper = _passthrough
    fallback_on_404: Optional[Fallback] = None
    fallback_on_error: Optional[Fallback] = None
    error_message: str = 'Errore nel recupero dati'

    def upstream_path(self, ctx: Dict[str, Any]) -> str:
        values = dict(ctx.get('path_args') or {})
        if ctx.get('user'):
            values.setdefault('user_id', ctx['user']['id'])
        return self.path.format(**values)


class ProxyRegistry:
    """Registro nome → ProxyRoute e execução guard → upstream → reshape."""

    def __init__(self):
        self.routes: Dict[str, ProxyRoute] = {}

    def register(self, route: ProxyRoute) -> ProxyRoute:
        self.routes[route.name] = route
        return route

    def get(self, name: str) -> ProxyRoute:
        return self.routes[name]

    def dispatch(self, name: str, user: Optional[Dict[str, Any]] = None,
                 params: Optional[Dict[str, Any]] = None, body: Optional[Dict[str, Any]] = None,
                 **path_args) -> Any:
        """
        Executa a rota. A autenticação já foi validada pelo decorator da view;
        aqui só recusamos rotas autenticadas chamadas sem usuário.

        Returns:
            resposta remodelada, ou o fallback da rota quando aplicável
        """
        route = self.get(name)
        if route.auth_required and not user:
            raise RuntimeError(f"Rota {name} exige usuário autenticado")

        ctx = {'user': user, 'params': params or {}, 'body': body or {}, 'path_args': path_args}
        try:
            data = wordpress().call(
                route.method,
                route.upstream_path(ctx),
                params=route.build_params(ctx) or None,
                json=route.build_body(ctx) if route.build_body else None,
            )
        except UpstreamError as e:
            if e.is_not_found and route.fallback_on_404:
                logger.warning(f"Proxy {name}: upstream 404, devolvendo valor padrão")
                return route.fallback_on_404(ctx)
            if route.fallback_on_error:
                logger.warning(f"Proxy {name}: upstream falhou ({e.upstream_status}), devolvendo valor padrão")
                return route.fallback_on_error(ctx)
            logger.error(f"Proxy {name}: upstream falhou ({e.upstream_status}): {e.payload}")
            raise UpstreamError(e.upstream_status, e.payload, message=route.error_message) from e
        return route.reshape(data, ctx)


def _user_id(ctx):
    return ctx['user']['id']


def _empty_balance(ctx):
    return {'success': True, 'user_id': _user_id(ctx), 'balance': 0, 'formatted_balance': '€0,00'}


def _empty_transactions(ctx):
    return {'success': True, 'transactions': [], 'has_more': False}


def _empty_list(ctx):
    return []


def _transactions_params(ctx):
    params = ctx['params']
    return {'limit': params.get('limit', 20), 'offset': params.get('offset', 0)}


def _scheduled_detail_params(ctx):
    return {'user_id': _user_id(ctx)}


def _resin_customer_params(ctx):
    return {'customer_id': _user_id(ctx)}


def _affiliate_status_params(ctx):
    return {'user_id': _user_id(ctx)}


def _affiliate_dashboard_params(ctx):
    params = {'user_id': _user_id(ctx)}
    for key in ('start_date', 'end_date'):
        if ctx['params'].get(key):
            params[key] = ctx['params'][key]
    return params


def _balance_response(data, ctx):
    if isinstance(data, dict) and 'balance' not in data and isinstance(data.get('data'), dict):
        data = data['data']
    return {
        'success': True,
        'user_id': _user_id(ctx),
        'balance': (data or {}).get('balance', 0),
        'formatted_balance': (data or {}).get('formatted_balance', '€0,00'),
    }


def _transactions_response(data, ctx):
    if isinstance(data, dict) and isinstance(data.get('data'), dict):
        data = data['data']
    if isinstance(data, list):
        return {'success': True, 'transactions': data, 'has_more': False}
    return {
        'success': True,
        'transactions': (data or {}).get('transactions', []),
        'has_more': bool((data or {}).get('has_more', False)),
    }


def _list_response(data, ctx):
    return data if isinstance(data, list) else []


proxy_registry = ProxyRegistry()

proxy_registry.register(ProxyRoute(
    name='gift_card_balance',
    path='gift-card/v1/balance/{user_id}',
    reshape=_balance_response,
    fallback_on_404=_empty_balance,
    fallback_on_error=_empty_balance,
))
proxy_registry.register(ProxyRoute(
    name='gift_card_transactions',
    path='gift-card/v1/transactions/{user_id}',
    build_params=_transactions_params,
    reshape=_transactions_response,
    fallback_on_404=_empty_transactions,
    fallback_on_error=_empty_transactions,
))
proxy_registry.register(ProxyRoute(
    name='gift_card_config',
    path='gift-card/v1/config',
    auth_required=False,
    error_message='Errore nel recupero configurazione gift card',
))
proxy_registry.register(ProxyRoute(
    name='resin_shipping_customer',
    path='dreamshop-resin-shipping/v1/customer/shipping-fees',
    build_params=_resin_customer_params,
    reshape=_list_response,
    fallback_on_404=_empty_list,
    fallback_on_error=_empty_list,
))
proxy_registry.register(ProxyRoute(
    name='scheduled_order_detail',
    path='dreamshop/v1/scheduled-orders/{order_id}',
    build_params=_scheduled_detail_params,
    error_message="Errore nel recupero dell'ordine",
))
proxy_registry.register(ProxyRoute(
    name='deposit_options',
    path='dreamshop/v1/products/{product_id}/deposit-options',
    auth_required=False,
    error_message='Errore nel recupero delle opzioni di acconto',
))
proxy_registry.register(ProxyRoute(
    name='affiliate_status',
    path='affiliate-coupon/v1/status',
    build_params=_affiliate_status_params,
))
proxy_registry.register(ProxyRoute(
    name='affiliate_dashboard',
    path='affiliate-coupon/v1/dashboard',
    build_params=_affiliate_dashboard_params,
))
proxy_registry.register(ProxyRoute(
    name='wishlist',
    path='dreamshop/v1/wishlist/{user_id}',
    error_message='Errore nel recupero della wishlist',
))
