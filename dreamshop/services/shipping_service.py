"""
Cálculo de frete a partir das zonas de envio do WooCommerce,
com tabela de valores padrão quando a consulta falha.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from ..models.connector_manager import woocommerce
from ..utils.errors import UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_SHIPPING_COST = 5.99

FALLBACK_RATES = {
    'IT': 7.00,
    'FR': 12.50,
    'DE': 12.50,
    'ES': 12.50,
    'GB': 15.00,
}

# Países atendidos por uma zona configurada com o continente "AS"
ASIAN_COUNTRIES = ['CN', 'JP', 'KR', 'SG', 'HK', 'TW', 'TH', 'MY', 'VN', 'PH', 'ID', 'IN']

DEFAULT_METHOD = {
    'id': 'flat_rate',
    'title': 'Spedizione standard',
    'description': 'Consegna in 3-5 giorni lavorativi',
    'cost': 7.00,
}

COUNTRY_NAMES = {
    'IT': 'Italia', 'AT': 'Austria', 'BE': 'Belgio', 'HR': 'Croazia', 'DK': 'Danimarca',
    'FI': 'Finlandia', 'FR': 'Francia', 'DE': 'Germania', 'LU': 'Lussemburgo', 'GR': 'Grecia',
    'IE': 'Irlanda', 'MT': 'Malta', 'NL': 'Paesi Bassi', 'PT': 'Portogallo', 'CZ': 'Repubblica Ceca',
    'RO': 'Romania', 'SK': 'Slovacchia', 'ES': 'Spagna', 'SE': 'Svezia', 'HU': 'Ungheria',
    'GB': 'Regno Unito', 'US': 'Stati Uniti', 'CA': 'Canada', 'AU': 'Australia', 'JP': 'Giappone',
    'CN': 'Cina', 'IN': 'India', 'BR': 'Brasile', 'MX': 'Messico', 'KR': 'Corea del Sud',
    'SG': 'Singapore', 'HK': 'Hong Kong', 'TW': 'Taiwan', 'TH': 'Thailandia', 'MY': 'Malesia',
    'VN': 'Vietnam', 'PH': 'Filippine', 'ID': 'Indonesia', 'PL': 'Polonia', 'NO': 'Norvegia',
    'CH': 'Svizzera', 'TR': 'Turchia', 'RU': 'Russia', 'ZA': 'Sudafrica', 'EG': 'Egitto',
    'IL': 'Israele', 'AE': 'Emirati Arabi Uniti', 'SA': 'Arabia Saudita', 'AR': 'Argentina',
    'CL': 'Cile', 'CO': 'Colombia', 'PE': 'Perù', 'NZ': 'Nuova Zelanda',
}

ZoneMatch = Tuple[Dict[str, Any], List[Dict[str, Any]]]


def _setting(method: Dict[str, Any], key: str) -> Optional[str]:
    value = ((method.get('settings') or {}).get(key) or {})
    if isinstance(value, dict):
        value = value.get('value')
    if value in (None, '', 'N/A'):
        return None
    return str(value)


def _to_float(value: Optional[str], default: float = 0.0) -> float:
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


class ShippingService:

    @staticmethod
    def fallback_cost(country: Optional[str]) -> float:
        return FALLBACK_RATES.get((country or '').upper(), DEFAULT_SHIPPING_COST)

    @staticmethod
    def find_zone(country: str, include_continents: bool = False) -> Optional[ZoneMatch]:
        """
        Percorre zonas → métodos → localizações e devolve a primeira zona que
        atende o país. A zona 0 ("resto do mundo") é usada como padrão.

        Returns:
            (zona, métodos) ou None quando nenhuma zona tem métodos
        """
        wc = woocommerce()
        default_zone: Optional[ZoneMatch] = None

        for zone in wc.shipping_zones():
            methods = wc.shipping_zone_methods(zone['id'])
            if not methods:
                continue
            if zone['id'] == 0:
                default_zone = (zone, methods)

            locations = wc.shipping_zone_locations(zone['id'])
            for loc in locations:
                if loc.get('type') == 'country' and loc.get('code') == country:
                    return zone, methods
                if include_continents and loc.get('type') == 'continent' and loc.get('code') == 'AS' \
                        and country in ASIAN_COUNTRIES:
                    return zone, methods

        return default_zone

    @staticmethod
    def calculate_cost(country: str) -> float:
        """
        Custo de envio do primeiro método ativo da zona do país.
        Falha na consulta, zona sem custo ou nenhuma zona → tabela padrão.
        """
        try:
            match = ShippingService.find_zone(country)
        except UpstreamError as e:
            logger.warning(f"Consulta de zonas de envio falhou para {country}: {e}")
            return ShippingService.fallback_cost(country)

        if match:
            active = next((m for m in match[1] if m.get('enabled')), None)
            cost = _setting(active, 'cost') if active else None
            if cost is not None:
                return _to_float(cost, ShippingService.fallback_cost(country))

        return ShippingService.fallback_cost(country)

    @staticmethod
    def method_cost(method: Dict[str, Any], cart_items: List[Dict[str, Any]]) -> float:
        """
        Custo de um método considerando as classes de envio dos itens.

        Tipo "class": soma custo da classe × quantidade de cada item.
        Tipo "order": maior custo de classe entre os itens.
        """
        base_cost = _to_float(_setting(method, 'cost'))
        calculation_type = _setting(method, 'type') or 'class'
        if not cart_items:
            return base_cost

        def item_cost(item):
            class_id = int(item.get('shipping_class_id') or 0)
            key = f'class_cost_{class_id}' if class_id > 0 else 'no_class_cost'
            value = _setting(method, key)
            return _to_float(value, base_cost) if value is not None else base_cost

        if calculation_type == 'class':
            return sum(item_cost(item) * int(item.get('quantity') or 1) for item in cart_items)
        if calculation_type == 'order':
            return max([base_cost] + [item_cost(item) for item in cart_items])
        return base_cost

    @staticmethod
    def available_methods(country: str, cart_total: float, cart_items: List[Dict[str, Any]]) -> Dict[str, Any]:
        zones = woocommerce().shipping_zones()
        if not zones:
            return {'methods': [dict(DEFAULT_METHOD)]}

        match = ShippingService.find_zone(country, include_continents=True)
        active = [m for m in match[1] if m.get('enabled')] if match else []
        if not active:
            return {'error': f'Spedizione non disponibile per {country}', 'methods': []}

        methods = []
        for method in active:
            is_free = method.get('method_id') == 'free_shipping'
            min_amount = _to_float(_setting(method, 'min_amount'))
            if is_free and _setting(method, 'requires') == 'min_amount' and cart_total < min_amount:
                continue
            entry = {
                'id': method.get('method_id'),
                'title': method.get('title'),
                'description': (f'Spedizione gratuita per ordini superiori a {min_amount:g}€'
                                if is_free else 'Consegna in 3-5 giorni lavorativi'),
                'cost': 0 if is_free else round(ShippingService.method_cost(method, cart_items), 2),
                'free_shipping': is_free,
            }
            if is_free:
                entry['min_amount'] = min_amount
            methods.append(entry)
        return {'methods': methods}

    @staticmethod
    def available_countries() -> List[Dict[str, str]]:
        wc = woocommerce()
        countries: List[Dict[str, str]] = []
        added = set()

        def add(code, zone):
            if code not in added:
                countries.append({'code': code, 'name': COUNTRY_NAMES.get(code, code), 'zone': zone.get('name', '')})
                added.add(code)

        for zone in wc.shipping_zones():
            try:
                methods = wc.shipping_zone_methods(zone['id'])
                if not any(m.get('enabled') for m in methods):
                    continue
                for loc in wc.shipping_zone_locations(zone['id']):
                    if loc.get('type') == 'country':
                        add(loc.get('code'), zone)
                    elif loc.get('type') == 'continent' and loc.get('code') == 'AS':
                        for code in ASIAN_COUNTRIES:
                            add(code, zone)
            except UpstreamError as e:
                logger.warning(f"Zona {zone.get('id')} ignorada: {e}")

        countries.sort(key=lambda c: (c['code'] != 'IT', c['name']))
        return countries
