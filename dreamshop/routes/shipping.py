"""
Rotas de frete: custo, métodos disponíveis e países atendidos.
Nunca devolvem erro HTTP: o checkout sempre recebe um valor utilizável.
"""

import logging

from flask import Blueprint, jsonify, request

from ..services.shipping_service import DEFAULT_SHIPPING_COST, ShippingService
from ..utils.errors import UpstreamError

logger = logging.getLogger(__name__)

shipping_bp = Blueprint('shipping', __name__)


def _country(data):
    address = data.get('shipping_address') or {}
    return (address.get('country') or '').strip().upper()


@shipping_bp.post('/shipping/calculate')
def calculate():
    data = request.get_json(silent=True) or {}
    country = _country(data)
    if not country:
        return jsonify({'error': 'Indirizzo di spedizione non valido', 'shipping_cost': DEFAULT_SHIPPING_COST})
    return jsonify({'shipping_cost': ShippingService.calculate_cost(country)})


@shipping_bp.post('/shipping/methods')
def methods():
    data = request.get_json(silent=True) or {}
    country = _country(data)
    if not country:
        return jsonify({'error': 'Indirizzo di spedizione non valido', 'methods': []})
    try:
        cart_total = float(data.get('cart_total') or 0)
    except (TypeError, ValueError):
        cart_total = 0.0

    try:
        return jsonify(ShippingService.available_methods(country, cart_total, data.get('cart_items') or []))
    except UpstreamError as e:
        logger.error(f"Erro ao obter métodos de envio para {country}: {e}")
        return jsonify({'error': 'Errore nel recupero dei metodi di spedizione', 'methods': []})


@shipping_bp.get('/shipping/countries')
def countries():
    try:
        result = ShippingService.available_countries()
    except UpstreamError as e:
        logger.error(f"Erro ao obter países de envio: {e}")
        return jsonify({'error': 'Errore nel recupero dei paesi', 'countries': []})
    if not result:
        return jsonify({'error': 'Nessuna zona di spedizione configurata', 'countries': []})
    return jsonify({'countries': result})
