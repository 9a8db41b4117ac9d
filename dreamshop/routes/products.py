"""
Verificação de estoque do carrinho e opções de depósito (acconto) dos produtos.
"""

import logging

from flask import Blueprint, jsonify, request

from ..models.connector_manager import woocommerce
from ..services.proxy import proxy_registry
from ..utils.errors import UpstreamError, ValidationError

logger = logging.getLogger(__name__)

products_bp = Blueprint('products', __name__)

# Variação de preço tolerada antes de avisar o cliente
PRICE_TOLERANCE = 0.01


def _has_meta(item, key, value=None):
    for meta in item.get('meta_data') or []:
        if meta.get('key') == key and (value is None or meta.get('value') == value):
            return True
    return False


def _pieces(n):
    return f"{n} pezzo" if n == 1 else f"{n} pezzi"


def check_item(item, product):
    """Lista de problemas de um item do carrinho frente ao produto atual."""
    base = {'id': item.get('product_id'), 'variation_id': item.get('variation_id'), 'name': item.get('name')}
    name = item.get('name')
    quantity = int(item.get('quantity') or 1)

    if product.get('stock_status') != 'instock':
        return [dict(base, issue='not_in_stock', message=f'"{name}" non è più disponibile.')]

    issues = []
    if product.get('sold_individually') and quantity > 1:
        issues.append(dict(base, issue='sold_individually', available=1, requested=quantity,
                           message=f'"{name}" può essere acquistato solo 1 pezzo per ordine.'))

    stock = product.get('stock_quantity')
    if product.get('manage_stock') and isinstance(stock, int) and stock < quantity:
        verb = 'è disponibile' if stock == 1 else 'sono disponibili'
        issues.append(dict(base, issue='insufficient_quantity', available=stock, requested=quantity,
                           message=f'Solo {_pieces(stock)} di "{name}" {verb}.'))

    custom_gift_card = _has_meta(item, '_gift_card_custom_amount')
    auto_gift = _has_meta(item, '_is_auto_gift', 'yes')
    try:
        current_price = float(product.get('price') or 0)
        cart_price = float(item.get('price') or 0)
    except (TypeError, ValueError):
        current_price = cart_price = 0.0
    if not custom_gift_card and not auto_gift and current_price > 0 and cart_price > 0 \
            and abs(current_price - cart_price) / cart_price > PRICE_TOLERANCE:
        issues.append(dict(base, issue='price_changed', old_price=cart_price, new_price=current_price, fixed=True,
                           message=f'Il prezzo di "{name}" è stato aggiornato da '
                                   f'€{cart_price:.2f} a €{current_price:.2f}.'))
    return issues


@products_bp.post('/check-stock')
def check_stock():
    data = request.get_json(silent=True) or {}
    cart_items = data.get('cartItems')
    if not isinstance(cart_items, list) or not cart_items:
        raise ValidationError('Nessun prodotto da verificare')

    wc = woocommerce()
    stock_issues = []
    for item in cart_items:
        try:
            product = wc.get_product(item.get('product_id'), item.get('variation_id'))
        except UpstreamError as e:
            logger.error(f"Erro ao verificar estoque do produto {item.get('product_id')}: {e}")
            stock_issues.append({
                'id': item.get('product_id'),
                'variation_id': item.get('variation_id'),
                'name': item.get('name'),
                'issue': 'api_error',
                'message': f'Non è stato possibile verificare la disponibilità di "{item.get("name")}".',
            })
            continue
        stock_issues.extend(check_item(item, product))

    return jsonify({
        'success': not stock_issues,
        'stockIssues': stock_issues,
        'message': ('Alcuni prodotti nel carrello non sono più disponibili o hanno subito modifiche.'
                    if stock_issues else 'Tutti i prodotti sono disponibili.'),
    })


@products_bp.get('/products/<int:product_id>/deposit-options')
def deposit_options(product_id: int):
    return jsonify(proxy_registry.dispatch('deposit_options', product_id=product_id))
