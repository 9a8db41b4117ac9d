"""DreamShop API: camada de orquestração sobre WooCommerce, Stripe e PayPal."""

__version__ = "1.0.0"
