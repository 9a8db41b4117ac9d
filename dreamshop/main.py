import logging
import os

from flask import Flask, jsonify
from flask_cors import CORS

from .config import Config, DEFAULT_SQLITE_PATH
from .models import db
from .models.connector_manager import init_connectors
from .utils.debug_routes import register_debug_routes
from .utils.errors import register_error_handlers

from .routes.account import account_bp
from .routes.auth import auth_bp
from .routes.coupons import coupons_bp
from .routes.gift_cards import gift_cards_bp
from .routes.orders import orders_bp
from .routes.paypal import paypal_bp
from .routes.points import points_bp
from .routes.products import products_bp
from .routes.resin_shipping import resin_shipping_bp
from .routes.scheduled_orders import scheduled_orders_bp
from .routes.shipping import shipping_bp
from .routes.stripe import stripe_bp

BLUEPRINTS = (
    auth_bp,
    orders_bp,
    account_bp,
    points_bp,
    gift_cards_bp,
    coupons_bp,
    shipping_bp,
    products_bp,
    scheduled_orders_bp,
    resin_shipping_bp,
    stripe_bp,
    paypal_bp,
)


def create_app(config_overrides=None) -> Flask:
    config = Config(config_overrides)

    logging.basicConfig(
        level=getattr(logging, str(config.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = Flask(__name__)
    app.config.from_mapping(config.to_dict())

    # CORS somente para o frontend da loja em /api/*
    CORS(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}})

    # Banco (escrow dos dados do pedido)
    db.init_app(app)
    with app.app_context():
        if app.config["SQLALCHEMY_DATABASE_URI"] == f"sqlite:///{DEFAULT_SQLITE_PATH}":
            os.makedirs(os.path.dirname(DEFAULT_SQLITE_PATH), exist_ok=True)
        db.create_all()

    init_connectors(app)
    register_error_handlers(app)

    @app.get("/api/health")
    def health():
        return jsonify({"status": "healthy", "service": "DreamShop API"}), 200

    for bp in BLUEPRINTS:
        app.register_blueprint(bp, url_prefix="/api")

    register_debug_routes(app)
    return app
