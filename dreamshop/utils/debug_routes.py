# dreamshop/utils/debug_routes.py
from flask import jsonify, request

from ..models import db, OrderDataRecord
from ..models.connector_manager import get_manager

# Integrações e a variável que precisa estar preenchida para cada uma
INTEGRATION_KEYS = {
    "woocommerce": "WC_CONSUMER_KEY",
    "points": "POINTS_API_KEY",
    "stripe": "STRIPE_SECRET_KEY",
    "stripe_webhook": "STRIPE_WEBHOOK_SECRET",
    "paypal": "PAYPAL_CLIENT_ID",
    "jwt": "JWT_SECRET",
}


def register_debug_routes(app):
    """
    Endpoints de diagnóstico, só com DEBUG_ROUTES=1.
    Nunca devolvem valores de segredos, apenas se estão configurados.
    """
    if not app.config.get("DEBUG_ROUTES"):
        return

    @app.get("/api/_routes")
    def _routes():
        out = []
        for rule in app.url_map.iter_rules():
            if not rule.rule.startswith("/api"):
                continue
            methods = sorted(rule.methods - {"HEAD", "OPTIONS"})
            out.append({"rule": rule.rule, "endpoint": rule.endpoint, "methods": methods})
        return jsonify(sorted(out, key=lambda r: r["rule"]))

    @app.get("/api/health/full")
    def _health_full():
        # ?check=1 faz ping nos serviços upstream (lento)
        check = request.args.get("check") == "1"
        configured = {name: bool(app.config.get(key)) for name, key in INTEGRATION_KEYS.items()}
        return jsonify({
            "status": "ok",
            "blueprints": sorted(app.blueprints),
            "integrations": configured,
            "paypal_mode": app.config.get("PAYPAL_MODE"),
            "escrow_records": db.session.query(OrderDataRecord).count(),
            "connectors": get_manager().list_connectors(check=check),
        })
