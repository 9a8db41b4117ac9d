from flask import current_app, request


def frontend_origin() -> str:
    """Origin do frontend para URLs de retorno; só aceita origens liberadas no CORS."""
    origin = (request.headers.get('Origin') or '').rstrip('/')
    if origin and origin in current_app.config['CORS_ORIGINS']:
        return origin
    return current_app.config['FRONTEND_URL']


def body_value(data, *keys, default=None):
    """Primeiro valor presente entre aliases (ex.: paymentIntentId / payment_intent_id)."""
    for key in keys:
        if data.get(key) not in (None, ''):
            return data[key]
    return default
