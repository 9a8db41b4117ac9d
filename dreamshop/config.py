"""
Configuração da aplicação DreamShop.
Lê variáveis de ambiente (e o arquivo .env, quando existir).
"""

import os
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_SQLITE_PATH = os.path.join(os.path.dirname(__file__), "database", "app.db")


def _normalize_database_url(raw_url: str) -> str:
    """
    Render/Heroku fornecem DATABASE_URL tipo:
      - postgres://...  (precisa trocar para postgresql+psycopg://)
    Além disso, força SSL em produção.
    """
    if not raw_url:
        return f"sqlite:///{DEFAULT_SQLITE_PATH}"
    url = raw_url
    if url.startswith("postgres://"):
        url = "postgresql+psycopg://" + url[len("postgres://"):]
    elif url.startswith("postgresql://"):
        url = "postgresql+psycopg://" + url[len("postgresql://"):]
    if url.startswith("postgresql+psycopg://") and "sslmode=" not in url:
        sep = "&" if "?" in url else "?"
        url = f"{url}{sep}sslmode=require"
    return url


def _split_origins(raw: Optional[str]) -> List[str]:
    if not raw:
        return ["https://dreamshop18.com", "https://www.dreamshop18.com"]
    return [o.strip() for o in raw.split(",") if o.strip()]


class Config:
    """Configuração lida do ambiente no momento da criação da app."""

    def __init__(self, overrides: Optional[Dict[str, Any]] = None):
        env = os.getenv

        self.SECRET_KEY = env("SECRET_KEY", "dreamshop_secret_key_2025")
        self.LOG_LEVEL = env("LOG_LEVEL", "INFO")

        # JWT
        self.JWT_SECRET = env("JWT_SECRET", "")
        self.JWT_ALGORITHM = env("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRES_DAYS = int(env("JWT_EXPIRES_DAYS", "7"))

        # WordPress / WooCommerce
        self.WORDPRESS_URL = env("WORDPRESS_URL", "http://localhost:8080").rstrip("/")
        self.WC_CONSUMER_KEY = env("WC_CONSUMER_KEY", "")
        self.WC_CONSUMER_SECRET = env("WC_CONSUMER_SECRET", "")
        self.POINTS_API_KEY = env("POINTS_API_KEY", "")
        self.FRONTEND_URL = env("FRONTEND_URL", "http://localhost:3000").rstrip("/")

        # Stripe
        self.STRIPE_SECRET_KEY = env("STRIPE_SECRET_KEY", "")
        self.STRIPE_WEBHOOK_SECRET = env("STRIPE_WEBHOOK_SECRET", "")
        self.STRIPE_CURRENCY = env("STRIPE_CURRENCY", "eur")

        # PayPal
        self.PAYPAL_CLIENT_ID = env("PAYPAL_CLIENT_ID", "")
        self.PAYPAL_CLIENT_SECRET = env("PAYPAL_CLIENT_SECRET", "")
        self.PAYPAL_MODE = env("PAYPAL_MODE", "sandbox")

        # Chamadas externas
        self.UPSTREAM_TIMEOUT = int(env("UPSTREAM_TIMEOUT", "30"))
        self.UPSTREAM_MAX_RETRIES = int(env("UPSTREAM_MAX_RETRIES", "2"))

        # Escrow de dados do pedido
        self.ORDER_DATA_TTL_HOURS = int(env("ORDER_DATA_TTL_HOURS", "25"))

        self.CORS_ORIGINS = _split_origins(env("CORS_ORIGINS"))
        self.DEBUG_ROUTES = env("DEBUG_ROUTES") == "1"

        self.SQLALCHEMY_DATABASE_URI = _normalize_database_url(env("DATABASE_URL", ""))
        self.SQLALCHEMY_TRACK_MODIFICATIONS = False
        self.SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

        for key, value in (overrides or {}).items():
            setattr(self, key, value)

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in vars(self).items() if k.isupper()}
