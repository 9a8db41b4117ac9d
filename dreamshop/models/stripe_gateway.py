"""
Integração com o SDK oficial do Stripe.
PaymentIntents, Checkout Sessions (Klarna) e verificação de webhooks.
"""

import logging
import time
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Iterable, Optional

import stripe

from ..utils.errors import NotFoundError, PaymentProviderError, ValidationError

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = 'succeeded'
SESSION_PAID = 'paid'


def to_cents(value: Any) -> int:
    """Converte um valor em euros (str/float) para centavos, arredondando meio para cima."""
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Importo non valido: {value}")
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _as_dict(obj: Any) -> Dict[str, Any]:
    if hasattr(obj, 'to_dict_recursive'):
        return obj.to_dict_recursive()
    return obj.to_dict()


class StripeGateway:
    """Fachada fina sobre o SDK do Stripe; devolve sempre dicts simples."""

    name = 'stripe'

    def __init__(self, api_key: str, webhook_secret: str = '', currency: str = 'eur'):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.currency = currency

    @staticmethod
    def idempotency_key(purpose: str, entity_id: Any, user_id: Any = None) -> str:
        """
        Chave de idempotência no formato {purpose}_{entityId}_{userId}_{timestamp}.

        Ex.: scheduled_order_42_user_7_1718000000000, resin_shipping_<token>_1718000000000
        """
        parts = [purpose, str(entity_id)]
        if user_id is not None:
            parts.append(f"user_{user_id}")
        parts.append(str(int(time.time() * 1000)))
        return "_".join(parts)

    def _ensure_configured(self):
        if not self.api_key:
            raise PaymentProviderError("Configurazione Stripe mancante")

    def _call(self, fn, *args, **kwargs) -> Dict[str, Any]:
        self._ensure_configured()
        try:
            return _as_dict(fn(*args, api_key=self.api_key, **kwargs))
        except stripe.InvalidRequestError as e:
            if e.code == 'resource_missing':
                raise NotFoundError("Risorsa Stripe non trovata") from e
            logger.error(f"Stripe: requisição inválida: {e}")
            raise PaymentProviderError(e.user_message or str(e)) from e
        except stripe.StripeError as e:
            logger.error(f"Stripe: erro na API: {e}")
            raise PaymentProviderError(e.user_message or "Errore nella comunicazione con Stripe") from e

    # PaymentIntents

    def create_payment_intent(self, amount_cents: int, metadata: Dict[str, str],
                              payment_method_types: Iterable[str] = ('card',),
                              description: Optional[str] = None,
                              receipt_email: Optional[str] = None,
                              idempotency_key: Optional[str] = None) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            'amount': amount_cents,
            'currency': self.currency,
            'payment_method_types': list(payment_method_types),
            'metadata': metadata,
        }
        if 'card' in params['payment_method_types']:
            params['payment_method_options'] = {'card': {'request_three_d_secure': 'automatic'}}
        if description:
            params['description'] = description
        if receipt_email:
            params['receipt_email'] = receipt_email
        if idempotency_key:
            params['idempotency_key'] = idempotency_key
        intent = self._call(stripe.PaymentIntent.create, **params)
        logger.info(f"Stripe: PaymentIntent {intent.get('id')} criado ({amount_cents} {self.currency})")
        return intent

    def retrieve_payment_intent(self, payment_intent_id: str) -> Dict[str, Any]:
        return self._call(stripe.PaymentIntent.retrieve, payment_intent_id)

    def update_payment_intent_metadata(self, payment_intent_id: str, metadata: Dict[str, str]) -> Dict[str, Any]:
        return self._call(stripe.PaymentIntent.modify, payment_intent_id, metadata=metadata)

    # Checkout Sessions

    def create_checkout_session(self, **params) -> Dict[str, Any]:
        return self._call(stripe.checkout.Session.create, **params)

    def retrieve_checkout_session(self, session_id: str) -> Dict[str, Any]:
        return self._call(stripe.checkout.Session.retrieve, session_id)

    # Webhook

    def construct_event(self, payload: bytes, signature: str) -> Dict[str, Any]:
        if not self.webhook_secret or not signature:
            raise ValidationError("Firma mancante o webhook secret non configurato")
        try:
            event = stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            raise ValidationError(f"Errore di verifica della firma: {e}") from e
        return _as_dict(event)
