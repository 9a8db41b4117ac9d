"""
Conclusão idempotente de pagamentos.

Todas as rotas de "completar pagamento" seguem a mesma sequência:
  1. verificar o pagamento direto no provedor (nunca confiar no cliente)
  2. conferir que o pagamento pertence ao pedido/usuário informado
  3. se o pagamento já foi registrado, devolver sucesso sem alterar nada
  4. caso contrário, uma única escrita por grupo de campos

O webhook do Stripe continua sendo a fonte da verdade; estas rotas são o
caminho de confirmação síncrono para a UX. A checagem 3 → 4 não é atômica.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..models.connector_manager import paypal, stripe_gateway, woocommerce, wordpress
from ..models.paypal_connector import capture_id, custom_id
from ..models.stripe_gateway import PAYMENT_SUCCEEDED, SESSION_PAID
from ..utils.errors import NotFoundError, OwnershipError, PaymentNotConfirmedError, UpstreamError, ValidationError
from .order_data_store import OrderDataStore

logger = logging.getLogger(__name__)

PAYPAL_COMPLETED = 'COMPLETED'
PAYPAL_APPROVED = 'APPROVED'

PAYMENT_METHOD_TITLES = {
    'stripe': 'Carta di Credito (Stripe)',
    'paypal': 'PayPal',
    'klarna': 'Klarna',
}

POINTS_FEE_NAME = 'Sconto Punti DreamShop'

# Status de pedido que indicam pagamento já concluído
PAID_ORDER_STATUSES = {'processing', 'completed'}


def scheduled_custom_id(order_id: Any, user_id: Any) -> str:
    return f"scheduled_order_{order_id}_user_{user_id}"


def resin_custom_id(token: str) -> str:
    return f"resin_shipping_{token}"


class PaymentCompletionService:

    # 1. Verificação no provedor

    @staticmethod
    def verify_payment_intent(payment_intent_id: str) -> Dict[str, Any]:
        intent = stripe_gateway().retrieve_payment_intent(payment_intent_id)
        if intent.get('status') != PAYMENT_SUCCEEDED:
            logger.warning(f"PaymentIntent {payment_intent_id} não confirmado: {intent.get('status')}")
            raise PaymentNotConfirmedError("Pagamento non completato", intent.get('status'))
        return intent

    @staticmethod
    def verify_checkout_session(session_id: str) -> Dict[str, Any]:
        session = stripe_gateway().retrieve_checkout_session(session_id)
        if session.get('payment_status') != SESSION_PAID:
            logger.warning(f"Sessão {session_id} não paga: {session.get('payment_status')}")
            raise PaymentNotConfirmedError("Pagamento non completato", session.get('payment_status'))
        return session

    @staticmethod
    def verify_paypal_order(paypal_order_id: str, capture_if_approved: bool = True,
                            expected_custom_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Confirma (capturando se aprovado) um pedido PayPal.

        Args:
            expected_custom_id: quando informado, o custom_id é conferido antes da captura

        Raises:
            OwnershipError: custom_id diferente do esperado (nada é capturado)
            PaymentNotConfirmedError: pedido não concluído
        """
        client = paypal()
        order = client.get_order(paypal_order_id)
        if expected_custom_id is not None and custom_id(order) != expected_custom_id:
            logger.warning(f"Pedido PayPal {paypal_order_id} com custom_id {custom_id(order)}, esperado {expected_custom_id}")
            raise OwnershipError("Il pagamento non corrisponde a questo ordine")
        if order.get('status') == PAYPAL_APPROVED and capture_if_approved:
            order = client.capture_order(paypal_order_id)
        if order.get('status') != PAYPAL_COMPLETED:
            logger.warning(f"Pedido PayPal {paypal_order_id} não concluído: {order.get('status')}")
            raise PaymentNotConfirmedError("Pagamento PayPal non completato", order.get('status'))
        return order

    # 2. Propriedade

    @staticmethod
    def check_ownership(metadata: Dict[str, Any], expected: Dict[str, Any]):
        """Compara o metadata do provedor com os valores esperados (como string)."""
        for key, value in expected.items():
            if str((metadata or {}).get(key)) != str(value):
                logger.warning(f"Metadata {key}={metadata.get(key) if metadata else None} difere de {value}")
                raise OwnershipError("Il pagamento non corrisponde a questo ordine")

    @staticmethod
    def check_order_owner(order: Dict[str, Any], user_id: int):
        if int(order.get('customer_id') or 0) != int(user_id):
            raise OwnershipError("Non sei autorizzato ad accedere a questo ordine")

    # Pedidos agendados (rate)

    @staticmethod
    def complete_scheduled_order(order_id: int, user_id: int, payment_method: str,
                                 payment_intent_id: Optional[str] = None,
                                 paypal_order_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Marca como paga uma rata agendada depois de verificar o pagamento.

        Returns:
            Dict: corpo da resposta (alreadyProcessed quando nada foi alterado)
        """
        webhook_done = False
        if payment_method == 'paypal':
            if not paypal_order_id:
                raise ValidationError("ID ordine PayPal mancante")
            paypal_order = PaymentCompletionService.verify_paypal_order(
                paypal_order_id, expected_custom_id=scheduled_custom_id(order_id, user_id))
            reference = capture_id(paypal_order) or paypal_order_id
        else:
            if not payment_intent_id:
                raise ValidationError("ID pagamento mancante")
            intent = PaymentCompletionService.verify_payment_intent(payment_intent_id)
            PaymentCompletionService.check_ownership(intent.get('metadata'), {'order_id': order_id, 'user_id': user_id})
            webhook_done = (intent.get('metadata') or {}).get('webhook_processed') == 'true'
            reference = payment_intent_id
            payment_method = 'stripe'

        wc = woocommerce()
        order = wc.get_order(order_id)
        PaymentCompletionService.check_order_owner(order, user_id)

        transaction_id = order.get('transaction_id')
        already_paid = bool(transaction_id) and transaction_id in (reference, paypal_order_id) and order.get('status') in PAID_ORDER_STATUSES
        if webhook_done or already_paid:
            logger.info(f"Rata {order_id} já registrada para {reference}, nada a fazer")
            return {'success': True, 'alreadyProcessed': True, 'orderId': order_id, 'status': order.get('status')}

        updated = wc.update_order(order_id, {
            'status': 'processing',
            'set_paid': True,
            'transaction_id': reference,
            'payment_method': payment_method,
            'payment_method_title': PAYMENT_METHOD_TITLES[payment_method],
        })
        logger.info(f"Rata {order_id} marcada como paga ({payment_method}, {reference})")
        return {
            'success': True,
            'message': 'Pagamento completato con successo',
            'orderId': order_id,
            'status': updated.get('status', 'processing'),
        }

    # Resin shipping

    @staticmethod
    def get_resin_fee(token: str) -> Dict[str, Any]:
        try:
            return wordpress().resin_fee(token)
        except UpstreamError as e:
            if e.is_not_found:
                raise NotFoundError("Spedizione non trovata") from e
            raise

    @staticmethod
    def complete_resin_shipping(token: str, payment_method: str,
                                payment_intent_id: Optional[str] = None,
                                paypal_order_id: Optional[str] = None) -> Dict[str, Any]:
        fee = PaymentCompletionService.get_resin_fee(token)

        if payment_method == 'paypal':
            if not paypal_order_id:
                raise ValidationError("ID ordine PayPal mancante")
            PaymentCompletionService.verify_paypal_order(paypal_order_id, expected_custom_id=resin_custom_id(token))
            mark_paid = {'paypal_order_id': paypal_order_id}
        elif payment_method == 'stripe':
            if not payment_intent_id:
                raise ValidationError("ID pagamento mancante")
            intent = PaymentCompletionService.verify_payment_intent(payment_intent_id)
            PaymentCompletionService.check_ownership(intent.get('metadata'), {'type': 'resin_shipping', 'token': token})
            mark_paid = {'stripe_payment_intent_id': payment_intent_id}
        else:
            raise ValidationError("Metodo di pagamento non valido")

        if fee.get('payment_status') == 'paid':
            logger.info(f"Spedizione resina {fee.get('id')} já paga, nada a fazer")
            return {'success': True, 'alreadyProcessed': True, 'message': 'Pagamento già registrato'}

        result = wordpress().resin_mark_paid(token, mark_paid)
        logger.info(f"Spedizione resina {fee.get('id')} marcada como paga ({payment_method})")
        return {'success': True, 'message': result.get('message') or 'Pagamento completato'}

    # Criação de pedido a partir do escrow

    @staticmethod
    def load_escrow(data_id: Optional[str]) -> Dict[str, Any]:
        if not data_id:
            raise ValidationError("Dati ordine non trovati nei metadata del pagamento")
        stored = OrderDataStore.get(data_id)
        if stored is None:
            raise NotFoundError("Dati ordine non trovati o scaduti nello store")
        return stored

    @staticmethod
    def build_order_payload(stored: Dict[str, Any], payment_method: str, transaction_id: str,
                            extra_meta: Iterable[Tuple[str, Any]], status: str = 'processing',
                            set_paid: bool = True) -> Dict[str, Any]:
        order_data = dict(stored.get('orderData') or {})
        meta: List[Dict[str, Any]] = list(order_data.get('meta_data') or [])
        meta.extend({'key': key, 'value': value} for key, value in extra_meta)

        fee_lines = list(order_data.get('fee_lines') or [])
        points_discount = float(stored.get('pointsDiscount') or 0)
        if points_discount > 0 and not any(f.get('name') == POINTS_FEE_NAME for f in fee_lines):
            fee_lines.append({
                'name': POINTS_FEE_NAME,
                'total': f"{-points_discount:.2f}",
                'tax_class': '',
                'tax_status': 'none',
            })

        payload = dict(order_data)
        payload.update({
            'customer_id': order_data.get('customer_id') or 0,
            'payment_method': payment_method,
            'payment_method_title': PAYMENT_METHOD_TITLES.get(payment_method, payment_method),
            'set_paid': set_paid,
            'status': status,
            'transaction_id': transaction_id,
            'meta_data': meta,
        })
        if fee_lines:
            payload['fee_lines'] = fee_lines
        else:
            payload.pop('fee_lines', None)
        return payload

    @staticmethod
    def create_order_from_escrow(data_id: str, stored: Dict[str, Any], payment_method: str,
                                 transaction_id: str, extra_meta: Iterable[Tuple[str, Any]],
                                 note: Optional[str] = None) -> Dict[str, Any]:
        """
        Cria o pedido WooCommerce e só depois apaga o escrow.

        Returns:
            Dict: pedido criado
        """
        wc = woocommerce()
        payload = PaymentCompletionService.build_order_payload(stored, payment_method, transaction_id, extra_meta)
        order = wc.create_order(payload)

        if note:
            try:
                wc.add_order_note(order['id'], note)
            except UpstreamError as e:
                logger.warning(f"Nota não adicionada ao pedido {order['id']}: {e}")

        OrderDataStore.delete(data_id)
        return order

    @staticmethod
    def find_existing_order(meta_key: str, reference: str, per_page: int = 20) -> Optional[Dict[str, Any]]:
        try:
            return woocommerce().find_order_by_meta(meta_key, reference, per_page=per_page)
        except UpstreamError as e:
            logger.warning(f"Verificação de pedido existente ({meta_key}) falhou: {e}")
            return None


__all__ = [
    'PaymentCompletionService',
    'PAYMENT_METHOD_TITLES',
    'POINTS_FEE_NAME',
    'resin_custom_id',
    'scheduled_custom_id',
]
