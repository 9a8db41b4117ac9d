"""
Escrow temporário dos dados do pedido.

O metadata do Stripe aceita no máximo ~500 caracteres por valor, então o payload
completo do pedido fica guardado aqui e só o id vai para o metadata. O registro é
apagado depois que o pedido WooCommerce for criado.
"""

import json
import logging
import secrets
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from flask import current_app

from ..models import db, OrderDataRecord

logger = logging.getLogger(__name__)

MAX_ID_ATTEMPTS = 5


class OrderDataStore:

    @staticmethod
    def _now() -> datetime:
        # UTC sem fuso: expires_at é gravado naive
        return datetime.now(timezone.utc).replace(tzinfo=None)

    @staticmethod
    def _new_id() -> str:
        return f"payment_{int(time.time() * 1000)}_{secrets.token_hex(6)}"

    @staticmethod
    def put(data: Any) -> str:
        """
        Guarda um payload JSON e devolve o id opaco.

        Args:
            data: payload serializável em JSON

        Returns:
            str: id a ser colocado no metadata do pagamento
        """
        payload = json.dumps(data)
        OrderDataStore.purge_expired()

        now = OrderDataStore._now()
        expires_at = now + timedelta(hours=current_app.config["ORDER_DATA_TTL_HOURS"])

        for _ in range(MAX_ID_ATTEMPTS):
            data_id = OrderDataStore._new_id()
            if db.session.get(OrderDataRecord, data_id) is None:
                break
        else:
            raise RuntimeError("Impossibile generare un id univoco per i dati dell'ordine")

        db.session.add(OrderDataRecord(id=data_id, payload=payload, created_at=now, expires_at=expires_at))
        db.session.commit()
        logger.info(f"Dados do pedido guardados com id {data_id}")
        return data_id

    @staticmethod
    def get(data_id: str) -> Optional[Any]:
        """Devolve o payload ou None quando não existe/expirou."""
        if not data_id:
            return None
        record = db.session.get(OrderDataRecord, data_id)
        if record is None:
            return None
        if record.expires_at <= OrderDataStore._now():
            logger.warning(f"Dados do pedido {data_id} expirados")
            return None
        return json.loads(record.payload)

    @staticmethod
    def delete(data_id: str) -> bool:
        record = db.session.get(OrderDataRecord, data_id) if data_id else None
        if record is None:
            return False
        db.session.delete(record)
        db.session.commit()
        logger.info(f"Dados do pedido {data_id} removidos")
        return True

    @staticmethod
    def purge_expired() -> int:
        removed = OrderDataRecord.query.filter(OrderDataRecord.expires_at <= OrderDataStore._now()).delete()
        db.session.commit()
        if removed:
            logger.info(f"{removed} registros de dados de pedido expirados removidos")
        return removed
