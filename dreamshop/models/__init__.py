from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


class OrderDataRecord(db.Model):
    """Payload de pedido guardado temporariamente até a confirmação do pagamento."""

    __tablename__ = "order_data_records"

    id = db.Column(db.String(64), primary_key=True)
    payload = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<OrderDataRecord id={self.id!r} expires_at={self.expires_at}>"


__all__ = ["db", "OrderDataRecord"]
