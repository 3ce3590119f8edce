from sqlalchemy.orm import Session

from subdoctor.models.payment_gateway import PaymentGateway


class PaymentGatewayRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_all(self) -> list[PaymentGateway]:
        return self.db.query(PaymentGateway).order_by(PaymentGateway.id).all()
