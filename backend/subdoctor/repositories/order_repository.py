from sqlalchemy.orm import Session

from subdoctor.models.order import Order


class OrderRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, order_id: int) -> Order | None:
        return self.db.query(Order).filter(Order.id == order_id).first()

    def list_for_subscription(self, subscription_id: int) -> list[Order]:
        return (
            self.db.query(Order)
            .filter(Order.subscription_id == subscription_id)
            .order_by(Order.date_created, Order.id)
            .all()
        )
