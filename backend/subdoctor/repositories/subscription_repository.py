from sqlalchemy.orm import Session

from subdoctor.models.subscription import Subscription


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SubscriptionRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, subscription_id: int) -> Subscription | None:
        return self.db.query(Subscription).filter(Subscription.id == subscription_id).first()

    def search_by_email(self, term: str, limit: int = 10) -> list[Subscription]:
        """Subscriptions whose billing email contains ``term`` (case-insensitive).

        ``%`` and ``_`` in the term match literally.
        """
        pattern = f"%{_escape_like(term)}%"
        return (
            self.db.query(Subscription)
            .filter(Subscription.billing_email.ilike(pattern, escape="\\"))
            .order_by(Subscription.id)
            .limit(limit)
            .all()
        )
