from sqlalchemy.orm import Session

from subdoctor.models.note import Note


class NoteRepository:
    def __init__(self, db: Session):
        self.db = db

    def list_for_subscription(self, subscription_id: int) -> list[Note]:
        """Subscription notes, newest first."""
        return (
            self.db.query(Note)
            .filter(Note.subscription_id == subscription_id, Note.order_id.is_(None))
            .order_by(Note.date_created.desc(), Note.id.desc())
            .all()
        )

    def list_for_orders(self, order_ids: list[int]) -> list[Note]:
        if not order_ids:
            return []
        return (
            self.db.query(Note)
            .filter(Note.order_id.in_(order_ids))
            .order_by(Note.date_created, Note.id)
            .all()
        )
