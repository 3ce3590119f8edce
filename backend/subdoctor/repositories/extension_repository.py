from sqlalchemy.orm import Session

from subdoctor.models.extension import Extension


class ExtensionRepository:
    def __init__(self, db: Session):
        self.db = db

    def list_active_slugs(self) -> list[str]:
        rows = (
            self.db.query(Extension.slug)
            .filter(Extension.active.is_(True))
            .order_by(Extension.slug)
            .all()
        )
        return [row[0] for row in rows]
