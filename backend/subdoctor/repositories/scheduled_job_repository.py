from sqlalchemy.orm import Session

from subdoctor.models.scheduled_job import ScheduledJob


class ScheduledJobRepository:
    def __init__(self, db: Session):
        self.db = db

    def list_referencing(self, subscription_id: int) -> list[ScheduledJob]:
        """Jobs whose argument payload mentions the subscription id, oldest first.

        The payload is free text, so this is a substring match and may also
        pick up jobs for ids that contain this one.
        """
        return (
            self.db.query(ScheduledJob)
            .filter(ScheduledJob.args.like(f"%{subscription_id}%"))
            .order_by(ScheduledJob.scheduled_date, ScheduledJob.id)
            .all()
        )
