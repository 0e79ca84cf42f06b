"""
Subscription store — whole-list load/save over the ORM.

save() treats the given list as the full state: rows are upserted by id and
rows missing from the list are deleted.
"""
import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from subtracker.domain.subscription import Subscription
from subtracker.infrastructure.db.models import SubscriptionModel

logger = logging.getLogger(__name__)


class SubscriptionStore:
    def __init__(self, db: Session):
        self.db = db

    def load(self) -> list[Subscription]:
        rows = (
            self.db.query(SubscriptionModel)
            .order_by(SubscriptionModel.reference_date, SubscriptionModel.id)
            .all()
        )
        return [self._row_to_subscription(row) for row in rows]

    def get(self, subscription_id: str) -> Subscription | None:
        row = self.db.get(SubscriptionModel, subscription_id)
        return self._row_to_subscription(row) if row else None

    def save(self, subscriptions: list[Subscription]) -> None:
        existing = {row.id: row for row in self.db.query(SubscriptionModel).all()}
        incoming_ids = {s.id for s in subscriptions}

        for sub in subscriptions:
            row = existing.get(sub.id)
            if row is None:
                row = SubscriptionModel(id=sub.id)
                self.db.add(row)
            row.name = sub.name
            row.amount = sub.amount
            row.currency = sub.currency
            row.reference_date = sub.reference_date
            row.end_date = sub.end_date
            row.cycle = sub.cycle
            row.category = sub.category

        removed = [row for sub_id, row in existing.items() if sub_id not in incoming_ids]
        for row in removed:
            self.db.delete(row)

        self.db.commit()
        if removed:
            logger.info("Deleted %d subscription(s)", len(removed))

    @staticmethod
    def _row_to_subscription(row: SubscriptionModel) -> Subscription:
        return Subscription(
            id=row.id,
            name=row.name,
            amount=Decimal(str(row.amount)),
            currency=row.currency,
            reference_date=row.reference_date,
            end_date=row.end_date,
            cycle=row.cycle,
            category=row.category,
        )
