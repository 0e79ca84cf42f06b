"""
Subscription domain entity - recurring payment tracked by the user.

Subscription is an immutable value object. It is validated on construction
(and on every ``dataclasses.replace``), so the billing projector never sees
a non-positive amount or an end date before the reference date.

Cycles:
- monthly: charge every month
- yearly: charge every 12 months
"""
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from subtracker.utils.validation import parse_amount

CYCLE_MONTHLY = "monthly"
CYCLE_YEARLY = "yearly"

# step in months between two charges
CYCLE_MONTHS = {
    CYCLE_MONTHLY: 1,
    CYCLE_YEARLY: 12,
}

CATEGORY_VIDEO = "video"
CATEGORY_MUSIC = "music"
CATEGORY_PRODUCTIVITY = "productivity"
CATEGORY_STORAGE = "storage"
CATEGORY_UTILITIES = "utilities"
CATEGORY_OTHER = "other"

VALID_CATEGORIES = (
    CATEGORY_VIDEO,
    CATEGORY_MUSIC,
    CATEGORY_PRODUCTIVITY,
    CATEGORY_STORAGE,
    CATEGORY_UTILITIES,
    CATEGORY_OTHER,
)


class SubscriptionValidationError(ValueError):
    pass


@dataclass(frozen=True)
class Subscription:
    """
    Subscription value object

    reference_date - anchor of the billing series (first charge). It may lie
    arbitrarily far in the past; it is not "the next charge".
    end_date - optional; no charge happens strictly after it.
    """
    id: str
    name: str
    amount: Decimal
    currency: str
    reference_date: datetime
    cycle: str
    category: str = CATEGORY_OTHER
    end_date: datetime | None = None

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name.strip():
            raise SubscriptionValidationError("Название не может быть пустым")
        if not isinstance(self.amount, Decimal):
            raise SubscriptionValidationError("Сумма должна быть Decimal")
        if not self.amount.is_finite() or self.amount <= 0:
            raise SubscriptionValidationError("Сумма должна быть больше нуля")
        if not self.currency or not self.currency.strip():
            raise SubscriptionValidationError("Валюта не указана")
        if len(self.currency) != 3 or not self.currency.isalpha():
            raise SubscriptionValidationError(f"Неверный код валюты: {self.currency}")
        if self.cycle not in CYCLE_MONTHS:
            raise SubscriptionValidationError(f"Неверный период оплаты: {self.cycle}")
        if self.category not in VALID_CATEGORIES:
            raise SubscriptionValidationError(f"Неверная категория: {self.category}")
        if not isinstance(self.reference_date, datetime):
            raise SubscriptionValidationError("Дата начала обязательна")
        # dates are local wall-clock time, like the clock passed as now
        if self.reference_date.tzinfo is not None or (
            self.end_date is not None and self.end_date.tzinfo is not None
        ):
            raise SubscriptionValidationError("Дата должна быть без часового пояса")
        if self.end_date is not None and self.end_date < self.reference_date:
            raise SubscriptionValidationError("Дата окончания раньше даты начала")

    @property
    def cycle_months(self) -> int:
        return CYCLE_MONTHS[self.cycle]

    @staticmethod
    def create(
        name: str,
        amount,
        currency: str,
        reference_date: datetime,
        cycle: str = CYCLE_MONTHLY,
        category: str = CATEGORY_OTHER,
        end_date: datetime | None = None,
        subscription_id: str | None = None,
    ) -> "Subscription":
        """
        Создать подписку из пользовательского ввода

        Args:
            name: Название (обрезается по краям)
            amount: Сумма (str / int / Decimal, "9,99" допустимо)
            currency: ISO-код валюты
            reference_date: Дата первого списания
            cycle: monthly / yearly
            category: Категория для группировки
            end_date: Дата окончания (опционально)
            subscription_id: ID (по умолчанию новый UUID)

        Raises:
            SubscriptionValidationError: если ввод некорректен
        """
        try:
            parsed_amount = parse_amount(amount)
        except ValueError as e:
            raise SubscriptionValidationError(str(e)) from e

        return Subscription(
            id=subscription_id or str(uuid.uuid4()),
            name=(name or "").strip(),
            amount=parsed_amount,
            currency=(currency or "").strip().upper(),
            reference_date=reference_date,
            cycle=cycle,
            category=category,
            end_date=end_date,
        )


def monthly_cost(subscription: Subscription) -> Decimal:
    """Amount spread over one month of the cycle (yearly -> amount / 12)."""
    return subscription.amount / subscription.cycle_months


def is_active(subscription: Subscription, now: datetime) -> bool:
    """Active = no end date, or end date at/after now."""
    return subscription.end_date is None or subscription.end_date >= now
