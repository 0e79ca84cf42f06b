"""
Subscription API endpoints
"""
from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from subtracker.api.deps import get_clock, get_db, get_notifier, get_search_index
from subtracker.application.reports import build_summary
from subtracker.application.search_index import InMemorySearchIndex
from subtracker.application.subscriptions import (
    CreateSubscriptionUseCase, DeleteSubscriptionUseCase, UpdateSubscriptionUseCase,
    SubscriptionNotFoundError,
)
from subtracker.config import get_settings
from subtracker.domain import billing
from subtracker.domain.subscription import (
    CATEGORY_OTHER, CYCLE_MONTHLY, Subscription, SubscriptionValidationError,
    is_active, monthly_cost,
)
from subtracker.infrastructure.store import SubscriptionStore
from subtracker.utils.validation import normalize_decimal_input, to_local_naive, validate_decimal_amount


router = APIRouter(prefix="/api/v1/subscriptions", tags=["subscriptions"])

_CENT = Decimal("0.01")


def _money(value: Decimal) -> str:
    return str(value.quantize(_CENT))


# === Request/Response models ===

class CreateSubscriptionRequest(BaseModel):
    name: str
    amount: str
    currency: str = "USD"
    reference_date: datetime
    cycle: str = CYCLE_MONTHLY
    category: str = CATEGORY_OTHER
    end_date: datetime | None = None

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: str) -> str:
        """Валидация и нормализация суммы (точка/запятая, > 0)"""
        is_valid, error = validate_decimal_amount(v)
        if not is_valid:
            raise ValueError(error)
        return normalize_decimal_input(v)

    @field_validator("reference_date", "end_date")
    @classmethod
    def to_local_time(cls, v: datetime | None) -> datetime | None:
        """Даты со смещением (Z, +03:00) переводятся в TIMEZONE"""
        return to_local_naive(v, get_settings().TIMEZONE)


class UpdateSubscriptionRequest(BaseModel):
    name: str | None = None
    amount: str | None = None
    currency: str | None = None
    reference_date: datetime | None = None
    cycle: str | None = None
    category: str | None = None
    end_date: datetime | None = None

    @field_validator("reference_date", "end_date")
    @classmethod
    def to_local_time(cls, v: datetime | None) -> datetime | None:
        return to_local_naive(v, get_settings().TIMEZONE)


class SubscriptionResponse(BaseModel):
    id: str
    name: str
    amount: str
    currency: str
    cycle: str
    category: str
    reference_date: datetime
    end_date: datetime | None
    monthly_cost: str
    is_active: bool
    next_charge_date: datetime
    series_ended: bool
    days_until_charge: int


class PaymentRecordResponse(BaseModel):
    date: datetime
    amount: str
    currency: str


class SubscriptionDetailResponse(SubscriptionResponse):
    payment_count: int
    total_spent: str
    history: list[PaymentRecordResponse]


class MonthlyCostResponse(BaseModel):
    month_start: datetime
    total: str


class CategoryTotalResponse(BaseModel):
    category: str
    total: str
    count: int


class SummaryResponse(BaseModel):
    currency: str
    monthly_total: str
    yearly_total: str
    next_30_days_total: str
    next_90_days_total: str
    canceled_savings_monthly: str
    active_count: int
    average_monthly_cost: str
    top_subscriptions: list[SubscriptionResponse]
    categories: list[CategoryTotalResponse]
    breakdown: list[MonthlyCostResponse]


class SearchItemResponse(BaseModel):
    id: str
    title: str
    description: str


# === Helper functions ===

def _to_response(sub: Subscription, now: datetime) -> SubscriptionResponse:
    nxt = billing.resolve_next_charge(sub, now)
    return SubscriptionResponse(
        id=sub.id,
        name=sub.name,
        amount=_money(sub.amount),
        currency=sub.currency,
        cycle=sub.cycle,
        category=sub.category,
        reference_date=sub.reference_date,
        end_date=sub.end_date,
        monthly_cost=_money(monthly_cost(sub)),
        is_active=is_active(sub, now),
        next_charge_date=nxt.date,
        series_ended=nxt.terminated,
        days_until_charge=billing.days_until_charge(sub, now),
    )


def _breakdown_response(breakdown: list[billing.MonthlyCost]) -> list[MonthlyCostResponse]:
    return [MonthlyCostResponse(month_start=m.month_start, total=_money(m.total)) for m in breakdown]


def _get_or_404(db: Session, sub_id: str) -> Subscription:
    sub = SubscriptionStore(db).get(sub_id)
    if sub is None:
        raise HTTPException(status_code=404, detail="Подписка не найдена")
    return sub


# === Endpoints ===

@router.get("/", response_model=list[SubscriptionResponse])
def list_subscriptions(
    db: Session = Depends(get_db),
    now: datetime = Depends(get_clock),
):
    """Все подписки"""
    return [_to_response(s, now) for s in SubscriptionStore(db).load()]


@router.post("/", response_model=SubscriptionResponse, status_code=201)
def create_subscription(
    req: CreateSubscriptionRequest,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_clock),
    notifier=Depends(get_notifier),
    search_index: InMemorySearchIndex = Depends(get_search_index),
):
    """Создать подписку"""
    try:
        sub_id = CreateSubscriptionUseCase(db, notifier, search_index).execute(
            now=now,
            name=req.name,
            amount=req.amount,
            currency=req.currency,
            reference_date=req.reference_date,
            cycle=req.cycle,
            category=req.category,
            end_date=req.end_date,
        )
    except SubscriptionValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _to_response(_get_or_404(db, sub_id), now)


@router.get("/summary", response_model=SummaryResponse)
def get_summary(
    currency: str | None = None,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_clock),
):
    """Сводка: итоги, ближайшие списания, категории, помесячный прогноз"""
    settings = get_settings()
    report = build_summary(
        SubscriptionStore(db).load(),
        now,
        currency or settings.DEFAULT_CURRENCY,
        horizon_months=settings.BREAKDOWN_HORIZON_MONTHS,
    )
    return SummaryResponse(
        currency=report.currency,
        monthly_total=_money(report.monthly_total),
        yearly_total=_money(report.yearly_total),
        next_30_days_total=_money(report.next_30_days_total),
        next_90_days_total=_money(report.next_90_days_total),
        canceled_savings_monthly=_money(report.canceled_savings_monthly),
        active_count=report.active_count,
        average_monthly_cost=_money(report.average_monthly_cost),
        top_subscriptions=[_to_response(s, now) for s in report.top_subscriptions],
        categories=[
            CategoryTotalResponse(category=c.category, total=_money(c.total), count=c.count)
            for c in report.categories
        ],
        breakdown=_breakdown_response(report.breakdown),
    )


@router.get("/upcoming", response_model=list[SubscriptionResponse])
def get_upcoming(
    days: int | None = Query(default=None, ge=0, le=366),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_clock),
):
    """Подписки, которые продлеваются в ближайшие N дней"""
    window = days if days is not None else get_settings().UPCOMING_WINDOW_DAYS
    subs = billing.upcoming(SubscriptionStore(db).load(), now, window)
    return [_to_response(s, now) for s in subs]


@router.get("/breakdown", response_model=list[MonthlyCostResponse])
def get_breakdown(
    months: int | None = Query(default=None, ge=1, le=120),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_clock),
):
    """Помесячный прогноз списаний (без конвертации валют)"""
    horizon = months or get_settings().BREAKDOWN_HORIZON_MONTHS
    return _breakdown_response(billing.monthly_breakdown(SubscriptionStore(db).load(), now, horizon))


@router.get("/search", response_model=list[SearchItemResponse])
def search_subscriptions(
    q: str = "",
    now: datetime = Depends(get_clock),
    search_index: InMemorySearchIndex = Depends(get_search_index),
):
    """Поиск по индексу подписок"""
    return [
        SearchItemResponse(id=item.id, title=item.title, description=item.description)
        for item in search_index.search(q, now)
    ]


@router.get("/{sub_id}", response_model=SubscriptionDetailResponse)
def get_subscription(
    sub_id: str,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_clock),
):
    """Подписка с историей платежей"""
    sub = _get_or_404(db, sub_id)
    history = billing.payment_history(sub, now)
    base = _to_response(sub, now)
    return SubscriptionDetailResponse(
        **base.model_dump(),
        payment_count=len(history),
        total_spent=_money(billing.total_spent(sub, now)),
        history=[
            PaymentRecordResponse(date=p.date, amount=_money(p.amount), currency=p.currency)
            for p in history
        ],
    )


@router.patch("/{sub_id}", response_model=SubscriptionResponse)
def update_subscription(
    sub_id: str,
    req: UpdateSubscriptionRequest,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_clock),
    notifier=Depends(get_notifier),
    search_index: InMemorySearchIndex = Depends(get_search_index),
):
    """Изменить подписку (end_date: null снимает дату окончания)"""
    changes = req.model_dump(exclude_unset=True)
    try:
        updated = UpdateSubscriptionUseCase(db, notifier, search_index).execute(sub_id, now, **changes)
    except SubscriptionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SubscriptionValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _to_response(updated, now)


@router.delete("/{sub_id}", status_code=204)
def delete_subscription(
    sub_id: str,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_clock),
    notifier=Depends(get_notifier),
    search_index: InMemorySearchIndex = Depends(get_search_index),
):
    """Удалить подписку"""
    try:
        DeleteSubscriptionUseCase(db, notifier, search_index).execute(sub_id, now)
    except SubscriptionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
