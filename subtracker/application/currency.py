"""
Currency conversion with a static USD-based rate table.

Amounts are converted before they reach the billing projector; the
projector itself never mixes currencies.
"""
import dataclasses
from decimal import Decimal

from subtracker.domain.subscription import Subscription
from subtracker.utils.money import currency_symbol

# 1 USD = rate units of currency
DEFAULT_RATES: dict[str, Decimal] = {
    "USD": Decimal("1.0"),
    "EUR": Decimal("0.92"),
    "GBP": Decimal("0.79"),
    "TRY": Decimal("34.5"),
}

SUPPORTED_CURRENCIES = tuple(DEFAULT_RATES)


class CurrencyConverter:
    """Static-rate converter. Unknown currencies pass through unchanged."""

    def __init__(self, rates: dict[str, Decimal] | None = None):
        self.rates = dict(rates or DEFAULT_RATES)

    def convert(self, amount: Decimal, source: str, target: str) -> Decimal:
        if source == target:
            return amount
        source_rate = self.rates.get(source)
        target_rate = self.rates.get(target)
        if source_rate is None or target_rate is None:
            return amount
        return amount / source_rate * target_rate

    def convert_subscription(self, subscription: Subscription, target: str) -> Subscription:
        """Copy of the subscription with amount expressed in ``target``."""
        if subscription.currency == target:
            return subscription
        if subscription.currency not in self.rates or target not in self.rates:
            return subscription
        return dataclasses.replace(
            subscription,
            amount=self.convert(subscription.amount, subscription.currency, target),
            currency=target,
        )

    def convert_all(self, subscriptions, target: str) -> list[Subscription]:
        return [self.convert_subscription(s, target) for s in subscriptions]

    def rate_info(self, source: str, target: str) -> str:
        """Human-readable rate, e.g. "1 $ = 0.92 €"."""
        rate = self.convert(Decimal("1"), source, target)
        return f"1 {currency_symbol(source)} = {rate:.2f} {currency_symbol(target)}"
