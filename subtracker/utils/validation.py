"""
Validation utilities
"""
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from zoneinfo import ZoneInfo


def normalize_decimal_input(value: str) -> str:
    """
    Нормализовать ввод суммы: заменить запятую на точку

    Example:
        >>> normalize_decimal_input("9,99")
        "9.99"
    """
    return value.strip().replace(",", ".")


def validate_decimal_amount(value: str, max_decimal_places: int = 2) -> tuple[bool, str | None]:
    """
    Валидация суммы подписки

    Args:
        value: Строка с суммой
        max_decimal_places: Максимум знаков после запятой (по умолчанию 2)

    Returns:
        (is_valid, error_message)

    Example:
        >>> validate_decimal_amount("15.99")
        (True, None)
        >>> validate_decimal_amount("0")
        (False, "Сумма должна быть больше нуля")
    """
    normalized = normalize_decimal_input(value)

    try:
        decimal_value = Decimal(normalized)
    except (InvalidOperation, ValueError):
        return False, "Некорректная сумма"

    pattern = rf"^\d+(\.\d{{1,{max_decimal_places}}})?$"
    if not re.match(pattern, normalized):
        if decimal_value < 0:
            return False, "Сумма должна быть больше нуля"
        return False, f"Максимум {max_decimal_places} знака после запятой"

    if decimal_value <= 0:
        return False, "Сумма должна быть больше нуля"

    return True, None


def parse_amount(value, max_decimal_places: int = 2) -> Decimal:
    """
    Привести сумму к Decimal (raise exception при ошибке)

    Accepts str, int or Decimal. Floats go through ``str()`` so that
    ``9.99`` stays ``Decimal("9.99")``.

    Raises:
        ValueError: если сумма некорректна или не положительна
    """
    if isinstance(value, Decimal):
        if not value.is_finite() or value <= 0:
            raise ValueError("Сумма должна быть больше нуля")
        return value
    text = str(value)
    is_valid, error = validate_decimal_amount(text, max_decimal_places)
    if not is_valid:
        raise ValueError(error)
    return Decimal(normalize_decimal_input(text))


def to_local_naive(value: datetime | None, timezone: str) -> datetime | None:
    """
    Привести дату к локальному времени без tzinfo

    Aware values are converted into ``timezone`` first; naive values are
    already local wall-clock time and pass through unchanged.
    """
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(ZoneInfo(timezone)).replace(tzinfo=None)
