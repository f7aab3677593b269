from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation


class InvalidFilterValue(ValueError):
    def __init__(self, key: str, kind: str):
        super().__init__(f'Invalid filter value for "{key}" ({kind})')
        self.key = key
        self.kind = kind


def coerce_bool(key: str, value):
    if isinstance(value, bool):
        return value
    text = str(value or "").strip().lower()
    if text in {"1", "true", "yes", "y", "on"}:
        return True
    if text in {"0", "false", "no", "n", "off"}:
        return False
    raise InvalidFilterValue(key, "boolean")


def coerce_number(key: str, value, python_type):
    if python_type in {int, float} and isinstance(value, (int, float)) and not isinstance(value, bool):
        return python_type(value)
    if python_type is Decimal and isinstance(value, Decimal):
        return value
    text = str(value).strip()
    if not text:
        raise InvalidFilterValue(key, "number")
    normalized = text.replace(",", ".")
    try:
        if python_type is int:
            return int(normalized)
        if python_type is float:
            return float(normalized)
        return Decimal(normalized)
    except (ValueError, TypeError, InvalidOperation):
        raise InvalidFilterValue(key, "number")


def coerce_date(key: str, value):
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if isinstance(value, datetime):
        return value.date()
    text = str(value or "").strip()
    if not text:
        raise InvalidFilterValue(key, "date")
    try:
        # Accept either YYYY-MM-DD or full ISO datetime and take its date part.
        if "T" in text or " " in text:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        return date.fromisoformat(text)
    except ValueError:
        raise InvalidFilterValue(key, "date")


def coerce_datetime(key: str, value):
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, datetime.min.time())
    else:
        text = str(value or "").strip()
        if not text:
            raise InvalidFilterValue(key, "datetime")
        try:
            if is_date_only_literal(text):
                # Date-only value for timestamp columns -> start of the day.
                parsed = datetime.combine(date.fromisoformat(text), datetime.min.time())
            else:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            raise InvalidFilterValue(key, "datetime")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def column_python_type(column):
    try:
        return getattr(column, "expression", column).type.python_type
    except (AttributeError, NotImplementedError):
        return None


def coerce_for_column(key: str, column, value):
    python_type = column_python_type(column)
    if python_type is None or value is None:
        return value
    if python_type is bool:
        return coerce_bool(key, value)
    if python_type in {int, float, Decimal}:
        return coerce_number(key, value, python_type)
    if python_type is datetime:
        return coerce_datetime(key, value)
    if python_type is date:
        return coerce_date(key, value)
    if python_type is str and not isinstance(value, str):
        return str(value)
    return value


def is_date_only_literal(raw_value) -> bool:
    if isinstance(raw_value, date) and not isinstance(raw_value, datetime):
        return True
    if not isinstance(raw_value, str):
        return False
    text = raw_value.strip()
    if not text or "T" in text or " " in text:
        return False
    try:
        date.fromisoformat(text)
        return True
    except ValueError:
        return False
