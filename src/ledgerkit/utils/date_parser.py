"""Date parsing utilities."""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Optional, Sequence, Union

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

# Tried in order; the first format that yields a valid date wins.
DEFAULT_DATE_FORMATS = ("%d-%b-%Y", "%Y-%m-%d", "%d/%m/%Y", "%m/%d/%Y")

# Spreadsheet serial day 1 is 1900-01-01; serials above 59 include the
# non-existent 1900-02-29.
_SERIAL_EPOCH = date(1899, 12, 31)

DateInput = Union[str, date, datetime, int, float, None]
DateStrategy = Callable[[str], Optional[date]]


@dataclass(frozen=True)
class DateParseResult:
    """Outcome of resolving one raw date value."""

    raw: DateInput
    value: Optional[date] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.value is not None


def strptime_strategy(fmt: str) -> DateStrategy:
    """Build a strategy that accepts exactly one strptime format."""

    def parse(text: str) -> Optional[date]:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            return None

    parse.__name__ = f"strptime({fmt})"
    return parse


def free_form_strategy(text: str) -> Optional[date]:
    """Permissive last resort backed by dateutil."""
    try:
        return date_parser.parse(text).date()
    except (ValueError, OverflowError, TypeError):
        return None


def serial_to_date(serial: float) -> date:
    """Convert a spreadsheet serial day number to a date."""
    days = int(serial)
    if days > 59:
        days -= 1
    return _SERIAL_EPOCH + timedelta(days=days)


class DateResolver:
    """Resolve heterogeneous date values to a calendar date.

    The fallback chain is an ordered list of strategies; the first one that
    returns a date short-circuits the rest. Resolution never raises.
    """

    def __init__(
        self,
        formats: Sequence[str] = DEFAULT_DATE_FORMATS,
        free_form: bool = True,
    ):
        self.strategies: list[DateStrategy] = [strptime_strategy(fmt) for fmt in formats]
        if free_form:
            self.strategies.append(free_form_strategy)

    def resolve(self, raw: DateInput) -> DateParseResult:
        if raw is None:
            return DateParseResult(raw=raw, error="empty date")
        if isinstance(raw, datetime):
            return DateParseResult(raw=raw, value=raw.date())
        if isinstance(raw, date):
            return DateParseResult(raw=raw, value=raw)
        if isinstance(raw, bool):
            return DateParseResult(raw=raw, error=f"unsupported date value {raw!r}")
        if isinstance(raw, (int, float)):
            try:
                return DateParseResult(raw=raw, value=serial_to_date(raw))
            except (OverflowError, ValueError) as e:
                return DateParseResult(raw=raw, error=str(e))

        text = str(raw).strip()
        if not text:
            return DateParseResult(raw=raw, error="empty date")
        for strategy in self.strategies:
            value = strategy(text)
            if value is not None:
                return DateParseResult(raw=raw, value=value)
        return DateParseResult(raw=raw, error=f"Could not parse date '{text}'")

    def resolve_or_none(self, raw: DateInput) -> Optional[date]:
        return self.resolve(raw).value


default_resolver = DateResolver()


def resolve_date(raw: DateInput) -> Optional[date]:
    """Resolve a date with the default strategy chain, or return None."""
    return default_resolver.resolve_or_none(raw)


def format_date(value: date) -> str:
    """Format a date in the canonical stored form (DD-MMM-YYYY)."""
    return value.strftime("%d-%b-%Y")


def parse_date(date_str: str) -> date:
    """Parse a date string typed by a person into a date object.

    Supports everything DateResolver accepts plus relative dates:
    - "today", "yesterday", "tomorrow"
    - "last/this/next" + "week", "month" or "year"

    Args:
        date_str: Date string in various formats

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    text = date_str.strip().lower()
    today = date.today()

    relative_dates = {
        "today": today,
        "yesterday": today - timedelta(days=1),
        "tomorrow": today + timedelta(days=1),
    }
    if text in relative_dates:
        return relative_dates[text]

    if text.startswith(("last ", "this ", "next ")):
        direction, _, period = text.partition(" ")
        offset = {"last": -1, "this": 0, "next": 1}[direction]
        if period == "month":
            return (today + relativedelta(months=offset)).replace(day=1)
        elif period == "year":
            return today.replace(month=1, day=1) + relativedelta(years=offset)
        elif period == "week":
            return today - timedelta(days=today.weekday()) + timedelta(weeks=offset)

    result = default_resolver.resolve(date_str)
    if not result.ok:
        raise ValueError(result.error)
    return result.value
