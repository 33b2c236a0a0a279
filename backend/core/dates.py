from datetime import date, datetime, timedelta

from .exceptions import InvalidDateRange

# Longest window any endpoint will read, write or book in one request
MAX_WINDOW_NIGHTS = 366


def parse_date(value, field="date"):
    """Accept a date or an ISO ``YYYY-MM-DD`` string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value), "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise InvalidDateRange(f"Invalid {field} format. Use YYYY-MM-DD.")


def get_dates_in_range(start_date, end_date):
    """Return the dates from start (inclusive) to end (exclusive)."""
    delta = end_date - start_date
    return [start_date + timedelta(days=i) for i in range(delta.days)]


class DateRange:
    """
    Half-open ``[start, end)`` range of nights.

    ``end`` is the check-out day and is never part of the range.
    """

    __slots__ = ("start", "end")

    def __init__(self, start, end):
        start = parse_date(start, "start_date")
        end = parse_date(end, "end_date")
        if end <= start:
            raise InvalidDateRange(
                f"End date must be after start date. start: {start}, end: {end}"
            )
        self.start = start
        self.end = end

    @classmethod
    def inclusive(cls, first_day, last_day):
        """Build a range from an inclusive ``[first_day, last_day]`` pair."""
        first_day = parse_date(first_day, "start_date")
        last_day = parse_date(last_day, "end_date")
        if last_day < first_day:
            raise InvalidDateRange(
                f"End date must be on or after start date. start: {first_day}, end: {last_day}"
            )
        return cls(first_day, last_day + timedelta(days=1))

    def check_length(self, max_nights=MAX_WINDOW_NIGHTS):
        if self.nights > max_nights:
            raise InvalidDateRange(
                f"Date range cannot exceed {max_nights} nights. Got {self.nights}."
            )
        return self

    @property
    def nights(self):
        return (self.end - self.start).days

    @property
    def last_night(self):
        return self.end - timedelta(days=1)

    def dates(self):
        return get_dates_in_range(self.start, self.end)

    def __iter__(self):
        return iter(self.dates())

    def __len__(self):
        return self.nights

    def __contains__(self, day):
        return self.start <= day < self.end

    def overlaps(self, start, end):
        return self.start < end and start < self.end

    def __eq__(self, other):
        return isinstance(other, DateRange) and (self.start, self.end) == (other.start, other.end)

    def __hash__(self):
        return hash((self.start, self.end))

    def __repr__(self):
        return f"DateRange({self.start.isoformat()}, {self.end.isoformat()})"
