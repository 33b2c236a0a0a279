"""
Compress per-date occupancy into contiguous spans for calendar rendering.

A span covers the visible part of one reservation's stay: nights
``[check_in, check_out)`` intersected with the date axis. Stays that start
before or end after the window are clipped, never dropped.
"""

from dataclasses import dataclass, asdict
from datetime import timedelta


class SpanOverlap(ValueError):
    """Two reservations of the same room claim the same calendar cell."""


@dataclass(frozen=True)
class Span:
    reservation_id: int
    start_index: int
    end_index: int
    clipped_start: bool = False
    clipped_end: bool = False

    @property
    def colspan(self):
        return self.end_index - self.start_index + 1

    def indices(self):
        return range(self.start_index, self.end_index + 1)

    def as_dict(self):
        data = asdict(self)
        data["colspan"] = self.colspan
        return data


def _check_axis(dates):
    for previous, current in zip(dates, dates[1:]):
        if current - previous != timedelta(days=1):
            raise ValueError("date axis must be consecutive days in ascending order")


def _stay(reservation):
    if isinstance(reservation, dict):
        return reservation["id"], reservation["check_in_date"], reservation["check_out_date"]
    return reservation.pk, reservation.check_in_date, reservation.check_out_date


class SpanCalculator:

    def span_for(self, dates, reservation):
        """The visible span of one reservation, or None if it is off-screen."""
        if not dates:
            return None
        reservation_id, check_in, check_out = _stay(reservation)
        first, last = dates[0], dates[-1]
        last_night = check_out - timedelta(days=1)
        if check_in > last or last_night < first:
            return None
        start = max(check_in, first)
        end = min(last_night, last)
        return Span(
            reservation_id=reservation_id,
            start_index=(start - first).days,
            end_index=(end - first).days,
            clipped_start=check_in < first,
            clipped_end=last_night > last,
        )

    def compute(self, dates, reservations):
        """
        Spans for reservations that share one physical room.

        Raises SpanOverlap rather than emitting two spans on the same cell.
        """
        _check_axis(dates)
        spans = []
        taken = {}
        for reservation in reservations:
            span = self.span_for(dates, reservation)
            if span is None:
                continue
            clash = [taken[i] for i in span.indices() if i in taken]
            if clash:
                raise SpanOverlap(
                    f"Reservation {span.reservation_id} overlaps reservation {clash[0]} "
                    f"on {dates[span.start_index]}"
                )
            for i in span.indices():
                taken[i] = span.reservation_id
            spans.append(span)
        return sorted(spans, key=lambda s: s.start_index)

    def pack_lanes(self, dates, reservations):
        """
        Spans for reservations not bound to a room, stacked into lanes.

        Each lane is overlap-free; a reservation goes into the first lane
        whose last span ends before it starts.
        """
        _check_axis(dates)
        spans = [self.span_for(dates, r) for r in reservations]
        spans = sorted((s for s in spans if s is not None), key=lambda s: (s.start_index, s.end_index))
        lanes = []
        for span in spans:
            for lane in lanes:
                if lane[-1].end_index < span.start_index:
                    lane.append(span)
                    break
            else:
                lanes.append([span])
        return lanes

    def to_cells(self, dates, spans):
        """
        One calendar row: a cell per free day and one cell per span.

        Days covered by a span collapse into its cell, whose ``colspan``
        says how many columns it takes.
        """
        by_start = {span.start_index: span for span in spans}
        cells = []
        index = 0
        while index < len(dates):
            span = by_start.get(index)
            if span is None:
                cells.append({"type": "empty", "index": index, "date": dates[index].isoformat(), "colspan": 1})
                index += 1
                continue
            cells.append({"type": "reservation", **span.as_dict()})
            index = span.end_index + 1
        return cells


calculator = SpanCalculator()
