from datetime import date, timedelta

import pytest

from dashboard.spans import Span, SpanCalculator, SpanOverlap

calculator = SpanCalculator()


def axis(first, days):
    start = date.fromisoformat(first)
    return [start + timedelta(days=i) for i in range(days)]


def booking(pk, check_in, check_out):
    return {
        "id": pk,
        "check_in_date": date.fromisoformat(check_in),
        "check_out_date": date.fromisoformat(check_out),
    }


def covered(dates, spans):
    return {dates[i] for span in spans for i in span.indices()}


def nights(reservation, dates):
    day = reservation["check_in_date"]
    result = set()
    while day < reservation["check_out_date"]:
        if day in dates:
            result.add(day)
        day += timedelta(days=1)
    return result


def test_stay_inside_window():
    dates = axis("2024-01-10", 7)
    (span,) = calculator.compute(dates, [booking(1, "2024-01-11", "2024-01-14")])
    assert (span.start_index, span.end_index, span.colspan) == (1, 3, 3)
    assert not span.clipped_start and not span.clipped_end


def test_stays_crossing_the_window_are_clipped():
    dates = axis("2024-01-10", 7)
    before, after = calculator.compute(
        dates,
        [booking(1, "2024-01-08", "2024-01-12"), booking(2, "2024-01-15", "2024-01-20")],
    )
    assert (before.start_index, before.end_index, before.clipped_start) == (0, 1, True)
    assert (after.start_index, after.end_index, after.clipped_end) == (5, 6, True)


def test_stay_covering_whole_window():
    dates = axis("2024-01-10", 3)
    (span,) = calculator.compute(dates, [booking(1, "2024-01-01", "2024-02-01")])
    assert span.colspan == 3
    assert span.clipped_start and span.clipped_end


def test_off_screen_stays_are_skipped():
    dates = axis("2024-01-10", 3)
    spans = calculator.compute(
        dates,
        [booking(1, "2024-01-05", "2024-01-10"), booking(2, "2024-01-13", "2024-01-15")],
    )
    assert spans == []


def test_back_to_back_stays_share_no_cell():
    dates = axis("2024-01-10", 6)
    spans = calculator.compute(
        dates,
        [booking(2, "2024-01-12", "2024-01-14"), booking(1, "2024-01-10", "2024-01-12")],
    )
    assert [s.reservation_id for s in spans] == [1, 2]
    assert spans[0].end_index + 1 == spans[1].start_index


def test_overlapping_stays_in_one_room_raise():
    dates = axis("2024-01-10", 7)
    with pytest.raises(SpanOverlap):
        calculator.compute(
            dates,
            [booking(1, "2024-01-10", "2024-01-13"), booking(2, "2024-01-12", "2024-01-14")],
        )


def test_union_of_spans_equals_covered_nights():
    dates = axis("2024-01-10", 14)
    reservations = [
        booking(1, "2024-01-05", "2024-01-11"),
        booking(2, "2024-01-11", "2024-01-12"),
        booking(3, "2024-01-15", "2024-01-19"),
        booking(4, "2024-01-22", "2024-01-30"),
    ]
    spans = calculator.compute(dates, reservations)

    expected = set().union(*(nights(r, set(dates)) for r in reservations))
    assert covered(dates, spans) == expected
    cells = [i for span in spans for i in span.indices()]
    assert len(cells) == len(set(cells))


def test_axis_must_be_consecutive():
    with pytest.raises(ValueError):
        calculator.compute([date(2024, 1, 10), date(2024, 1, 12)], [])


def test_to_cells_collapses_spans():
    dates = axis("2024-01-10", 5)
    spans = [Span(reservation_id=7, start_index=1, end_index=3)]
    cells = calculator.to_cells(dates, spans)

    assert [c["type"] for c in cells] == ["empty", "reservation", "empty"]
    assert sum(c["colspan"] for c in cells) == len(dates)
    assert cells[1]["reservation_id"] == 7


def test_pack_lanes_separates_overlaps():
    dates = axis("2024-01-10", 7)
    lanes = calculator.pack_lanes(
        dates,
        [
            booking(1, "2024-01-10", "2024-01-13"),
            booking(2, "2024-01-11", "2024-01-12"),
            booking(3, "2024-01-13", "2024-01-15"),
        ],
    )
    assert [[s.reservation_id for s in lane] for lane in lanes] == [[1, 3], [2]]
    for lane in lanes:
        cells = [i for span in lane for i in span.indices()]
        assert len(cells) == len(set(cells))
