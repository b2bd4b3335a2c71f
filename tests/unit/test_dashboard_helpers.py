from datetime import UTC, datetime

import pytest
from assistflow.domain.services.dashboard import calculate_evolution, month_bounds


@pytest.mark.parametrize(
    ("current", "previous", "expected"),
    [
        (0, 0, 0),
        (3, 0, 100),
        (5, 5, 0),
        (15, 10, 50),
        (5, 10, -50),
        (1, 3, -67),
    ],
)
def test_calculate_evolution(current: int, previous: int, expected: int) -> None:
    assert calculate_evolution(current, previous) == expected


def test_month_bounds() -> None:
    start, previous = month_bounds(datetime(2026, 10, 19, 14, 30, tzinfo=UTC))

    assert start == datetime(2026, 10, 1, tzinfo=UTC)
    assert previous == datetime(2026, 9, 1, tzinfo=UTC)


def test_month_bounds_wraps_year() -> None:
    start, previous = month_bounds(datetime(2026, 1, 5, tzinfo=UTC))

    assert start == datetime(2026, 1, 1, tzinfo=UTC)
    assert previous == datetime(2025, 12, 1, tzinfo=UTC)
