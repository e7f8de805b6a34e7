import random

import pytest

from rates import DEFAULT_RATES, Candidate, CandidateTable, format_rates


def test_default_table_starts_at_highest_rate() -> None:
    assert DEFAULT_RATES.size() == 7
    assert DEFAULT_RATES.default_index() == 6
    assert DEFAULT_RATES.at(DEFAULT_RATES.default_index()) == Candidate(115200, "115200")
    assert DEFAULT_RATES.at(0) == Candidate(2400, "2400")


def test_at_rejects_out_of_range(table: CandidateTable) -> None:
    with pytest.raises(IndexError):
        table.at(3)
    with pytest.raises(IndexError):
        table.at(-1)


def test_empty_table_rejected() -> None:
    with pytest.raises(ValueError):
        CandidateTable([])


def test_wrap_policy(table: CandidateTable) -> None:
    assert table.step(2, 1) == 0
    assert table.step(0, -1) == 2
    assert table.step(1, 1) == 2
    assert table.step(1, -1) == 0


def test_clamp_policy(table: CandidateTable) -> None:
    clamped = table.with_policy(wrap=False)
    assert clamped.step(2, 1) == 2
    assert clamped.step(0, -1) == 0
    assert clamped.step(1, -1) == 0
    assert list(clamped) == list(table)


@pytest.mark.parametrize("wrap", [True, False])
def test_random_walk_stays_in_bounds(table: CandidateTable, wrap: bool) -> None:
    t = table.with_policy(wrap)
    rng = random.Random(1234)
    index = t.default_index()
    for _ in range(500):
        index = t.step(index, rng.choice((-1, 1)))
        assert 0 <= index < t.size()


def test_format_rates_lists_every_label() -> None:
    text = format_rates(DEFAULT_RATES)
    for label in (c.label for c in DEFAULT_RATES):
        assert f"{label:>6} baud" in text
