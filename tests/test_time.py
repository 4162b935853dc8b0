import pytest

from subjectplan.engine.time import EARLY, FIRST, IMPOSSIBLE, Session, Time


def test_next_and_previous_wrap_across_years() -> None:
    assert Time(1, Session.S3).next() == Time(2, Session.S1)
    assert Time(2, Session.S1).previous() == Time(1, Session.S3)
    assert FIRST.previous() == EARLY
    assert EARLY == Time(0, Session.S3)


def test_ordering_follows_calendar() -> None:
    times = [Time(2, Session.S1), Time(1, Session.S3), Time(1, Session.S1), Time(1, Session.WV)]
    assert sorted(times) == [
        Time(1, Session.S1),
        Time(1, Session.WV),
        Time(1, Session.S3),
        Time(2, Session.S1),
    ]
    assert FIRST < IMPOSSIBLE


def test_as_number_counts_sessions() -> None:
    assert FIRST.as_number() == 0
    assert Time(1, Session.S2).as_number() == 2
    assert Time(2, Session.S1).as_number() == 4


@pytest.mark.parametrize(
    ("code", "expected"),
    [("S1", Session.S1), ("s2", Session.S2), (" WV ", Session.WV), ("FY1", Session.S1), ("FY2", Session.S2)],
)
def test_session_parse(code: str, expected: Session) -> None:
    assert Session.parse(code) is expected


def test_session_parse_rejects_unknown_codes() -> None:
    with pytest.raises(ValueError):
        Session.parse("Q4")


def test_time_parse_and_str() -> None:
    parsed = Time.parse("2:S1")
    assert parsed == Time(2, Session.S1)
    assert Time.parse("3 wv") == Time(3, Session.WV)
    assert str(parsed) == "Year 2 Session 1"
    assert str(Time(1, Session.WV)) == "Year 1 Winter Vacation"
    with pytest.raises(ValueError):
        Time.parse("2")
