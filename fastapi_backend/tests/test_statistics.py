import random
from datetime import timedelta

import pytest
from pydantic import ValidationError

from keystats.metrics import Consistency, Wpm
from keystats.schemas import CharacterResult, CounterData, Input, Measurement, Outcome, State
from keystats.statistics import TempStatistics

INTERVAL = 1.0


def _type(temp: TempStatistics, char: str, result: CharacterResult, input_len: int, seconds: float,
          interval: float = INTERVAL) -> None:
    temp.update(char, result, input_len, timedelta(seconds=seconds), interval)


# ---------------------------------------------------------------------------
# Counter policy
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "result, expected",
    [
        (CharacterResult.correct(), {"adds": 1, "corrects": 1}),
        (CharacterResult.wrong(), {"adds": 1, "errors": 1}),
        (CharacterResult.corrected(), {"adds": 1, "corrections": 1}),
        (CharacterResult.deleted(State.CORRECT), {"deletes": 1, "wrong_deletes": 1}),
        (CharacterResult.deleted(State.CORRECTED), {"deletes": 1, "wrong_deletes": 1}),
        (CharacterResult.deleted(State.WRONG), {"deletes": 1}),
    ],
)
def test_counter_policy(result, expected):
    temp = TempStatistics()
    _type(temp, "a", result, 1, 0.0)

    counters = temp.counters
    for name in ("adds", "deletes", "errors", "corrects", "corrections", "wrong_deletes"):
        assert getattr(counters, name) == expected.get(name, 0), name
    assert len(temp.input_history) == 1


def test_wrong_characters_tracked_per_char():
    temp = TempStatistics()
    _type(temp, "x", CharacterResult.wrong(), 1, 0.0)
    _type(temp, "x", CharacterResult.wrong(), 2, 0.1)
    _type(temp, "y", CharacterResult.wrong(), 3, 0.2)
    _type(temp, "y", CharacterResult.deleted(State.WRONG), 2, 0.3)

    assert temp.counters.char_errors == {"x": 2, "y": 1}


def test_word_errors_recorded_by_callers():
    counters = CounterData()
    counters.record_word_error("hello")
    counters.record_word_error("hello")
    counters.record_word_error("world")
    assert counters.word_errors == {"hello": 2, "world": 1}


def test_deleting_correct_character_is_wrong_delete():
    temp = TempStatistics()
    _type(temp, "a", CharacterResult.correct(), 1, 0.0)
    _type(temp, "a", CharacterResult.deleted(State.CORRECT), 0, 0.1)
    assert temp.counters.wrong_deletes == 1

    _type(temp, "b", CharacterResult.wrong(), 1, 0.2)
    _type(temp, "b", CharacterResult.deleted(State.WRONG), 0, 0.3)
    assert temp.counters.wrong_deletes == 1
    assert temp.counters.deletes == 2


def test_history_records_every_keystroke():
    temp = TempStatistics()
    _type(temp, "q", CharacterResult.correct(), 1, 0.25)
    _type(temp, "q", CharacterResult.deleted(State.CORRECT), 0, 0.5)

    assert temp.input_history == [
        Input(timestamp=0.25, char="q", result=CharacterResult.correct()),
        Input(timestamp=0.5, char="q", result=CharacterResult.deleted(State.CORRECT)),
    ]


# ---------------------------------------------------------------------------
# Sampling
# ---------------------------------------------------------------------------


def test_no_measurement_before_first_interval():
    temp = TempStatistics()
    _type(temp, "a", CharacterResult.correct(), 1, 0.5)
    assert temp.measurements == []
    assert temp.last_measurement is None


def test_first_measurement_boundary_is_inclusive():
    temp = TempStatistics()
    _type(temp, "a", CharacterResult.correct(), 1, 1.0)
    assert [m.timestamp for m in temp.measurements] == [1.0]
    assert temp.last_measurement == 1.0


def test_following_measurements_respect_interval():
    temp = TempStatistics()
    for i, seconds in enumerate([1.0, 1.5, 1.75, 2.0, 2.5, 3.25]):
        _type(temp, "a", CharacterResult.correct(), i + 1, seconds)

    assert [m.timestamp for m in temp.measurements] == [1.0, 2.0, 3.25]


def test_burst_after_gap_takes_one_measurement():
    temp = TempStatistics()
    for i in range(5):
        _type(temp, "a", CharacterResult.correct(), i + 1, 10.0)
    assert len(temp.measurements) == 1


def test_interval_is_caller_supplied():
    temp = TempStatistics()
    for i, seconds in enumerate([0.25, 0.5, 0.75, 1.0]):
        _type(temp, "a", CharacterResult.correct(), i + 1, seconds, interval=0.5)
    assert [m.timestamp for m in temp.measurements] == [0.5, 1.0]


def test_measurement_metrics():
    temp = TempStatistics()
    for i, char in enumerate("hello"):
        _type(temp, char, CharacterResult.correct(), i + 1, 12.0 * (i + 1), interval=60.0)

    (measurement,) = temp.measurements
    assert measurement.timestamp == 60.0
    assert measurement.wpm.raw == pytest.approx(1.0)
    assert measurement.ipm.raw == pytest.approx(5.0)
    assert measurement.accuracy.raw == pytest.approx(100.0)
    assert measurement.consistency.raw_percent == pytest.approx(100.0)


def test_consistency_only_looks_back():
    temp = TempStatistics()
    rng = random.Random(3)
    seconds = 0.0
    for i in range(60):
        seconds += rng.uniform(0.05, 0.6)
        result = rng.choice([CharacterResult.correct(), CharacterResult.wrong()])
        _type(temp, "k", result, i + 1, seconds)

    measurements = temp.measurements
    assert len(measurements) > 3
    for i, measurement in enumerate(measurements):
        expected = Consistency.calculate([m.wpm for m in measurements[: i + 1]])
        assert measurement.consistency == expected


def test_measurement_does_not_touch_previous():
    previous = [
        Measurement.take(1.0, 3, [], [], 3, 0, 0),
    ]
    snapshot = [m.model_copy(deep=True) for m in previous]
    Measurement.take(2.0, 5, previous, [], 5, 1, 0)
    assert previous == snapshot


# ---------------------------------------------------------------------------
# Finalize
# ---------------------------------------------------------------------------


def test_input_length_and_missing_characters():
    # Target "hello", user reaches "hel" via a wrong 'x' that gets deleted.
    temp = TempStatistics()
    _type(temp, "h", CharacterResult.correct(), 1, 0.0)
    _type(temp, "e", CharacterResult.correct(), 2, 0.0)
    _type(temp, "x", CharacterResult.wrong(), 3, 0.0)
    _type(temp, "x", CharacterResult.deleted(State.WRONG), 2, 0.0)
    _type(temp, "l", CharacterResult.corrected(), 3, 1.0)

    stats = temp.finalize(timedelta(seconds=1), 5, 3)

    assert stats.input_length == 5
    assert stats.missing_characters == 2
    assert len(stats.input_history) == 5
    assert stats.counters.adds == 4
    assert stats.counters.errors == 1
    assert stats.counters.corrects == 2
    assert stats.counters.corrections == 1
    assert stats.counters.deletes == 1
    assert stats.counters.wrong_deletes == 0
    assert stats.counters.char_errors == {"x": 1}
    assert [m.timestamp for m in stats.measurements] == [1.0, 1.0]


def test_missing_characters_with_no_errors():
    temp = TempStatistics()
    _type(temp, "h", CharacterResult.correct(), 1, 0.0)
    _type(temp, "i", CharacterResult.correct(), 2, 1.0)

    stats = temp.finalize(timedelta(seconds=1), 2, 2)

    assert stats.input_length == 2
    assert len(stats.input_history) == 2
    assert stats.missing_characters == 0


def test_missing_characters_partial_completion():
    temp = TempStatistics()
    _type(temp, "h", CharacterResult.correct(), 1, 0.0)
    _type(temp, "e", CharacterResult.correct(), 2, 1.0)

    stats = temp.finalize(timedelta(seconds=1), 5, 2)

    assert stats.input_length == 5
    assert len(stats.input_history) == 2
    assert stats.missing_characters == 3


def test_missing_characters_no_typing():
    stats = TempStatistics().finalize(timedelta(0), 10, 0)

    assert stats.input_length == 10
    assert stats.input_history == ()
    assert stats.missing_characters == 10
    assert len(stats.measurements) == 1
    assert stats.wpm == Wpm()
    assert stats.consistency == Consistency()
    assert stats.duration == timedelta(0)


@pytest.mark.parametrize(
    "text_length, position, missing",
    [(5, 3, 2), (2, 2, 0), (3, 7, 0), (0, 0, 0), (0, 4, 0)],
)
def test_missing_characters_saturates(text_length, position, missing):
    stats = TempStatistics().finalize(timedelta(seconds=2), text_length, position)
    assert stats.missing_characters == missing


def test_final_measurement_ignores_interval():
    temp = TempStatistics()
    _type(temp, "a", CharacterResult.correct(), 1, 1.0)
    stats = temp.finalize(timedelta(seconds=1.25), 1, 1)

    assert [m.timestamp for m in stats.measurements] == [1.0, 1.25]
    last = stats.measurements[-1]
    assert stats.wpm == last.wpm
    assert stats.ipm == last.ipm
    assert stats.accuracy == last.accuracy
    assert stats.consistency == last.consistency


def test_finalize_empties_accumulator():
    temp = TempStatistics()
    _type(temp, "a", CharacterResult.correct(), 1, 1.0)
    stats = temp.finalize(timedelta(seconds=2), 3, 1)

    assert temp.input_history == []
    assert temp.measurements == []
    assert temp.counters == CounterData()
    assert temp.last_measurement is None

    _type(temp, "b", CharacterResult.wrong(), 2, 3.0)
    assert len(stats.input_history) == 1
    assert stats.counters.errors == 0


def test_statistics_are_frozen():
    stats = TempStatistics().finalize(timedelta(seconds=1), 1, 0)
    with pytest.raises(ValidationError):
        stats.missing_characters = 5


def test_statistics_contents_are_frozen():
    temp = TempStatistics()
    _type(temp, "a", CharacterResult.correct(), 1, 1.0)
    stats = temp.finalize(timedelta(seconds=2), 1, 1)

    with pytest.raises(ValidationError):
        stats.counters.adds = 99
    assert isinstance(stats.measurements, tuple)
    assert isinstance(stats.input_history, tuple)
    assert len(stats.measurements) == 2


def test_invariants_over_random_sessions():
    rng = random.Random(42)
    results = [
        CharacterResult.correct(),
        CharacterResult.wrong(),
        CharacterResult.corrected(),
        CharacterResult.deleted(State.CORRECT),
        CharacterResult.deleted(State.WRONG),
        CharacterResult.deleted(State.CORRECTED),
    ]
    interval = 0.75
    temp = TempStatistics()
    seconds = 0.0
    for n in range(1, 301):
        seconds += rng.choice([0.0, 0.05, 0.1, 0.2, 1.5])
        _type(temp, rng.choice("abc "), rng.choice(results), n, seconds, interval=interval)

        counters = temp.counters
        assert counters.adds == counters.errors + counters.corrections + counters.corrects
        assert len(temp.input_history) == n

    stats = temp.finalize(timedelta(seconds=seconds + 0.1), 300, 120)

    timestamps = [m.timestamp for m in stats.measurements]
    assert timestamps
    assert timestamps == sorted(timestamps)
    automatic = timestamps[:-1]
    for earlier, later in zip(automatic, automatic[1:]):
        assert later - earlier >= interval
    assert stats.missing_characters == 180


# ---------------------------------------------------------------------------
# Event validation
# ---------------------------------------------------------------------------


def test_deleted_requires_prior():
    with pytest.raises(ValidationError):
        CharacterResult(outcome=Outcome.DELETED)


def test_prior_rejected_for_additions():
    with pytest.raises(ValidationError):
        CharacterResult(outcome=Outcome.CORRECT, prior=State.WRONG)


def test_input_holds_one_character():
    with pytest.raises(ValidationError):
        Input(timestamp=0.0, char="ab", result=CharacterResult.correct())
