from __future__ import annotations

import logging
from datetime import timedelta
from typing import List, Optional, Tuple

from .schemas import CharacterResult, CounterData, Input, Measurement, Statistics

logger = logging.getLogger(__name__)


class TempStatistics:
    """Live statistics of a typing session.

    Records every keystroke, keeps the counters current and takes a
    measurement whenever at least ``interval_seconds`` elapsed since the
    previous one. Not thread-safe: callers feed it one keystroke at a time.
    """

    __slots__ = ("measurements", "input_history", "counters", "_last_measurement")

    def __init__(self) -> None:
        self.measurements: List[Measurement] = []
        self.input_history: List[Input] = []
        self.counters = CounterData()
        self._last_measurement: Optional[float] = None

    @property
    def last_measurement(self) -> Optional[float]:
        """Timestamp of the most recent measurement, None before the first."""
        return self._last_measurement

    # PUBLIC_INTERFACE
    def update(
        self,
        char: str,
        result: CharacterResult,
        input_len: int,
        elapsed: timedelta,
        interval_seconds: float,
    ) -> None:
        """Record one keystroke and take a measurement if the interval elapsed.

        Args:
            char: The character typed or deleted.
            result: Keystroke outcome.
            input_len: Current length of the typed input.
            elapsed: Time since session start.
            interval_seconds: Minimum spacing between automatic measurements (> 0).
        """
        timestamp = elapsed.total_seconds()
        self._record(char, result, timestamp)

        if self.should_take_measurement(timestamp, interval_seconds):
            self.take_measurement(timestamp, input_len)

    def should_take_measurement(self, timestamp: float, interval_seconds: float) -> bool:
        """Whether at least one interval elapsed since the last measurement (or session start)."""
        # Both bounds are inclusive.
        if self._last_measurement is None:
            return timestamp >= interval_seconds
        return timestamp - self._last_measurement >= interval_seconds

    def take_measurement(self, timestamp: float, input_len: int) -> Measurement:
        """Append a measurement at ``timestamp`` regardless of the interval."""
        measurement = Measurement.take(
            timestamp,
            input_len,
            self.measurements,
            self.input_history,
            self.counters.adds,
            self.counters.errors,
            self.counters.corrections,
        )
        self.measurements.append(measurement)
        self._last_measurement = timestamp
        logger.debug(
            "measurement %d at %.3fs: wpm=%.2f consistency=%.2f",
            len(self.measurements),
            timestamp,
            measurement.wpm.raw,
            measurement.consistency.raw_percent,
        )
        return measurement

    def _record(self, char: str, result: CharacterResult, timestamp: float) -> None:
        self.counters.record(char, result)
        self.input_history.append(Input(timestamp=timestamp, char=char, result=result))

    def detach(self) -> Tuple[List[Measurement], List[Input], CounterData]:
        """Hand over measurements, history and counters, leaving this accumulator empty."""
        taken = (self.measurements, self.input_history, self.counters)
        self.measurements = []
        self.input_history = []
        self.counters = CounterData()
        self._last_measurement = None
        return taken

    # PUBLIC_INTERFACE
    def finalize(self, duration: timedelta, text_length: int, current_position: int) -> Statistics:
        """Turn this session into its final Statistics.

        Always takes one last measurement at ``duration`` regardless of the
        interval, so the summary has at least one measurement even when no
        keystroke was recorded. The accumulator is emptied; do not keep
        feeding it afterwards.

        Args:
            duration: Total session duration.
            text_length: Length of the target text.
            current_position: How many characters the user has typed.

        Returns:
            The session Statistics.
        """
        inputs = len(self.input_history)
        statistics = Statistics.from_temp(self, duration, text_length, current_position)
        logger.info(
            "session finalized: %d inputs, %d measurements, %.3fs, %d missing",
            inputs,
            len(statistics.measurements),
            duration.total_seconds(),
            statistics.missing_characters,
        )
        return statistics
