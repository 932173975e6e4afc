from __future__ import annotations

import math
from typing import Iterable, Sequence

from pydantic import BaseModel, ConfigDict, Field

CHARS_PER_WORD = 5.0


def _per_minute(count: float, minutes: float) -> float:
    if minutes <= 0:
        return 0.0
    return count / minutes


def _percent(part: float, whole: float) -> float:
    if whole <= 0:
        return 0.0
    return min(100.0, max(0.0, 100.0 * part / whole))


class RunningMoments:
    """Welford's online mean and variance.

    Keeps the running mean and the sum of squared deviations, so the variance
    stays accurate no matter how many samples are pushed.
    """

    __slots__ = ("count", "mean", "_m2")

    def __init__(self) -> None:
        self.count: int = 0
        self.mean: float = 0.0
        self._m2: float = 0.0

    def push(self, value: float) -> None:
        self.count += 1
        delta = value - self.mean
        self.mean += delta / self.count
        self._m2 += delta * (value - self.mean)

    def extend(self, values: Iterable[float]) -> "RunningMoments":
        for value in values:
            self.push(value)
        return self

    @property
    def variance(self) -> float:
        """Population variance; 0 for fewer than two samples."""
        if self.count < 2:
            return 0.0
        return max(0.0, self._m2 / self.count)

    @property
    def std_dev(self) -> float:
        return math.sqrt(self.variance)

    def consistency(self) -> float:
        """Percentage stability: 100 * (1 - coefficient of variation), clamped."""
        if self.count == 0 or self.mean <= 0:
            return 0.0
        return min(100.0, max(0.0, 100.0 * (1.0 - self.std_dev / self.mean)))


# PUBLIC_INTERFACE
class Wpm(BaseModel):
    """Words per minute, counting five characters as one word.

    Attributes:
        raw: Every recorded keystroke counted.
        corrected: Keystrokes minus errors.
        actual: Keystrokes minus errors and corrections.
    """

    model_config = ConfigDict(frozen=True)

    raw: float = Field(0.0, ge=0, description="Raw words per minute.")
    corrected: float = Field(0.0, ge=0, description="Words per minute excluding errors.")
    actual: float = Field(0.0, ge=0, description="Words per minute excluding errors and corrections.")

    @classmethod
    def calculate(cls, characters: int, errors: int, corrections: int, minutes: float) -> "Wpm":
        return cls(
            raw=_per_minute(characters / CHARS_PER_WORD, minutes),
            corrected=_per_minute(max(0, characters - errors) / CHARS_PER_WORD, minutes),
            actual=_per_minute(max(0, characters - errors - corrections) / CHARS_PER_WORD, minutes),
        )


# PUBLIC_INTERFACE
class Ipm(BaseModel):
    """Inputs per minute.

    Attributes:
        raw: All recorded inputs, deletions included.
        actual: Characters added only.
    """

    model_config = ConfigDict(frozen=True)

    raw: float = Field(0.0, ge=0, description="All inputs per minute.")
    actual: float = Field(0.0, ge=0, description="Added characters per minute.")

    @classmethod
    def calculate(cls, actual_inputs: int, total_inputs: int, minutes: float) -> "Ipm":
        return cls(
            raw=_per_minute(total_inputs, minutes),
            actual=_per_minute(actual_inputs, minutes),
        )


# PUBLIC_INTERFACE
class Accuracy(BaseModel):
    """Typing accuracy as percentages of the current input length."""

    model_config = ConfigDict(frozen=True)

    raw: float = Field(0.0, ge=0, le=100, description="Accuracy ignoring corrections.")
    actual: float = Field(0.0, ge=0, le=100, description="Accuracy counting corrections as misses.")

    @classmethod
    def calculate(cls, input_len: int, errors: int, corrections: int) -> "Accuracy":
        return cls(
            raw=_percent(max(0, input_len - errors), input_len),
            actual=_percent(max(0, input_len - errors - corrections), input_len),
        )


# PUBLIC_INTERFACE
class Consistency(BaseModel):
    """Stability of the typing rate across all measurements so far.

    Attributes:
        raw_percent: Consistency of the raw WPM series in [0, 100].
        raw_std_dev: Population standard deviation of the raw WPM series.
        actual_percent: Consistency of the actual WPM series in [0, 100].
        actual_std_dev: Population standard deviation of the actual WPM series.
    """

    model_config = ConfigDict(frozen=True)

    raw_percent: float = Field(0.0, ge=0, le=100)
    raw_std_dev: float = Field(0.0, ge=0)
    actual_percent: float = Field(0.0, ge=0, le=100)
    actual_std_dev: float = Field(0.0, ge=0)

    @classmethod
    def calculate(cls, samples: Sequence[Wpm]) -> "Consistency":
        raw = RunningMoments().extend(s.raw for s in samples)
        actual = RunningMoments().extend(s.actual for s in samples)
        return cls(
            raw_percent=raw.consistency(),
            raw_std_dev=raw.std_dev,
            actual_percent=actual.consistency(),
            actual_std_dev=actual.std_dev,
        )
