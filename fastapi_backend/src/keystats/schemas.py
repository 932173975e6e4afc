from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .metrics import Accuracy, Consistency, Ipm, Wpm

if TYPE_CHECKING:
    from .statistics import TempStatistics

SECONDS_PER_MINUTE = 60.0
MAX_DURATION_MS = timedelta.max // timedelta(milliseconds=1)


class State(str, Enum):
    """Classification a character held in the typed input."""

    CORRECT = "correct"
    WRONG = "wrong"
    CORRECTED = "corrected"


class Outcome(str, Enum):
    """What a single keystroke did."""

    CORRECT = "correct"
    WRONG = "wrong"
    CORRECTED = "corrected"
    DELETED = "deleted"


# PUBLIC_INTERFACE
class CharacterResult(BaseModel):
    """Outcome of one keystroke as decided by the input loop.

    Attributes:
        outcome: Whether the keystroke added a correct, wrong or corrected character, or deleted one.
        prior: For deletions, the classification the deleted character had; None otherwise.
    """

    model_config = ConfigDict(frozen=True)

    outcome: Outcome = Field(..., description="Keystroke outcome.")
    prior: Optional[State] = Field(
        None, description="Classification of the deleted character (deletions only)."
    )

    @model_validator(mode="after")
    def prior_only_for_deletions(self) -> "CharacterResult":
        if self.outcome is Outcome.DELETED and self.prior is None:
            raise ValueError("prior is required when outcome is 'deleted'")
        if self.outcome is not Outcome.DELETED and self.prior is not None:
            raise ValueError("prior is only allowed when outcome is 'deleted'")
        return self

    @classmethod
    def correct(cls) -> "CharacterResult":
        return cls(outcome=Outcome.CORRECT)

    @classmethod
    def wrong(cls) -> "CharacterResult":
        return cls(outcome=Outcome.WRONG)

    @classmethod
    def corrected(cls) -> "CharacterResult":
        return cls(outcome=Outcome.CORRECTED)

    @classmethod
    def deleted(cls, prior: State) -> "CharacterResult":
        return cls(outcome=Outcome.DELETED, prior=prior)

    @property
    def deletes_typed_text(self) -> bool:
        """True when a character that was right (or fixed) gets deleted."""
        return self.outcome is Outcome.DELETED and self.prior in (State.CORRECT, State.CORRECTED)


# PUBLIC_INTERFACE
class Input(BaseModel):
    """One keystroke event recorded in the session history.

    Attributes:
        timestamp: Seconds since session start.
        char: The character typed (or deleted).
        result: The keystroke outcome.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: float = Field(..., ge=0, description="Seconds since session start.")
    char: str = Field(..., min_length=1, max_length=1, description="Typed character.")
    result: CharacterResult


# PUBLIC_INTERFACE
class Measurement(BaseModel):
    """Point-in-time snapshot of every performance metric."""

    model_config = ConfigDict(frozen=True)

    timestamp: float = Field(..., ge=0, description="Seconds since session start.")
    wpm: Wpm
    ipm: Ipm
    accuracy: Accuracy
    consistency: Consistency

    @classmethod
    def take(
        cls,
        timestamp: float,
        input_len: int,
        previous_measurements: Sequence["Measurement"],
        input_history: Sequence[Input],
        adds: int,
        errors: int,
        corrections: int,
    ) -> "Measurement":
        """Compute a measurement from the current session data.

        Consistency covers the WPM of every previous measurement followed by
        this one, so it is O(m) in the number of measurements taken so far.
        Previous measurements are only read.
        """
        minutes = timestamp / SECONDS_PER_MINUTE

        wpm = Wpm.calculate(len(input_history), errors, corrections, minutes)
        ipm = Ipm.calculate(adds, len(input_history), minutes)
        accuracy = Accuracy.calculate(input_len, errors, corrections)

        wpm_samples = [m.wpm for m in previous_measurements]
        wpm_samples.append(wpm)
        consistency = Consistency.calculate(wpm_samples)

        return cls(
            timestamp=timestamp,
            wpm=wpm,
            ipm=ipm,
            accuracy=accuracy,
            consistency=consistency,
        )


# PUBLIC_INTERFACE
class CounterData(BaseModel):
    """Running counters for every keystroke outcome.

    Attributes:
        char_errors: Wrong keystrokes per character.
        word_errors: Errors per word, maintained by word-segmenting callers.
        adds: Characters added (correct + wrong + corrected).
        deletes: Delete operations.
        errors: Wrong characters typed.
        corrects: Correct characters typed.
        corrections: Errors fixed by retyping.
        wrong_deletes: Deletions of characters that were correct or corrected.
    """

    char_errors: Dict[str, int] = Field(default_factory=dict)
    word_errors: Dict[str, int] = Field(default_factory=dict)
    adds: int = Field(0, ge=0)
    deletes: int = Field(0, ge=0)
    errors: int = Field(0, ge=0)
    corrects: int = Field(0, ge=0)
    corrections: int = Field(0, ge=0)
    wrong_deletes: int = Field(0, ge=0)

    def record(self, char: str, result: CharacterResult) -> None:
        """Apply one keystroke outcome to the counters."""
        outcome = result.outcome
        if outcome is Outcome.DELETED:
            self.deletes += 1
            if result.deletes_typed_text:
                self.wrong_deletes += 1
            return

        self.adds += 1
        if outcome is Outcome.WRONG:
            self.errors += 1
            self.char_errors[char] = self.char_errors.get(char, 0) + 1
        elif outcome is Outcome.CORRECTED:
            self.corrections += 1
        else:
            self.corrects += 1

    def record_word_error(self, word: str) -> None:
        self.word_errors[word] = self.word_errors.get(word, 0) + 1


class FrozenCounterData(CounterData):
    """Counters of a finished session; fields cannot be reassigned."""

    model_config = ConfigDict(frozen=True)


# PUBLIC_INTERFACE
class Statistics(BaseModel):
    """Final summary of a finished session.

    Attributes:
        wpm, ipm, accuracy, consistency: Metrics of the final measurement.
        duration: Total session duration.
        measurements: Every measurement taken, in order (never empty).
        input_history: Every keystroke, deletions included.
        counters: Final counters.
        input_length: Length of the target text.
        missing_characters: Target characters not yet typed.
    """

    model_config = ConfigDict(frozen=True)

    wpm: Wpm
    ipm: Ipm
    accuracy: Accuracy
    consistency: Consistency
    duration: timedelta
    measurements: Tuple[Measurement, ...] = Field(..., min_length=1)
    input_history: Tuple[Input, ...]
    counters: FrozenCounterData
    input_length: int = Field(..., ge=0)
    missing_characters: int = Field(..., ge=0)

    @classmethod
    def from_temp(
        cls,
        temp: "TempStatistics",
        duration: timedelta,
        text_length: int,
        current_position: int,
    ) -> "Statistics":
        """Consume a live accumulator into a summary.

        A final measurement is always taken at ``duration``; the accumulator's
        history and measurements move into the summary, its counters are
        frozen there, and the accumulator is left empty.
        """
        temp.take_measurement(duration.total_seconds(), current_position)
        measurements, input_history, counters = temp.detach()
        last = measurements[-1]
        return cls(
            wpm=last.wpm,
            ipm=last.ipm,
            accuracy=last.accuracy,
            consistency=last.consistency,
            duration=duration,
            measurements=measurements,
            input_history=input_history,
            counters=FrozenCounterData.model_validate(counters.model_dump()),
            input_length=text_length,
            missing_characters=max(0, text_length - current_position),
        )


# ---------------------------------------------------------------------------
# HTTP models
# ---------------------------------------------------------------------------


# PUBLIC_INTERFACE
class SessionCreate(BaseModel):
    """Request model to create or get a typing session.

    Attributes:
        session_id: Optional session id to reuse; one will be generated if not provided.
        text_length: Length of the target text the user is typing.
        measurement_interval_seconds: Optional per-session override of the sampling interval.
    """

    session_id: Optional[str] = Field(
        None, description="Optional session id. If not provided, a new one will be generated."
    )
    text_length: int = Field(0, ge=0, description="Target text length (>= 0).")
    measurement_interval_seconds: Optional[float] = Field(
        None, gt=0, description="Seconds between automatic measurements (> 0)."
    )


# PUBLIC_INTERFACE
class KeystrokeIn(BaseModel):
    """One keystroke as reported by the input loop.

    Attributes:
        char: The character typed or deleted.
        result: Keystroke outcome.
        input_len: Length of the typed input after the keystroke.
        elapsed_ms: Milliseconds since session start.
    """

    char: str = Field(..., min_length=1, max_length=1, description="Typed character.")
    result: CharacterResult
    input_len: int = Field(..., ge=0, description="Current input length (>= 0).")
    elapsed_ms: int = Field(
        ..., ge=0, le=MAX_DURATION_MS, description="Milliseconds since session start (>= 0)."
    )

    @property
    def elapsed(self) -> timedelta:
        return timedelta(milliseconds=self.elapsed_ms)


# PUBLIC_INTERFACE
class InputSubmission(BaseModel):
    """Batch of keystrokes for a session, in the order they happened."""

    inputs: List[KeystrokeIn] = Field(..., description="Keystrokes (must be non-empty).")

    @field_validator("inputs")
    @classmethod
    def inputs_not_empty(cls, v: List[KeystrokeIn]) -> List[KeystrokeIn]:
        if not v:
            raise ValueError("inputs must be a non-empty list")
        return v


# PUBLIC_INTERFACE
class FinalizeRequest(BaseModel):
    """Request model to end a session.

    Attributes:
        duration_ms: Total session duration in milliseconds.
        current_position: How many characters of the target text the user reached.
    """

    duration_ms: int = Field(..., ge=0, le=MAX_DURATION_MS, description="Session duration in ms (>= 0).")
    current_position: int = Field(..., ge=0, description="Current position in the target text (>= 0).")

    @property
    def duration(self) -> timedelta:
        return timedelta(milliseconds=self.duration_ms)


# PUBLIC_INTERFACE
class SessionState(BaseModel):
    """Live view of a session.

    Attributes:
        session_id: Session identifier.
        text_length: Target text length.
        measurement_interval_seconds: Sampling interval used by the session.
        finalized: Whether the session has been finalized.
        inputs_count: Keystrokes recorded.
        counters: Current counters.
        measurements: Measurements taken so far.
        last_updated: Timestamp of the last change.
    """

    session_id: str
    text_length: int = Field(..., ge=0)
    measurement_interval_seconds: float = Field(..., gt=0)
    finalized: bool
    inputs_count: int = Field(..., ge=0)
    counters: CounterData
    measurements: List[Measurement]
    last_updated: datetime

