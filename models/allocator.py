"""Sequential code allocator models."""

from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.values import DateValue


MAX_PREFIX_LENGTH = 6
DEFAULT_COUNTER = 1
DEFAULT_WIDTH = 3


class AllocatorState(BaseModel):
    """Stored state of one code sequence.

    Missing counter / width values fall back to 1 and 3, the defaults the
    parameter screen has always applied.

    Attributes:
        prefix: Code prefix (max 6 characters, e.g. "EMP")
        counter: Last allocated number
        width: Zero-padding width of the number
    """
    model_config = ConfigDict(frozen=True)

    prefix: str = Field(default="", max_length=MAX_PREFIX_LENGTH)
    counter: int = Field(default=DEFAULT_COUNTER, ge=0)
    width: int = Field(default=DEFAULT_WIDTH, ge=1)

    @field_validator("prefix", mode="before")
    @classmethod
    def _prefix_default(cls, value):
        return "" if value is None else value

    @field_validator("counter", mode="before")
    @classmethod
    def _counter_default(cls, value):
        return DEFAULT_COUNTER if value in (None, "") else value

    @field_validator("width", mode="before")
    @classmethod
    def _width_default(cls, value):
        return DEFAULT_WIDTH if value in (None, "", 0) else value


class AllocatorParameters(BaseModel):
    """Effective-dated parameter row holding an allocator state.

    Attributes:
        scope_key: Sequence scope (e.g. client contract)
        state: Prefix / counter / width
        is_active: Inactive rows are never selected
        start_date: First day the row applies
        end_date: Day the row stops applying (exclusive), None if open-ended
    """
    model_config = ConfigDict(frozen=True)

    scope_key: str
    state: AllocatorState
    is_active: bool = True
    start_date: DateValue
    end_date: Optional[DateValue] = None

    def applies_on(self, on_date: date) -> bool:
        if not self.is_active or self.start_date > on_date:
            return False
        return self.end_date is None or self.end_date > on_date


class AllocationResult(BaseModel):
    """A generated code plus the state the caller must persist."""
    model_config = ConfigDict(frozen=True)

    code: str
    new_state: AllocatorState
