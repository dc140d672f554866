"""
Request bodies for the exam attempt endpoints.

Field names on the wire are camelCase; populate_by_name lets tests and
internal callers use the Python names.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from exam_tester.orm.exam import MAX_DURATION_MINUTES

MAX_TIME_REMAINING_SECONDS = MAX_DURATION_MINUTES * 60


class StartAttemptRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    exam_id: int = Field(..., alias="examId", gt=0, description="Exam to start or resume")


class UpdateTimeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    time_remaining: float = Field(..., alias="timeRemaining", le=MAX_TIME_REMAINING_SECONDS, allow_inf_nan=False, description="Seconds left, as seen by the client")


class PauseAttemptRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    time_remaining: Optional[float] = Field(None, alias="timeRemaining", le=MAX_TIME_REMAINING_SECONDS, allow_inf_nan=False)
