"""
Exam Attempt State Machine

State Flow: started ⇄ paused → completed
            started/paused → expired → started (resume in place)

The timer is absolute from started_at. time_remaining_seconds is a
checkpoint reported by the client; the live value is always
min(checkpoint, duration left on the wall clock).
"""
import logging
from datetime import datetime
from typing import Dict, List

from exam_tester.core.clock import elapsed_seconds
from exam_tester.errors import ErrorCode, InvalidStateError
from exam_tester.orm.exam_attempt import AttemptStatus, ExamAttempt

logger = logging.getLogger(__name__)


def effective_remaining(checkpoint: int, started_at: datetime, now: datetime) -> int:
    """Remaining seconds: checkpoint minus whole seconds since start, floored at 0."""
    return max(0, checkpoint - elapsed_seconds(started_at, now))


class AttemptStateMachine:
    """
    Validates and applies attempt status changes.

    Holds no state of its own; the attempt row is the source of truth.
    """

    # Valid state transitions
    TRANSITIONS: Dict[AttemptStatus, List[AttemptStatus]] = {
        AttemptStatus.STARTED: [
            AttemptStatus.STARTED,
            AttemptStatus.PAUSED,
            AttemptStatus.COMPLETED,
            AttemptStatus.EXPIRED,
        ],
        AttemptStatus.PAUSED: [
            AttemptStatus.STARTED,
            AttemptStatus.COMPLETED,
            AttemptStatus.EXPIRED,
        ],
        AttemptStatus.EXPIRED: [
            AttemptStatus.STARTED,
            AttemptStatus.COMPLETED,
            AttemptStatus.EXPIRED,
        ],
        AttemptStatus.COMPLETED: [AttemptStatus.COMPLETED],
    }

    @classmethod
    def can_transition(cls, current: AttemptStatus, new: AttemptStatus) -> bool:
        return new in cls.TRANSITIONS.get(current, [])

    @classmethod
    def transition(cls, attempt: ExamAttempt, new: AttemptStatus) -> AttemptStatus:
        """
        Move an attempt to a new status in memory. The caller commits.

        Raises:
            InvalidStateError: transition not allowed
        """
        current = attempt.status
        if not cls.can_transition(current, new):
            raise InvalidStateError(
                f"Invalid transition: {current.value} → {new.value}",
                code=ErrorCode.STATE_TRANSITION_INVALID,
                details={
                    "current_state": current.value,
                    "requested_state": new.value,
                    "allowed": [s.value for s in cls.TRANSITIONS.get(current, [])],
                }
            )

        attempt.status = new
        if new == AttemptStatus.COMPLETED:
            attempt.is_completed = True

        if current != new:
            logger.info(f"Attempt {attempt.id}: {current.value} → {new.value}")
        return current

    @staticmethod
    def live_remaining(attempt: ExamAttempt, now: datetime) -> int:
        return effective_remaining(attempt.time_remaining_seconds, attempt.started_at, now)
