from .attempt_state import AttemptStateMachine, effective_remaining
