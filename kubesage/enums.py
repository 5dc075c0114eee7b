from enum import Enum


class LoopState(Enum):
    """States of the evaluator-optimizer loop."""

    GENERATING = "generating"
    EVALUATING = "evaluating"
    ACCEPTED = "accepted"
    EXHAUSTED = "exhausted"

    @property
    def is_terminal(self) -> bool:
        return self in (LoopState.ACCEPTED, LoopState.EXHAUSTED)


class Rating(Enum):
    """Verdict ratings produced by the evaluator."""

    PASS = "PASS"
    NEEDS_IMPROVEMENT = "NEEDS_IMPROVEMENT"
