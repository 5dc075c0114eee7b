# kubesage loop data model
from dataclasses import dataclass, field
from typing import List, Optional

from kubesage.enums import LoopState, Rating

# generation attempts per draft double as the loop budget
MAX_ITERATIONS = 3
# evaluation attempts before the synthetic PASS
MAX_RETRIES = 3

PASS_MARKER = "RATING: PASS"
FEEDBACK_MARKER = "FEEDBACK:"

UNAVAILABLE_VERDICT = (
    "RATING: PASS\n"
    "FEEDBACK: Unable to evaluate due to API timeout, but continuing with current response."
)


def extract_feedback(text: str) -> str:
    """Return the text after the last FEEDBACK: marker, or "" when absent."""
    if FEEDBACK_MARKER not in text:
        return ""
    return text.rsplit(FEEDBACK_MARKER, 1)[1].strip()


@dataclass
class EvaluationVerdict:
    """Judgment of one draft.

    Attributes:
        rating: PASS iff the raw verdict contains "RATING: PASS"
        feedback: Text after the last FEEDBACK: marker ("" when absent)
        raw: The verdict text as returned by the judge
        synthetic: True when the judge could not be reached and a PASS was assumed
    """
    rating: Rating
    feedback: str
    raw: str
    synthetic: bool = False

    @property
    def passed(self) -> bool:
        return self.rating is Rating.PASS

    @classmethod
    def parse(cls, raw: str) -> "EvaluationVerdict":
        """Parse judge output; anything without the PASS marker needs improvement."""
        rating = Rating.PASS if PASS_MARKER in raw else Rating.NEEDS_IMPROVEMENT
        return cls(rating=rating, feedback=extract_feedback(raw), raw=raw)

    @classmethod
    def unavailable(cls) -> "EvaluationVerdict":
        verdict = cls.parse(UNAVAILABLE_VERDICT)
        verdict.synthetic = True
        return verdict


@dataclass
class IterationRecord:
    """One pass of the loop. ``verdict`` is None on the final iteration."""
    index: int  # 1-based
    draft: str
    verdict: Optional[EvaluationVerdict] = None

    def to_trace(self, final: bool = False) -> str:
        if final or self.verdict is None:
            return f"\n\nIteration {self.index} (final):\n{self.draft}"
        return f"\n\nIteration {self.index}:\n{self.draft}\n\nEvaluation:\n{self.verdict.raw}"


@dataclass
class LoopResult:
    """Outcome of one evaluator-optimizer run."""
    response: str  # normalized final response
    state: LoopState
    iterations: List[IterationRecord] = field(default_factory=list)

    @property
    def generation_count(self) -> int:
        return len(self.iterations)

    @property
    def evaluation_count(self) -> int:
        return sum(1 for record in self.iterations if record.verdict is not None)
