"""
Grade and decision rules for examiner evaluations.

Bands (grade on a 0.0-5.0 scale):
    [0.0, 3.0) REJECTED
    [3.0, 4.0) APPROVED_NO_DISTINCTION
    [4.0, 4.5) APPROVED_MERITORIOUS
    [4.5, 5.0] APPROVED_LAUREATE
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Sequence, Tuple, Union

from modality_engine.kernel.models.examiner import EvaluationDecision
from modality_engine.orchestration.errors import InconsistentGradeDecision, InvalidPayload
from modality_engine.orchestration.policy import AGREEMENT_STRICT

D = EvaluationDecision

GRADE_MIN = Decimal("0.0")
GRADE_MAX = Decimal("5.0")
GRADE_STEP = Decimal("0.01")

# Upper bound (exclusive) of each band below laureate
_BANDS: Tuple[Tuple[Decimal, EvaluationDecision], ...] = (
    (Decimal("3.0"), D.REJECTED),
    (Decimal("4.0"), D.APPROVED_NO_DISTINCTION),
    (Decimal("4.5"), D.APPROVED_MERITORIOUS),
)

GradeInput = Union[Decimal, float, int, str]


def to_grade(value: GradeInput) -> Decimal:
    """Parse a grade, enforcing the 0.0-5.0 range and at most two decimals."""
    try:
        grade = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidPayload(f"Grade {value!r} is not a number") from exc
    if not grade.is_finite() or grade < GRADE_MIN or grade > GRADE_MAX:
        raise InvalidPayload(f"Grade must be between {GRADE_MIN} and {GRADE_MAX}", grade=str(value))
    if grade != grade.quantize(GRADE_STEP):
        raise InvalidPayload("Grade may have at most two decimal places", grade=str(value))
    return grade


def decision_for_grade(grade: GradeInput) -> EvaluationDecision:
    grade = to_grade(grade)
    for upper, decision in _BANDS:
        if grade < upper:
            return decision
    return D.APPROVED_LAUREATE


def ensure_consistent(grade: GradeInput, decision: EvaluationDecision) -> Decimal:
    """Return the parsed grade, or raise if the decision lies outside its band."""
    parsed = to_grade(grade)
    expected = decision_for_grade(parsed)
    if expected != decision:
        raise InconsistentGradeDecision(
            f"Grade {parsed} corresponds to {expected.value}, not {decision.value}",
            grade=str(parsed),
            decision=decision.value,
            expected_decision=expected.value,
        )
    return parsed


def decisions_agree(first: EvaluationDecision, second: EvaluationDecision, mode: str) -> bool:
    """Strict mode compares decisions; category mode only pass vs fail."""
    if mode == AGREEMENT_STRICT:
        return first == second
    return first.is_approval == second.is_approval


def aggregate(evaluations: Sequence[Tuple[Decimal, EvaluationDecision]]) -> Tuple[Decimal, EvaluationDecision]:
    """
    Combine agreeing evaluations into the final grade and decision.

    The final grade is the mean, rounded to two decimals, and the decision
    is the band of that grade. Agreeing decisions always share a category,
    so the band never flips a pass into a fail.
    """
    if not evaluations:
        raise ValueError("Nothing to aggregate")
    mean = sum((g for g, _ in evaluations), Decimal("0")) / len(evaluations)
    grade = mean.quantize(GRADE_STEP, rounding=ROUND_HALF_UP)
    return grade, decision_for_grade(grade)
