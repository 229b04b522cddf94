"""
Internal rate of return solver.

Finds the per-period rate at which the NPV of a cash-flow sequence is zero.
Newton-Raphson is tried first; if it diverges the solver falls back to
bisection over a fixed bracket.
"""

import logging
import math
from typing import Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field
from scipy import optimize

from .cash_flow_schedule import LoanTerms, schedule_cash_flows
from .errors import InvalidParameterError, NonConvergenceError
from .time_value import npv_at_rate, npv_derivative

logger = logging.getLogger(__name__)

NPV_TOLERANCE = 1e-6
RATE_TOLERANCE = 1e-8
DERIVATIVE_FLOOR = 1e-12
DEFAULT_MAX_ITERATIONS = 100

# Sane bounds for a Newton iterate and the bisection bracket (decimal rates)
BRACKET_LOW = -0.99
BRACKET_HIGH = 10.0


class LoanYield(BaseModel):
    """Yield of a loan implied by its lender cash flows."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    periodic_irr_percent: float = Field(..., description="Monthly IRR in percent")
    annualized_irr_percent: float = Field(
        ..., description="Monthly IRR compounded to an annual rate, in percent"
    )
    nominal_annual_percent: float = Field(
        ..., description="Monthly IRR times 12, in percent"
    )


def _has_sign_change(cash_flows: Sequence[float]) -> bool:
    signs = [math.copysign(1.0, cf) for cf in cash_flows if cf != 0]
    return any(a != b for a, b in zip(signs, signs[1:]))


def validate_cash_flows(cash_flows: Sequence[float]) -> None:
    """
    Check that an IRR can exist for a cash-flow sequence.

    Raises:
        InvalidParameterError: If there are fewer than two entries, any entry is
            not finite, or the non-zero entries never change sign
    """
    if len(cash_flows) < 2:
        raise InvalidParameterError(
            f"IRR needs at least 2 cash flows, got {len(cash_flows)}"
        )
    if not all(math.isfinite(cf) for cf in cash_flows):
        raise InvalidParameterError("Cash flows must be finite numbers")
    if not _has_sign_change(cash_flows):
        raise InvalidParameterError(
            "Cash flows must change sign at least once for an IRR to exist"
        )


def _newton_raphson(
    cash_flows: Sequence[float], guess: float, max_iterations: int
) -> Optional[float]:
    """Return the root, or None if the iteration diverged or ran out of budget."""
    rate = guess
    if not math.isfinite(rate) or not BRACKET_LOW < rate < BRACKET_HIGH:
        logger.debug(f"Initial guess {rate} is outside the sane bounds")
        return None

    for _ in range(max_iterations):
        value = npv_at_rate(cash_flows, rate)
        if abs(value) < NPV_TOLERANCE:
            return rate

        slope = npv_derivative(cash_flows, rate)
        if not math.isfinite(slope) or abs(slope) < DERIVATIVE_FLOOR:
            logger.debug(f"Newton-Raphson derivative vanished at rate {rate}")
            return None

        step = value / slope
        rate -= step

        if not math.isfinite(rate) or not BRACKET_LOW < rate < BRACKET_HIGH:
            logger.debug(f"Newton-Raphson iterate left the sane bounds: {rate}")
            return None
        if abs(step) < RATE_TOLERANCE:
            return rate

    logger.debug(f"Newton-Raphson did not converge in {max_iterations} iterations")
    return None


def _bisection(cash_flows: Sequence[float], max_iterations: int) -> float:
    low_value = npv_at_rate(cash_flows, BRACKET_LOW)
    high_value = npv_at_rate(cash_flows, BRACKET_HIGH)

    if low_value == 0:
        return BRACKET_LOW
    if high_value == 0:
        return BRACKET_HIGH
    if math.isnan(low_value) or math.isnan(high_value) or low_value * high_value > 0:
        raise NonConvergenceError(
            f"No sign change in NPV over the bracket [{BRACKET_LOW}, {BRACKET_HIGH}]"
        )

    try:
        return optimize.bisect(
            lambda rate: npv_at_rate(cash_flows, rate),
            BRACKET_LOW,
            BRACKET_HIGH,
            xtol=RATE_TOLERANCE * 1e-2,
            maxiter=max(max_iterations, 200),
        )
    except RuntimeError as e:
        raise NonConvergenceError(f"Bisection failed to converge: {e}") from e


def irr_decimal(
    cash_flows: Sequence[float],
    initial_guess_percent: float = 10.0,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> float:
    """
    Solve for the IRR as an unrounded decimal rate per period.

    Raises:
        InvalidParameterError: If validate_cash_flows fails
        NonConvergenceError: If neither Newton-Raphson nor bisection finds a root
    """
    validate_cash_flows(cash_flows)
    flows = [float(cf) for cf in cash_flows]

    rate = _newton_raphson(flows, initial_guess_percent / 100, max_iterations)
    if rate is None:
        logger.debug("Falling back to bisection for IRR")
        rate = _bisection(flows, max_iterations)

    return rate


def solve_irr(
    cash_flows: Sequence[float],
    initial_guess_percent: float = 10.0,
    *,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    precision: Optional[int] = 4,
) -> float:
    """
    Find the per-period rate at which NPV(cash_flows, rate) is zero.

    Newton-Raphson runs until ``|NPV| < 1e-6`` or the step is below ``1e-8``.
    If the derivative vanishes, the iterate leaves (-99%, 1000%) or the
    iteration budget runs out, bisection over [-99%, 1000%] is used instead.

    Args:
        cash_flows: Cash flows per period, ``cash_flows[0]`` at period 0
        initial_guess_percent: Starting rate for Newton-Raphson, in percent
        max_iterations: Newton-Raphson iteration budget
        precision: Decimal places of the returned percentage, or None to skip
            rounding

    Returns:
        IRR per period in percent

    Raises:
        InvalidParameterError: If there are fewer than 2 cash flows or no sign change
        NonConvergenceError: If no root is bracketed after Newton-Raphson fails
    """
    rate_percent = irr_decimal(cash_flows, initial_guess_percent, max_iterations) * 100
    if precision is None:
        return rate_percent
    return round(rate_percent, precision)


def annualize_rate(periodic_rate_percent: float, periods_per_year: int = 12) -> float:
    """
    Compound a per-period rate to an effective annual rate.

    Raises:
        InvalidParameterError: If periods_per_year < 1
    """
    if periods_per_year < 1:
        raise InvalidParameterError(
            f"periods_per_year must be at least 1, got {periods_per_year}"
        )
    return ((1 + periodic_rate_percent / 100) ** periods_per_year - 1) * 100


def loan_yield(terms: LoanTerms, precision: Optional[int] = 4) -> LoanYield:
    """
    Yield implied by a loan's lender cash flows.

    Raises:
        InvalidParameterError: If the loan terms fail validate_loan_terms
    """
    monthly = irr_decimal(schedule_cash_flows(terms)) * 100

    def _round(value: float) -> float:
        return value if precision is None else round(value, precision)

    return LoanYield(
        periodic_irr_percent=_round(monthly),
        annualized_irr_percent=_round(annualize_rate(monthly, 12)),
        nominal_annual_percent=_round(monthly * 12),
    )
