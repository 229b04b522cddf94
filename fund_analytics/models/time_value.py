"""
Time value of money: discounting and compounding of cash flows.

Rates are passed in percent at the public boundary (10.0 means 10% per period)
and converted to decimals internally. Cash-flow sequences are indexed from
period 0, which is never discounted.
"""

import math
from typing import Sequence

import numpy as np

from .errors import DivisionByZeroError, InvalidParameterError


def _discount_base(rate: float) -> float:
    base = 1.0 + rate
    if base == 0:
        raise DivisionByZeroError("Discount rate of -100% makes discount factors undefined")
    return base


def present_value(
    future_value: float, discount_rate_percent: float, periods: float
) -> float:
    """
    Discount a single future amount back to period 0.

    Args:
        future_value: Amount received after ``periods`` periods
        discount_rate_percent: Discount rate per period in percent
        periods: Number of periods to discount over

    Returns:
        Present value of the amount

    Raises:
        DivisionByZeroError: If discount_rate_percent == -100
        InvalidParameterError: If the rate is below -100% and periods is not a
            whole number (the result would be complex), or the discount
            factor overflows
    """
    base = _discount_base(discount_rate_percent / 100)
    if base < 0 and not float(periods).is_integer():
        raise InvalidParameterError(
            f"A rate below -100% needs a whole number of periods, got {periods}"
        )
    try:
        return future_value * base**-periods
    except OverflowError as e:
        raise InvalidParameterError(
            f"Discount factor overflowed over {periods} periods"
        ) from e


def net_present_value(cash_flows: Sequence[float], discount_rate_percent: float) -> float:
    """
    Calculate the net present value of a cash-flow sequence.

    ``cash_flows[0]`` is the initial (usually negative) outlay and is not
    discounted; ``cash_flows[i]`` is discounted by ``1 / (1 + r)^i``.

    Args:
        cash_flows: Cash flows per period, starting at period 0
        discount_rate_percent: Discount rate per period in percent

    Returns:
        Net present value (0.0 for an empty sequence)

    Raises:
        DivisionByZeroError: If discount_rate_percent == -100
    """
    return npv_at_rate(cash_flows, discount_rate_percent / 100)


def npv_at_rate(cash_flows: Sequence[float], rate: float) -> float:
    """NPV for a decimal rate (0.1 means 10%)."""
    base = _discount_base(rate)
    flows = np.asarray(cash_flows, dtype=np.float64)
    if flows.size == 0:
        return 0.0

    discount_factors = base ** -np.arange(flows.size, dtype=np.float64)
    return float(np.sum(flows * discount_factors))


def npv_derivative(cash_flows: Sequence[float], rate: float) -> float:
    """
    Derivative of NPV with respect to the decimal rate.

    ``d/dr Σ cf_i / (1+r)^i = Σ -i * cf_i / (1+r)^(i+1)``

    Raises:
        DivisionByZeroError: If rate == -1
    """
    base = _discount_base(rate)
    flows = np.asarray(cash_flows, dtype=np.float64)
    if flows.size == 0:
        return 0.0

    periods = np.arange(flows.size, dtype=np.float64)
    return float(np.sum(-periods * flows * base ** -(periods + 1)))


def future_value(
    present_amount: float,
    annual_rate_percent: float,
    years: float,
    monthly_contribution: float = 0.0,
) -> float:
    """
    Project a lump sum plus regular monthly contributions forward.

    The lump sum compounds annually; contributions compound monthly at
    ``annual_rate_percent / 12``.

    Args:
        present_amount: Amount invested today
        annual_rate_percent: Annual growth rate in percent
        years: Projection horizon in years
        monthly_contribution: Amount added at the end of every month

    Returns:
        Projected value at the end of the horizon

    Raises:
        InvalidParameterError: If years is negative, the rate is below -100%
            or the projection overflows
        DivisionByZeroError: If annual_rate_percent == -100
    """
    if years < 0:
        raise InvalidParameterError(f"years cannot be negative, got {years}")

    annual_rate = annual_rate_percent / 100
    base = _discount_base(annual_rate)
    if base < 0:
        raise InvalidParameterError(
            f"annual_rate_percent cannot be below -100, got {annual_rate_percent}"
        )

    months = years * 12
    monthly_rate = annual_rate / 12
    try:
        growth = base**years
        if monthly_rate == 0:
            annuity = monthly_contribution * months
        else:
            annuity = (
                monthly_contribution * ((1 + monthly_rate) ** months - 1) / monthly_rate
            )
    except OverflowError as e:
        raise InvalidParameterError(
            "Projection overflowed; horizon or rate too large"
        ) from e

    value = present_amount * growth + annuity
    if not math.isfinite(value):
        raise InvalidParameterError("Projection overflowed; horizon or rate too large")
    return value
