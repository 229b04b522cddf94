"""
Risk-adjusted performance ratios.

Pure functions over already-computed numbers and return series. Inputs must use
one unit consistently: either all decimals (0.12) or all percentages (12.0).
Return series used to build value paths (max_drawdown) must be decimals.

No ratio substitutes a default when its denominator vanishes; it raises
InvalidParameterError instead.
"""

import math
from typing import Optional, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict, Field

from .errors import InvalidParameterError

# Downside deviation as a share of volatility when no return series is available
DOWNSIDE_DEVIATION_ESTIMATE_FACTOR = 0.7

# Beta assumed when the caller has no return series at all
DEFAULT_BETA = 1.0


class SortinoResult(BaseModel):
    """Sortino ratio together with how its denominator was obtained."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    value: float = Field(..., description="Sortino ratio")
    downside_deviation: float = Field(..., description="Denominator used")
    is_estimate: bool = Field(
        ...,
        description="True when the downside deviation was estimated from volatility",
    )


def _as_series(name: str, values: Sequence[float]) -> NDArray[np.float64]:
    series = np.asarray(values, dtype=np.float64)
    if series.ndim != 1:
        raise InvalidParameterError(f"{name} must be a one-dimensional series")
    if not np.all(np.isfinite(series)):
        raise InvalidParameterError(f"{name} must contain only finite numbers")
    return series


def _paired_series(
    first_name: str,
    first: Sequence[float],
    second_name: str,
    second: Sequence[float],
) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
    a = _as_series(first_name, first)
    b = _as_series(second_name, second)
    if a.size != b.size:
        raise InvalidParameterError(
            f"{first_name} and {second_name} must have equal length, "
            f"got {a.size} and {b.size}"
        )
    if a.size < 2:
        raise InvalidParameterError(
            f"At least 2 observations are required, got {a.size}"
        )
    return a, b


def sharpe_ratio(
    portfolio_return: float, risk_free_rate: float, volatility: float
) -> float:
    """
    Excess return per unit of total risk.

    Raises:
        InvalidParameterError: If volatility == 0
    """
    if volatility == 0:
        raise InvalidParameterError("Sharpe ratio is undefined for zero volatility")
    return (portfolio_return - risk_free_rate) / volatility


def downside_deviation(returns: Sequence[float], target: float = 0.0) -> float:
    """
    Root-mean-square shortfall below ``target``.

    ``sqrt(sum(min(r - target, 0)^2) / n)``, averaged over all observations.

    Raises:
        InvalidParameterError: If the series is empty
    """
    series = _as_series("returns", returns)
    if series.size == 0:
        raise InvalidParameterError("Downside deviation needs at least one return")

    shortfall = np.minimum(series - target, 0.0)
    return float(np.sqrt(np.mean(shortfall**2)))


def sortino_ratio(
    portfolio_return: float,
    risk_free_rate: float,
    downside_deviation: Optional[float] = None,
    volatility: Optional[float] = None,
) -> SortinoResult:
    """
    Excess return per unit of downside risk.

    When ``downside_deviation`` is not measured, it is estimated as
    ``volatility * 0.7`` and the result is flagged ``is_estimate=True``.

    Raises:
        InvalidParameterError: If neither downside_deviation nor volatility is
            given, or the denominator is zero
    """
    is_estimate = downside_deviation is None
    if is_estimate:
        if volatility is None:
            raise InvalidParameterError(
                "Sortino ratio needs a downside deviation or a volatility to estimate it"
            )
        downside_deviation = volatility * DOWNSIDE_DEVIATION_ESTIMATE_FACTOR

    if downside_deviation == 0:
        raise InvalidParameterError(
            "Sortino ratio is undefined for zero downside deviation"
        )

    return SortinoResult(
        value=(portfolio_return - risk_free_rate) / downside_deviation,
        downside_deviation=downside_deviation,
        is_estimate=is_estimate,
    )


def calmar_ratio(annual_return: float, max_drawdown: float) -> float:
    """
    Annual return per unit of maximum drawdown.

    Raises:
        InvalidParameterError: If max_drawdown == 0
    """
    if max_drawdown == 0:
        raise InvalidParameterError("Calmar ratio is undefined for zero drawdown")
    return annual_return / abs(max_drawdown)


def max_drawdown_from_values(values: Sequence[float]) -> float:
    """
    Largest peak-to-trough decline of a value path, as a fraction of the peak.

    Raises:
        InvalidParameterError: If a running peak is not positive
    """
    path = _as_series("values", values)
    if path.size < 2:
        return 0.0

    peaks = np.maximum.accumulate(path)
    if np.any(peaks <= 0):
        raise InvalidParameterError("Drawdown needs positive peak values")

    return float(np.max((peaks - path) / peaks))


def max_drawdown(return_series: Sequence[float]) -> float:
    """
    Maximum drawdown of the cumulative value implied by a return series.

    The cumulative value after each period is ``prod(1 + r)``; its first value
    is the first peak. Empty and single-element series yield 0.

    Args:
        return_series: Periodic returns as decimals, in chronological order

    Returns:
        Maximum drawdown as a fraction (0.25 means 25%)

    Raises:
        InvalidParameterError: If a return is below -100%
    """
    series = _as_series("return_series", return_series)
    if series.size < 2:
        return 0.0
    if np.any(series < -1):
        raise InvalidParameterError("Returns below -100% cannot form a value path")

    cumulative = np.cumprod(1 + series)
    if cumulative[0] == 0:
        # Wiped out in the first period; nothing is left to draw down
        return 0.0
    return max_drawdown_from_values(cumulative)


def treynor_ratio(portfolio_return: float, risk_free_rate: float, beta: float) -> float:
    """
    Excess return per unit of systematic risk.

    Raises:
        InvalidParameterError: If beta == 0
    """
    if beta == 0:
        raise InvalidParameterError("Treynor ratio is undefined for zero beta")
    return (portfolio_return - risk_free_rate) / beta


def beta(portfolio_returns: Sequence[float], market_returns: Sequence[float]) -> float:
    """
    Sample covariance with the market over sample variance of the market.

    Raises:
        InvalidParameterError: If the series differ in length, have fewer than
            2 observations, or the market returns have zero variance
    """
    portfolio, market = _paired_series(
        "portfolio_returns", portfolio_returns, "market_returns", market_returns
    )

    market_variance = float(np.var(market, ddof=1))
    if market_variance == 0:
        raise InvalidParameterError("Beta is undefined for constant market returns")

    covariance = float(np.cov(portfolio, market, ddof=1)[0, 1])
    return covariance / market_variance


def beta_or_default(
    portfolio_returns: Optional[Sequence[float]] = None,
    market_returns: Optional[Sequence[float]] = None,
) -> float:
    """
    Beta from return series, or DEFAULT_BETA when no series is supplied at all.

    The fallback applies only when both series are missing. A partial or
    invalid pair is an error, exactly as in beta().

    Raises:
        InvalidParameterError: If only one series is given or beta() rejects them
    """
    if portfolio_returns is None and market_returns is None:
        return DEFAULT_BETA
    if portfolio_returns is None or market_returns is None:
        raise InvalidParameterError(
            "Both portfolio_returns and market_returns are required for beta"
        )
    return beta(portfolio_returns, market_returns)


def tracking_error(
    portfolio_returns: Sequence[float], benchmark_returns: Sequence[float]
) -> float:
    """
    Sample standard deviation of active returns.

    Raises:
        InvalidParameterError: If the series differ in length or have fewer than
            2 observations
    """
    portfolio, benchmark = _paired_series(
        "portfolio_returns", portfolio_returns, "benchmark_returns", benchmark_returns
    )
    return float(np.std(portfolio - benchmark, ddof=1))


def information_ratio(
    portfolio_returns: Sequence[float], benchmark_returns: Sequence[float]
) -> float:
    """
    Mean active return per unit of tracking error.

    Raises:
        InvalidParameterError: If the series differ in length, have fewer than
            2 observations, or the tracking error is zero
    """
    portfolio, benchmark = _paired_series(
        "portfolio_returns", portfolio_returns, "benchmark_returns", benchmark_returns
    )
    active = portfolio - benchmark
    error = float(np.std(active, ddof=1))
    if error == 0:
        raise InvalidParameterError(
            "Information ratio is undefined for zero tracking error"
        )
    return float(np.mean(active)) / error


def volatility(returns: Sequence[float], periods_per_year: int = 1) -> float:
    """
    Sample standard deviation of returns, annualized by ``sqrt(periods_per_year)``.

    Raises:
        InvalidParameterError: If there are fewer than 2 returns or
            periods_per_year < 1
    """
    series = _as_series("returns", returns)
    if series.size < 2:
        raise InvalidParameterError(
            f"Volatility needs at least 2 returns, got {series.size}"
        )
    if periods_per_year < 1:
        raise InvalidParameterError(
            f"periods_per_year must be at least 1, got {periods_per_year}"
        )
    return float(np.std(series, ddof=1)) * math.sqrt(periods_per_year)


def annualized_return(initial_value: float, final_value: float, years: float) -> float:
    """
    Compound annual growth rate, as a decimal.

    Raises:
        InvalidParameterError: If initial_value <= 0, final_value < 0 or years <= 0
    """
    if initial_value <= 0:
        raise InvalidParameterError(
            f"initial_value must be positive, got {initial_value}"
        )
    if final_value < 0:
        raise InvalidParameterError(
            f"final_value cannot be negative, got {final_value}"
        )
    if years <= 0:
        raise InvalidParameterError(f"years must be positive, got {years}")
    return (final_value / initial_value) ** (1 / years) - 1
