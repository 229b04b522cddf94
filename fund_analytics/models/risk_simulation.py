"""
Monte Carlo risk simulation for fund portfolios.

This module simulates portfolio value under geometric Brownian motion and derives
Value at Risk, Expected Shortfall and distribution statistics from the simulated
terminal values. Simulation is a pure function of its SimulationSpec: a fixed
random seed reproduces bit-identical terminal values, and no global random state
is read or written.

Two path models are offered and they are NOT numerically identical for the same
seed:

- TERMINAL draws one standard normal per path and jumps straight to the horizon:
  ``S_T = S_0 * exp((mu - sigma^2 / 2) * T + sigma * sqrt(T) * Z)``
- DAILY_STEPPED compounds ``round(T * 252)`` daily log-increments per path,
  consuming one normal per step.
"""

import logging
import math
import time
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict, Field
from scipy.stats import norm

from .errors import InvalidParameterError

logger = logging.getLogger(__name__)

TRADING_DAYS_PER_YEAR = 252
PERCENTILE_LEVELS = (1, 5, 25, 50, 75, 95, 99)

# Normal draws per block when stepping daily, to bound memory use; long
# horizons get fewer paths per block
STEPPED_BLOCK_DRAWS = 4096 * TRADING_DAYS_PER_YEAR


class SimulationMethod(str, Enum):
    """Path model used to produce terminal values."""

    TERMINAL = "terminal"
    DAILY_STEPPED = "daily_stepped"


class SimulationSpec(BaseModel):
    """Parameters of a portfolio Monte Carlo simulation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    initial_value: float = Field(..., description="Portfolio value at time 0")
    expected_annual_return_percent: float = Field(
        ..., description="Expected annual return (drift) in percent"
    )
    annual_volatility_percent: float = Field(
        ..., description="Annual volatility in percent"
    )
    horizon_years: float = Field(..., description="Simulation horizon in years")
    path_count: int = Field(..., description="Number of simulated paths")
    confidence_level: float = Field(
        default=0.95, description="VaR confidence level, strictly between 0 and 1"
    )
    random_seed: Optional[int] = Field(
        default=None, description="Seed for reproducible results"
    )
    method: SimulationMethod = Field(
        default=SimulationMethod.TERMINAL, description="Path model"
    )
    workers: int = Field(
        default=1, description="Number of independent random streams / threads"
    )

    @property
    def drift(self) -> float:
        """Annual drift as a decimal."""
        return self.expected_annual_return_percent / 100

    @property
    def sigma(self) -> float:
        """Annual volatility as a decimal."""
        return self.annual_volatility_percent / 100


class SimulationResult(BaseModel):
    """Outcome of a single simulation run."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True, extra="forbid")

    spec: SimulationSpec = Field(..., description="Spec the result was produced from")
    terminal_values: NDArray[np.float64] = Field(
        ..., description="Terminal portfolio value per path, in draw order"
    )
    value_at_risk: float = Field(
        ..., description="Loss at the confidence level; negative when the tail gains"
    )
    expected_shortfall: float = Field(
        ..., description="Mean loss in the tail beyond the VaR quantile"
    )
    sample_too_small: bool = Field(
        ..., description="True when the tail beyond VaR holds no paths"
    )
    percentiles: Dict[str, float] = Field(
        ..., description="Terminal value percentiles keyed p1 ... p99"
    )
    mean_terminal_value: float = Field(..., description="Mean terminal value")
    std_terminal_value: float = Field(..., description="Std of terminal values")
    probability_of_loss: float = Field(
        ..., description="Share of paths ending below the initial value"
    )
    probability_of_doubling: float = Field(
        ..., description="Share of paths ending at or above twice the initial value"
    )

    def to_dict(self, include_terminal_values: bool = False) -> Dict[str, Any]:
        """JSON-friendly summary of the result."""
        summary: Dict[str, Any] = {
            "spec": self.spec.model_dump(mode="json"),
            "value_at_risk": self.value_at_risk,
            "expected_shortfall": self.expected_shortfall,
            "sample_too_small": self.sample_too_small,
            "percentiles": self.percentiles,
            "mean_terminal_value": self.mean_terminal_value,
            "std_terminal_value": self.std_terminal_value,
            "probability_of_loss": self.probability_of_loss,
            "probability_of_doubling": self.probability_of_doubling,
        }
        if include_terminal_values:
            summary["terminal_values"] = self.terminal_values.tolist()
        return summary


def validate_simulation_spec(spec: SimulationSpec) -> None:
    """
    Check the domain preconditions of a simulation.

    Raises:
        InvalidParameterError: If path_count < 1, horizon_years <= 0,
            initial_value <= 0, confidence_level is not in (0, 1),
            annual_volatility_percent < 0, workers < 1, or an input is not finite
    """
    for name in (
        "initial_value",
        "expected_annual_return_percent",
        "annual_volatility_percent",
        "horizon_years",
        "confidence_level",
    ):
        value = getattr(spec, name)
        if not math.isfinite(value):
            raise InvalidParameterError(f"{name} must be a finite number, got {value}")

    if spec.path_count < 1:
        raise InvalidParameterError(
            f"path_count must be at least 1, got {spec.path_count}"
        )
    if spec.horizon_years <= 0:
        raise InvalidParameterError(
            f"horizon_years must be positive, got {spec.horizon_years}"
        )
    if spec.initial_value <= 0:
        raise InvalidParameterError(
            f"initial_value must be positive, got {spec.initial_value}"
        )
    if not 0 < spec.confidence_level < 1:
        raise InvalidParameterError(
            f"confidence_level must be between 0 and 1, got {spec.confidence_level}"
        )
    if spec.annual_volatility_percent < 0:
        raise InvalidParameterError(
            "annual_volatility_percent cannot be negative, "
            f"got {spec.annual_volatility_percent}"
        )
    if spec.workers < 1:
        raise InvalidParameterError(f"workers must be at least 1, got {spec.workers}")


def box_muller_normals(rng: np.random.Generator, size: Any) -> NDArray[np.float64]:
    """
    Standard normal draws via the Box-Muller transform.

    Every draw consumes its own uniform pair; the sine branch is discarded so
    no pair feeds two draws.

    Args:
        rng: Source of uniform variates
        size: Output shape

    Returns:
        Array of standard normal variates with the requested shape
    """
    u1 = 1.0 - rng.random(size)  # (0, 1], keeps log finite
    u2 = rng.random(size)
    return np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)


def step_count(spec: SimulationSpec) -> int:
    """Normal draws each path consumes under the spec's path model."""
    if spec.method == SimulationMethod.TERMINAL:
        return 1
    return max(1, round(spec.horizon_years * TRADING_DAYS_PER_YEAR))


def _chunk_sizes(path_count: int, workers: int) -> List[int]:
    chunks = min(workers, path_count)
    base, extra = divmod(path_count, chunks)
    return [base + 1 if i < extra else base for i in range(chunks)]


def _terminal_chunk(
    spec: SimulationSpec, seed_sequence: np.random.SeedSequence, count: int
) -> NDArray[np.float64]:
    rng = np.random.default_rng(seed_sequence)
    mu = spec.drift
    sigma = spec.sigma
    horizon = spec.horizon_years

    if spec.method == SimulationMethod.TERMINAL:
        z = box_muller_normals(rng, count)
        log_growth = (mu - 0.5 * sigma**2) * horizon + sigma * math.sqrt(horizon) * z
        # Overflow surfaces as inf and is rejected by generate_terminal_values
        with np.errstate(over="ignore"):
            return spec.initial_value * np.exp(log_growth)

    steps = step_count(spec)
    dt = horizon / steps
    block_rows = max(1, STEPPED_BLOCK_DRAWS // steps)
    values = np.empty(count, dtype=np.float64)

    for start in range(0, count, block_rows):
        stop = min(start + block_rows, count)
        z = box_muller_normals(rng, (stop - start, steps))
        increments = (mu - 0.5 * sigma**2) * dt + sigma * math.sqrt(dt) * z
        with np.errstate(over="ignore"):
            values[start:stop] = spec.initial_value * np.exp(increments.sum(axis=1))

    return values


def generate_terminal_values(spec: SimulationSpec) -> NDArray[np.float64]:
    """
    Draw terminal portfolio values for every path of a simulation.

    Paths are split into ``spec.workers`` contiguous chunks. Chunk ``k`` draws
    from ``SeedSequence(random_seed).spawn(workers)[k]``, so the output depends
    only on the seed and the worker count. Chunks run on a thread pool when
    there is more than one; results are concatenated in chunk order.

    Raises:
        InvalidParameterError: If validate_simulation_spec fails or a terminal
            value overflows to infinity
    """
    validate_simulation_spec(spec)

    sizes = _chunk_sizes(spec.path_count, spec.workers)
    seeds = np.random.SeedSequence(spec.random_seed).spawn(len(sizes))

    if len(sizes) == 1:
        values = _terminal_chunk(spec, seeds[0], sizes[0])
    else:
        with ThreadPoolExecutor(max_workers=len(sizes)) as executor:
            futures = [
                executor.submit(_terminal_chunk, spec, seed, size)
                for seed, size in zip(seeds, sizes)
            ]
            values = np.concatenate([future.result() for future in futures])

    if not np.all(np.isfinite(values)):
        raise InvalidParameterError(
            "Simulated terminal values overflowed; drift, volatility or horizon "
            "is too large"
        )
    return values


def _tail_index(path_count: int, confidence_level: float) -> int:
    return min(int(math.floor((1 - confidence_level) * path_count)), path_count - 1)


def value_at_risk(
    terminal_values: Sequence[float], initial_value: float, confidence_level: float
) -> float:
    """
    Value at Risk from simulated terminal values.

    ``VaR = initial_value - sorted(values)[floor((1 - c) * n)]``. The result is
    not clamped at zero: a negative VaR means even the tail outcome is a gain.

    Raises:
        InvalidParameterError: If no values are given or confidence_level is not
            in (0, 1)
    """
    values = np.sort(np.asarray(terminal_values, dtype=np.float64))
    _check_tail_inputs(values, confidence_level)
    return float(initial_value - values[_tail_index(values.size, confidence_level)])


def expected_shortfall(
    terminal_values: Sequence[float], initial_value: float, confidence_level: float
) -> Tuple[float, bool]:
    """
    Expected Shortfall from simulated terminal values.

    The tail is every outcome ranked strictly beyond the VaR quantile. ES is the
    mean of the positive losses in that tail.

    Returns:
        Tuple of (expected_shortfall, sample_too_small). An empty tail gives
        ``(0.0, True)``; a tail with no losses gives ``(0.0, False)``

    Raises:
        InvalidParameterError: If no values are given or confidence_level is not
            in (0, 1)
    """
    values = np.sort(np.asarray(terminal_values, dtype=np.float64))
    _check_tail_inputs(values, confidence_level)

    tail = values[: _tail_index(values.size, confidence_level)]
    if tail.size == 0:
        return 0.0, True

    losses = initial_value - tail
    losses = losses[losses > 0]
    if losses.size == 0:
        return 0.0, False
    return float(np.mean(losses)), False


def _check_tail_inputs(values: NDArray[np.float64], confidence_level: float) -> None:
    if values.size == 0:
        raise InvalidParameterError("At least one value is required")
    if not 0 < confidence_level < 1:
        raise InvalidParameterError(
            f"confidence_level must be between 0 and 1, got {confidence_level}"
        )


def simulate(spec: SimulationSpec) -> SimulationResult:
    """
    Run a Monte Carlo simulation of portfolio value.

    Args:
        spec: Simulation parameters

    Returns:
        SimulationResult with terminal values, VaR, ES and summary statistics

    Raises:
        InvalidParameterError: If path_count < 1, horizon_years <= 0,
            initial_value <= 0 or any other validate_simulation_spec check fails
    """
    started = time.perf_counter()
    terminal_values = generate_terminal_values(spec)
    terminal_values.setflags(write=False)

    var = value_at_risk(terminal_values, spec.initial_value, spec.confidence_level)
    es, sample_too_small = expected_shortfall(
        terminal_values, spec.initial_value, spec.confidence_level
    )
    if sample_too_small:
        logger.warning(
            f"{spec.path_count} paths leave no tail beyond VaR at "
            f"confidence {spec.confidence_level}; expected shortfall reported as 0"
        )

    percentiles = {
        f"p{level}": float(np.percentile(terminal_values, level))
        for level in PERCENTILE_LEVELS
    }

    result = SimulationResult(
        spec=spec,
        terminal_values=terminal_values,
        value_at_risk=var,
        expected_shortfall=es,
        sample_too_small=sample_too_small,
        percentiles=percentiles,
        mean_terminal_value=float(np.mean(terminal_values)),
        std_terminal_value=float(np.std(terminal_values)),
        probability_of_loss=float(np.mean(terminal_values < spec.initial_value)),
        probability_of_doubling=float(
            np.mean(terminal_values >= 2 * spec.initial_value)
        ),
    )

    elapsed = time.perf_counter() - started
    logger.info(
        f"Simulated {spec.path_count} paths ({spec.method.value}, "
        f"{spec.workers} workers) in {elapsed:.3f}s: VaR={var:,.2f} ES={es:,.2f}"
    )
    return result


def parametric_var(
    spec: SimulationSpec, method: Literal["lognormal", "normal"] = "lognormal"
) -> float:
    """
    Closed-form VaR used to cross-check the simulated VaR.

    ``lognormal`` is the exact GBM quantile,
    ``S_0 * (1 - exp((mu - sigma^2/2) * T + sigma * sqrt(T) * z_{1-c}))``.
    ``normal`` is the linear delta-normal approximation,
    ``S_0 * (sigma * sqrt(T) * z_c - mu * T)``.

    Raises:
        InvalidParameterError: If validate_simulation_spec fails or the method
            is unknown
    """
    validate_simulation_spec(spec)

    mu = spec.drift
    sigma = spec.sigma
    horizon = spec.horizon_years

    if method == "lognormal":
        z = norm.ppf(1 - spec.confidence_level)
        quantile = math.exp(
            (mu - 0.5 * sigma**2) * horizon + sigma * math.sqrt(horizon) * z
        )
        return spec.initial_value * (1 - quantile)
    if method == "normal":
        z = norm.ppf(spec.confidence_level)
        return spec.initial_value * (sigma * math.sqrt(horizon) * z - mu * horizon)

    raise InvalidParameterError(f"Unsupported parametric VaR method: {method}")


def historical_var(returns: Sequence[float], confidence_level: float = 0.95) -> float:
    """
    Historical VaR of a return series, expressed as the tail return.

    Returns the return at rank ``floor((1 - c) * n)`` of the ascending series;
    a loss shows up as a negative number.

    Raises:
        InvalidParameterError: If the series is empty or confidence_level is not
            in (0, 1)
    """
    ordered = np.sort(np.asarray(returns, dtype=np.float64))
    _check_tail_inputs(ordered, confidence_level)
    return float(ordered[_tail_index(ordered.size, confidence_level)])


def historical_expected_shortfall(
    returns: Sequence[float], confidence_level: float = 0.95
) -> float:
    """
    Mean of the returns at or below the historical VaR.

    Raises:
        InvalidParameterError: If the series is empty or confidence_level is not
            in (0, 1)
    """
    series = np.asarray(returns, dtype=np.float64)
    threshold = historical_var(series, confidence_level)
    return float(np.mean(series[series <= threshold]))
