"""
Analytics service for coordinating deal and portfolio analysis runs.

This service chains the numerical engines for the two analysis flows of the fund:
a deal (loan terms) is turned into a payment schedule, discounted and solved for
its yield; a portfolio (simulation spec) is simulated and scored with
risk-adjusted ratios.
"""

import logging
from typing import Any, Dict, Optional, Sequence

from fund_analytics.config import Settings, get_global_settings
from fund_analytics.models.cash_flow_schedule import LoanTerms, generate_schedule
from fund_analytics.models.errors import FinancialEngineError, InvalidParameterError
from fund_analytics.models.irr import loan_yield
from fund_analytics.models.performance_ratios import (
    DEFAULT_BETA,
    beta_or_default,
    calmar_ratio,
    downside_deviation,
    information_ratio,
    max_drawdown,
    sharpe_ratio,
    sortino_ratio,
    treynor_ratio,
)
from fund_analytics.models.risk_simulation import (
    SimulationResult,
    SimulationSpec,
    parametric_var,
    simulate,
    step_count,
    validate_simulation_spec,
)
from fund_analytics.models.time_value import net_present_value


class AnalyticsService:
    """Service for running deal and portfolio analytics."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        """Initialize the analytics service.

        Args:
            settings: Application settings (defaults to the global settings)
        """
        self.settings = settings or get_global_settings()
        self.logger = logging.getLogger(__name__)

    def analyze_deal(
        self, terms: LoanTerms, discount_rate_percent: Optional[float] = None
    ) -> Dict[str, Any]:
        """Analyze a single loan from the lender's point of view.

        Args:
            terms: Loan parameters
            discount_rate_percent: Annual discount rate in percent, applied
                monthly as rate / 12 (defaults to the configured rate)

        Returns:
            Dictionary with schedule totals, NPV and yield

        Raises:
            FinancialEngineError: If any engine rejects the inputs
        """
        if discount_rate_percent is None:
            discount_rate_percent = self.settings.default_discount_rate_percent

        try:
            self.logger.info(
                f"Analyzing {terms.payment_type.value} deal: principal "
                f"{terms.principal:,.2f} at {terms.annual_rate_percent}% "
                f"for {terms.term_months} months"
            )

            schedule = generate_schedule(terms)
            cash_flows = schedule.lender_cash_flows()
            npv = net_present_value(cash_flows, discount_rate_percent / 12)
            yields = loan_yield(terms)

            self.logger.info(
                f"Deal analysis complete: NPV {npv:,.2f}, "
                f"annualized IRR {yields.annualized_irr_percent}%"
            )
        except FinancialEngineError as e:
            self.logger.error(f"Deal analysis failed: {str(e)}")
            raise

        return {
            "terms": terms.model_dump(mode="json"),
            "periodic_payment": schedule.periodic_payment,
            "total_payments": schedule.total_payments,
            "total_interest": schedule.total_interest,
            "total_principal": schedule.total_principal,
            "balloon_amount": schedule.balloon_amount,
            "discount_rate_percent": discount_rate_percent,
            "net_present_value": npv,
            "yield": yields.model_dump(),
        }

    def run_simulation(self, spec: SimulationSpec) -> SimulationResult:
        """Run a Monte Carlo simulation within the configured limits.

        Raises:
            FinancialEngineError: If the simulation exceeds the configured limits or
                fails validation
        """
        self._check_limits(spec)

        try:
            self.logger.info(
                f"Starting simulation: {spec.path_count} paths over "
                f"{spec.horizon_years} years (seed={spec.random_seed})"
            )
            return simulate(spec)
        except FinancialEngineError as e:
            self.logger.error(f"Simulation failed: {str(e)}")
            raise

    def simulation_summary(self, spec: SimulationSpec) -> Dict[str, Any]:
        """Simulation result summary with the closed-form VaR cross-check."""
        result = self.run_simulation(spec)
        summary = result.to_dict()
        summary["parametric_var"] = {
            "lognormal": parametric_var(spec, "lognormal"),
            "normal": parametric_var(spec, "normal"),
        }
        return summary

    def analyze_portfolio(
        self,
        spec: SimulationSpec,
        risk_free_rate_percent: Optional[float] = None,
        portfolio_returns: Optional[Sequence[float]] = None,
        market_returns: Optional[Sequence[float]] = None,
        benchmark_returns: Optional[Sequence[float]] = None,
        periods_per_year: int = 12,
    ) -> Dict[str, Any]:
        """Simulate a portfolio and compute its risk-adjusted ratios.

        Ratios use the annual decimal drift and volatility of the simulation.
        Series-based figures (measured downside deviation, drawdown, beta,
        information ratio) are only reported when their series are supplied.

        Args:
            spec: Simulation parameters (drift and volatility double as the
                portfolio's expected return and risk)
            risk_free_rate_percent: Annual risk-free rate in percent
            portfolio_returns: Periodic portfolio returns (decimals)
            market_returns: Periodic market returns aligned with portfolio_returns
            benchmark_returns: Periodic benchmark returns for the information ratio
            periods_per_year: Periodicity of the supplied series

        Returns:
            Dictionary with the simulation summary and a ratios section

        Raises:
            FinancialEngineError: If simulation or any ratio is undefined for
                the inputs
        """
        if risk_free_rate_percent is None:
            risk_free_rate_percent = self.settings.default_risk_free_rate_percent

        summary = self.simulation_summary(spec)

        try:
            ratios = self._portfolio_ratios(
                spec,
                risk_free_rate_percent / 100,
                portfolio_returns,
                market_returns,
                benchmark_returns,
                periods_per_year,
            )
        except FinancialEngineError as e:
            self.logger.error(f"Portfolio ratio calculation failed: {str(e)}")
            raise

        summary["risk_free_rate_percent"] = risk_free_rate_percent
        summary["ratios"] = ratios
        return summary

    def _portfolio_ratios(
        self,
        spec: SimulationSpec,
        risk_free_rate: float,
        portfolio_returns: Optional[Sequence[float]],
        market_returns: Optional[Sequence[float]],
        benchmark_returns: Optional[Sequence[float]],
        periods_per_year: int,
    ) -> Dict[str, Any]:
        expected_return = spec.drift
        sigma = spec.sigma
        ratios: Dict[str, Any] = {
            "sharpe_ratio": sharpe_ratio(expected_return, risk_free_rate, sigma),
        }

        if portfolio_returns is not None:
            measured = downside_deviation(portfolio_returns) * periods_per_year**0.5
            sortino = sortino_ratio(
                expected_return, risk_free_rate, downside_deviation=measured
            )
            drawdown = max_drawdown(portfolio_returns)
            ratios["max_drawdown"] = drawdown
            if drawdown > 0:
                ratios["calmar_ratio"] = calmar_ratio(expected_return, drawdown)
        else:
            sortino = sortino_ratio(expected_return, risk_free_rate, volatility=sigma)

        ratios["sortino_ratio"] = sortino.value
        ratios["sortino_is_estimate"] = sortino.is_estimate

        if market_returns is not None:
            beta_value = beta_or_default(portfolio_returns, market_returns)
            ratios["beta_is_default"] = False
        else:
            beta_value = DEFAULT_BETA
            ratios["beta_is_default"] = True

        ratios["beta"] = beta_value
        ratios["treynor_ratio"] = treynor_ratio(
            expected_return, risk_free_rate, beta_value
        )

        if benchmark_returns is not None:
            if portfolio_returns is None:
                raise InvalidParameterError(
                    "portfolio_returns are required with benchmark_returns"
                )
            ratios["information_ratio"] = information_ratio(
                portfolio_returns, benchmark_returns
            )

        return ratios

    def _check_limits(self, spec: SimulationSpec) -> None:
        validate_simulation_spec(spec)
        if spec.path_count > self.settings.max_path_count:
            raise InvalidParameterError(
                f"path_count {spec.path_count} exceeds the limit of "
                f"{self.settings.max_path_count}"
            )
        if spec.workers > self.settings.max_simulation_workers:
            raise InvalidParameterError(
                f"workers {spec.workers} exceeds the limit of "
                f"{self.settings.max_simulation_workers}"
            )
        if spec.horizon_years > self.settings.max_horizon_years:
            raise InvalidParameterError(
                f"horizon_years {spec.horizon_years} exceeds the limit of "
                f"{self.settings.max_horizon_years}"
            )
        draws = spec.path_count * step_count(spec)
        if draws > self.settings.max_simulation_draws:
            raise InvalidParameterError(
                f"{draws} random draws ({spec.path_count} paths x "
                f"{step_count(spec)} steps) exceed the limit of "
                f"{self.settings.max_simulation_draws}"
            )
