"""
Tests for the analytics service.
"""

import os
from unittest.mock import patch

import pytest

from fund_analytics.config import Settings
from fund_analytics.models.cash_flow_schedule import LoanTerms, PaymentType
from fund_analytics.models.errors import InvalidParameterError
from fund_analytics.models.risk_simulation import SimulationMethod, SimulationSpec
from fund_analytics.services.analytics_service import AnalyticsService


@pytest.fixture
def settings():
    with patch.dict(os.environ, {}, clear=True):
        return Settings(_env_file=None)


@pytest.fixture
def service(settings):
    return AnalyticsService(settings)


@pytest.fixture
def spec():
    return SimulationSpec(
        initial_value=1_000_000.0,
        expected_annual_return_percent=10.0,
        annual_volatility_percent=15.0,
        horizon_years=1.0,
        path_count=2_000,
        random_seed=7,
    )


MONTHLY_RETURNS = [0.02, -0.01, 0.015, -0.03, 0.025, 0.01]
MARKET_RETURNS = [0.01, -0.005, 0.01, -0.02, 0.02, 0.005]


class TestAnalyzeDeal:
    """Test cases for deal analysis."""

    def test_discounting_at_contract_rate(self, service):
        """Test that NPV is zero when discounting at the loan's own rate."""
        terms = LoanTerms(principal=100000, annual_rate_percent=18.0, term_months=12)

        result = service.analyze_deal(terms, discount_rate_percent=18.0)

        assert result["net_present_value"] == pytest.approx(0.0, abs=1e-4)
        assert result["yield"]["periodic_irr_percent"] == pytest.approx(1.5, abs=1e-4)
        assert result["periodic_payment"] == pytest.approx(9168.00, abs=0.01)
        assert result["discount_rate_percent"] == 18.0

    def test_default_discount_rate(self, service):
        terms = LoanTerms(principal=100000, annual_rate_percent=18.0, term_months=12)

        result = service.analyze_deal(terms)

        assert result["discount_rate_percent"] == 10.0
        assert result["net_present_value"] > 0

    def test_balloon_deal(self, service):
        terms = LoanTerms(
            principal=100000,
            annual_rate_percent=12.0,
            term_months=6,
            payment_type=PaymentType.BALLOON,
            balloon_fraction=0.25,
        )

        result = service.analyze_deal(terms, discount_rate_percent=12.0)

        assert result["balloon_amount"] == pytest.approx(25000.0)
        assert result["terms"]["payment_type"] == "balloon"
        assert result["net_present_value"] == pytest.approx(0.0, abs=1e-4)

    def test_invalid_terms_propagate(self, service):
        terms = LoanTerms(principal=0, annual_rate_percent=5.0, term_months=12)

        with pytest.raises(InvalidParameterError):
            service.analyze_deal(terms)


class TestRunSimulation:
    """Test cases for simulation runs and limits."""

    def test_simulation_summary(self, service, spec):
        summary = service.simulation_summary(spec)

        assert summary["value_at_risk"] > 0
        assert "terminal_values" not in summary
        assert set(summary["parametric_var"]) == {"lognormal", "normal"}
        assert summary["parametric_var"]["lognormal"] > 0

    def test_path_count_limit(self, settings, spec):
        service = AnalyticsService(settings.model_copy(update={"max_path_count": 1000}))

        with pytest.raises(InvalidParameterError, match="path_count"):
            service.run_simulation(spec)

    def test_worker_limit(self, settings, spec):
        service = AnalyticsService(
            settings.model_copy(update={"max_simulation_workers": 2})
        )

        with pytest.raises(InvalidParameterError, match="workers"):
            service.run_simulation(spec.model_copy(update={"workers": 4}))

    def test_horizon_limit(self, service, spec):
        long_run = spec.model_copy(
            update={"horizon_years": 1000.0, "method": SimulationMethod.DAILY_STEPPED}
        )

        with pytest.raises(InvalidParameterError, match="horizon_years"):
            service.run_simulation(long_run)

    def test_stepped_draw_limit(self, settings, spec):
        """Test that daily steps count toward the draw budget."""
        service = AnalyticsService(
            settings.model_copy(update={"max_simulation_draws": 100_000})
        )
        stepped = spec.model_copy(update={"method": SimulationMethod.DAILY_STEPPED})

        # 2,000 terminal draws fit, 2,000 x 252 stepped draws do not
        assert service.run_simulation(spec).terminal_values.size == 2_000
        with pytest.raises(InvalidParameterError, match="random draws"):
            service.run_simulation(stepped)

    def test_overflowing_drift_rejected(self, service, spec):
        with pytest.raises(InvalidParameterError, match="overflowed"):
            service.run_simulation(
                spec.model_copy(
                    update={"expected_annual_return_percent": 1e5, "horizon_years": 10.0}
                )
            )

    def test_invalid_spec_propagates(self, service, spec):
        with pytest.raises(InvalidParameterError):
            service.run_simulation(spec.model_copy(update={"horizon_years": 0.0}))


class TestAnalyzePortfolio:
    """Test cases for portfolio analysis."""

    def test_ratios_without_series(self, service, spec):
        """Test the estimated Sortino and default beta without return series."""
        result = service.analyze_portfolio(spec)
        ratios = result["ratios"]

        assert result["risk_free_rate_percent"] == 4.0
        assert ratios["sharpe_ratio"] == pytest.approx(0.4)
        assert ratios["sortino_ratio"] == pytest.approx(0.06 / 0.105)
        assert ratios["sortino_is_estimate"] is True
        assert ratios["beta"] == 1.0
        assert ratios["beta_is_default"] is True
        assert ratios["treynor_ratio"] == pytest.approx(0.06)
        assert "max_drawdown" not in ratios
        assert "information_ratio" not in ratios

    def test_ratios_with_series(self, service, spec):
        result = service.analyze_portfolio(
            spec,
            risk_free_rate_percent=2.0,
            portfolio_returns=MONTHLY_RETURNS,
            market_returns=MARKET_RETURNS,
            benchmark_returns=MARKET_RETURNS,
        )
        ratios = result["ratios"]

        assert ratios["sortino_is_estimate"] is False
        assert ratios["beta_is_default"] is False
        assert ratios["beta"] > 1.0
        assert ratios["max_drawdown"] == pytest.approx(0.03)
        assert ratios["calmar_ratio"] == pytest.approx(0.10 / 0.03)
        assert "information_ratio" in ratios
        assert ratios["treynor_ratio"] == pytest.approx(0.08 / ratios["beta"])

    def test_benchmark_requires_portfolio_returns(self, service, spec):
        with pytest.raises(InvalidParameterError):
            service.analyze_portfolio(spec, benchmark_returns=MARKET_RETURNS)

    def test_market_without_portfolio_returns(self, service, spec):
        with pytest.raises(InvalidParameterError):
            service.analyze_portfolio(spec, market_returns=MARKET_RETURNS)
