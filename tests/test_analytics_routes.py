"""Tests for the analytics HTTP endpoints."""

import pytest

SIMULATION_BODY = {
    "initial_value": 1_000_000,
    "expected_annual_return_percent": 10,
    "annual_volatility_percent": 15,
    "horizon_years": 1,
    "path_count": 2000,
    "random_seed": 42,
}


class TestScheduleEndpoint:
    """Test cases for POST /api/schedule."""

    def test_amortizing_schedule(self, client):
        response = client.post(
            "/api/schedule",
            json={"principal": 100000, "annual_rate_percent": 18, "term_months": 12},
        )

        assert response.status_code == 200
        data = response.get_json()
        assert len(data["entries"]) == 12
        assert data["periodic_payment"] == pytest.approx(9168.00, abs=0.01)
        assert data["entries"][-1]["remaining_balance"] == 0.0
        assert data["terms"]["payment_type"] == "amortizing"

    def test_invalid_terms(self, client):
        response = client.post(
            "/api/schedule",
            json={"principal": -1, "annual_rate_percent": 18, "term_months": 12},
        )

        assert response.status_code == 400
        assert response.get_json()["error"] == "invalid_parameter"

    def test_missing_field(self, client):
        response = client.post("/api/schedule", json={"principal": 100000})

        assert response.status_code == 400
        assert response.get_json()["error"] == "validation_error"

    def test_body_must_be_object(self, client):
        response = client.post("/api/schedule", json=[1, 2, 3])
        assert response.status_code == 400


class TestCashFlowEndpoints:
    """Test cases for POST /api/npv and /api/irr."""

    def test_npv(self, client):
        response = client.post(
            "/api/npv", json={"cash_flows": [-100, 110], "discount_rate_percent": 10}
        )

        assert response.status_code == 200
        assert response.get_json()["net_present_value"] == pytest.approx(0.0, abs=1e-9)

    def test_npv_minus_hundred_percent(self, client):
        response = client.post(
            "/api/npv", json={"cash_flows": [-100, 110], "discount_rate_percent": -100}
        )

        assert response.status_code == 400
        assert response.get_json()["error"] == "division_by_zero"

    def test_npv_rejects_non_numeric_flows(self, client):
        response = client.post(
            "/api/npv", json={"cash_flows": ["a"], "discount_rate_percent": 10}
        )
        assert response.status_code == 400

    def test_irr(self, client):
        response = client.post(
            "/api/irr", json={"cash_flows": [-100000, 30000, 30000, 30000, 30000]}
        )

        assert response.status_code == 200
        assert abs(response.get_json()["irr_percent"] - 7.71) < 0.01

    def test_irr_no_sign_change(self, client):
        response = client.post("/api/irr", json={"cash_flows": [100, 200]})

        assert response.status_code == 400
        assert response.get_json()["error"] == "invalid_parameter"

    def test_irr_non_convergence(self, client):
        response = client.post("/api/irr", json={"cash_flows": [1, -3, 3]})

        assert response.status_code == 422
        assert response.get_json()["error"] == "non_convergence"


class TestDealEndpoint:
    def test_analyze_deal(self, client):
        response = client.post(
            "/api/deals/analyze",
            json={
                "principal": 100000,
                "annual_rate_percent": 18,
                "term_months": 12,
                "discount_rate_percent": 18,
            },
        )

        assert response.status_code == 200
        data = response.get_json()
        assert data["net_present_value"] == pytest.approx(0.0, abs=1e-4)
        assert data["yield"]["nominal_annual_percent"] == pytest.approx(18.0, abs=1e-3)


class TestSimulationEndpoints:
    """Test cases for simulation and portfolio endpoints."""

    def test_simulate(self, client):
        response = client.post("/api/simulate", json=SIMULATION_BODY)

        assert response.status_code == 200
        data = response.get_json()
        assert data["value_at_risk"] > 0
        assert data["spec"]["confidence_level"] == 0.95
        assert "p50" in data["percentiles"]

    def test_simulate_is_reproducible(self, client):
        first = client.post("/api/simulate", json=SIMULATION_BODY).get_json()
        second = client.post("/api/simulate", json=SIMULATION_BODY).get_json()

        assert first["value_at_risk"] == second["value_at_risk"]

    def test_simulate_default_path_count(self, client):
        body = {k: v for k, v in SIMULATION_BODY.items() if k != "path_count"}

        response = client.post("/api/simulate", json=body)

        assert response.status_code == 200
        assert response.get_json()["spec"]["path_count"] == 10000

    def test_simulate_invalid_horizon(self, client):
        response = client.post(
            "/api/simulate", json={**SIMULATION_BODY, "horizon_years": 0}
        )
        assert response.status_code == 400

    def test_simulate_horizon_over_limit(self, client):
        response = client.post(
            "/api/simulate",
            json={**SIMULATION_BODY, "horizon_years": 1000, "method": "daily_stepped"},
        )

        assert response.status_code == 400
        assert "horizon_years" in response.get_json()["message"]

    def test_simulate_overflow_is_rejected(self, client):
        response = client.post(
            "/api/simulate",
            json={
                **SIMULATION_BODY,
                "expected_annual_return_percent": 1e5,
                "horizon_years": 10,
            },
        )

        assert response.status_code == 400

    def test_simulate_unknown_field(self, client):
        response = client.post("/api/simulate", json={**SIMULATION_BODY, "foo": 1})

        assert response.status_code == 400
        assert response.get_json()["error"] == "validation_error"

    def test_analyze_portfolio(self, client):
        response = client.post(
            "/api/portfolio/analyze",
            json={**SIMULATION_BODY, "risk_free_rate_percent": 4},
        )

        assert response.status_code == 200
        ratios = response.get_json()["ratios"]
        assert ratios["sharpe_ratio"] == pytest.approx(0.4)
        assert ratios["sortino_is_estimate"] is True

    def test_analyze_portfolio_bad_periods(self, client):
        response = client.post(
            "/api/portfolio/analyze", json={**SIMULATION_BODY, "periods_per_year": 0}
        )
        assert response.status_code == 400


class TestRatioEndpoint:
    """Test cases for POST /api/ratios/<name>."""

    def test_sharpe(self, client):
        response = client.post(
            "/api/ratios/sharpe",
            json={"portfolio_return": 0.12, "risk_free_rate": 0.04, "volatility": 0.16},
        )

        assert response.status_code == 200
        assert response.get_json()["value"] == pytest.approx(0.5)

    def test_sharpe_zero_volatility(self, client):
        response = client.post(
            "/api/ratios/sharpe",
            json={"portfolio_return": 0.12, "risk_free_rate": 0.04, "volatility": 0},
        )
        assert response.status_code == 400

    def test_sortino_estimate(self, client):
        response = client.post(
            "/api/ratios/sortino",
            json={"portfolio_return": 0.12, "risk_free_rate": 0.04, "volatility": 0.16},
        )

        data = response.get_json()
        assert data["is_estimate"] is True
        assert data["value"] == pytest.approx(0.08 / 0.112)

    def test_max_drawdown(self, client):
        response = client.post(
            "/api/ratios/max_drawdown", json={"return_series": [0.1, -0.2, 0.05]}
        )
        assert response.get_json()["value"] == pytest.approx(0.2)

    def test_beta_default(self, client):
        response = client.post("/api/ratios/beta", json={})

        assert response.get_json() == {"value": 1.0, "is_default": True}

    def test_unknown_ratio(self, client):
        response = client.post("/api/ratios/omega", json={})

        assert response.status_code == 404
        assert response.get_json()["error"] == "unknown_ratio"
