"""
Analytics blueprint exposing the financial engine over JSON.

Every endpoint takes a JSON object and returns a JSON object. Engine errors are
mapped to HTTP statuses by the handlers at the bottom of this module; nothing is
replaced with a default value on failure.
"""

from typing import Any, Callable, Dict, List, Optional

from flask import Blueprint, jsonify, request
from pydantic import ValidationError

from fund_analytics.models.cash_flow_schedule import LoanTerms, generate_schedule
from fund_analytics.models.errors import (
    DivisionByZeroError,
    InvalidParameterError,
    NonConvergenceError,
)
from fund_analytics.models.irr import solve_irr
from fund_analytics.models.performance_ratios import (
    beta_or_default,
    calmar_ratio,
    information_ratio,
    max_drawdown,
    sharpe_ratio,
    sortino_ratio,
    treynor_ratio,
)
from fund_analytics.models.risk_simulation import SimulationSpec
from fund_analytics.models.time_value import net_present_value
from fund_analytics.services.analytics_service import AnalyticsService

analytics_bp = Blueprint("analytics", __name__, url_prefix="/api")

_PORTFOLIO_FIELDS = (
    "risk_free_rate_percent",
    "portfolio_returns",
    "market_returns",
    "benchmark_returns",
    "periods_per_year",
)


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidParameterError("Request body must be a JSON object")
    return dict(data)


def _number(data: Dict[str, Any], key: str, required: bool = True) -> Optional[float]:
    value = data.get(key)
    if value is None:
        if required:
            raise InvalidParameterError(f"Missing required field: {key}")
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidParameterError(f"Field {key} must be a number")
    return float(value)


def _series(data: Dict[str, Any], key: str, required: bool = True) -> Optional[List[float]]:
    value = data.get(key)
    if value is None:
        if required:
            raise InvalidParameterError(f"Missing required field: {key}")
        return None
    if not isinstance(value, list) or not all(
        isinstance(item, (int, float)) and not isinstance(item, bool) for item in value
    ):
        raise InvalidParameterError(f"Field {key} must be a list of numbers")
    return [float(item) for item in value]


def _simulation_spec(data: Dict[str, Any], service: AnalyticsService) -> SimulationSpec:
    data.setdefault("path_count", service.settings.default_path_count)
    data.setdefault("confidence_level", service.settings.default_confidence_level)
    return SimulationSpec.model_validate(data)


@analytics_bp.route("/schedule", methods=["POST"])
def schedule() -> Any:
    """Generate the payment schedule for a loan."""
    terms = LoanTerms.model_validate(_json_body())
    result = generate_schedule(terms)

    return jsonify(
        {
            "terms": terms.model_dump(mode="json"),
            "entries": [entry.model_dump() for entry in result.entries],
            "periodic_payment": result.periodic_payment,
            "total_payments": result.total_payments,
            "total_interest": result.total_interest,
            "total_principal": result.total_principal,
        }
    )


@analytics_bp.route("/npv", methods=["POST"])
def npv() -> Any:
    """Net present value of a cash-flow sequence."""
    data = _json_body()
    cash_flows = _series(data, "cash_flows")
    rate = _number(data, "discount_rate_percent")

    return jsonify({"net_present_value": net_present_value(cash_flows, rate)})


@analytics_bp.route("/irr", methods=["POST"])
def irr() -> Any:
    """Internal rate of return of a cash-flow sequence."""
    data = _json_body()
    cash_flows = _series(data, "cash_flows")
    guess = _number(data, "initial_guess_percent", required=False)

    rate = solve_irr(cash_flows) if guess is None else solve_irr(cash_flows, guess)
    return jsonify({"irr_percent": rate})


@analytics_bp.route("/deals/analyze", methods=["POST"])
def analyze_deal() -> Any:
    """Schedule totals, NPV and yield of a loan."""
    data = _json_body()
    discount_rate = _number(data, "discount_rate_percent", required=False)
    data.pop("discount_rate_percent", None)
    terms = LoanTerms.model_validate(data)

    return jsonify(AnalyticsService().analyze_deal(terms, discount_rate))


@analytics_bp.route("/simulate", methods=["POST"])
def simulate_portfolio() -> Any:
    """Monte Carlo VaR and ES of a portfolio."""
    service = AnalyticsService()
    spec = _simulation_spec(_json_body(), service)

    return jsonify(service.simulation_summary(spec))


@analytics_bp.route("/portfolio/analyze", methods=["POST"])
def analyze_portfolio() -> Any:
    """Simulation summary plus risk-adjusted ratios of a portfolio."""
    service = AnalyticsService()
    data = _json_body()

    risk_free = _number(data, "risk_free_rate_percent", required=False)
    portfolio_returns = _series(data, "portfolio_returns", required=False)
    market_returns = _series(data, "market_returns", required=False)
    benchmark_returns = _series(data, "benchmark_returns", required=False)
    periods_per_year = data.get("periods_per_year", 12)
    if not isinstance(periods_per_year, int) or periods_per_year < 1:
        raise InvalidParameterError("Field periods_per_year must be a positive integer")

    for field in _PORTFOLIO_FIELDS:
        data.pop(field, None)
    spec = _simulation_spec(data, service)

    return jsonify(
        service.analyze_portfolio(
            spec,
            risk_free_rate_percent=risk_free,
            portfolio_returns=portfolio_returns,
            market_returns=market_returns,
            benchmark_returns=benchmark_returns,
            periods_per_year=periods_per_year,
        )
    )


def _sharpe(data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "value": sharpe_ratio(
            _number(data, "portfolio_return"),
            _number(data, "risk_free_rate"),
            _number(data, "volatility"),
        )
    }


def _sortino(data: Dict[str, Any]) -> Dict[str, Any]:
    result = sortino_ratio(
        _number(data, "portfolio_return"),
        _number(data, "risk_free_rate"),
        downside_deviation=_number(data, "downside_deviation", required=False),
        volatility=_number(data, "volatility", required=False),
    )
    return result.model_dump()


def _calmar(data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "value": calmar_ratio(
            _number(data, "annual_return"), _number(data, "max_drawdown")
        )
    }


def _treynor(data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "value": treynor_ratio(
            _number(data, "portfolio_return"),
            _number(data, "risk_free_rate"),
            _number(data, "beta"),
        )
    }


def _information(data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "value": information_ratio(
            _series(data, "portfolio_returns"), _series(data, "benchmark_returns")
        )
    }


def _max_drawdown(data: Dict[str, Any]) -> Dict[str, Any]:
    return {"value": max_drawdown(_series(data, "return_series"))}


def _beta(data: Dict[str, Any]) -> Dict[str, Any]:
    portfolio_returns = _series(data, "portfolio_returns", required=False)
    market_returns = _series(data, "market_returns", required=False)
    return {
        "value": beta_or_default(portfolio_returns, market_returns),
        "is_default": portfolio_returns is None and market_returns is None,
    }


_RATIOS: Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    "sharpe": _sharpe,
    "sortino": _sortino,
    "calmar": _calmar,
    "treynor": _treynor,
    "information": _information,
    "max_drawdown": _max_drawdown,
    "beta": _beta,
}


@analytics_bp.route("/ratios/<name>", methods=["POST"])
def ratio(name: str) -> Any:
    """Compute a single named performance ratio."""
    calculator = _RATIOS.get(name)
    if calculator is None:
        return (
            jsonify(
                {
                    "error": "unknown_ratio",
                    "message": f"Unknown ratio {name}; expected one of {sorted(_RATIOS)}",
                }
            ),
            404,
        )

    return jsonify(calculator(_json_body()))


@analytics_bp.errorhandler(InvalidParameterError)
def handle_invalid_parameter(e: InvalidParameterError) -> Any:
    return jsonify({"error": "invalid_parameter", "message": str(e)}), 400


@analytics_bp.errorhandler(DivisionByZeroError)
def handle_division_by_zero(e: DivisionByZeroError) -> Any:
    return jsonify({"error": "division_by_zero", "message": str(e)}), 400


@analytics_bp.errorhandler(NonConvergenceError)
def handle_non_convergence(e: NonConvergenceError) -> Any:
    return jsonify({"error": "non_convergence", "message": str(e)}), 422


@analytics_bp.errorhandler(ValidationError)
def handle_validation_error(e: ValidationError) -> Any:
    return jsonify({"error": "validation_error", "message": str(e)}), 400
