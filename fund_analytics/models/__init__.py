"""Numerical engine for loan cash flows, yields and portfolio risk."""

from .cash_flow_schedule import (
    CashFlowEntry,
    CashFlowSchedule,
    LoanTerms,
    PaymentType,
    calculate_level_payment,
    generate_schedule,
    schedule_cash_flows,
    validate_loan_terms,
)
from .errors import (
    DivisionByZeroError,
    FinancialEngineError,
    InvalidParameterError,
    NonConvergenceError,
)
from .irr import LoanYield, annualize_rate, irr_decimal, loan_yield, solve_irr
from .performance_ratios import (
    DEFAULT_BETA,
    SortinoResult,
    annualized_return,
    beta,
    beta_or_default,
    calmar_ratio,
    downside_deviation,
    information_ratio,
    max_drawdown,
    max_drawdown_from_values,
    sharpe_ratio,
    sortino_ratio,
    tracking_error,
    treynor_ratio,
    volatility,
)
from .risk_simulation import (
    SimulationMethod,
    SimulationResult,
    SimulationSpec,
    expected_shortfall,
    historical_expected_shortfall,
    historical_var,
    parametric_var,
    simulate,
    validate_simulation_spec,
    value_at_risk,
)
from .time_value import future_value, net_present_value, present_value

__all__ = [
    "PaymentType",
    "LoanTerms",
    "CashFlowEntry",
    "CashFlowSchedule",
    "calculate_level_payment",
    "generate_schedule",
    "schedule_cash_flows",
    "validate_loan_terms",
    "FinancialEngineError",
    "InvalidParameterError",
    "NonConvergenceError",
    "DivisionByZeroError",
    "present_value",
    "net_present_value",
    "future_value",
    "LoanYield",
    "solve_irr",
    "irr_decimal",
    "annualize_rate",
    "loan_yield",
    "SimulationMethod",
    "SimulationSpec",
    "SimulationResult",
    "simulate",
    "validate_simulation_spec",
    "value_at_risk",
    "expected_shortfall",
    "parametric_var",
    "historical_var",
    "historical_expected_shortfall",
    "DEFAULT_BETA",
    "SortinoResult",
    "sharpe_ratio",
    "sortino_ratio",
    "downside_deviation",
    "calmar_ratio",
    "max_drawdown",
    "max_drawdown_from_values",
    "treynor_ratio",
    "beta",
    "beta_or_default",
    "tracking_error",
    "information_ratio",
    "volatility",
    "annualized_return",
]
