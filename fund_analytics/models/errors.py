"""
Error taxonomy for the financial engine.

Every numeric operation raises one of these synchronously at the point where a
precondition fails. None of them is retried or replaced with a default value
inside the engine.
"""


class FinancialEngineError(Exception):
    """Base exception for financial engine errors."""


class InvalidParameterError(FinancialEngineError, ValueError):
    """Raised when an input is malformed or outside the operation's domain."""


class NonConvergenceError(FinancialEngineError, ArithmeticError):
    """Raised when a root-finder exhausts its budget without reaching tolerance."""


class DivisionByZeroError(FinancialEngineError, ZeroDivisionError):
    """Raised when a discount factor is undefined (a rate of exactly -100%)."""
