"""
Loan cash-flow schedules for fund deal analysis.

This module generates deterministic payment schedules for fixed-rate installment
loans, splitting every payment into interest and principal and tracking the
outstanding balance. Three payment structures are supported: interest-only,
fully amortizing (level payment) and balloon.
"""

import math
from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field

from .errors import InvalidParameterError

class PaymentType(str, Enum):
    """Repayment structure of a loan."""

    INTEREST_ONLY = "interest_only"
    AMORTIZING = "amortizing"
    BALLOON = "balloon"


class LoanTerms(BaseModel):
    """Immutable parameters of a single loan."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    principal: float = Field(..., description="Loan principal in currency units")
    annual_rate_percent: float = Field(
        ..., description="Nominal annual interest rate in percent (e.g. 18 for 18%)"
    )
    term_months: int = Field(..., description="Loan term in months")
    payment_type: PaymentType = Field(
        default=PaymentType.AMORTIZING, description="Repayment structure"
    )
    balloon_fraction: float = Field(
        default=0.0,
        description="Share of principal repaid as the balloon (BALLOON loans only)",
    )

    @property
    def monthly_rate(self) -> float:
        """Periodic (monthly) rate as a decimal."""
        return self.annual_rate_percent / 100 / 12


class CashFlowEntry(BaseModel):
    """One period of a payment schedule."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    period_index: int = Field(..., ge=1, description="Period number (1-based)")
    payment: float = Field(..., ge=0, description="Total payment for the period")
    interest_portion: float = Field(..., ge=0, description="Interest portion of payment")
    principal_portion: float = Field(
        ..., ge=0, description="Principal portion of payment"
    )
    remaining_balance: float = Field(
        ..., ge=0, description="Outstanding balance after the payment"
    )


class CashFlowSchedule(BaseModel):
    """Complete payment schedule for a loan."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    terms: LoanTerms = Field(..., description="Loan the schedule was generated for")
    entries: List[CashFlowEntry] = Field(..., description="Schedule rows in order")

    @property
    def total_payments(self) -> float:
        """Sum of all payments over the life of the loan."""
        return math.fsum(entry.payment for entry in self.entries)

    @property
    def total_interest(self) -> float:
        """Sum of all interest portions."""
        return math.fsum(entry.interest_portion for entry in self.entries)

    @property
    def total_principal(self) -> float:
        """Sum of all principal portions."""
        return math.fsum(entry.principal_portion for entry in self.entries)

    @property
    def periodic_payment(self) -> float:
        """Payment due in the first period."""
        return self.entries[0].payment

    @property
    def balloon_amount(self) -> float:
        """Principal settled as the balloon (zero for non-balloon loans)."""
        if self.terms.payment_type != PaymentType.BALLOON:
            return 0.0
        return self.terms.principal * self.terms.balloon_fraction

    def lender_cash_flows(self) -> List[float]:
        """
        Cash flows from the lender's point of view.

        Returns:
            ``[-principal, payment_1, ..., payment_n]``, ready for NPV or IRR
        """
        return [-self.terms.principal] + [entry.payment for entry in self.entries]


def _require_finite(name: str, value: float) -> None:
    if not math.isfinite(value):
        raise InvalidParameterError(f"{name} must be a finite number, got {value}")


def validate_loan_terms(terms: LoanTerms) -> None:
    """
    Check the domain preconditions of a loan.

    Raises:
        InvalidParameterError: If principal <= 0, term_months < 1,
            annual_rate_percent < 0, balloon_fraction is outside [0, 1],
            or any amount is not finite
    """
    _require_finite("principal", terms.principal)
    _require_finite("annual_rate_percent", terms.annual_rate_percent)
    _require_finite("balloon_fraction", terms.balloon_fraction)

    if terms.principal <= 0:
        raise InvalidParameterError(
            f"principal must be positive, got {terms.principal}"
        )
    if terms.term_months < 1:
        raise InvalidParameterError(
            f"term_months must be at least 1, got {terms.term_months}"
        )
    if terms.annual_rate_percent < 0:
        raise InvalidParameterError(
            f"annual_rate_percent cannot be negative, got {terms.annual_rate_percent}"
        )
    if not 0.0 <= terms.balloon_fraction <= 1.0:
        raise InvalidParameterError(
            f"balloon_fraction must be between 0 and 1, got {terms.balloon_fraction}"
        )


def calculate_level_payment(
    principal: float, annual_rate_percent: float, term_months: int
) -> float:
    """
    Calculate the level monthly payment of a fully amortizing loan.

    Args:
        principal: Loan principal amount
        annual_rate_percent: Annual interest rate in percent
        term_months: Number of monthly payments

    Returns:
        Monthly payment, unrounded

    Raises:
        InvalidParameterError: Under the same conditions as validate_loan_terms
    """
    terms = LoanTerms(
        principal=principal,
        annual_rate_percent=annual_rate_percent,
        term_months=term_months,
    )
    validate_loan_terms(terms)
    return _level_payment(terms.principal, terms.monthly_rate, terms.term_months)


def _level_payment(principal: float, monthly_rate: float, num_payments: int) -> float:
    if monthly_rate == 0:
        return principal / num_payments

    # Negative exponent: underflows to 0 for long, high-rate loans instead of
    # overflowing, which leaves the interest-only payment P * r.
    discount = (1 + monthly_rate) ** -num_payments
    if discount == 1:
        # Rate too small to register against 1.0
        return principal / num_payments
    payment = principal * monthly_rate / (1 - discount)
    if not math.isfinite(payment):
        raise InvalidParameterError(
            f"Level payment is not finite for principal {principal} "
            f"at monthly rate {monthly_rate}"
        )
    return payment


def _interest_only_entries(terms: LoanTerms) -> List[CashFlowEntry]:
    interest = terms.principal * terms.monthly_rate
    entries = []

    for period in range(1, terms.term_months + 1):
        is_final = period == terms.term_months
        principal_portion = terms.principal if is_final else 0.0
        entries.append(
            CashFlowEntry(
                period_index=period,
                payment=interest + principal_portion,
                interest_portion=interest,
                principal_portion=principal_portion,
                remaining_balance=0.0 if is_final else terms.principal,
            )
        )

    return entries


def _amortizing_entries(terms: LoanTerms) -> List[CashFlowEntry]:
    rate = terms.monthly_rate
    payment = _level_payment(terms.principal, rate, terms.term_months)
    balance = terms.principal
    entries = []

    for period in range(1, terms.term_months + 1):
        interest = balance * rate

        if period == terms.term_months:
            # The last payment settles whatever is left, absorbing float drift
            principal_portion = balance
            balance = 0.0
        else:
            principal_portion = payment - interest
            balance -= principal_portion

        entries.append(
            CashFlowEntry(
                period_index=period,
                payment=interest + principal_portion,
                interest_portion=interest,
                principal_portion=principal_portion,
                remaining_balance=balance,
            )
        )

    return entries


def _balloon_entries(terms: LoanTerms) -> List[CashFlowEntry]:
    # The balloon and the amortizing remainder both settle in the final
    # period: the balance must not reduce before then.
    balloon_amount = terms.principal * terms.balloon_fraction
    remainder = terms.principal - balloon_amount
    interest = terms.principal * terms.monthly_rate
    entries = []

    for period in range(1, terms.term_months + 1):
        is_final = period == terms.term_months
        principal_portion = balloon_amount + remainder if is_final else 0.0
        entries.append(
            CashFlowEntry(
                period_index=period,
                payment=interest + principal_portion,
                interest_portion=interest,
                principal_portion=principal_portion,
                remaining_balance=0.0 if is_final else terms.principal,
            )
        )

    return entries


def generate_schedule(terms: LoanTerms) -> CashFlowSchedule:
    """
    Generate the payment schedule for a loan.

    Args:
        terms: Loan parameters

    Returns:
        Schedule with one entry per month

    Raises:
        InvalidParameterError: If the terms fail validate_loan_terms
    """
    validate_loan_terms(terms)

    if terms.payment_type == PaymentType.INTEREST_ONLY:
        entries = _interest_only_entries(terms)
    elif terms.payment_type == PaymentType.AMORTIZING:
        entries = _amortizing_entries(terms)
    elif terms.payment_type == PaymentType.BALLOON:
        entries = _balloon_entries(terms)
    else:
        raise InvalidParameterError(f"Unsupported payment type: {terms.payment_type}")

    return CashFlowSchedule(terms=terms, entries=entries)


def schedule_cash_flows(terms: LoanTerms) -> List[float]:
    """Lender cash flows of a loan: the outlay followed by every payment."""
    return generate_schedule(terms).lender_cash_flows()
