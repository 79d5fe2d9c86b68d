# =============================================================================
# Financial Forecast — 12-Month Cash Projection
# =============================================================================
#
# Pure arithmetic, no model call: the projection must give the same numbers
# for the same assumptions.
#
# Per month m = 1..12:
#   revenue(m)  = revenue(m-1) × (1 + growth%)     (month 1 already grows)
#   expenses(m) = base expenses
#               + salaries of hires with start_month ≤ m
#               + one-time expenses booked in month m
#   profit(m)   = revenue(m) − expenses(m)
#   balance(m)  = balance(m-1) + profit(m)
#
# The runway is the first month whose closing balance is negative. Monthly
# figures are rounded half up to whole currency units for display only;
# the running totals keep full precision.
# =============================================================================

from __future__ import annotations

import math

from pydantic import BaseModel, Field

FORECAST_MONTHS = 12


class PlannedHire(BaseModel):
    role: str = Field(..., min_length=1)
    monthly_salary: float = Field(..., ge=0)
    start_month: int = Field(..., ge=1, le=FORECAST_MONTHS)


class OneTimeExpense(BaseModel):
    item: str = Field(..., min_length=1)
    amount: float = Field(..., ge=0)
    month: int = Field(..., ge=1, le=FORECAST_MONTHS)


class ForecastInput(BaseModel):
    """Current snapshot plus the plan for the next twelve months."""

    cash_balance: float
    monthly_revenue: float = Field(..., ge=0)
    monthly_expenses: float = Field(
        ..., ge=0, description="Current monthly expenses, excluding planned hires",
    )
    revenue_growth_rate: float = Field(
        ..., ge=0, le=100, description="Month-over-month revenue growth, in percent",
    )
    new_hires: list[PlannedHire] = Field(default_factory=list)
    one_time_expenses: list[OneTimeExpense] = Field(default_factory=list)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "cash_balance": 2_000_000,
                    "monthly_revenue": 150_000,
                    "monthly_expenses": 300_000,
                    "revenue_growth_rate": 8,
                    "new_hires": [
                        {"role": "Engineer", "monthly_salary": 120_000, "start_month": 3},
                    ],
                    "one_time_expenses": [
                        {"item": "Laptops", "amount": 200_000, "month": 3},
                    ],
                }
            ]
        }
    }


class MonthlyForecast(BaseModel):
    month: str
    revenue: int
    expenses: int
    profit: int
    closing_balance: int


class ForecastResult(BaseModel):
    forecast: list[MonthlyForecast]
    runway_in_months: int | None = Field(
        default=None,
        description="Month in which cash runs out; null if it lasts the whole forecast",
    )
    profitable_month: int | None = Field(
        default=None, description="First month with a positive profit",
    )
    summary: str


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _summarise(runway: int | None, profitable_month: int | None) -> str:
    if runway is not None:
        summary = (
            "Based on your assumptions, the company is projected to run out of "
            f"cash in approximately {runway} months."
        )
        if profitable_month is not None:
            return summary + (
                f" However, profitability is expected around month {profitable_month}, "
                "which could alter this outlook."
            )
        return summary + " Immediate focus on revenue growth or cost management is critical."

    if profitable_month is not None:
        return (
            f"The company is projected to become profitable in month {profitable_month}. "
            "The cash runway appears stable for the forecast period."
        )
    return (
        "The company does not reach profitability within the 12-month period, "
        "but the cash balance stays positive throughout the forecast."
    )


def build_forecast(data: ForecastInput) -> ForecastResult:
    revenue = data.monthly_revenue
    balance = data.cash_balance
    runway: int | None = None
    profitable_month: int | None = None
    months: list[MonthlyForecast] = []

    for month in range(1, FORECAST_MONTHS + 1):
        revenue *= 1 + data.revenue_growth_rate / 100

        salaries = sum(h.monthly_salary for h in data.new_hires if h.start_month <= month)
        one_off = sum(e.amount for e in data.one_time_expenses if e.month == month)
        expenses = data.monthly_expenses + salaries + one_off

        profit = revenue - expenses
        balance += profit

        months.append(MonthlyForecast(
            month=f"Month {month}",
            revenue=_round_half_up(revenue),
            expenses=_round_half_up(expenses),
            profit=_round_half_up(profit),
            closing_balance=_round_half_up(balance),
        ))

        if runway is None and balance < 0:
            runway = month
        if profitable_month is None and profit > 0:
            profitable_month = month

    return ForecastResult(
        forecast=months,
        runway_in_months=runway,
        profitable_month=profitable_month,
        summary=_summarise(runway, profitable_month),
    )
