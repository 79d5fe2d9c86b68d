# =============================================================================
# Unit Tests — 12-Month Cash Forecast
# =============================================================================

from __future__ import annotations

import pytest
from pydantic import ValidationError

from jurifly.services.forecast import (
    FORECAST_MONTHS,
    ForecastInput,
    OneTimeExpense,
    PlannedHire,
    build_forecast,
)


def _input(**overrides) -> ForecastInput:
    values = {
        "cash_balance": 1000,
        "monthly_revenue": 100,
        "monthly_expenses": 200,
        "revenue_growth_rate": 0,
    }
    values.update(overrides)
    return ForecastInput(**values)


class TestProjection:
    """Tests for the month-by-month arithmetic."""

    def test_twelve_months(self):
        result = build_forecast(_input())
        assert len(result.forecast) == FORECAST_MONTHS
        assert result.forecast[0].month == "Month 1"
        assert result.forecast[-1].month == "Month 12"

    def test_growth_compounds_from_month_one(self):
        result = build_forecast(_input(revenue_growth_rate=10))
        assert result.forecast[0].revenue == 110
        assert result.forecast[1].revenue == 121

    def test_hires_and_one_time_expenses(self):
        result = build_forecast(_input(
            new_hires=[PlannedHire(role="Engineer", monthly_salary=50, start_month=3)],
            one_time_expenses=[OneTimeExpense(item="Laptops", amount=30, month=2)],
        ))
        expenses = [month.expenses for month in result.forecast]
        assert expenses[:4] == [200, 230, 250, 250]
        assert expenses[-1] == 250

    def test_closing_balance_carries_over(self):
        result = build_forecast(_input())
        assert [m.closing_balance for m in result.forecast[:3]] == [900, 800, 700]
        assert all(m.profit == -100 for m in result.forecast)

    def test_rounds_half_up(self):
        result = build_forecast(_input(
            cash_balance=0, monthly_revenue=2.5, monthly_expenses=0,
        ))
        assert result.forecast[0].revenue == 3
        assert result.forecast[0].closing_balance == 3
        assert result.forecast[1].closing_balance == 5


class TestRunwayAndSummary:
    """Tests for runway detection and the summary text."""

    def test_runs_out_of_cash(self):
        result = build_forecast(_input())
        # Balance reaches exactly 0 in month 10 and goes negative in month 11
        assert result.runway_in_months == 11
        assert result.profitable_month is None
        assert "run out of cash in approximately 11 months" in result.summary
        assert "Immediate focus" in result.summary

    def test_runs_out_but_turns_profitable(self):
        result = build_forecast(_input(
            cash_balance=100, monthly_revenue=150, monthly_expenses=200,
            revenue_growth_rate=5,
        ))
        assert result.runway_in_months is not None
        assert result.profitable_month is not None
        assert "However, profitability is expected" in result.summary

    def test_profitable_with_stable_runway(self):
        result = build_forecast(_input(cash_balance=0, monthly_revenue=300))
        assert result.runway_in_months is None
        assert result.profitable_month == 1
        assert "profitable in month 1" in result.summary

    def test_break_even_without_profit(self):
        result = build_forecast(_input(cash_balance=10_000, monthly_revenue=200))
        assert result.runway_in_months is None
        assert result.profitable_month is None
        assert "does not reach profitability" in result.summary


class TestValidation:
    """Tests for the input model."""

    def test_start_month_within_forecast(self):
        with pytest.raises(ValidationError):
            PlannedHire(role="Engineer", monthly_salary=10, start_month=13)

    def test_growth_rate_bounded(self):
        with pytest.raises(ValidationError):
            _input(revenue_growth_rate=150)
