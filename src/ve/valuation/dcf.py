"""
Deterministic DCF (Discounted Cash Flow) calculator.

Pure functions of a validated DcfInput: no state is kept between calls.

EBIT and EBITDA are the same quantity here; depreciation is not modelled
separately and must not be added back.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from ve.exceptions import DomainError
from ve.types import DcfInput
from ve.valuation.results import DcfResult, SensitivityMatrix, build_dcf_result

# Offsets applied to WACC (rows) and terminal growth (columns)
SENSITIVITY_DELTAS: tuple[float, ...] = (-0.01, -0.005, 0.0, 0.005, 0.01)


@dataclass(frozen=True)
class YearCashFlow:
    """Free cash flow build-up for one projection year."""

    year: int
    revenue: float
    costs: float
    operating_expenses: float
    ebit: float
    taxes: float
    nopat: float
    capex: float
    working_capital_change: float
    free_cash_flow: float

    @property
    def ebitda(self) -> float:
        """Same as EBIT (no depreciation line)."""
        return self.ebit


@dataclass(frozen=True)
class DiscountedValue:
    """Discounting of a cash flow stream at one WACC / growth pair."""

    wacc: float
    terminal_growth_rate: float
    present_values: list[float]
    terminal_value: float
    present_value_of_terminal_value: float
    enterprise_value: float
    equity_value: float


def calculate_wacc(
    cost_of_equity: float,
    equity_weight: float,
    cost_of_debt: float,
    debt_weight: float,
    tax_rate: float,
) -> float:
    """Calculate the after-tax Weighted Average Cost of Capital.

    WACC = Re * We + Rd * Wd * (1 - T)

    The weights are used as given; they are not renormalized to sum to 1.
    """
    return cost_of_equity * equity_weight + cost_of_debt * debt_weight * (1 - tax_rate)


def project_cash_flows(inputs: DcfInput) -> list[YearCashFlow]:
    """Build the free cash flow for each projection year.

    EBIT = revenue - costs - operating expenses
    NOPAT = EBIT - EBIT * tax rate
    FCF = NOPAT - capex - change in working capital
    """
    flows: list[YearCashFlow] = []
    for i in range(inputs.projection_years):
        ebit = inputs.revenues[i] - inputs.costs[i] - inputs.operating_expenses[i]
        taxes = ebit * inputs.tax_rate
        nopat = ebit - taxes
        fcf = nopat - inputs.capex[i] - inputs.working_capital_change[i]
        flows.append(
            YearCashFlow(
                year=i + 1,
                revenue=inputs.revenues[i],
                costs=inputs.costs[i],
                operating_expenses=inputs.operating_expenses[i],
                ebit=ebit,
                taxes=taxes,
                nopat=nopat,
                capex=inputs.capex[i],
                working_capital_change=inputs.working_capital_change[i],
                free_cash_flow=fcf,
            )
        )
    return flows


def discount_cash_flows(free_cash_flows: list[float], wacc: float) -> list[float]:
    """Discount each year's FCF; year 1 is discounted by one full period."""
    return [fcf / (1 + wacc) ** (i + 1) for i, fcf in enumerate(free_cash_flows)]


def calculate_terminal_value(
    final_free_cash_flow: float,
    wacc: float,
    terminal_growth_rate: float,
    context: dict[str, Any] | None = None,
) -> float:
    """Gordon growth terminal value from the last projected year.

    TV = FCF_n * (1 + g) / (WACC - g)

    Raises:
        DomainError: If WACC does not exceed the growth rate.
    """
    if wacc <= terminal_growth_rate:
        raise DomainError(
            "WACC must be greater than the terminal growth rate",
            context={
                "wacc": wacc,
                "terminal_growth_rate": terminal_growth_rate,
                **(context or {}),
            },
        )
    return final_free_cash_flow * (1 + terminal_growth_rate) / (wacc - terminal_growth_rate)


def discount_at(
    free_cash_flows: list[float],
    wacc: float,
    terminal_growth_rate: float,
    net_debt: float,
    context: dict[str, Any] | None = None,
) -> DiscountedValue:
    """Value a cash flow stream at one WACC / growth pair.

    Both the base case and every sensitivity cell go through here.

    Raises:
        DomainError: If the pair is degenerate or the result is not finite.
    """
    years = len(free_cash_flows)
    present_values = discount_cash_flows(free_cash_flows, wacc)
    terminal_value = calculate_terminal_value(
        free_cash_flows[-1], wacc, terminal_growth_rate, context
    )
    pv_terminal = terminal_value / (1 + wacc) ** years
    enterprise_value = sum(present_values) + pv_terminal
    equity_value = enterprise_value - net_debt

    if not (math.isfinite(enterprise_value) and math.isfinite(equity_value)):
        raise DomainError(
            "Valuation is not a finite number",
            context={
                "wacc": wacc,
                "terminal_growth_rate": terminal_growth_rate,
                **(context or {}),
            },
        )

    return DiscountedValue(
        wacc=wacc,
        terminal_growth_rate=terminal_growth_rate,
        present_values=present_values,
        terminal_value=terminal_value,
        present_value_of_terminal_value=pv_terminal,
        enterprise_value=enterprise_value,
        equity_value=equity_value,
    )


def sensitivity_analysis(
    free_cash_flows: list[float],
    wacc: float,
    terminal_growth_rate: float,
    net_debt: float,
    deltas: tuple[float, ...] = SENSITIVITY_DELTAS,
) -> SensitivityMatrix:
    """Recompute equity value over a WACC x terminal growth grid.

    Rows vary WACC and columns vary the growth rate by the same deltas;
    all other inputs are held fixed.

    Raises:
        DomainError: If any cell has WACC at or below its growth rate.
    """
    wacc_values = tuple(wacc + d for d in deltas)
    growth_values = tuple(terminal_growth_rate + d for d in deltas)

    rows: list[tuple[float, ...]] = []
    for r, adj_wacc in enumerate(wacc_values):
        row = []
        for c, adj_growth in enumerate(growth_values):
            cell = discount_at(
                free_cash_flows,
                adj_wacc,
                adj_growth,
                net_debt,
                context={"row": r, "column": c},
            )
            row.append(cell.equity_value)
        rows.append(tuple(row))

    return SensitivityMatrix(
        wacc_values=wacc_values,
        terminal_growth_values=growth_values,
        values=tuple(rows),
    )


def compute_dcf(inputs: DcfInput) -> DcfResult:
    """Run the full DCF on a validated input.

    Args:
        inputs: Validated DCF input.

    Returns:
        DcfResult including the 5x5 sensitivity matrix.

    Raises:
        DomainError: If WACC does not exceed the growth rate in the base case
            or in any sensitivity cell.
    """
    wacc = calculate_wacc(
        inputs.cost_of_equity,
        inputs.equity_weight,
        inputs.cost_of_debt,
        inputs.debt_weight,
        inputs.tax_rate,
    )
    free_cash_flows = [flow.free_cash_flow for flow in project_cash_flows(inputs)]

    base = discount_at(free_cash_flows, wacc, inputs.terminal_growth_rate, inputs.net_debt)
    sensitivity = sensitivity_analysis(
        free_cash_flows, wacc, inputs.terminal_growth_rate, inputs.net_debt
    )

    return build_dcf_result(
        inputs,
        wacc=wacc,
        free_cash_flows=free_cash_flows,
        present_values=base.present_values,
        terminal_value=base.terminal_value,
        present_value_of_terminal_value=base.present_value_of_terminal_value,
        enterprise_value=base.enterprise_value,
        equity_value=base.equity_value,
        sensitivity=sensitivity,
    )
