"""
Valuation result objects and the stable result contract.

Calculators hand their numeric outputs to build_dcf_result() /
build_multiples_result(), which attach the echoed assumptions. to_dict()
produces the camelCase payload returned to callers and stored with the
valuation record. No rounding happens here; presentation layers round.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar

from ve.types import DcfInput, MultiplesInput, ValuationMethod


@dataclass(frozen=True)
class SensitivityMatrix:
    """Equity values over a WACC (rows) x terminal growth (columns) grid."""

    wacc_values: tuple[float, ...]
    terminal_growth_values: tuple[float, ...]
    values: tuple[tuple[float, ...], ...]

    def value_at(self, row: int, column: int) -> float:
        """Equity value for a grid cell."""
        return self.values[row][column]

    @property
    def base_value(self) -> float:
        """The centre cell, i.e. the unadjusted case."""
        mid_row = len(self.wacc_values) // 2
        mid_col = len(self.terminal_growth_values) // 2
        return self.values[mid_row][mid_col]

    def rows(self) -> list[list[float]]:
        """Matrix as nested lists."""
        return [list(row) for row in self.values]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict."""
        return {
            "waccValues": list(self.wacc_values),
            "terminalGrowthValues": list(self.terminal_growth_values),
            "matrix": self.rows(),
        }


@dataclass(frozen=True)
class DcfAssumptions:
    """Assumptions echoed back with a DCF result."""

    projection_years: int
    cost_of_equity: float
    cost_of_debt: float
    tax_rate: float
    terminal_growth_rate: float
    debt_weight: float
    equity_weight: float
    net_debt: float

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict."""
        return {
            "projectionYears": self.projection_years,
            "costOfEquity": self.cost_of_equity,
            "costOfDebt": self.cost_of_debt,
            "taxRate": self.tax_rate,
            "terminalGrowthRate": self.terminal_growth_rate,
            "debtWeight": self.debt_weight,
            "equityWeight": self.equity_weight,
            "netDebt": self.net_debt,
        }


@dataclass(frozen=True)
class DcfResult:
    """Result of a DCF valuation."""

    method: ClassVar[ValuationMethod] = ValuationMethod.DCF

    wacc: float
    free_cash_flows: tuple[float, ...]
    present_values: tuple[float, ...]
    terminal_value: float
    present_value_of_terminal_value: float
    enterprise_value: float
    equity_value: float
    sensitivity: SensitivityMatrix
    assumptions: DcfAssumptions
    equity_value_per_share: float | None = None

    @property
    def sum_of_present_values(self) -> float:
        """Present value of the explicit projection period."""
        return sum(self.present_values)

    @property
    def discount_factors(self) -> list[float]:
        """Per-year discount factors 1 / (1 + wacc)^(i + 1)."""
        return [1 / (1 + self.wacc) ** (i + 1) for i in range(len(self.free_cash_flows))]

    @property
    def terminal_value_share(self) -> float | None:
        """Fraction of enterprise value coming from the terminal value."""
        if self.enterprise_value == 0:
            return None
        return self.present_value_of_terminal_value / self.enterprise_value

    def to_dict(self) -> dict[str, Any]:
        """Convert to the result contract."""
        data: dict[str, Any] = {
            "wacc": self.wacc,
            "freeCashFlows": list(self.free_cash_flows),
            "presentValues": list(self.present_values),
            "terminalValue": self.terminal_value,
            "presentValueOfTerminalValue": self.present_value_of_terminal_value,
            "enterpriseValue": self.enterprise_value,
            "equityValue": self.equity_value,
            "sensitivityMatrix": self.sensitivity.rows(),
            "sensitivity": self.sensitivity.to_dict(),
            "assumptions": self.assumptions.to_dict(),
        }
        if self.equity_value_per_share is not None:
            data["equityValuePerShare"] = self.equity_value_per_share
        return data

    def record_values(self) -> dict[str, Any]:
        """Values persisted on the valuation record."""
        return {
            "enterprise_value": self.enterprise_value,
            "equity_value": self.equity_value,
            "sensitivity_data": {"dcf": self.sensitivity.rows()},
        }


# Result field name -> wire key, in display order
MULTIPLE_VALUATION_FIELDS: tuple[tuple[str, str], ...] = (
    ("pe_valuation", "peValuation"),
    ("ev_ebitda_valuation", "evEbitdaValuation"),
    ("pv_vp_valuation", "pvVpValuation"),
    ("ev_revenue_valuation", "evRevenueValuation"),
)


@dataclass(frozen=True)
class MultiplesResult:
    """Result of a comparable multiples valuation.

    A per-multiple valuation is None when its multiple/metric pair was
    incomplete; it is then left out of the contract entirely.
    """

    method: ClassVar[ValuationMethod] = ValuationMethod.MULTIPLES

    average_valuation: float
    adjusted_valuation: float
    liquidity_discount: float
    control_premium: float
    pe_valuation: float | None = None
    ev_ebitda_valuation: float | None = None
    pv_vp_valuation: float | None = None
    ev_revenue_valuation: float | None = None
    comparables_sources: str | None = None

    @property
    def valuations(self) -> dict[str, float]:
        """Computed per-multiple valuations keyed by wire name."""
        found: dict[str, float] = {}
        for attr, wire in MULTIPLE_VALUATION_FIELDS:
            value = getattr(self, attr)
            if value is not None:
                found[wire] = value
        return found

    def to_dict(self) -> dict[str, Any]:
        """Convert to the result contract."""
        data: dict[str, Any] = dict(self.valuations)
        data["averageValuation"] = self.average_valuation
        data["adjustedValuation"] = self.adjusted_valuation
        data["adjustments"] = {
            "liquidityDiscount": self.liquidity_discount,
            "controlPremium": self.control_premium,
        }
        if self.comparables_sources is not None:
            data["comparablesSources"] = self.comparables_sources
        return data

    def record_values(self) -> dict[str, Any]:
        """Values persisted on the valuation record.

        Enterprise and equity value are both the adjusted valuation.
        """
        return {
            "enterprise_value": self.adjusted_valuation,
            "equity_value": self.adjusted_valuation,
            "sensitivity_data": None,
        }


ValuationResult = DcfResult | MultiplesResult


def build_dcf_result(
    inputs: DcfInput,
    *,
    wacc: float,
    free_cash_flows: list[float],
    present_values: list[float],
    terminal_value: float,
    present_value_of_terminal_value: float,
    enterprise_value: float,
    equity_value: float,
    sensitivity: SensitivityMatrix,
) -> DcfResult:
    """Assemble a DcfResult from calculator outputs and echoed inputs."""
    per_share = None
    if inputs.shares_outstanding:
        per_share = equity_value / inputs.shares_outstanding

    return DcfResult(
        wacc=wacc,
        free_cash_flows=tuple(free_cash_flows),
        present_values=tuple(present_values),
        terminal_value=terminal_value,
        present_value_of_terminal_value=present_value_of_terminal_value,
        enterprise_value=enterprise_value,
        equity_value=equity_value,
        sensitivity=sensitivity,
        assumptions=DcfAssumptions(
            projection_years=inputs.projection_years,
            cost_of_equity=inputs.cost_of_equity,
            cost_of_debt=inputs.cost_of_debt,
            tax_rate=inputs.tax_rate,
            terminal_growth_rate=inputs.terminal_growth_rate,
            debt_weight=inputs.debt_weight,
            equity_weight=inputs.equity_weight,
            net_debt=inputs.net_debt,
        ),
        equity_value_per_share=per_share,
    )


def build_multiples_result(
    inputs: MultiplesInput,
    *,
    valuations: dict[str, float],
    average_valuation: float,
    adjusted_valuation: float,
) -> MultiplesResult:
    """Assemble a MultiplesResult.

    Args:
        inputs: The validated input, for echoed adjustment factors.
        valuations: Computed valuations keyed by result field name
            (e.g. "ev_ebitda_valuation").
        average_valuation: Mean of the computed valuations.
        adjusted_valuation: Average after liquidity/control adjustments.
    """
    return MultiplesResult(
        average_valuation=average_valuation,
        adjusted_valuation=adjusted_valuation,
        liquidity_discount=inputs.liquidity_discount,
        control_premium=inputs.control_premium,
        comparables_sources=inputs.comparables_sources,
        **valuations,
    )
