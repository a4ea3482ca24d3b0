"""
Core types for the valuation engine.

This module defines the fundamental data structures used throughout the system:
- Enums for valuation methods and record status
- Frozen dataclasses for validated calculator inputs (DcfInput, MultiplesInput)
- ValuationRecord, the persisted form of a company valuation
- Helper functions for ID generation and timestamps
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from uuid6 import uuid7


def generate_id(prefix: str = "") -> str:
    """Generate a time-ordered unique ID using UUID7.

    Args:
        prefix: Optional prefix for the ID (e.g., "val")

    Returns:
        A unique ID string, optionally prefixed.
    """
    uid = str(uuid7())
    return f"{prefix}_{uid}" if prefix else uid


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class ValuationMethod(str, Enum):
    """Supported valuation methods."""

    DCF = "dcf"
    MULTIPLES = "multiples"


class ValuationStatus(str, Enum):
    """Lifecycle status of a stored valuation."""

    DRAFT = "draft"
    COMPLETED = "completed"


@dataclass(frozen=True)
class DcfInput:
    """Validated inputs for a discounted cash flow valuation.

    The five per-year series all have ``projection_years`` entries;
    index 0 is the first projected year.
    """

    revenues: tuple[float, ...]
    costs: tuple[float, ...]
    operating_expenses: tuple[float, ...]
    capex: tuple[float, ...]
    working_capital_change: tuple[float, ...]

    cost_of_equity: float
    cost_of_debt: float
    tax_rate: float
    debt_weight: float
    equity_weight: float
    terminal_growth_rate: float

    projection_years: int = 5
    net_debt: float = 0.0
    shares_outstanding: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase wire form."""
        data: dict[str, Any] = {
            "projectionYears": self.projection_years,
            "revenues": list(self.revenues),
            "costs": list(self.costs),
            "operatingExpenses": list(self.operating_expenses),
            "capex": list(self.capex),
            "workingCapitalChange": list(self.working_capital_change),
            "costOfEquity": self.cost_of_equity,
            "costOfDebt": self.cost_of_debt,
            "taxRate": self.tax_rate,
            "debtWeight": self.debt_weight,
            "equityWeight": self.equity_weight,
            "terminalGrowthRate": self.terminal_growth_rate,
            "netDebt": self.net_debt,
        }
        if self.shares_outstanding is not None:
            data["sharesOutstanding"] = self.shares_outstanding
        return data


@dataclass(frozen=True)
class MultiplesInput:
    """Validated inputs for a comparable multiples valuation.

    Each multiple is paired with the company metric it applies to; a pair
    only contributes when both members are present.
    """

    pe_multiple: float | None = None
    net_income: float | None = None
    ev_ebitda_multiple: float | None = None
    ebitda: float | None = None
    pv_vp_multiple: float | None = None
    book_value: float | None = None
    ev_revenue_multiple: float | None = None
    revenue: float | None = None

    liquidity_discount: float = 0.0
    control_premium: float = 0.0
    comparables_sources: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase wire form, dropping absent values."""
        data: dict[str, Any] = {
            "peMultiple": self.pe_multiple,
            "netIncome": self.net_income,
            "evEbitdaMultiple": self.ev_ebitda_multiple,
            "ebitda": self.ebitda,
            "pvVpMultiple": self.pv_vp_multiple,
            "bookValue": self.book_value,
            "evRevenueMultiple": self.ev_revenue_multiple,
            "revenue": self.revenue,
            "comparablesSources": self.comparables_sources,
        }
        data = {k: v for k, v in data.items() if v is not None}
        data["liquidityDiscount"] = self.liquidity_discount
        data["controlPremium"] = self.control_premium
        return data


@dataclass
class ValuationRecord:
    """A stored company valuation.

    Created as a draft holding raw method inputs; a successful calculation
    fills in the values and result and marks it completed.
    """

    id: str
    company_id: int
    method: ValuationMethod
    status: ValuationStatus = ValuationStatus.DRAFT
    user_id: int | None = None
    inputs: dict[str, Any] = field(default_factory=dict)
    notes: str | None = None

    enterprise_value: float | None = None
    equity_value: float | None = None
    sensitivity_data: dict[str, Any] | None = None
    result: dict[str, Any] | None = None

    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def is_completed(self) -> bool:
        """Whether a calculation result has been recorded."""
        return self.status == ValuationStatus.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase wire form."""
        return {
            "id": self.id,
            "companyId": self.company_id,
            "userId": self.user_id,
            "method": self.method.value,
            "status": self.status.value,
            "inputs": self.inputs,
            "notes": self.notes,
            "enterpriseValue": self.enterprise_value,
            "equityValue": self.equity_value,
            "sensitivityData": self.sensitivity_data,
            "result": self.result,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }
