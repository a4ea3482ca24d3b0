"""
Input validation for the valuation calculators.

Turns raw request data (camelCase wire keys or snake_case keys) into
validated DcfInput / MultiplesInput objects. Every violated constraint is
collected and reported together in a single ValidationError; out-of-range
values are rejected, never clamped.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from ve.exceptions import FieldViolation, ValidationError
from ve.types import DcfInput, MultiplesInput

MIN_PROJECTION_YEARS = 3
MAX_PROJECTION_YEARS = 15
MAX_TERMINAL_GROWTH_RATE = 0.1

DCF_SERIES: tuple[tuple[str, str], ...] = (
    ("revenues", "revenues"),
    ("costs", "costs"),
    ("operating_expenses", "operatingExpenses"),
    ("capex", "capex"),
    ("working_capital_change", "workingCapitalChange"),
)

_SERIES_WIRE_NAMES = dict(DCF_SERIES)

DCF_FRACTIONS: tuple[tuple[str, str], ...] = (
    ("cost_of_equity", "costOfEquity"),
    ("cost_of_debt", "costOfDebt"),
    ("tax_rate", "taxRate"),
    ("debt_weight", "debtWeight"),
    ("equity_weight", "equityWeight"),
)

MULTIPLES_VALUES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("pe_multiple", ("peMultiple", "peLuMultiple")),
    ("net_income", ("netIncome",)),
    ("ev_ebitda_multiple", ("evEbitdaMultiple",)),
    ("ebitda", ("ebitda",)),
    ("pv_vp_multiple", ("pvVpMultiple",)),
    ("book_value", ("bookValue",)),
    ("ev_revenue_multiple", ("evRevenueMultiple",)),
    ("revenue", ("revenue",)),
)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _lookup(raw: Mapping[str, Any], keys: tuple[str, ...]) -> tuple[str, Any]:
    """Find the first key present in raw.

    Returns the key that was used (the first wire alias when none is
    present) and its value, or None when missing.
    """
    for key in keys:
        if key in raw:
            return key, raw[key]
    label = keys[1] if len(keys) > 1 else keys[0]
    return label, None


class _Checker:
    """Accumulates violations while reading fields."""

    def __init__(self, raw: Mapping[str, Any]) -> None:
        self.raw = raw
        self.violations: list[FieldViolation] = []

    def fail(self, field: str, message: str) -> None:
        self.violations.append(FieldViolation(field, message))

    def number(
        self,
        keys: tuple[str, ...],
        *,
        required: bool,
        minimum: float | None = None,
        maximum: float | None = None,
        exclusive_minimum: bool = False,
    ) -> float | None:
        label, value = _lookup(self.raw, keys)
        if value is None:
            if required:
                self.fail(label, "is required")
            return None
        if not _is_number(value) or not math.isfinite(value):
            self.fail(label, f"must be a finite number, got {value!r}")
            return None
        if minimum is not None:
            too_low = value <= minimum if exclusive_minimum else value < minimum
            if too_low:
                op = ">" if exclusive_minimum else ">="
                self.fail(label, f"must be {op} {minimum}, got {value}")
                return None
        if maximum is not None and value > maximum:
            self.fail(label, f"must be <= {maximum}, got {value}")
            return None
        return float(value)

    def fraction(self, keys: tuple[str, ...], *, required: bool) -> float | None:
        return self.number(keys, required=required, minimum=0.0, maximum=1.0)

    def series(self, keys: tuple[str, ...]) -> tuple[float, ...] | None:
        label, value = _lookup(self.raw, keys)
        if value is None:
            self.fail(label, "is required")
            return None
        if not isinstance(value, (list, tuple)):
            self.fail(label, "must be a list of numbers")
            return None
        bad = [i for i, v in enumerate(value) if not _is_number(v) or not math.isfinite(v)]
        if bad:
            self.fail(label, f"entries at positions {bad} must be finite numbers")
            return None
        return tuple(float(v) for v in value)

    def raise_if_failed(self, message: str) -> None:
        if self.violations:
            raise ValidationError(message, self.violations)


def _read_projection_years(check: _Checker, default: int) -> int | None:
    label, value = _lookup(check.raw, ("projection_years", "projectionYears"))
    if value is None:
        return default
    if not _is_number(value) or not math.isfinite(value) or not float(value).is_integer():
        check.fail(label, f"must be an integer, got {value!r}")
        return None
    years = int(value)
    if not MIN_PROJECTION_YEARS <= years <= MAX_PROJECTION_YEARS:
        check.fail(
            label,
            f"must be between {MIN_PROJECTION_YEARS} and {MAX_PROJECTION_YEARS}, got {years}",
        )
        return None
    return years


def validate_dcf_input(
    raw: Mapping[str, Any],
    *,
    default_projection_years: int = 5,
) -> DcfInput:
    """Validate raw DCF input.

    Args:
        raw: Mapping with camelCase or snake_case keys.
        default_projection_years: Horizon used when the input omits it.

    Returns:
        The validated DcfInput.

    Raises:
        ValidationError: Listing every violated constraint.
    """
    if not isinstance(raw, Mapping):
        raise ValidationError(
            "Invalid DCF input",
            [FieldViolation("dcfData", "must be an object")],
        )

    check = _Checker(raw)
    years = _read_projection_years(check, default_projection_years)

    series: dict[str, tuple[float, ...]] = {}
    for attr, wire in DCF_SERIES:
        values = check.series((attr, wire))
        if values is not None:
            series[attr] = values

    lengths = {attr: len(values) for attr, values in series.items()}
    if len(set(lengths.values())) > 1:
        detail = ", ".join(f"{_SERIES_WIRE_NAMES[a]}={n}" for a, n in lengths.items())
        check.fail("series", f"per-year series have unequal lengths ({detail})")
    if years is not None:
        for attr, n in lengths.items():
            if n != years:
                check.fail(
                    _SERIES_WIRE_NAMES[attr],
                    f"expected {years} entries (projectionYears), got {n}",
                )

    rates: dict[str, float | None] = {}
    for attr, wire in DCF_FRACTIONS:
        rates[attr] = check.fraction((attr, wire), required=True)
    terminal_growth = check.number(
        ("terminal_growth_rate", "terminalGrowthRate"),
        required=True,
        minimum=0.0,
        maximum=MAX_TERMINAL_GROWTH_RATE,
    )
    net_debt = check.number(("net_debt", "netDebt"), required=False)
    shares = check.number(
        ("shares_outstanding", "sharesOutstanding"),
        required=False,
        minimum=0.0,
        exclusive_minimum=True,
    )

    check.raise_if_failed("Invalid DCF input")

    return DcfInput(
        revenues=series["revenues"],
        costs=series["costs"],
        operating_expenses=series["operating_expenses"],
        capex=series["capex"],
        working_capital_change=series["working_capital_change"],
        cost_of_equity=rates["cost_of_equity"],
        cost_of_debt=rates["cost_of_debt"],
        tax_rate=rates["tax_rate"],
        debt_weight=rates["debt_weight"],
        equity_weight=rates["equity_weight"],
        terminal_growth_rate=terminal_growth,
        projection_years=years,
        net_debt=net_debt if net_debt is not None else 0.0,
        shares_outstanding=shares,
    )


def validate_multiples_input(raw: Mapping[str, Any]) -> MultiplesInput:
    """Validate raw comparable multiples input.

    Args:
        raw: Mapping with camelCase or snake_case keys. ``peLuMultiple`` is
            accepted as an alias of ``peMultiple``.

    Returns:
        The validated MultiplesInput.

    Raises:
        ValidationError: Listing every violated constraint.
    """
    if not isinstance(raw, Mapping):
        raise ValidationError(
            "Invalid multiples input",
            [FieldViolation("multiplesData", "must be an object")],
        )

    check = _Checker(raw)

    values: dict[str, float | None] = {}
    for attr, aliases in MULTIPLES_VALUES:
        values[attr] = check.number((attr, *aliases), required=False)

    liquidity = check.fraction(("liquidity_discount", "liquidityDiscount"), required=False)
    control = check.fraction(("control_premium", "controlPremium"), required=False)

    label, sources = _lookup(raw, ("comparables_sources", "comparablesSources"))
    if sources is not None and not isinstance(sources, str):
        check.fail(label, "must be text")
        sources = None

    check.raise_if_failed("Invalid multiples input")

    return MultiplesInput(
        **values,
        liquidity_discount=liquidity if liquidity is not None else 0.0,
        control_premium=control if control is not None else 0.0,
        comparables_sources=sources,
    )
