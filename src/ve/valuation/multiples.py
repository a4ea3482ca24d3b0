"""
Comparable multiples calculator.

Applies up to four market multiples to the company's own metrics,
averages whichever valuations could be computed and applies the
liquidity discount and control premium.
"""

from __future__ import annotations

import math

from ve.exceptions import DomainError
from ve.types import MultiplesInput
from ve.valuation.results import MultiplesResult, build_multiples_result

# (result field, multiple attribute, metric attribute)
MULTIPLE_PAIRS: tuple[tuple[str, str, str], ...] = (
    ("pe_valuation", "pe_multiple", "net_income"),
    ("ev_ebitda_valuation", "ev_ebitda_multiple", "ebitda"),
    ("pv_vp_valuation", "pv_vp_multiple", "book_value"),
    ("ev_revenue_valuation", "ev_revenue_multiple", "revenue"),
)


def pair_valuations(inputs: MultiplesInput) -> dict[str, float]:
    """Value the company with every complete multiple/metric pair.

    A pair contributes only when both members are present. A present zero
    counts and yields a zero valuation.
    """
    valuations: dict[str, float] = {}
    for field_name, multiple_attr, metric_attr in MULTIPLE_PAIRS:
        multiple = getattr(inputs, multiple_attr)
        metric = getattr(inputs, metric_attr)
        if multiple is not None and metric is not None:
            valuations[field_name] = multiple * metric
    return valuations


def apply_adjustments(
    average_valuation: float,
    liquidity_discount: float,
    control_premium: float,
) -> float:
    """average * (1 - liquidity discount) * (1 + control premium)."""
    return average_valuation * (1 - liquidity_discount) * (1 + control_premium)


def compute_multiples(inputs: MultiplesInput) -> MultiplesResult:
    """Run the multiples valuation on a validated input.

    The average is 0 when no pair is complete.

    Raises:
        DomainError: If a valuation overflows to a non-finite number.
    """
    valuations = pair_valuations(inputs)
    average = sum(valuations.values()) / len(valuations) if valuations else 0.0
    adjusted = apply_adjustments(average, inputs.liquidity_discount, inputs.control_premium)

    values = {**valuations, "average_valuation": average, "adjusted_valuation": adjusted}
    non_finite = sorted(name for name, value in values.items() if not math.isfinite(value))
    if non_finite:
        raise DomainError("Valuation is not a finite number", context={"fields": non_finite})

    return build_multiples_result(
        inputs,
        valuations=valuations,
        average_valuation=average,
        adjusted_valuation=adjusted,
    )
