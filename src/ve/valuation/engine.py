"""
Valuation engine entry points.

calculate_dcf() and calculate_multiples() validate raw input, run the
matching calculator and return the result object. They are stateless and
safe to call concurrently; persistence belongs to the caller.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ve.exceptions import DomainError
from ve.logging import get_logger
from ve.types import DcfInput, MultiplesInput, ValuationMethod
from ve.valuation.dcf import compute_dcf
from ve.valuation.multiples import compute_multiples
from ve.valuation.results import DcfResult, MultiplesResult, ValuationResult
from ve.valuation.validation import validate_dcf_input, validate_multiples_input

logger = get_logger(__name__)


def calculate_dcf(
    data: Mapping[str, Any] | DcfInput,
    *,
    default_projection_years: int = 5,
) -> DcfResult:
    """Validate and run a DCF valuation.

    Args:
        data: Raw input mapping, or a DcfInput (re-validated).
        default_projection_years: Horizon used when the input omits it.

    Returns:
        DcfResult.

    Raises:
        ValidationError: If the input violates any constraint.
        DomainError: If WACC does not exceed terminal growth in the base case
            or in any sensitivity cell.
    """
    raw = data.to_dict() if isinstance(data, DcfInput) else data
    inputs = validate_dcf_input(raw, default_projection_years=default_projection_years)
    logger.debug("Running DCF", projection_years=inputs.projection_years)

    try:
        result = compute_dcf(inputs)
    except DomainError as e:
        logger.warning("DCF is undefined for these inputs", **e.context)
        raise

    logger.info(
        "DCF complete",
        wacc=result.wacc,
        enterprise_value=result.enterprise_value,
        equity_value=result.equity_value,
    )
    return result


def calculate_multiples(data: Mapping[str, Any] | MultiplesInput) -> MultiplesResult:
    """Validate and run a comparable multiples valuation.

    Args:
        data: Raw input mapping, or a MultiplesInput (re-validated).

    Returns:
        MultiplesResult.

    Raises:
        ValidationError: If the input violates any constraint.
        DomainError: If a valuation overflows to a non-finite number.
    """
    raw = data.to_dict() if isinstance(data, MultiplesInput) else data
    inputs = validate_multiples_input(raw)

    try:
        result = compute_multiples(inputs)
    except DomainError as e:
        logger.warning("Multiples valuation is undefined for these inputs", **e.context)
        raise

    logger.info(
        "Multiples valuation complete",
        multiples_used=len(result.valuations),
        average_valuation=result.average_valuation,
        adjusted_valuation=result.adjusted_valuation,
    )
    return result


def calculate(
    method: ValuationMethod | str,
    data: Mapping[str, Any],
    *,
    default_projection_years: int = 5,
) -> ValuationResult:
    """Dispatch to the calculator for a valuation method."""
    method = ValuationMethod(method)
    if method == ValuationMethod.DCF:
        return calculate_dcf(data, default_projection_years=default_projection_years)
    return calculate_multiples(data)
