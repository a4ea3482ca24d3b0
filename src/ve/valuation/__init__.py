"""Deterministic valuation engine: DCF and comparable multiples."""

from ve.valuation.engine import calculate, calculate_dcf, calculate_multiples
from ve.valuation.excel_export import ValuationExporter
from ve.valuation.results import (
    DcfResult,
    MultiplesResult,
    SensitivityMatrix,
    ValuationResult,
)
from ve.valuation.validation import validate_dcf_input, validate_multiples_input

__all__ = [
    "DcfResult",
    "MultiplesResult",
    "SensitivityMatrix",
    "ValuationExporter",
    "ValuationResult",
    "calculate",
    "calculate_dcf",
    "calculate_multiples",
    "validate_dcf_input",
    "validate_multiples_input",
]
