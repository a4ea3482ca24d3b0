"""Company valuation engine: DCF and comparable multiples."""

__version__ = "0.1.0"
