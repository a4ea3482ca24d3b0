"""Tests for the comparable multiples calculator."""

from __future__ import annotations

from typing import Any

import pytest

from ve.exceptions import DomainError
from ve.types import MultiplesInput
from ve.valuation.engine import calculate_multiples
from ve.valuation.multiples import apply_adjustments, compute_multiples, pair_valuations


class TestPairValuations:
    """Tests for per-multiple valuations."""

    def test_all_pairs(self, multiples_data: dict[str, Any]) -> None:
        """Test every complete pair produces multiple * metric."""
        result = calculate_multiples(multiples_data)

        assert result.pe_valuation == pytest.approx(1_000_000.0)
        assert result.ev_ebitda_valuation == pytest.approx(1_200_000.0)
        assert result.pv_vp_valuation == pytest.approx(1_200_000.0)
        assert result.ev_revenue_valuation == pytest.approx(1_200_000.0)

    def test_incomplete_pair_skipped(self) -> None:
        """Test a multiple without its metric does not contribute."""
        inputs = MultiplesInput(pe_multiple=10.0, ev_ebitda_multiple=6.0, ebitda=50.0)

        assert pair_valuations(inputs) == {"ev_ebitda_valuation": 300.0}

    def test_zero_multiple_counts(self) -> None:
        """Test a present zero contributes a zero valuation."""
        inputs = MultiplesInput(
            pe_multiple=0.0, net_income=100.0, ev_revenue_multiple=2.0, revenue=100.0
        )

        valuations = pair_valuations(inputs)
        assert valuations == {"pe_valuation": 0.0, "ev_revenue_valuation": 200.0}

    def test_negative_metric_gives_negative_valuation(self) -> None:
        """Test no floor is applied to a loss-making metric."""
        result = calculate_multiples({"peMultiple": 10, "netIncome": -5})

        assert result.pe_valuation == pytest.approx(-50.0)
        assert result.average_valuation == pytest.approx(-50.0)


class TestAverageAndAdjustments:
    """Tests for averaging and liquidity / control adjustments."""

    def test_average_over_present_pairs_only(self, multiples_data: dict[str, Any]) -> None:
        """Test the average divides by the number of computed valuations."""
        result = calculate_multiples(multiples_data)

        assert result.average_valuation == pytest.approx(1_150_000.0)
        assert result.adjusted_valuation == pytest.approx(1_242_000.0)

    def test_single_pair_average(self) -> None:
        """Test a single pair's valuation is the average."""
        result = calculate_multiples({"evEbitdaMultiple": 8, "ebitda": 125_000})

        assert result.valuations == {"evEbitdaValuation": 1_000_000.0}
        assert result.average_valuation == pytest.approx(1_000_000.0)
        assert result.adjusted_valuation == pytest.approx(1_000_000.0)

    def test_adjustment_formula(self) -> None:
        """Test avg * (1 - discount) * (1 + premium)."""
        assert apply_adjustments(1_000_000.0, 0.1, 0.2) == pytest.approx(1_080_000.0)
        assert apply_adjustments(1_000_000.0, 0.0, 0.0) == 1_000_000.0
        assert apply_adjustments(1_000_000.0, 1.0, 0.5) == 0.0

    def test_no_pairs_gives_zero(self) -> None:
        """Test no complete pair yields 0, not an error."""
        result = calculate_multiples({"peMultiple": 10, "liquidityDiscount": 0.3})

        assert result.valuations == {}
        assert result.average_valuation == 0.0
        assert result.adjusted_valuation == 0.0

    def test_overflow_raises_domain_error(self) -> None:
        """Test a valuation too large for a float is rejected."""
        with pytest.raises(DomainError) as exc_info:
            calculate_multiples({"peMultiple": 1e200, "netIncome": 1e200})

        assert "finite" in exc_info.value.message
        assert "pe_valuation" in exc_info.value.context["fields"]
        assert "average_valuation" in exc_info.value.context["fields"]

    def test_adjustments_echoed(self, multiples_data: dict[str, Any]) -> None:
        """Test the result carries the applied factors."""
        result = calculate_multiples(multiples_data)

        assert result.liquidity_discount == 0.1
        assert result.control_premium == 0.2
        assert result.comparables_sources == "Listed peers, sector report"

    def test_accepts_multiples_input_object(self) -> None:
        """Test the engine accepts an already-built MultiplesInput."""
        inputs = MultiplesInput(
            pv_vp_multiple=2.0, book_value=500.0, liquidity_discount=0.1, control_premium=0.2
        )

        assert calculate_multiples(inputs) == compute_multiples(inputs)
        assert calculate_multiples(inputs).adjusted_valuation == pytest.approx(1080.0)
