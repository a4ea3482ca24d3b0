"""Tests for the DCF calculator."""

from __future__ import annotations

import math
from typing import Any

import pytest

from ve.exceptions import DomainError, ValidationError
from ve.types import DcfInput
from ve.valuation.dcf import (
    SENSITIVITY_DELTAS,
    calculate_terminal_value,
    calculate_wacc,
    compute_dcf,
    discount_cash_flows,
    project_cash_flows,
    sensitivity_analysis,
)
from ve.valuation.engine import calculate_dcf
from ve.valuation.validation import validate_dcf_input

# Pinned for the three-year constant cash flow scenario in conftest.dcf_data
GOLDEN_WACC = 0.09588
GOLDEN_ENTERPRISE_VALUE = 3777.987229448564


class TestWACC:
    """Tests for WACC calculation."""

    def test_wacc_formula(self) -> None:
        """Test WACC = Re*We + Rd*Wd*(1-T)."""
        wacc = calculate_wacc(
            cost_of_equity=0.12,
            equity_weight=0.7,
            cost_of_debt=0.06,
            debt_weight=0.3,
            tax_rate=0.34,
        )

        # 0.084 + 0.06 * 0.3 * 0.66 = 0.084 + 0.01188
        assert wacc == pytest.approx(GOLDEN_WACC)

    def test_weights_are_not_renormalized(self) -> None:
        """Test weights summing to more than 1 are used as given."""
        wacc = calculate_wacc(
            cost_of_equity=0.10,
            equity_weight=0.8,
            cost_of_debt=0.05,
            debt_weight=0.6,
            tax_rate=0.25,
        )

        # Renormalized weights would give 0.10*0.8/1.4 + 0.05*0.6/1.4*0.75
        assert wacc == pytest.approx(0.10 * 0.8 + 0.05 * 0.6 * 0.75)
        assert wacc == pytest.approx(0.1025)

    def test_tax_shield_applies_to_debt_only(self) -> None:
        """Test tax rate does not reduce the equity component."""
        no_tax = calculate_wacc(0.10, 1.0, 0.05, 0.0, 0.0)
        taxed = calculate_wacc(0.10, 1.0, 0.05, 0.0, 0.5)

        assert no_tax == taxed == pytest.approx(0.10)


class TestCashFlows:
    """Tests for per-year free cash flow."""

    def test_fcf_build_up(self, dcf_data: dict[str, Any]) -> None:
        """Test EBIT, taxes, NOPAT and FCF for one year."""
        inputs = validate_dcf_input(dcf_data)
        flows = project_cash_flows(inputs)

        assert len(flows) == 3
        first = flows[0]
        assert first.year == 1
        assert first.ebit == pytest.approx(500.0)
        assert first.taxes == pytest.approx(170.0)
        assert first.nopat == pytest.approx(330.0)
        assert first.free_cash_flow == pytest.approx(280.0)

    def test_ebitda_equals_ebit(self, dcf_data: dict[str, Any]) -> None:
        """Test depreciation is not modelled separately."""
        inputs = validate_dcf_input(dcf_data)

        for flow in project_cash_flows(inputs):
            assert flow.ebitda == flow.ebit

    def test_working_capital_change_reduces_fcf(self, dcf_data: dict[str, Any]) -> None:
        """Test working capital investment is subtracted."""
        dcf_data["workingCapitalChange"] = [10, 20, 30]
        inputs = validate_dcf_input(dcf_data)

        fcfs = [f.free_cash_flow for f in project_cash_flows(inputs)]
        assert fcfs == pytest.approx([270.0, 260.0, 250.0])

    def test_negative_ebit_gives_negative_taxes(self, dcf_data: dict[str, Any]) -> None:
        """Test a loss year produces a tax credit rather than zero tax."""
        dcf_data["costs"] = [1000, 400, 400]
        inputs = validate_dcf_input(dcf_data)

        first = project_cash_flows(inputs)[0]
        assert first.ebit == pytest.approx(-100.0)
        assert first.taxes == pytest.approx(-34.0)


class TestDiscounting:
    """Tests for present value calculation."""

    def test_year_one_discounted_one_full_period(self) -> None:
        """Test year 1 uses exponent 1, not 0."""
        pvs = discount_cash_flows([110.0, 121.0], 0.10)

        assert pvs[0] == pytest.approx(100.0)
        assert pvs[0] != pytest.approx(110.0)
        assert pvs[1] == pytest.approx(100.0)

    def test_terminal_value_gordon_growth(self) -> None:
        """Test TV = FCF * (1 + g) / (wacc - g)."""
        tv = calculate_terminal_value(100.0, 0.10, 0.02)
        assert tv == pytest.approx(102.0 / 0.08)

    def test_terminal_value_rejects_wacc_equal_growth(self) -> None:
        """Test wacc == g raises instead of dividing by zero."""
        with pytest.raises(DomainError) as exc_info:
            calculate_terminal_value(100.0, 0.05, 0.05)

        assert exc_info.value.context["wacc"] == 0.05
        assert exc_info.value.context["terminal_growth_rate"] == 0.05

    def test_terminal_value_rejects_wacc_below_growth(self) -> None:
        """Test wacc < g raises instead of returning a negative value."""
        with pytest.raises(DomainError):
            calculate_terminal_value(100.0, 0.03, 0.05)


class TestComputeDCF:
    """Tests for the full DCF."""

    def test_golden_scenario(self, dcf_data: dict[str, Any]) -> None:
        """Test the pinned three-year scenario."""
        result = calculate_dcf(dcf_data)

        assert result.wacc == pytest.approx(GOLDEN_WACC, rel=1e-12)
        assert result.free_cash_flows == pytest.approx((280.0, 280.0, 280.0))
        assert result.present_values == pytest.approx(
            (255.502427273059, 233.148179794374, 212.749735184851), rel=1e-9
        )
        assert result.terminal_value == pytest.approx(4049.097065462754, rel=1e-9)
        assert result.present_value_of_terminal_value == pytest.approx(
            3076.586887196279, rel=1e-9
        )
        assert result.enterprise_value == pytest.approx(GOLDEN_ENTERPRISE_VALUE, rel=1e-9)
        assert result.equity_value == pytest.approx(GOLDEN_ENTERPRISE_VALUE, rel=1e-9)

    def test_deterministic(self, dcf_data: dict[str, Any]) -> None:
        """Test repeated runs give identical results."""
        assert calculate_dcf(dcf_data) == calculate_dcf(dcf_data)

    def test_enterprise_value_is_sum_of_parts(self, dcf_data: dict[str, Any]) -> None:
        """Test EV = sum of PVs + PV of terminal value."""
        result = calculate_dcf(dcf_data)

        assert result.enterprise_value == pytest.approx(
            sum(result.present_values) + result.present_value_of_terminal_value
        )

    def test_net_debt_reduces_equity_value(self, dcf_data: dict[str, Any]) -> None:
        """Test equity = EV - net debt."""
        dcf_data["netDebt"] = 500
        result = calculate_dcf(dcf_data)

        assert result.equity_value == pytest.approx(result.enterprise_value - 500)
        assert result.enterprise_value == pytest.approx(GOLDEN_ENTERPRISE_VALUE, rel=1e-9)

    def test_net_debt_defaults_to_zero(self, dcf_data: dict[str, Any]) -> None:
        """Test a missing net debt leaves equity equal to EV."""
        del dcf_data["netDebt"]
        result = calculate_dcf(dcf_data)

        assert result.equity_value == result.enterprise_value
        assert result.assumptions.net_debt == 0.0

    def test_equity_value_per_share(self, dcf_data: dict[str, Any]) -> None:
        """Test per-share value is present only with shares outstanding."""
        assert calculate_dcf(dcf_data).equity_value_per_share is None

        dcf_data["sharesOutstanding"] = 100
        result = calculate_dcf(dcf_data)
        assert result.equity_value_per_share == pytest.approx(result.equity_value / 100)

    def test_terminal_value_from_final_year(self, dcf_data: dict[str, Any]) -> None:
        """Test the terminal value grows the last year's FCF."""
        dcf_data["revenues"] = [1000, 1000, 2000]
        result = calculate_dcf(dcf_data)

        final_fcf = result.free_cash_flows[-1]
        expected = final_fcf * 1.025 / (result.wacc - 0.025)
        assert result.terminal_value == pytest.approx(expected)
        assert result.present_value_of_terminal_value == pytest.approx(
            expected / (1 + result.wacc) ** 3
        )

    def test_assumptions_echoed(self, dcf_data: dict[str, Any]) -> None:
        """Test the result echoes the assumptions it used."""
        result = calculate_dcf(dcf_data)

        assert result.assumptions.projection_years == 3
        assert result.assumptions.cost_of_equity == 0.12
        assert result.assumptions.cost_of_debt == 0.06
        assert result.assumptions.tax_rate == 0.34
        assert result.assumptions.terminal_growth_rate == 0.025

    def test_accepts_dcf_input_object(self, dcf_data: dict[str, Any]) -> None:
        """Test the engine accepts an already-built DcfInput."""
        inputs = validate_dcf_input(dcf_data)
        assert calculate_dcf(inputs) == compute_dcf(inputs)

    def test_dcf_input_object_is_revalidated(self) -> None:
        """Test a hand-built DcfInput with bad values is rejected."""
        inputs = DcfInput(
            revenues=(1.0, 2.0, 3.0),
            costs=(0.0, 0.0, 0.0),
            operating_expenses=(0.0, 0.0, 0.0),
            capex=(0.0, 0.0),
            working_capital_change=(0.0, 0.0, 0.0),
            cost_of_equity=1.5,
            cost_of_debt=0.05,
            tax_rate=0.2,
            debt_weight=0.5,
            equity_weight=0.5,
            terminal_growth_rate=0.02,
            projection_years=3,
        )

        with pytest.raises(ValidationError) as exc_info:
            calculate_dcf(inputs)

        assert "capex" in exc_info.value.fields
        assert "costOfEquity" in exc_info.value.fields

    def test_length_mismatch_rejected_before_calculation(
        self, dcf_data: dict[str, Any]
    ) -> None:
        """Test unequal series raise ValidationError, not IndexError."""
        dcf_data["capex"] = [50, 50]

        with pytest.raises(ValidationError):
            calculate_dcf(dcf_data)

    def test_wacc_at_growth_raises_domain_error(self, dcf_data: dict[str, Any]) -> None:
        """Test the base case guard when wacc <= g."""
        # wacc = 0.05 * 1.0 = 0.05, g = 0.05
        dcf_data.update(
            costOfEquity=0.05, equityWeight=1.0, debtWeight=0.0, terminalGrowthRate=0.05
        )

        with pytest.raises(DomainError) as exc_info:
            calculate_dcf(dcf_data)

        assert "row" not in exc_info.value.context

    def test_wacc_below_growth_raises_domain_error(self, dcf_data: dict[str, Any]) -> None:
        """Test no Infinity / NaN escapes when wacc < g."""
        dcf_data.update(
            costOfEquity=0.02,
            costOfDebt=0.0,
            equityWeight=1.0,
            debtWeight=0.0,
            terminalGrowthRate=0.06,
        )

        with pytest.raises(DomainError):
            calculate_dcf(dcf_data)


class TestSensitivity:
    """Tests for the WACC x terminal growth sensitivity matrix."""

    def test_matrix_shape(self, dcf_data: dict[str, Any]) -> None:
        """Test the grid is 5x5 with the documented offsets."""
        result = calculate_dcf(dcf_data)
        matrix = result.sensitivity

        assert len(matrix.values) == 5
        assert all(len(row) == 5 for row in matrix.values)
        assert matrix.wacc_values == pytest.approx(
            tuple(result.wacc + d for d in SENSITIVITY_DELTAS)
        )
        assert matrix.terminal_growth_values == pytest.approx(
            (0.015, 0.02, 0.025, 0.03, 0.035)
        )

    def test_centre_cell_equals_base_equity_value(self, dcf_data: dict[str, Any]) -> None:
        """Test cell [2][2] reproduces the base case exactly."""
        dcf_data["netDebt"] = 123.45
        result = calculate_dcf(dcf_data)

        assert result.sensitivity.value_at(2, 2) == result.equity_value
        assert result.sensitivity.base_value == result.equity_value

    def test_centre_cell_exact_for_uneven_flows(self) -> None:
        """Test exact centre equality with irregular inputs."""
        data = {
            "projectionYears": 7,
            "revenues": [913.7, 1021.3, 1177.9, 1302.2, 1450.05, 1533.3, 1610.01],
            "costs": [401.1, 455.2, 510.3, 566.4, 610.5, 640.6, 666.7],
            "operatingExpenses": [120.3, 125.7, 133.1, 140.9, 150.2, 155.5, 160.8],
            "capex": [80.0, 75.5, 90.25, 60.0, 55.0, 70.0, 65.0],
            "workingCapitalChange": [12.0, -3.5, 8.0, 4.4, 2.2, 1.1, 0.0],
            "costOfEquity": 0.137,
            "costOfDebt": 0.071,
            "taxRate": 0.27,
            "debtWeight": 0.35,
            "equityWeight": 0.65,
            "terminalGrowthRate": 0.031,
            "netDebt": -87.3,
        }
        result = calculate_dcf(data)

        assert result.sensitivity.values[2][2] == result.equity_value

    def test_higher_wacc_lowers_value(self, dcf_data: dict[str, Any]) -> None:
        """Test values fall down each column and rise along each row."""
        values = calculate_dcf(dcf_data).sensitivity.values

        for c in range(5):
            column = [values[r][c] for r in range(5)]
            assert column == sorted(column, reverse=True)
        for row in values:
            assert list(row) == sorted(row)

    def test_sensitivity_matches_golden_corners(self, dcf_data: dict[str, Any]) -> None:
        """Test two corner cells against independently computed values."""
        values = calculate_dcf(dcf_data).sensitivity.values

        assert values[0][0] == pytest.approx(3845.5169, abs=1e-3)
        assert values[4][4] == pytest.approx(3712.2602, abs=1e-3)

    def test_sensitivity_cell_singularity_raises(self, dcf_data: dict[str, Any]) -> None:
        """Test a degenerate cell raises even when the base case is fine."""
        # Base: wacc 0.05, g 0.04 is fine; cell wacc-1%, g+1% is 0.04 vs 0.05
        dcf_data.update(
            costOfEquity=0.05, equityWeight=1.0, debtWeight=0.0, terminalGrowthRate=0.04
        )

        with pytest.raises(DomainError) as exc_info:
            calculate_dcf(dcf_data)

        assert "row" in exc_info.value.context
        assert "column" in exc_info.value.context

    def test_sensitivity_all_finite(self, dcf_data: dict[str, Any]) -> None:
        """Test every cell is a finite number."""
        values = calculate_dcf(dcf_data).sensitivity.values

        assert all(math.isfinite(v) for row in values for v in row)

    def test_sensitivity_analysis_custom_deltas(self) -> None:
        """Test the grid follows the deltas it is given."""
        matrix = sensitivity_analysis(
            [100.0, 100.0, 100.0], 0.10, 0.02, 0.0, deltas=(-0.01, 0.0, 0.01)
        )

        assert len(matrix.values) == 3
        assert matrix.base_value == matrix.values[1][1]
