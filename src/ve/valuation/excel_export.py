"""
Export of valuation results.

Writes DCF and multiples results as JSON, CSV or Excel workbooks.
Excel sheets hold the values the engine computed; nothing is recomputed.
"""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.worksheet.worksheet import Worksheet

from ve.exceptions import ExportError
from ve.valuation.results import DcfResult, MultiplesResult, ValuationResult

_HEADER_FONT = Font(bold=True)
_TITLE_FONT = Font(bold=True, size=14)
_BASE_CASE_FILL = PatternFill(start_color="FFF2CC", end_color="FFF2CC", fill_type="solid")

_MULTIPLE_LABELS = {
    "peValuation": "P/E",
    "evEbitdaValuation": "EV/EBITDA",
    "pvVpValuation": "P/BV",
    "evRevenueValuation": "EV/Revenue",
}


class ValuationExporter:
    """Exports valuation results to various formats.

    Supports:
    - JSON export of the result contract
    - CSV export (one file per table)
    - Excel export via openpyxl
    """

    def __init__(self, title: str | None = None) -> None:
        """Initialize the exporter.

        Args:
            title: Optional heading for the summary sheet, e.g. a company name.
        """
        self.title = title

    def export(self, result: ValuationResult, output_path: str | Path) -> list[Path]:
        """Export by file suffix: .xlsx, .json, otherwise a CSV directory."""
        output_path = Path(output_path)
        suffix = output_path.suffix.lower()
        if suffix == ".xlsx":
            return [self.export_excel(result, output_path)]
        if suffix == ".json":
            return [self.export_json(result, output_path)]
        return self.export_csv(result, output_path)

    def export_json(self, result: ValuationResult, output_path: str | Path) -> Path:
        """Export the result contract to JSON.

        Args:
            result: DCF or multiples result.
            output_path: Output file path.

        Returns:
            Path to created file.
        """
        self._check_result(result, output_path)
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        payload = {"method": result.method.value, "result": result.to_dict()}
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)

        return output_path

    def export_csv(
        self,
        result: ValuationResult,
        output_dir: str | Path,
        stem: str = "valuation",
    ) -> list[Path]:
        """Export the result to CSV files.

        Args:
            result: DCF or multiples result.
            output_dir: Output directory.
            stem: File name prefix.

        Returns:
            List of created file paths.
        """
        self._check_result(result, output_dir)
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        created: list[Path] = []

        if isinstance(result, DcfResult):
            summary_path = output_dir / f"{stem}_dcf.csv"
            self._write_rows(summary_path, [["Metric", "Value"], *self._dcf_summary_rows(result)])
            created.append(summary_path)

            flows_path = output_dir / f"{stem}_cash_flows.csv"
            self._write_rows(flows_path, self._cash_flow_rows(result))
            created.append(flows_path)

            sens_path = output_dir / f"{stem}_sensitivity.csv"
            self._write_rows(sens_path, self._sensitivity_rows(result))
            created.append(sens_path)
        else:
            path = output_dir / f"{stem}_multiples.csv"
            self._write_rows(path, [["Metric", "Value"], *self._multiples_rows(result)])
            created.append(path)

        return created

    def export_excel(self, result: ValuationResult, output_path: str | Path) -> Path:
        """Export the result to an Excel workbook.

        Args:
            result: DCF or multiples result.
            output_path: Output file path (.xlsx).

        Returns:
            Path to created file.
        """
        self._check_result(result, output_path)
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        wb = Workbook()
        summary_ws = wb.active
        summary_ws.title = "Summary"

        if isinstance(result, DcfResult):
            self._create_summary_sheet(summary_ws, "DCF Valuation", self._dcf_summary_rows(result))
            self._create_table_sheet(wb.create_sheet("DCF Model"), self._cash_flow_rows(result))
            self._create_sensitivity_sheet(wb.create_sheet("Sensitivity"), result)
        else:
            self._create_summary_sheet(
                summary_ws, "Multiples Valuation", self._multiples_rows(result)
            )

        wb.save(output_path)
        return output_path

    def _check_result(self, result: Any, path: str | Path) -> None:
        if not isinstance(result, (DcfResult, MultiplesResult)):
            raise ExportError(
                "Only DCF and multiples results can be exported",
                context={"path": str(path), "result_type": type(result).__name__},
            )

    def _dcf_summary_rows(self, result: DcfResult) -> list[list[Any]]:
        rows: list[list[Any]] = [
            ["WACC", result.wacc],
            ["Terminal Growth", result.assumptions.terminal_growth_rate],
            ["PV of Explicit FCF", result.sum_of_present_values],
            ["Terminal Value", result.terminal_value],
            ["PV of Terminal Value", result.present_value_of_terminal_value],
            ["Enterprise Value", result.enterprise_value],
            ["Net Debt", result.assumptions.net_debt],
            ["Equity Value", result.equity_value],
        ]
        if result.equity_value_per_share is not None:
            rows.append(["Equity Value per Share", result.equity_value_per_share])
        return rows

    def _cash_flow_rows(self, result: DcfResult) -> list[list[Any]]:
        rows: list[list[Any]] = [["Year", "FCF", "Discount Factor", "Present Value"]]
        for i, (fcf, factor, pv) in enumerate(
            zip(result.free_cash_flows, result.discount_factors, result.present_values)
        ):
            rows.append([i + 1, fcf, factor, pv])
        return rows

    def _sensitivity_rows(self, result: DcfResult) -> list[list[Any]]:
        matrix = result.sensitivity
        rows: list[list[Any]] = [["WACC \\ TG", *matrix.terminal_growth_values]]
        for wacc, values in zip(matrix.wacc_values, matrix.values):
            rows.append([wacc, *values])
        return rows

    def _multiples_rows(self, result: MultiplesResult) -> list[list[Any]]:
        rows: list[list[Any]] = [
            [_MULTIPLE_LABELS[key], value] for key, value in result.valuations.items()
        ]
        rows.extend(
            [
                ["Average Valuation", result.average_valuation],
                ["Liquidity Discount", result.liquidity_discount],
                ["Control Premium", result.control_premium],
                ["Adjusted Valuation", result.adjusted_valuation],
            ]
        )
        if result.comparables_sources:
            rows.append(["Comparables Sources", result.comparables_sources])
        return rows

    def _write_rows(self, path: Path, rows: list[list[Any]]) -> None:
        with open(path, "w", newline="", encoding="utf-8") as f:
            csv.writer(f).writerows(rows)

    def _create_summary_sheet(self, ws: Worksheet, heading: str, rows: list[list[Any]]) -> None:
        ws["A1"] = self.title or heading
        ws["A1"].font = _TITLE_FONT
        if self.title:
            ws["A2"] = heading

        for i, (label, value) in enumerate(rows):
            ws.cell(row=4 + i, column=1, value=label)
            ws.cell(row=4 + i, column=2, value=value)

        ws.column_dimensions["A"].width = 28
        ws.column_dimensions["B"].width = 20

    def _create_table_sheet(self, ws: Worksheet, rows: list[list[Any]]) -> None:
        for r, row in enumerate(rows, start=1):
            for c, value in enumerate(row, start=1):
                cell = ws.cell(row=r, column=c, value=value)
                if r == 1:
                    cell.font = _HEADER_FONT
        for col in ("A", "B", "C", "D"):
            ws.column_dimensions[col].width = 18

    def _create_sensitivity_sheet(self, ws: Worksheet, result: DcfResult) -> None:
        self._create_table_sheet(ws, self._sensitivity_rows(result))
        matrix = result.sensitivity
        mid_row = len(matrix.wacc_values) // 2
        mid_col = len(matrix.terminal_growth_values) // 2
        # +2: header row and 1-based rows; +2: label column and 1-based columns
        ws.cell(row=mid_row + 2, column=mid_col + 2).fill = _BASE_CASE_FILL
        for r in range(2, len(matrix.wacc_values) + 2):
            ws.cell(row=r, column=1).font = _HEADER_FONT
        ws.column_dimensions["E"].width = 18
        ws.column_dimensions["F"].width = 18
