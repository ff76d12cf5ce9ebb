"""
SpendWatch DZD - Excel Generator Tests.

Unit tests for ExcelReporter class.
Tests ensure correct sheet creation, data population,
and formatting application.
"""

import tempfile
from datetime import datetime
from decimal import Decimal
from pathlib import Path

from openpyxl import load_workbook

from spendwatch.excel_generator import ExcelReporter
from spendwatch.schema import BudgetStatus, SourceAnalytics


def create_test_statuses() -> list:
    """Creates one over-budget, one near-threshold and one on-track status."""
    rows = [
        ("fb", "Facebook Ads", "100000", "140000", True, False),
        ("tt", "TikTok Ads", "50000", "42000", False, True),
        (None, None, "300000", "182000", False, False),
    ]
    statuses = []
    for idx, (source_id, name, amount, spend, over, near) in enumerate(rows, start=1):
        amount, spend = Decimal(amount), Decimal(spend)
        statuses.append(BudgetStatus(
            budget_id=f"b{idx}",
            month=10,
            year=2024,
            source_id=source_id,
            source_name=name,
            budget_amount=amount,
            current_spend=spend,
            current_spend_usd=(spend / Decimal("140")).quantize(Decimal("0.01")),
            spend_percentage=(spend / amount * 100).quantize(Decimal("0.01")),
            remaining=amount - spend,
            alert_threshold=Decimal("80"),
            is_over_budget=over,
            is_near_threshold=near,
        ))
    return statuses


def create_test_analytics(num_sources: int = 2) -> list:
    """Creates analytics rows for the given number of sources."""
    return [
        SourceAnalytics(
            source_id=f"s{i}",
            source_name=f"Source_{i + 1}",
            source_color="#6B7280",
            total_spend=Decimal(str(1000 * (i + 1))),
            total_spend_in_dzd=Decimal(str(1000 * (i + 1))),
            total_leads=10 * (i + 1),
            average_cpl=Decimal("100"),
            conversions=i,
            conversion_rate=Decimal("10"),
            entries=i + 1,
            percentage_of_total=Decimal("50"),
        )
        for i in range(num_sources)
    ]


class TestExcelReporterUnit:
    """Unit tests for ExcelReporter."""

    def setup_method(self) -> None:
        """Initialise ExcelReporter for each test."""
        self.reporter = ExcelReporter()

    def _generate(self, tmpdir: str, statuses=None, analytics=None):
        output_path = Path(tmpdir) / "test_report.xlsx"
        self.reporter.generate_report(
            create_test_statuses() if statuses is None else statuses,
            create_test_analytics() if analytics is None else analytics,
            output_path,
            datetime(2024, 10, 18, 14, 30, 0)
        )
        return output_path

    def test_generate_report_creates_file(self) -> None:
        """Verify report generation creates a file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            output_path = self._generate(tmpdir)

            assert output_path.exists()

    def test_report_has_two_sheets(self) -> None:
        """Verify report contains the status and analytics sheets."""
        with tempfile.TemporaryDirectory() as tmpdir:
            workbook = load_workbook(self._generate(tmpdir))

            assert workbook.sheetnames == ["Budget Status", "Source Analytics"]

    def test_status_sheet_has_headers(self) -> None:
        """Verify the status sheet header row."""
        with tempfile.TemporaryDirectory() as tmpdir:
            ws = load_workbook(self._generate(tmpdir))["Budget Status"]

            headers = [cell.value for cell in ws[1]]

            assert headers == ExcelReporter.STATUS_HEADERS

    def test_status_rows_and_labels(self) -> None:
        """Verify one row per budget with its period and status label."""
        with tempfile.TemporaryDirectory() as tmpdir:
            ws = load_workbook(self._generate(tmpdir))["Budget Status"]

            rows = [
                [cell.value for cell in row]
                for row in ws.iter_rows(min_row=2) if row[0].value
            ]

            assert [r[0] for r in rows] == ["Facebook Ads", "TikTok Ads", "All sources"]
            assert rows[0][1] == "10/2024"
            assert [r[8] for r in rows] == ["OVER BUDGET", "NEAR THRESHOLD", "ON TRACK"]
            assert rows[0][6] == 1.4

    def test_currency_formatting_applied(self) -> None:
        """Verify DZD and USD formatting is applied."""
        with tempfile.TemporaryDirectory() as tmpdir:
            ws = load_workbook(self._generate(tmpdir))["Budget Status"]

            assert ws.cell(row=2, column=3).number_format == ExcelReporter.DZD_FORMAT
            assert "$" in ws.cell(row=2, column=5).number_format
            assert ws.cell(row=2, column=7).number_format == ExcelReporter.PERCENTAGE_FORMAT

    def test_status_fills(self) -> None:
        """Verify over-budget and near-threshold rows are highlighted."""
        with tempfile.TemporaryDirectory() as tmpdir:
            ws = load_workbook(self._generate(tmpdir))["Budget Status"]

            assert ws.cell(row=2, column=1).fill.start_color.rgb.endswith("FFC7CE")
            assert ws.cell(row=3, column=9).fill.start_color.rgb.endswith("FFEB9C")
            assert ws.cell(row=4, column=1).fill.fill_type is None

    def test_analytics_sheet_rows(self) -> None:
        """Verify one analytics row per source."""
        with tempfile.TemporaryDirectory() as tmpdir:
            ws = load_workbook(self._generate(tmpdir, analytics=create_test_analytics(5)))[
                "Source Analytics"
            ]

            names = [row[0].value for row in ws.iter_rows(min_row=2) if row[0].value]

            assert [cell.value for cell in ws[1]] == ExcelReporter.ANALYTICS_HEADERS
            assert names == [f"Source_{i}" for i in range(1, 6)]
            assert ws.cell(row=2, column=6).value == 0.1

    def test_report_with_no_budgets(self) -> None:
        """Verify an empty month still produces both sheets."""
        with tempfile.TemporaryDirectory() as tmpdir:
            workbook = load_workbook(self._generate(tmpdir, statuses=[], analytics=[]))

            assert len(workbook.sheetnames) == 2
            assert workbook["Budget Status"].max_row == 1

    def test_generate_filename(self) -> None:
        """Verify filename generation format."""
        filename = self.reporter.generate_filename(
            "spend_report", datetime(2024, 10, 18, 14, 30, 52)
        )

        assert filename == "spend_report_2024-10-18_143052.xlsx"
