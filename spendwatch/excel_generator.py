"""
SpendWatch DZD - Excel Report Generation Module.

This module generates Excel reports for the monthly media-buying review:
a Budget Status tab listing every budget of the month and a Source
Analytics tab comparing ad sources.

Algerian Market Context:
    - Native DZD currency formatting (#,##0.00 "DZD")
    - Conditional formatting for over-budget and near-threshold budgets
    - Cost per lead shown in DZD for every source

Classes:
    ExcelReporter: Generates Excel workbooks from statuses and analytics.
"""

from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from openpyxl import Workbook
from openpyxl.styles import (
    Alignment,
    Border,
    Font,
    PatternFill,
    Side,
)
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from spendwatch.schema import BudgetStatus, SourceAnalytics


class ExcelReporter:
    """
    Generates Excel reports for budget monitoring.

    Attributes:
        DZD_FORMAT: Excel number format for DZD amounts.
        PERCENTAGE_FORMAT: Excel number format for percentages.

    Example:
        >>> reporter = ExcelReporter()
        >>> reporter.generate_report(statuses, analytics, "spend_report.xlsx", now)
    """

    # Excel number formats
    DZD_FORMAT = '#,##0.00 "DZD"'
    USD_FORMAT = '"$"#,##0.00'
    PERCENTAGE_FORMAT = '0.00%'

    # Conditional formatting colours
    OVER_BUDGET_FILL = PatternFill(
        start_color="FFC7CE",
        end_color="FFC7CE",
        fill_type="solid"
    )
    NEAR_THRESHOLD_FILL = PatternFill(
        start_color="FFEB9C",
        end_color="FFEB9C",
        fill_type="solid"
    )

    # Header styling
    HEADER_FONT = Font(bold=True, color="FFFFFF")
    HEADER_FILL = PatternFill(
        start_color="2F5496",
        end_color="2F5496",
        fill_type="solid"
    )
    HEADER_ALIGNMENT = Alignment(horizontal="center", vertical="center")

    THIN_BORDER = Border(
        left=Side(style="thin"),
        right=Side(style="thin"),
        top=Side(style="thin"),
        bottom=Side(style="thin")
    )

    STATUS_HEADERS = [
        "Budget",
        "Period",
        "Budget Amount",
        "Current Spend",
        "Current Spend (USD)",
        "Remaining",
        "Spend %",
        "Alert Threshold %",
        "Status",
    ]

    ANALYTICS_HEADERS = [
        "Source",
        "Spend (DZD)",
        "Leads",
        "CPL (DZD)",
        "Conversions",
        "Conversion %",
        "Entries",
        "Share of Spend",
    ]

    def generate_report(
        self,
        statuses: List[BudgetStatus],
        analytics: List[SourceAnalytics],
        output_path: Union[str, Path],
        generated_at: Optional[datetime] = None
    ) -> None:
        """
        Generates a complete Excel report.

        Creates a workbook with two sheets:
        1. Budget Status - One row per budget of the month
        2. Source Analytics - One row per active source

        Args:
            statuses: Budget statuses of the reported month.
            analytics: Per-source analytics of the reported range.
            output_path: Path for the output .xlsx file.
            generated_at: Report timestamp. Defaults to now.
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        workbook = Workbook()
        workbook.remove(workbook.active)

        self._create_status_sheet(workbook, statuses)
        self._create_analytics_sheet(workbook, analytics)
        workbook.properties.created = generated_at or datetime.now()

        workbook.save(output_path)

    def _create_status_sheet(
        self,
        workbook: Workbook,
        statuses: List[BudgetStatus]
    ) -> None:
        ws = workbook.create_sheet("Budget Status")
        self._write_headers(ws, self.STATUS_HEADERS)

        for row_idx, status in enumerate(statuses, start=2):
            row_data = [
                status.source_name or "All sources",
                f"{status.month:02d}/{status.year}",
                float(status.budget_amount),
                float(status.current_spend),
                float(status.current_spend_usd),
                float(status.remaining),
                float(status.spend_percentage) / 100,
                float(status.alert_threshold) / 100,
                self._status_label(status),
            ]

            for col_idx, value in enumerate(row_data, start=1):
                cell = ws.cell(row=row_idx, column=col_idx, value=value)
                cell.border = self.THIN_BORDER

                if col_idx in [3, 4, 6]:
                    cell.number_format = self.DZD_FORMAT
                elif col_idx == 5:
                    cell.number_format = self.USD_FORMAT
                elif col_idx in [7, 8]:
                    cell.number_format = self.PERCENTAGE_FORMAT

            fill = self._get_status_fill(status)
            if fill:
                for col_idx in range(1, len(self.STATUS_HEADERS) + 1):
                    ws.cell(row=row_idx, column=col_idx).fill = fill

        self._auto_adjust_columns(ws)

    def _create_analytics_sheet(
        self,
        workbook: Workbook,
        analytics: List[SourceAnalytics]
    ) -> None:
        ws = workbook.create_sheet("Source Analytics")
        self._write_headers(ws, self.ANALYTICS_HEADERS)

        for row_idx, item in enumerate(analytics, start=2):
            row_data = [
                item.source_name,
                float(item.total_spend_in_dzd),
                item.total_leads,
                float(item.average_cpl),
                item.conversions,
                float(item.conversion_rate) / 100,
                item.entries,
                float(item.percentage_of_total) / 100,
            ]

            for col_idx, value in enumerate(row_data, start=1):
                cell = ws.cell(row=row_idx, column=col_idx, value=value)
                cell.border = self.THIN_BORDER

                if col_idx in [2, 4]:
                    cell.number_format = self.DZD_FORMAT
                elif col_idx in [6, 8]:
                    cell.number_format = self.PERCENTAGE_FORMAT

        self._auto_adjust_columns(ws)

    def _write_headers(self, ws: Worksheet, headers: List[str]) -> None:
        for col, header in enumerate(headers, start=1):
            cell = ws.cell(row=1, column=col, value=header)
            cell.font = self.HEADER_FONT
            cell.fill = self.HEADER_FILL
            cell.alignment = self.HEADER_ALIGNMENT
            cell.border = self.THIN_BORDER

    def _status_label(self, status: BudgetStatus) -> str:
        if status.is_over_budget:
            return "OVER BUDGET"
        if status.is_near_threshold:
            return "NEAR THRESHOLD"
        return "ON TRACK"

    def _get_status_fill(self, status: BudgetStatus) -> Optional[PatternFill]:
        """
        Returns the row fill for a budget status.

        Returns:
            PatternFill for over-budget or near-threshold rows, None otherwise.
        """
        if status.is_over_budget:
            return self.OVER_BUDGET_FILL
        if status.is_near_threshold:
            return self.NEAR_THRESHOLD_FILL
        return None

    def _auto_adjust_columns(self, worksheet: Worksheet) -> None:
        """
        Auto-adjusts column widths based on content.

        Args:
            worksheet: Target worksheet.
        """
        for col_idx in range(1, worksheet.max_column + 1):
            max_length = 0
            for row_idx in range(1, worksheet.max_row + 1):
                value = worksheet.cell(row=row_idx, column=col_idx).value
                if value is not None:
                    max_length = max(max_length, len(str(value)))

            worksheet.column_dimensions[get_column_letter(col_idx)].width = max(max_length + 2, 10)

    def generate_filename(self, prefix: str, generated_at: datetime) -> str:
        """
        Generates a timestamped filename for reports.

        Returns:
            Filename like "spend_report_2024-10-18_143052.xlsx".
        """
        return f"{prefix}_{generated_at.strftime('%Y-%m-%d_%H%M%S')}.xlsx"
