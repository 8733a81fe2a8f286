"""
Feeder Performance Excel Report
Renders an assembled FeederReport into a workbook: the performance grid, a
per-region summary, one sheet per analysis category and the failed checks list.
"""

import pandas as pd
import os
import logging
from typing import Dict
from dataclasses import dataclass
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from report_engine import (
    FAILED_CHECKS_SUMMARY,
    ROW_CATEGORIES,
    FeederReport,
    ReportRow,
)

logger = logging.getLogger(__name__)


MAIN_SHEET = "Feeder Performance"
SUMMARY_SHEET = "Summary"

STATIC_HEADERS = [
    "S/N",
    "Business Hub",
    "Feeder",
    "Region",
    "Band",
    "Daily Energy Uptake",
    "Monthly Delivery Plan",
]
DAY_HEADERS = ["Nomination", "Actual", "Variance"]

TITLE_ROW = 1
DATE_HEADER_ROW = 3
COLUMN_HEADER_ROW = 4
FIRST_DATA_ROW = 5


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class ReportConfig:
    """Configuration for report generation."""
    output_file: str = "Daily_Feeder_Report.xlsx"
    summary_text_file: str = "summary_for_email.txt"

    # Grid layout: each day takes three columns plus one spacer
    first_day_column: int = 9  # Column I
    day_column_stride: int = 4

    # Styling colors
    header_color: str = "4F81BD"
    region_fill_color: str = "D3D3D3"
    subheader_fill_color: str = "F2F2F2"
    positive_variance_color: str = "FF0000"
    negative_variance_color: str = "00FF00"

    # Fonts
    header_font_name: str = "Times New Roman"
    header_font_size: int = 12
    body_font_name: str = "Times New Roman"
    body_font_size: int = 12

    @classmethod
    def from_env(cls):
        """Create config from environment variables."""
        return cls(
            output_file=os.getenv("OUTPUT_FILE", "Daily_Feeder_Report.xlsx"),
            summary_text_file=os.getenv("SUMMARY_TEXT_FILE", "summary_for_email.txt"),
        )

    def day_column(self, day_position: int) -> int:
        """First column (1-based) of the 0-based ``day_position``."""
        return self.first_day_column + day_position * self.day_column_stride


# ============================================================================
# EXCEL STYLING
# ============================================================================

THIN_BORDER = Border(
    left=Side(style='thin'),
    right=Side(style='thin'),
    top=Side(style='thin'),
    bottom=Side(style='thin')
)


class ExcelStyler:
    """Handles Excel worksheet styling."""

    def __init__(self, config: ReportConfig):
        self.config = config

    def solid_fill(self, color: str) -> PatternFill:
        return PatternFill(start_color=color, end_color=color, fill_type="solid")

    def calculate_row_height(self, text: str, column_width: float, font_size: int = 12) -> float:
        """
        Calculate the required row height for wrapped text.

        Args:
            text: The text content
            column_width: Width of the column in Excel units
            font_size: Font size in points

        Returns:
            Required row height in points
        """
        if text is None or (isinstance(text, float) and pd.isna(text)):
            return 15

        text = str(text)

        # Column width is in character widths; 0.85 keeps the estimate conservative
        chars_per_line = max(1, int(column_width * 0.85))

        total_lines = 0
        for line in text.split('\n'):
            total_lines += max(1, -(-len(line) // chars_per_line))

        line_height = font_size * 1.3
        calculated_height = (total_lines * line_height) + 8

        # 409 is the Excel limit
        return max(18, min(409, calculated_height))

    def apply_table_styling(
        self,
        ws: Worksheet,
        header_row: int,
        column_widths: Dict[int, int]
    ) -> None:
        """Style a plain table: coloured header row, bordered wrapped body."""
        if not ws or ws.max_row < header_row:
            logger.warning("Empty worksheet, skipping styling")
            return

        header_font = Font(
            name=self.config.header_font_name,
            size=self.config.header_font_size,
            bold=True,
            color="FFFFFF"
        )
        header_fill = self.solid_fill(self.config.header_color)
        header_align = Alignment(horizontal="center", vertical="center", wrap_text=True)

        for cell in ws[header_row]:
            if cell.value is None:
                continue
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = header_align
            cell.border = THIN_BORDER

        body_font = Font(name=self.config.body_font_name, size=self.config.body_font_size)
        body_align = Alignment(horizontal="left", vertical="center", wrap_text=True)

        for row in ws.iter_rows(min_row=header_row + 1, max_row=ws.max_row, max_col=len(column_widths)):
            for cell in row:
                cell.font = body_font
                cell.alignment = body_align
                cell.border = THIN_BORDER

        for col_idx, width in column_widths.items():
            ws.column_dimensions[get_column_letter(col_idx)].width = width

        ws.row_dimensions[header_row].height = 30

        for row_idx in range(header_row + 1, ws.max_row + 1):
            max_height = 18
            for col_idx, width in column_widths.items():
                value = ws.cell(row=row_idx, column=col_idx).value
                if value is None or (isinstance(value, str) and not value.strip()):
                    continue
                height = self.calculate_row_height(value, width, self.config.body_font_size)
                max_height = max(max_height, height)
            ws.row_dimensions[row_idx].height = max_height


# ============================================================================
# SUMMARY GENERATOR
# ============================================================================

class SummaryGenerator:
    """Generates summary tables."""

    @staticmethod
    def generate_summary(report: FeederReport) -> pd.DataFrame:
        """Count feeders per region in each analysis category."""
        summary_rows = []

        for group in report.region_groups:
            summary = {
                "REGION": group.name,
                "FEEDERS": len(group.rows),
                "REPORTING": sum(1 for row in group.rows if row.last_reading is not None),
                "FLAGGED": sum(1 for row in group.rows if row.failed_checks),
            }
            for category in ROW_CATEGORIES:
                summary[category.upper()] = sum(
                    1 for row in group.rows if category in row.classification.categories()
                )
            summary_rows.append(summary)

        columns = ["REGION", "FEEDERS", "REPORTING", "FLAGGED"] + [c.upper() for c in ROW_CATEGORIES]
        return pd.DataFrame(summary_rows, columns=columns)

    @staticmethod
    def failed_checks_frame(report: FeederReport) -> pd.DataFrame:
        rows = [
            {
                "Region": entry.region,
                "Business Hub": entry.business_hub,
                "Feeder Name": entry.feeder_name,
                "Date": entry.date.isoformat(),
                "Failed Checks": entry.failed_checks_text,
            }
            for entry in report.failed_checks_summary
        ]
        return pd.DataFrame(rows, columns=["Region", "Business Hub", "Feeder Name", "Date", "Failed Checks"])

    @staticmethod
    def export_summary_text(df_summary: pd.DataFrame, report: FeederReport, filepath: str) -> None:
        """Export summary as formatted text for email."""
        with open(filepath, "w", encoding="utf-8") as f:
            f.write(report.title + "\n\n")
            if df_summary.empty:
                f.write("No feeders in report\n")
            else:
                f.write(df_summary.to_string(index=False))
                f.write("\n")

        logger.info(f"✅ Summary text saved: {filepath}")


# ============================================================================
# PERFORMANCE SHEET WRITER
# ============================================================================

class PerformanceSheetWriter:
    """Writes the date-indexed nomination/actual/variance grid."""

    def __init__(self, config: ReportConfig):
        self.config = config
        self.styler = ExcelStyler(config)
        self.region_fill = self.styler.solid_fill(config.region_fill_color)
        self.subheader_fill = self.styler.solid_fill(config.subheader_fill_color)
        self.positive_fill = self.styler.solid_fill(config.positive_variance_color)
        self.negative_fill = self.styler.solid_fill(config.negative_variance_color)
        self.body_font = Font(name=config.body_font_name, size=config.body_font_size)
        self.bold_font = Font(name=config.body_font_name, size=config.body_font_size, bold=True)
        self.center = Alignment(horizontal="center", vertical="center", wrap_text=True)

    def write_header(self, ws: Worksheet, report: FeederReport) -> None:
        """Title, per-day merged date headers and the column header row."""
        last_static = get_column_letter(len(STATIC_HEADERS))
        ws.merge_cells(f"A{TITLE_ROW}:{last_static}{TITLE_ROW}")
        title = ws.cell(row=TITLE_ROW, column=1, value=report.title)
        title.font = Font(name=self.config.header_font_name, size=14, bold=True)
        title.alignment = self.center

        for col_idx, label in enumerate(STATIC_HEADERS, start=1):
            cell = ws.cell(row=COLUMN_HEADER_ROW, column=col_idx, value=label)
            cell.font = self.bold_font
            cell.fill = self.subheader_fill
            cell.alignment = self.center
            cell.border = THIN_BORDER

        for position, day in enumerate(report.days):
            start_col = self.config.day_column(position)
            ws.merge_cells(
                start_row=DATE_HEADER_ROW,
                start_column=start_col,
                end_row=DATE_HEADER_ROW,
                end_column=start_col + len(DAY_HEADERS) - 1
            )
            date_cell = ws.cell(row=DATE_HEADER_ROW, column=start_col, value=day.isoformat())
            date_cell.font = self.bold_font
            date_cell.alignment = self.center

            for offset, label in enumerate(DAY_HEADERS):
                col = start_col + offset
                ws.cell(row=DATE_HEADER_ROW, column=col).border = THIN_BORDER
                cell = ws.cell(row=COLUMN_HEADER_ROW, column=col, value=label)
                cell.font = self.bold_font
                cell.fill = self.subheader_fill
                cell.alignment = self.center
                cell.border = THIN_BORDER
                ws.column_dimensions[get_column_letter(col)].width = 15

        static_widths = {1: 10, 2: 20, 3: 35, 4: 15, 5: 15, 6: 15, 7: 15}
        for col_idx, width in static_widths.items():
            ws.column_dimensions[get_column_letter(col_idx)].width = width

    def write_region_row(self, ws: Worksheet, row_idx: int, region_name: str, day_count: int) -> None:
        last_static = get_column_letter(len(STATIC_HEADERS))
        ws.cell(row=row_idx, column=1, value=region_name)
        ws.merge_cells(f"A{row_idx}:{last_static}{row_idx}")

        region_cell = ws.cell(row=row_idx, column=1)
        region_cell.font = Font(name=self.config.body_font_name, size=14, bold=True)
        region_cell.fill = self.region_fill
        region_cell.alignment = self.center
        region_cell.border = THIN_BORDER
        ws.row_dimensions[row_idx].height = 22

        for position in range(day_count):
            start_col = self.config.day_column(position)
            for offset in range(len(DAY_HEADERS)):
                ws.cell(row=row_idx, column=start_col + offset).border = THIN_BORDER

    def write_feeder_row(self, ws: Worksheet, row_idx: int, row: ReportRow) -> None:
        feeder = row.feeder
        static_values = [
            row.serial,
            row.business_hub_name,
            feeder.name,
            row.region_name,
            feeder.band.value,
            feeder.daily_energy_uptake,
            feeder.monthly_delivery_plan,
        ]

        for col_idx, value in enumerate(static_values, start=1):
            cell = ws.cell(row=row_idx, column=col_idx, value=value)
            cell.font = self.body_font
            cell.border = THIN_BORDER
            cell.alignment = Alignment(vertical="center", wrap_text=True)

        for position, values in enumerate(row.days):
            start_col = self.config.day_column(position)
            triple = [values.nomination, values.actual, values.variance]
            for offset, value in enumerate(triple):
                cell = ws.cell(row=row_idx, column=start_col + offset, value=value)
                cell.font = self.body_font
                cell.border = THIN_BORDER
                cell.alignment = self.center
                cell.number_format = '#,##0.00'

            variance_cell = ws.cell(row=row_idx, column=start_col + 2)
            if values.variance > 0:
                variance_cell.fill = self.positive_fill
            elif values.variance < 0:
                variance_cell.fill = self.negative_fill

    def write_performance_sheet(self, ws: Worksheet, report: FeederReport) -> None:
        """Full grid: region header rows followed by their feeders."""
        self.write_header(ws, report)

        row_idx = FIRST_DATA_ROW
        for group in report.region_groups:
            self.write_region_row(ws, row_idx, group.name, len(report.days))
            row_idx += 1
            for row in group.rows:
                self.write_feeder_row(ws, row_idx, row)
                row_idx += 1

    def write_category_sheet(self, ws: Worksheet, report: FeederReport, category: str) -> None:
        """Header block plus a copy of every row routed to ``category``."""
        self.write_header(ws, report)

        for row_idx, row in enumerate(report.bucket(category), start=FIRST_DATA_ROW):
            self.write_feeder_row(ws, row_idx, row)


# ============================================================================
# MAIN REPORT GENERATOR
# ============================================================================

def generate_feeder_report(report: FeederReport, config: ReportConfig = None) -> str:
    """
    Generate the feeder performance workbook.

    Args:
        report: Assembled feeder report
        config: Optional configuration object

    Returns:
        Path of the written workbook
    """
    if config is None:
        config = ReportConfig.from_env()

    logger.info(f"🚀 Starting report generation: {config.output_file}")

    # Remove old file
    if os.path.exists(config.output_file):
        os.remove(config.output_file)
        logger.info(f"Removed old file: {config.output_file}")

    styler = ExcelStyler(config)
    summary_gen = SummaryGenerator()
    sheet_writer = PerformanceSheetWriter(config)

    df_summary = summary_gen.generate_summary(report)
    df_failed = summary_gen.failed_checks_frame(report)

    logger.info(
        f"📊 {report.feeder_count} feeders in {len(report.region_groups)} regions, "
        f"{len(report.days)} days"
    )

    logger.info("📝 Creating Excel file...")
    with pd.ExcelWriter(config.output_file, engine="openpyxl") as writer:
        ws = writer.book.create_sheet(MAIN_SHEET)
        sheet_writer.write_performance_sheet(ws, report)

        df_summary.to_excel(writer, index=False, sheet_name=SUMMARY_SHEET)
        ws = writer.sheets[SUMMARY_SHEET]
        styler.apply_table_styling(
            ws,
            header_row=1,
            column_widths={idx: (25 if idx == 1 else 16) for idx in range(1, len(df_summary.columns) + 1)}
        )

        for category in ROW_CATEGORIES:
            ws = writer.book.create_sheet(category)
            sheet_writer.write_category_sheet(ws, report, category)
            logger.info(f"  {category}: {len(report.bucket(category))} feeders")

        df_failed.to_excel(writer, index=False, sheet_name=FAILED_CHECKS_SUMMARY, startrow=FIRST_DATA_ROW - 1)
        ws = writer.sheets[FAILED_CHECKS_SUMMARY]
        ws.cell(row=TITLE_ROW, column=1, value=report.title).font = Font(
            name=config.header_font_name, size=14, bold=True
        )
        styler.apply_table_styling(
            ws,
            header_row=FIRST_DATA_ROW,
            column_widths={1: 15, 2: 20, 3: 35, 4: 15, 5: 40}
        )

    summary_gen.export_summary_text(df_summary, report, config.summary_text_file)

    logger.info(f"✅ Report generation complete: {config.output_file}")
    return config.output_file
