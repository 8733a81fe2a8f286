"""Tests for the Excel rendering of feeder reports."""

from datetime import date

import openpyxl
import pandas as pd
import pytest

from generate_feeder_report import (
    MAIN_SHEET,
    SUMMARY_SHEET,
    ReportConfig,
    SummaryGenerator,
    generate_feeder_report,
)
from report_engine import ANALYSIS_CATEGORIES, FAILED_CHECKS_SUMMARY, NO_FLAGS, assemble_report


@pytest.fixture
def report(feeders, readings):
    return assemble_report(feeders, readings, date(2025, 1, 1), date(2025, 1, 3))


@pytest.fixture
def config(tmp_path):
    return ReportConfig(
        output_file=str(tmp_path / "report.xlsx"),
        summary_text_file=str(tmp_path / "summary.txt"),
    )


class TestSummaryGenerator:
    """Tests for the summary tables."""

    def test_counts_per_region(self, report):
        df = SummaryGenerator.generate_summary(report)

        north = df[df["REGION"] == "North"].iloc[0]
        assert north["FEEDERS"] == 2
        assert north["REPORTING"] == 2
        assert north["FLAGGED"] == 1
        assert north["NO FLAGS"] == 1
        assert north["POSITIVE VARIANCE"] == 1

        south = df[df["REGION"] == "South"].iloc[0]
        assert south["NO FLAGS"] == 1
        assert south["FLAGGED"] == 0

    def test_failed_checks_frame(self, report):
        df = SummaryGenerator.failed_checks_frame(report)

        assert df.to_dict("records") == [{
            "Region": "North",
            "Business Hub": "Ikeja",
            "Feeder Name": "Oregun",
            "Date": "2025-01-03",
            "Failed Checks": "Actual D-0 < Actual D-1, < 70% Nom, < 70% Daily Uptake",
        }]


class TestGenerateFeederReport:
    """Tests for the generated workbook."""

    def test_sheets(self, report, config):
        path = generate_feeder_report(report, config)

        wb = openpyxl.load_workbook(path)
        assert wb.sheetnames == [MAIN_SHEET, SUMMARY_SHEET] + ANALYSIS_CATEGORIES

    def test_performance_grid(self, report, config):
        wb = openpyxl.load_workbook(generate_feeder_report(report, config))
        ws = wb[MAIN_SHEET]

        assert ws["A1"].value == report.title
        assert ws["I3"].value == "2025-01-01"
        assert ws["M3"].value == "2025-01-02"
        assert [ws.cell(row=4, column=c).value for c in (9, 10, 11)] == ["Nomination", "Actual", "Variance"]

        # Row 5 is the North header, row 6 the first feeder
        assert ws["A5"].value == "North"
        assert [ws.cell(row=6, column=c).value for c in range(1, 8)] == [
            1, "Ikeja", "Alausa", "North", "A20H", 100, 3000,
        ]
        assert [ws.cell(row=7, column=c).value for c in (17, 18, 19)] == [150, 100, -50]

        # South header follows the two North feeders
        assert ws["A8"].value == "South"
        assert ws["C9"].value == "Ajah"

    def test_category_sheets(self, report, config):
        wb = openpyxl.load_workbook(generate_feeder_report(report, config))

        no_flags = wb[NO_FLAGS]
        assert [no_flags.cell(row=r, column=3).value for r in (5, 6)] == ["Alausa", "Ajah"]
        assert no_flags.cell(row=7, column=3).value is None

    def test_failed_checks_sheet(self, report, config):
        path = generate_feeder_report(report, config)

        df = pd.read_excel(path, sheet_name=FAILED_CHECKS_SUMMARY, header=4)
        assert list(df.columns) == ["Region", "Business Hub", "Feeder Name", "Date", "Failed Checks"]
        assert df["Feeder Name"].tolist() == ["Oregun"]

    def test_summary_sheet_round_trips(self, report, config):
        path = generate_feeder_report(report, config)

        df = pd.read_excel(path, sheet_name=SUMMARY_SHEET)
        assert df["REGION"].tolist() == ["North", "South"]
        assert df["FEEDERS"].sum() == 3

    def test_summary_text(self, report, config):
        generate_feeder_report(report, config)

        with open(config.summary_text_file, encoding="utf-8") as f:
            text = f.read()
        assert text.startswith(report.title)
        assert "North" in text

    def test_empty_report(self, config):
        empty = assemble_report([], [], date(2025, 1, 1), date(2025, 1, 1))

        wb = openpyxl.load_workbook(generate_feeder_report(empty, config))

        assert wb[MAIN_SHEET]["C4"].value == "Feeder"
        assert wb[MAIN_SHEET].max_row == 4

    def test_overwrites_existing_file(self, report, config):
        with open(config.output_file, "w") as f:
            f.write("stale")

        wb = openpyxl.load_workbook(generate_feeder_report(report, config))
        assert MAIN_SHEET in wb.sheetnames
