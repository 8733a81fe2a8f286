"""Tests for the report email."""

import smtplib
from unittest.mock import patch

import pandas as pd
import pytest

from send_report import (
    EmailBuilder,
    EmailConfig,
    EmailSender,
    HTMLTableGenerator,
    generate_kpi_section,
    send_report,
)


@pytest.fixture
def email_config(monkeypatch):
    monkeypatch.setattr(EmailConfig, "SMTP_SERVER", "smtp.example.com")
    monkeypatch.setattr(EmailConfig, "SMTP_PORT", 587)
    monkeypatch.setattr(EmailConfig, "SENDER_EMAIL", "reports@example.com")
    monkeypatch.setattr(EmailConfig, "EMAIL_PASSWORD", "secret")
    monkeypatch.setattr(EmailConfig, "TO_RECIPIENTS", ["ops@example.com", " ", "lead@example.com "])
    monkeypatch.setattr(EmailConfig, "CC_RECIPIENTS", [""])
    monkeypatch.setattr(EmailConfig, "BCC_RECIPIENTS", ["audit@example.com"])
    return EmailConfig


@pytest.fixture
def summary_df():
    return pd.DataFrame([
        {"REGION": "North", "FEEDERS": 2, "FLAGGED": 1, "NO FLAGS": 1},
        {"REGION": "South", "FEEDERS": 1200, "FLAGGED": 0, "NO FLAGS": 1},
    ])


class TestHtml:
    """Tests for the HTML fragments."""

    def test_kpi_tiles(self, summary_df):
        html = generate_kpi_section(summary_df)

        assert "TOTAL FEEDERS" in html
        assert "1,202" in html
        assert "FLAGGED FEEDERS" in html

    def test_kpi_tiles_missing_columns(self):
        html = generate_kpi_section(pd.DataFrame({"REGION": []}))
        assert html.count(">0<") == 3

    def test_table_formats_numbers(self, summary_df):
        html = HTMLTableGenerator.generate(summary_df)

        assert "<th" in html and "REGION" in html
        assert "text-align: right;\">1,200</td>" in html

    def test_flagged_counts_are_highlighted(self, summary_df):
        html = HTMLTableGenerator.generate(summary_df)

        assert html.count(HTMLTableGenerator.FLAGGED_STYLE) == 1

    def test_empty_table(self):
        assert "No data available" in HTMLTableGenerator.generate(pd.DataFrame())


class TestEmailBuilder:
    """Tests for message assembly."""

    def test_headers_and_attachment(self, email_config, tmp_path):
        workbook = tmp_path / "report.xlsx"
        workbook.write_bytes(b"PK\x03\x04")

        msg = EmailBuilder(email_config).build_message("<p>kpis</p>", "2025-01-03", [str(workbook)])

        assert msg["To"] == "ops@example.com, lead@example.com"
        assert msg["Cc"] is None
        assert msg["Bcc"] == "audit@example.com"
        assert "2025-01-03" in msg["Subject"]

        attachments = list(msg.iter_attachments())
        assert [a.get_filename() for a in attachments] == ["report.xlsx"]

    def test_missing_attachment_is_skipped(self, email_config, tmp_path):
        msg = EmailBuilder(email_config).build_message("", "2025-01-03", [str(tmp_path / "gone.xlsx")])
        assert list(msg.iter_attachments()) == []

    def test_html_body_names_the_day(self, email_config):
        msg = EmailBuilder(email_config).build_message("<p>kpis</p>", "2025-01-03")

        html = msg.get_body(preferencelist=("html",)).get_content()
        assert "Friday, 2025-01-03" in html
        assert "<p>kpis</p>" in html


class TestEmailSender:
    """Tests for SMTP delivery."""

    def test_send(self, email_config):
        msg = EmailBuilder(email_config).build_message("", "2025-01-03")

        with patch("send_report.smtplib.SMTP") as smtp:
            assert EmailSender(email_config).send(msg) is True

        server = smtp.return_value.__enter__.return_value
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("reports@example.com", "secret")
        server.send_message.assert_called_once_with(msg)

    def test_auth_failure(self, email_config):
        msg = EmailBuilder(email_config).build_message("", "2025-01-03")

        with patch("send_report.smtplib.SMTP") as smtp:
            server = smtp.return_value.__enter__.return_value
            server.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")
            assert EmailSender(email_config).send(msg) is False

        server.send_message.assert_not_called()

    def test_connection_failure(self, email_config):
        msg = EmailBuilder(email_config).build_message("", "2025-01-03")

        with patch("send_report.smtplib.SMTP", side_effect=ConnectionRefusedError("refused")):
            assert EmailSender(email_config).send(msg) is False


class TestSendReport:
    """Tests for the send_report entry point."""

    def test_invalid_config(self, email_config, monkeypatch):
        monkeypatch.setattr(EmailConfig, "EMAIL_PASSWORD", None)
        assert send_report(excel_file="whatever.xlsx") is False

    def test_missing_workbook(self, email_config, tmp_path):
        assert send_report(excel_file=str(tmp_path / "missing.xlsx")) is False

    def test_sends_summary(self, email_config, summary_df, tmp_path):
        workbook = tmp_path / "report.xlsx"
        summary_df.to_excel(workbook, index=False, sheet_name="Summary")

        with patch("send_report.EmailSender.send", return_value=True) as send:
            assert send_report(excel_file=str(workbook), date_str="2025-01-03") is True

        msg = send.call_args.args[0]
        html = msg.get_body(preferencelist=("html",)).get_content()
        assert "1,202" in html
        assert [a.get_filename() for a in msg.iter_attachments()] == ["report.xlsx"]
