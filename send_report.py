"""
Feeder Report Email Module
Mails the feeder performance workbook to the distribution list, with KPI tiles
and the per-region summary read back from the workbook's Summary sheet.
"""

import os
import smtplib
import logging
from email.message import EmailMessage
from datetime import datetime
from typing import Dict, List, Optional
import mimetypes
import pandas as pd
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _split_addresses(value: Optional[str]) -> List[str]:
    return (value or "").split(",")


# ============================================================================
# EMAIL CONFIGURATION
# ============================================================================

class EmailConfig:
    """SMTP account, distribution list and file locations, from the environment."""

    SMTP_SERVER = os.getenv("SMTP_SERVER", "localhost")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_TIMEOUT = int(os.getenv("SMTP_TIMEOUT", "30"))
    SENDER_EMAIL = os.getenv("SENDER_EMAIL", "")
    EMAIL_PASSWORD = os.getenv("EMAIL_PASSWORD")

    TO_RECIPIENTS = _split_addresses(os.getenv("EMAIL_TO"))
    CC_RECIPIENTS = _split_addresses(os.getenv("EMAIL_CC"))
    BCC_RECIPIENTS = _split_addresses(os.getenv("EMAIL_BCC"))

    EMAIL_SUBJECT_TEMPLATE = os.getenv("EMAIL_SUBJECT", "Daily All Feeders Report - {date}")
    SENDER_NAME = os.getenv("SENDER_NAME", "Feeder Performance Tracker")
    RECIPIENT_NAME = os.getenv("RECIPIENT_NAME", "Team")

    EXCEL_FILE = os.getenv("OUTPUT_FILE", "Daily_Feeder_Report.xlsx")
    SUMMARY_SHEET = os.getenv("SUMMARY_SHEET", "Summary")

    @classmethod
    def validate(cls) -> None:
        """Raise ValueError naming the first missing SMTP setting."""
        required = {
            "EMAIL_PASSWORD": cls.EMAIL_PASSWORD,
            "SENDER_EMAIL": cls.SENDER_EMAIL,
            "EMAIL_TO": cls.clean_recipients(cls.TO_RECIPIENTS),
        }
        for name, value in required.items():
            if not value:
                raise ValueError(f"{name} not set in environment variables")

    @classmethod
    def clean_recipients(cls, recipients: List[str]) -> List[str]:
        return [r.strip() for r in recipients if r.strip()]

    @classmethod
    def address_headers(cls) -> Dict[str, str]:
        """To/Cc/Bcc header values, omitting empty lists."""
        headers = {}
        for header, recipients in (
            ("To", cls.TO_RECIPIENTS),
            ("Cc", cls.CC_RECIPIENTS),
            ("Bcc", cls.BCC_RECIPIENTS),
        ):
            cleaned = cls.clean_recipients(recipients)
            if cleaned:
                headers[header] = ", ".join(cleaned)
        return headers


# ============================================================================
# HTML TABLE GENERATOR
# ============================================================================

class HTMLTableGenerator:
    """Render the per-region summary DataFrame as an inline-styled HTML table."""

    FONT = "font-family: Arial, sans-serif;"
    HEADER_STYLE = f"background-color: #4F81BD; color: #FFFFFF; font-weight: bold; padding: 8px; border: 1px solid #2F5F8D; {FONT}"
    CELL_STYLE = f"padding: 8px; border: 1px solid #ddd; color: #333333; {FONT}"
    FLAGGED_STYLE = "color: #C00000; font-weight: bold;"

    # Count columns where any non-zero value needs attention
    ALERT_COLUMNS = {"FLAGGED"}

    @classmethod
    def generate(cls, df: pd.DataFrame) -> str:
        """
        Integer columns are right-aligned with thousands separators; non-zero
        counts in alert columns are highlighted.
        """
        if df.empty:
            return "<p><em>No data available</em></p>"

        numeric = {c for c in df.columns if pd.api.types.is_numeric_dtype(df[c])}

        header = "".join(f'<th style="{cls.HEADER_STYLE}">{col}</th>' for col in df.columns)
        body = []
        for position, record in enumerate(df.to_dict("records")):
            shade = "background-color: #f9f9f9;" if position % 2 else ""
            cells = "".join(cls._cell(col, record[col], col in numeric) for col in df.columns)
            body.append(f'<tr style="{shade}">{cells}</tr>')

        return (
            '<table style="border-collapse: collapse; width: 100%; margin: 20px 0;">'
            f"<thead><tr>{header}</tr></thead>"
            f"<tbody>{''.join(body)}</tbody>"
            "</table>"
        )

    @classmethod
    def _cell(cls, column: str, value, is_numeric: bool) -> str:
        if not is_numeric:
            return f'<td style="{cls.CELL_STYLE} text-align: left;">{value}</td>'

        text = f"{int(value):,}" if pd.notnull(value) else ""
        extra = cls.FLAGGED_STYLE if column in cls.ALERT_COLUMNS and pd.notnull(value) and value > 0 else ""
        return f'<td style="{cls.CELL_STYLE} {extra}text-align: right;">{text}</td>'


# ============================================================================
# EMAIL BUILDER
# ============================================================================

class EmailBuilder:
    """Assemble the report email: plain text, HTML alternative, attachments."""

    def __init__(self, config: EmailConfig):
        self.config = config

    def build_message(
        self,
        summary_html: str,
        date_str: str,
        attachments: Optional[List[str]] = None
    ) -> EmailMessage:
        """
        Args:
            summary_html: KPI tiles and the per-region table
            date_str: Report date (ISO) for the subject and greeting
            attachments: Files to attach; missing ones are skipped

        Returns:
            EmailMessage ready to send
        """
        msg = EmailMessage()
        msg["From"] = self.config.SENDER_EMAIL
        for header, value in self.config.address_headers().items():
            msg[header] = value
        msg["Subject"] = self.config.EMAIL_SUBJECT_TEMPLATE.format(date=date_str)

        msg.set_content(f"Please find attached the daily feeders report for {date_str}.")
        msg.add_alternative(self._build_html_body(summary_html, date_str), subtype="html")

        for filepath in attachments or []:
            self._attach_file(msg, filepath)

        return msg

    def _build_html_body(self, summary_html: str, date_str: str) -> str:
        try:
            report_day = datetime.strptime(date_str, "%Y-%m-%d")
            formatted_date = f"{report_day:%A}, {date_str}"
        except ValueError:
            formatted_date = date_str

        return f"""
        <!DOCTYPE html>
        <html>
        <head><meta charset="UTF-8"></head>
        <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
            <p>Greetings {self.config.RECIPIENT_NAME},</p>
            <p>Attached is the feeder performance report up to <strong>{formatted_date}</strong>.
            Feeders are checked on their last reading against nomination (70%-130%)
            and against daily energy uptake.</p>
            {summary_html}
            <p>Per-feeder nomination, actual and variance figures, and the list of
            failed checks, are in the attached workbook.</p>
            <p style="margin-top: 30px; color: #666; font-size: 0.9em;">Kind regards,<br>
            <strong>{self.config.SENDER_NAME}</strong><br>
            <em>Automated report sent at {datetime.now():%I:%M %p}.</em></p>
        </body>
        </html>
        """

    def _attach_file(self, msg: EmailMessage, filepath: str) -> None:
        if not os.path.exists(filepath):
            logger.warning(f"Attachment not found: {filepath}")
            return

        ctype, encoding = mimetypes.guess_type(filepath)
        if ctype is None or encoding is not None:
            ctype = "application/octet-stream"
        maintype, subtype = ctype.split("/", 1)

        filename = os.path.basename(filepath)
        with open(filepath, "rb") as f:
            msg.add_attachment(f.read(), maintype=maintype, subtype=subtype, filename=filename)
        logger.info(f"✅ Attached: {filename}")


# ============================================================================
# EMAIL SENDER
# ============================================================================

class EmailSender:
    """Deliver a message over SMTP with STARTTLS."""

    def __init__(self, config: EmailConfig):
        self.config = config

    def send(self, msg: EmailMessage) -> bool:
        """Returns True when the server accepted the message."""
        server_name = f"{self.config.SMTP_SERVER}:{self.config.SMTP_PORT}"
        logger.info(f"📧 Connecting to {server_name}...")

        try:
            with smtplib.SMTP(
                self.config.SMTP_SERVER,
                self.config.SMTP_PORT,
                timeout=self.config.SMTP_TIMEOUT
            ) as server:
                server.starttls()
                server.login(self.config.SENDER_EMAIL, self.config.EMAIL_PASSWORD)
                server.send_message(msg)
        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"❌ SMTP login failed for {self.config.SENDER_EMAIL}: {e}")
            return False
        except smtplib.SMTPException as e:
            logger.error(f"❌ SMTP Error: {e}")
            return False
        except OSError as e:
            logger.error(f"❌ Cannot connect to {server_name}: {e}")
            return False

        logger.info(f"✅ Email sent to {msg['To']}")
        return True


# ============================================================================
# MAIN REPORT SENDER
# ============================================================================

def send_report(
    excel_file: Optional[str] = None,
    summary_sheet: Optional[str] = None,
    date_str: Optional[str] = None,
    additional_attachments: Optional[List[str]] = None
) -> bool:
    """
    Email the feeder workbook.

    Args:
        excel_file: Workbook path (defaults to OUTPUT_FILE)
        summary_sheet: Sheet holding the per-region counts
        date_str: Report date for the subject (defaults to today)
        additional_attachments: Extra files to attach

    Returns:
        True if the email was sent, False otherwise
    """
    try:
        EmailConfig.validate()
    except ValueError as e:
        logger.error(f"❌ Email configuration error: {e}")
        return False

    excel_file = excel_file or EmailConfig.EXCEL_FILE
    summary_sheet = summary_sheet or EmailConfig.SUMMARY_SHEET
    date_str = date_str or datetime.now().strftime("%Y-%m-%d")

    if not os.path.exists(excel_file):
        logger.error(f"❌ Excel file not found: {excel_file}")
        return False

    logger.info(f"📖 Reading {summary_sheet} sheet from {excel_file}")
    try:
        df_summary = pd.read_excel(excel_file, sheet_name=summary_sheet)
    except (OSError, ValueError) as e:
        logger.error(f"❌ Failed to read Excel file: {e}")
        return False

    summary_html = (
        generate_kpi_section(df_summary)
        + '<h3 style="color: #4F81BD; margin-top: 30px;">Feeder Analysis by Region</h3>'
        + HTMLTableGenerator.generate(df_summary)
    )

    attachments = [excel_file] + list(additional_attachments or [])
    msg = EmailBuilder(EmailConfig).build_message(summary_html, date_str, attachments)

    success = EmailSender(EmailConfig).send(msg)
    if success:
        logger.info("🎉 Report sent successfully!")
    else:
        logger.error("❌ Failed to send report")
    return success


def generate_kpi_section(df_summary: pd.DataFrame) -> str:
    """KPI tiles: total feeders, feeders with failed checks, feeders with no flags."""

    def total(column: str) -> int:
        return int(df_summary[column].sum()) if column in df_summary else 0

    tiles = [
        ("TOTAL FEEDERS", total("FEEDERS")),
        ("FLAGGED FEEDERS", total("FLAGGED")),
        ("NO FLAGS", total("NO FLAGS")),
    ]

    cells = "".join(
        '<td style="padding: 15px; background-color: #E8F4F8; border: 2px solid #4F81BD; text-align: center;">'
        f'<div style="font-size: 14px; color: #666; margin-bottom: 5px;">{label}</div>'
        f'<div style="font-size: 28px; font-weight: bold; color: #4F81BD;">{value:,}</div>'
        "</td>"
        for label, value in tiles
    )

    return (
        '<div style="margin: 20px 0;">'
        '<h3 style="color: #4F81BD; margin-bottom: 15px;">Key Performance Indicators</h3>'
        f'<table style="border-collapse: collapse; width: 100%; margin-bottom: 20px;"><tr>{cells}</tr></table>'
        "</div>"
    )
