"""
Feeder Performance Report Automation - Main Script
Orchestrates data fetching, report generation, and email sending.
Runs once on demand or every day at the configured report time.
"""

import os
import sys
import logging
import time
import schedule
from datetime import datetime
from typing import List, Optional
from dotenv import load_dotenv

from feeder_store import ApiFeederStore, FeederStore
from generate_feeder_report import generate_feeder_report, ReportConfig
from report_engine import FeederReport
from report_errors import InvalidRangeError
from report_service import (
    build_daily_report,
    build_feeder_specific_report,
    build_monthly_report,
    build_range_report,
)
from send_report import send_report

# Load environment variables
load_dotenv()

# ============================================================================
# LOGGING CONFIGURATION
# ============================================================================

def setup_logging() -> logging.Logger:
    """Configure logging with both file and console handlers."""
    log_level = os.getenv("LOG_LEVEL", "INFO")
    log_file = os.getenv("LOG_FILE", "report_generation.log")

    # Handlers live on the root logger so module loggers share them
    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))

    file_handler = logging.FileHandler(log_file, encoding='utf-8')
    file_handler.setLevel(log_level)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))

    root.addHandler(console_handler)
    root.addHandler(file_handler)

    return logging.getLogger("feeder_report")

logger = setup_logging()


# ============================================================================
# CONFIGURATION
# ============================================================================

REPORT_MODES = ("daily", "range", "monthly", "feeders")


class Config:
    """Configuration class for API credentials and report parameters."""

    # Backend
    FEEDER_API_TOKEN = os.getenv("FEEDER_API_TOKEN")

    # Report selection
    REPORT_MODE = os.getenv("REPORT_MODE", "daily")
    SPECIFIC_DATE = os.getenv("SPECIFIC_DATE")
    START_DATE = os.getenv("START_DATE")
    END_DATE = os.getenv("END_DATE")
    REPORT_MONTH = os.getenv("REPORT_MONTH")
    REPORT_YEAR = os.getenv("REPORT_YEAR")
    REGION = os.getenv("REGION")
    BUSINESS_HUB = os.getenv("BUSINESS_HUB")
    FEEDER_IDS = os.getenv("FEEDER_IDS", "")

    # Email config
    SEND_EMAIL = os.getenv("SEND_EMAIL", "true").lower() == "true"

    # Scheduling config
    RUN_MODE = os.getenv("RUN_MODE", "scheduled")  # "scheduled" or "once"
    REPORT_TIME = os.getenv("REPORT_TIME", "12:00")

    @classmethod
    def validate(cls) -> None:
        """Validate that all required config is present."""
        required = ["FEEDER_API_TOKEN"]
        missing = [key for key in required if not getattr(cls, key)]
        if missing:
            raise ValueError(f"Missing required environment variables: {', '.join(missing)}")
        if cls.REPORT_MODE.lower() not in REPORT_MODES:
            raise ValueError(
                f"Invalid REPORT_MODE: {cls.REPORT_MODE}. Must be one of {', '.join(REPORT_MODES)}"
            )

    @classmethod
    def feeder_ids(cls) -> List[str]:
        return [f.strip() for f in (cls.FEEDER_IDS or "").split(",") if f.strip()]


# ============================================================================
# REPORT BUILDING
# ============================================================================

def build_report(store: FeederStore, today=None) -> FeederReport:
    """
    Build the report selected by REPORT_MODE.

    Args:
        store: Feeder/reading collaborator
        today: Override for the daily report's "today" (UTC)

    Returns:
        Assembled FeederReport
    """
    mode = Config.REPORT_MODE.lower()

    if mode == "daily":
        return build_daily_report(store, specific_date=Config.SPECIFIC_DATE, today=today)

    if mode == "range":
        return build_range_report(
            store,
            Config.START_DATE,
            Config.END_DATE,
            region=Config.REGION,
            business_hub=Config.BUSINESS_HUB,
        )

    if mode == "monthly":
        if not Config.REPORT_MONTH or not Config.REPORT_YEAR:
            raise InvalidRangeError("REPORT_MONTH and REPORT_YEAR are required for monthly reports")
        return build_monthly_report(
            store,
            Config.REPORT_MONTH,
            Config.REPORT_YEAR,
            region=Config.REGION,
            business_hub=Config.BUSINESS_HUB,
        )

    if mode == "feeders":
        return build_feeder_specific_report(store, Config.feeder_ids(), Config.START_DATE, Config.END_DATE)

    raise ValueError(f"Invalid REPORT_MODE: {Config.REPORT_MODE}")


# ============================================================================
# MAIN EXECUTION
# ============================================================================

def generate_and_send_report(store: Optional[FeederStore] = None) -> bool:
    """
    Main workflow: fetch data, generate report, send email.

    Returns:
        True if successful, False otherwise
    """
    start_time = datetime.now()

    try:
        logger.info("🔍 Validating configuration...")
        Config.validate()

        if store is None:
            store = ApiFeederStore(Config.FEEDER_API_TOKEN)

        logger.info(f"📦 Fetching feeders and readings ({Config.REPORT_MODE} report)...")
        report = build_report(store)
        display_date = report.date_range.end.isoformat()
        logger.info(f"📅 Generating report for: {report.date_range.label()}")
        logger.info("=" * 70)

        logger.info("\n📊 Generating Excel report...")
        report_config = ReportConfig.from_env()
        output_file = generate_feeder_report(report, report_config)

        if Config.SEND_EMAIL:
            logger.info("\n📧 Sending email report...")
            email_success = send_report(excel_file=output_file, date_str=display_date)
            if not email_success:
                logger.warning("⚠️ Email sending failed, but report was generated")
        else:
            logger.info("📧 Email sending disabled (SEND_EMAIL=false)")
            email_success = True

        duration = (datetime.now() - start_time).total_seconds()

        logger.info("\n" + "=" * 70)
        logger.info("✅ Report generation complete!")
        logger.info(f"⏱️  Total execution time: {duration:.2f} seconds")
        logger.info(f"📁 Report saved: {output_file}")
        logger.info(f"🚩 Feeders with failed checks: {len(report.failed_checks_summary)}")

        return email_success

    except Exception as e:
        logger.error(f"\n❌ Fatal error: {e}", exc_info=True)
        logger.error("=" * 70)
        logger.error("Report generation failed!")
        return False


def scheduled_job() -> None:
    """Job that runs on schedule."""
    current_time = datetime.now()
    logger.info(f"\n🕐 Scheduled job triggered at {current_time.strftime('%Y-%m-%d %H:%M:%S')}")
    logger.info("=" * 70)
    logger.info("FEEDER REPORT AUTOMATION - SCHEDULED RUN")
    logger.info("=" * 70)

    generate_and_send_report()


def run_scheduler() -> None:
    """Set up and run the scheduler for the daily report."""
    report_time = Config.REPORT_TIME

    logger.info("\n" + "=" * 70)
    logger.info("FEEDER REPORT AUTOMATION - SCHEDULER MODE")
    logger.info("=" * 70)
    logger.info(f"📅 Schedule: every day at {report_time}")
    logger.info(f"⏰ Current time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    logger.info("=" * 70)

    schedule.every().day.at(report_time).do(scheduled_job)

    logger.info("\n✅ Scheduler started. Waiting for scheduled times...")
    logger.info("💡 Press Ctrl+C to stop the scheduler\n")

    next_run = schedule.next_run()
    if next_run:
        logger.info(f"📌 Next scheduled run: {next_run.strftime('%A, %Y-%m-%d at %H:%M:%S')}\n")

    try:
        while True:
            schedule.run_pending()
            time.sleep(60)
    except KeyboardInterrupt:
        logger.info("\n⚠️ Scheduler stopped by user")


def main() -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for failure, 130 when interrupted)
    """
    try:
        run_mode = Config.RUN_MODE.lower()

        if run_mode == "once":
            logger.info("\n" + "=" * 70)
            logger.info("FEEDER REPORT AUTOMATION - SINGLE RUN MODE")
            logger.info("=" * 70)
            logger.info(f"Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
            logger.info("=" * 70 + "\n")

            success = generate_and_send_report()
            return 0 if success else 1

        if run_mode == "scheduled":
            run_scheduler()
            return 0

        logger.error(f"❌ Invalid RUN_MODE: {run_mode}. Must be 'once' or 'scheduled'")
        return 1

    except KeyboardInterrupt:
        logger.warning("\n⚠️ Process interrupted by user")
        return 130  # SIGINT
    except Exception as e:
        logger.error(f"\n❌ Unexpected error: {e}", exc_info=True)
        return 1
    finally:
        logger.info(f"\nFinished at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        logger.info("=" * 70)


if __name__ == "__main__":
    sys.exit(main())
