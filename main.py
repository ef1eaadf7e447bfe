"""
driftguard - Main Entry Point

Backtest simulation and live strategy drift monitoring.

Usage:
    # Check configuration
    python main.py --check

    # Initialize database
    python main.py --init-db

    # Run drift detection for one deployment
    python main.py --detect-drift <deployment-id>

    # Show performance and drift summary
    python main.py --summary <deployment-id>

    # Show performance trend
    python main.py --trend <deployment-id>
"""

import argparse
import asyncio
from typing import Dict, Optional

import structlog

from driftguard.core.config import app_config, database_config
from driftguard.drift.detector import DriftDetectorService
from driftguard.monitoring.service import MonitoringService
from driftguard.storage.audit import AuditService
from driftguard.storage.database import Database
from driftguard.utils.logging_config import setup_logging

logger = structlog.get_logger(__name__)


class DriftGuardApp:
    """
    Wires storage, monitoring, audit and drift detection together.

    Use as an async context manager so the database is initialized on entry
    and closed on exit.
    """

    def __init__(self, database_url: Optional[str] = None):
        self.database = Database(database_url)
        self.monitoring = MonitoringService(self.database)
        self.audit = AuditService(self.database)
        self.drift = DriftDetectorService(self.database, self.monitoring, self.audit)

    async def __aenter__(self) -> "DriftGuardApp":
        await self.database.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.database.close()


def print_banner():
    """Print the startup banner."""
    banner = f"""
╔══════════════════════════════════════════════════════════════════╗
║                                                                  ║
║           DRIFTGUARD v{app_config.system.app_version:<10}                                 ║
║                                                                  ║
║     Backtest simulation  |  Live drift monitoring                ║
║                                                                  ║
╚══════════════════════════════════════════════════════════════════╝
"""
    print(banner)


def check_configuration() -> Dict:
    """
    Check if configuration is valid.

    Returns:
        Dictionary with validation results
    """
    validation = app_config.validate_configuration()

    return {
        "valid": validation["valid"],
        "issues": validation["issues"],
        "environment": app_config.system.environment,
        "database_url": database_config.database_url,
        "rolling_window_days": app_config.monitoring.rolling_window_days,
        "drift_check_interval_minutes": app_config.monitoring.drift_check_interval_minutes,
    }


async def detect_drift(app: DriftGuardApp, deployment_id: str):
    """Run drift detection and print the alerts raised."""
    alerts = await app.drift.detect_drift(deployment_id)

    print(f"\n🔍 Drift detection for {deployment_id}")
    if not alerts:
        print("   No drift detected")
        return

    for alert in alerts:
        print(f"   [{alert.severity.value.upper()}] {alert.drift_type.value}: {alert.message}")
        print(f"      → {alert.recommendation}")


async def print_summary(app: DriftGuardApp, deployment_id: str):
    """Print the performance summary, backtest comparison and drift summary."""
    summary = await app.monitoring.get_performance_summary(deployment_id)

    print("\n" + "=" * 60)
    print(f"           DEPLOYMENT {deployment_id}")
    print("=" * 60)

    if summary.get("status") == "no_data":
        print(f"\n{summary['message']}")
    else:
        print(f"\n📊 Status: {summary['status'].upper()}")
        print(f"   Cumulative Return: {summary['cumulative_return']:.2%}")
        print(f"   Max Drawdown: {summary['max_drawdown']:.2%}")
        print(f"   Sharpe Ratio: {summary['sharpe_ratio']}")
        print(f"   Win Rate: {summary['win_rate']}")
        print(f"   Days: {summary['total_days']} "
              f"({summary['profitable_days']} profitable, {summary['losing_days']} losing)")

        comparison = await app.monitoring.compare_to_backtest(deployment_id)
        print(f"\n📈 Backtest Comparison ({comparison['overall_status']}):")
        for name, row in comparison["comparison"].items():
            print(f"   {name}: backtest={row['backtest']} live={row['live']} → {row['status']}")

    drift = await app.drift.get_drift_summary(deployment_id)
    print(f"\n⚠️  Drift Alerts: {drift['active_alerts']} active / {drift['total_alerts']} total")
    for severity, count in drift["breakdown"].items():
        if count:
            print(f"   {severity}: {count}")

    print("\n" + "=" * 60)


async def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="driftguard - Backtest simulation and live drift monitoring"
    )

    parser.add_argument(
        "--check", action="store_true", help="Check configuration and exit"
    )
    parser.add_argument(
        "--init-db", action="store_true", help="Initialize database and exit"
    )
    parser.add_argument(
        "--detect-drift", metavar="DEPLOYMENT_ID", help="Run drift detection for a deployment"
    )
    parser.add_argument(
        "--summary", metavar="DEPLOYMENT_ID", help="Show performance and drift summary"
    )
    parser.add_argument(
        "--trend", metavar="DEPLOYMENT_ID", help="Show performance trend"
    )

    args = parser.parse_args()

    # Setup logging
    setup_logging()

    if not args.check:
        print_banner()

    config_check = check_configuration()

    # Handle --check
    if args.check:
        print("\n" + "=" * 60)
        print("           CONFIGURATION CHECK")
        print("=" * 60)

        if config_check["valid"]:
            print("\n✓ Configuration is valid")
        else:
            print("\n✗ Configuration errors:")
            for issue in config_check["issues"]:
                print(f"   - {issue}")

        print(f"\nEnvironment: {config_check['environment']}")
        print(f"Database: {config_check['database_url']}")
        print(f"Rolling Window: {config_check['rolling_window_days']} days")
        print(f"Drift Check Interval: {config_check['drift_check_interval_minutes']} minutes")

        print("\n" + "=" * 60)
        return

    # If config is invalid, exit early
    if not config_check["valid"]:
        print("\n✗ Configuration errors:")
        for issue in config_check["issues"]:
            print(f"   - {issue}")
        print("\nPlease check your .env file and try again.")
        return

    # Handle --init-db
    if args.init_db:
        print("\n📦 Initializing database...")
        db = Database()
        await db.initialize()
        print("✓ Database initialized successfully")
        await db.close()
        return

    if not (args.detect_drift or args.summary or args.trend):
        parser.print_help()
        return

    try:
        async with DriftGuardApp() as app:
            if args.detect_drift:
                await detect_drift(app, args.detect_drift)
            if args.summary:
                await print_summary(app, args.summary)
            if args.trend:
                trend = await app.monitoring.get_performance_trend(args.trend)
                print(f"\n📉 Trend for {args.trend}: {trend.value}")

    except ValueError as e:
        print(f"\n✗ {e}")
    except Exception as e:
        logger.error("main.error", error=str(e), exc_info=True)
        print(f"\n✗ Fatal error: {e}")
        raise


if __name__ == "__main__":
    asyncio.run(main())
