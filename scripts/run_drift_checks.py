#!/usr/bin/env python3
"""
Run drift detection for every active deployment.

Deployments are checked one after another from a single process, so no two
checks for the same deployment ever overlap.

Usage:
    python scripts/run_drift_checks.py            # one pass
    python scripts/run_drift_checks.py --loop     # repeat every DRIFT_CHECK_INTERVAL_MINUTES
"""
import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import structlog

from driftguard.core.config import monitoring_config
from driftguard.drift.detector import DriftDetectorService
from driftguard.monitoring.service import MonitoringService
from driftguard.storage.audit import AuditService
from driftguard.storage.database import Database
from driftguard.utils.logging_config import setup_logging

logger = structlog.get_logger("run_drift_checks")


async def run_pass(drift: DriftDetectorService, database: Database) -> int:
    """Check every active deployment once. Returns the number of alerts raised."""
    deployments = await database.get_active_deployments()
    total = 0

    print(f"Checking {len(deployments)} active deployment(s)...")
    print("-" * 70)

    for deployment in deployments:
        alerts = await drift.detect_drift(deployment.id)
        total += len(alerts)

        label = deployment.strategy_name or deployment.id
        if alerts:
            worst = max(alerts, key=lambda a: ["low", "medium", "high", "critical"].index(a.severity.value))
            print(f"  {label}: {len(alerts)} alert(s), worst {worst.severity.value}")
        else:
            print(f"  {label}: ok")

    print("-" * 70)
    logger.info("drift_checks.pass_complete", deployments=len(deployments), alerts=total)
    return total


async def main(loop: bool = False):
    setup_logging()

    database = Database()
    await database.initialize()

    monitoring = MonitoringService(database)
    drift = DriftDetectorService(database, monitoring, AuditService(database))

    try:
        while True:
            await run_pass(drift, database)
            if not loop:
                break
            await asyncio.sleep(monitoring_config.drift_check_interval_minutes * 60)
    finally:
        await database.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run drift detection for active deployments")
    parser.add_argument("--loop", action="store_true", help="Repeat on the configured interval")
    args = parser.parse_args()

    try:
        asyncio.run(main(loop=args.loop))
    except KeyboardInterrupt:
        print("\nStopped.")
