"""
Scheduled jobs — run from cron / a scheduler container.

    python -m attendance_engine.jobs expire-points [--date YYYY-MM-DD]
    python -m attendance_engine.jobs gbro-due [--date YYYY-MM-DD]
    python -m attendance_engine.jobs purge-scans [--date YYYY-MM-DD]
    python -m attendance_engine.jobs detect-absences [--date YYYY-MM-DD]

``detect-absences`` defaults to yesterday's shifts; the other jobs default
to today.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import date, timedelta

from attendance_engine.core.config import EngineConfig, settings
from attendance_engine.db.session import async_session_factory, engine
from attendance_engine.services.expiration import ExpirationService
from attendance_engine.services.reconciler import AttendanceReconciler
from attendance_engine.services.retention import purge_expired_scans

logger = logging.getLogger("attendance_engine.jobs")

JOBS = ("expire-points", "gbro-due", "purge-scans", "detect-absences")


async def run_job(name: str, run_date: date | None, config: EngineConfig) -> str:
    async with async_session_factory() as session:
        if name == "expire-points":
            summary = await ExpirationService(session, config).run_sro_sweep(run_date)
            return summary.model_dump_json()
        if name == "gbro-due":
            response = await ExpirationService(session, config).process_due_gbro(run_date)
            return response.model_dump_json()
        if name == "purge-scans":
            purged = await purge_expired_scans(session, config, run_date)
            return f'{{"purged": {purged}}}'
        if name == "detect-absences":
            shift_date = run_date or date.today() - timedelta(days=1)
            summary = await AttendanceReconciler(session, config).detect_absences(shift_date)
            return summary.model_dump_json()
    raise ValueError(f"Unknown job: {name}")


async def _main(name: str, run_date: date | None) -> str:
    try:
        return await run_job(name, run_date, EngineConfig.from_settings())
    finally:
        await engine.dispose()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="attendance_engine.jobs", description=__doc__.split("\n")[1])
    parser.add_argument("job", choices=JOBS)
    parser.add_argument("--date", type=date.fromisoformat, default=None, dest="run_date")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )
    try:
        result = asyncio.run(_main(args.job, args.run_date))
    except Exception:
        logger.exception("Job %s failed", args.job)
        return 1
    print(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
