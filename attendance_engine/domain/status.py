"""
Status derivation — the pure core of the attendance reconciler.

Given the frozen schedule of a record and the distinct scans resolved to its
shift date, compute arrival/departure times, tardy/undertime deltas and the
primary/secondary status.  The result only depends on the *set* of scans, so
feeding the same scans in any order, or twice, yields the same snapshot.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from pydantic import BaseModel

from attendance_engine.core.config import EngineConfig
from attendance_engine.domain.enums import AttendanceStatus, ScanRole, ShiftType
from attendance_engine.domain.snapshots import AttendanceSnapshot, ScanSnapshot
from attendance_engine.domain.timeutils import scheduled_bounds, whole_minutes

Status = AttendanceStatus

# review reason set by the scan-pattern screen; unlike the schedule reasons
# it is recomputed whenever the scan set grows
IRREGULAR_SCANS = "irregular scan pattern"

# arrival verdicts that carry an undertime as secondary status
_LATE_ARRIVALS = (Status.TARDY, Status.HALF_DAY_ABSENCE)


class Derivation(BaseModel):
    status: AttendanceStatus
    secondary_status: AttendanceStatus | None = None
    tardy_minutes: int | None = None
    undertime_minutes: int | None = None

    model_config = {"frozen": True}


def classify_arrival(
    delta_minutes: int, grace_minutes: int, half_day_threshold: int
) -> tuple[AttendanceStatus, int | None]:
    """Map minutes-after-scheduled-start to an arrival status and tardy minutes."""
    if delta_minutes <= grace_minutes:
        return Status.ON_TIME, None
    if delta_minutes <= half_day_threshold:
        return Status.TARDY, delta_minutes
    return Status.HALF_DAY_ABSENCE, delta_minutes


def distinct_scans(scans: Iterable[ScanSnapshot]) -> list[ScanSnapshot]:
    """Collapse duplicates by timestamp (lowest site id wins) and sort."""
    by_time: dict[datetime, ScanSnapshot] = {}
    for scan in scans:
        current = by_time.get(scan.scanned_at)
        if current is None or (scan.site_id or 0) < (current.site_id or 0):
            by_time[scan.scanned_at] = scan
    return [by_time[ts] for ts in sorted(by_time)]


def pick_counterparts(
    scans: list[ScanSnapshot], *, first_and_last: bool = False
) -> tuple[ScanSnapshot | None, ScanSnapshot | None]:
    """Earliest arrival candidate and latest departure candidate.

    ``first_and_last`` ignores roles and pairs the first with the last scan.
    A single scan is always read through its resolved role.
    """
    if not scans:
        return None, None
    if first_and_last and len(scans) > 1:
        return scans[0], scans[-1]
    ins = [s for s in scans if s.role == ScanRole.TIME_IN]
    outs = [s for s in scans if s.role == ScanRole.TIME_OUT]
    return (ins[0] if ins else None), (outs[-1] if outs else None)


def pairs_first_and_last(base: AttendanceSnapshot, scan_total: int) -> bool:
    """Whether the first and last scans of a shift form its arrival and departure.

    Night shifts keep the resolver's roles: the hour rule already put every
    evening scan before every morning one.
    """
    if base.shift_type == ShiftType.UTILITY_24H or not base.has_schedule:
        return True
    return not base.is_night_shift and scan_total > 1


def screen_departure(
    time_in: datetime | None, scan_out: ScanSnapshot | None, config: EngineConfig
) -> tuple[ScanSnapshot | None, list[str]]:
    """Drop a departure that cannot be real, with a note saying why.

    A departure a few minutes after the arrival is a double punch; one more
    than ``max_shift_hours`` later is a mismatched scan or a missed clock-out.
    """
    if time_in is None or scan_out is None:
        return scan_out, []
    if scan_out.scanned_at <= time_in:
        return None, []
    time_out = scan_out.scanned_at
    worked = whole_minutes(time_in, time_out)
    if worked < config.double_punch_minutes:
        return None, [
            f"Double punch: {time_in:%H:%M:%S} to {time_out:%H:%M:%S} "
            f"({worked} minutes apart); time out cleared pending verification."
        ]
    if worked > config.max_shift_hours * 60:
        return None, [
            f"Excessive duration: {time_in:%Y-%m-%d %H:%M} to {time_out:%Y-%m-%d %H:%M} "
            f"({worked / 60:.1f} hours); time out cleared."
        ]
    return scan_out, []


def scan_pattern_warnings(
    snapshot: AttendanceSnapshot, scans: list[ScanSnapshot], config: EngineConfig
) -> list[str]:
    """Reasons the scans of a scheduled record look too irregular to judge."""
    start, end = scheduled_bounds(
        snapshot.shift_date, snapshot.scheduled_time_in, snapshot.scheduled_time_out
    )
    window = config.off_schedule_hours * 60
    warnings = []

    def off_schedule(scan: ScanSnapshot) -> bool:
        at = scan.scanned_at
        return abs(whole_minutes(start, at)) > window and abs(whole_minutes(end, at)) > window

    if scans and len(scans) <= 2 and all(off_schedule(s) for s in scans):
        times = ", ".join(f"{s.scanned_at:%Y-%m-%d %H:%M}" for s in scans)
        warnings.append(f"Only {len(scans)} scan(s) ({times}), none near the scheduled shift.")

    if snapshot.actual_time_in is not None:
        early = whole_minutes(snapshot.actual_time_in, start)
        if early > config.early_arrival_review_minutes:
            warnings.append(f"Time in is {early / 60:.1f} hours before the scheduled start.")

    if snapshot.actual_time_out is not None:
        late = whole_minutes(end, snapshot.actual_time_out)
        if late > config.late_departure_review_minutes:
            warnings.append(f"Time out is {late / 60:.1f} hours after the scheduled end.")
        elif -late > config.early_departure_review_minutes:
            warnings.append(f"Time out is {-late / 60:.1f} hours before the scheduled end.")
    return warnings


def departure_undertime(snapshot: AttendanceSnapshot) -> int | None:
    """Minutes left before the scheduled end, or ``None`` when not early."""
    if snapshot.actual_time_out is None or not snapshot.has_schedule:
        return None
    _start, end = scheduled_bounds(
        snapshot.shift_date, snapshot.scheduled_time_in, snapshot.scheduled_time_out
    )
    early_by = whole_minutes(snapshot.actual_time_out, end)
    return early_by if early_by > 0 else None


def derive_status(snapshot: AttendanceSnapshot, config: EngineConfig) -> Derivation:
    """Status for a record from its scheduled and actual times."""
    time_in = snapshot.actual_time_in
    time_out = snapshot.actual_time_out

    if snapshot.review_reason or not snapshot.has_schedule:
        return Derivation(status=Status.NEEDS_MANUAL_REVIEW)

    if time_in is None and time_out is None:
        return Derivation(status=Status.NCNS)

    if snapshot.shift_type == ShiftType.UTILITY_24H:
        return _derive_utility(time_in, time_out, config)

    undertime = departure_undertime(snapshot)

    if time_in is None:
        return Derivation(status=Status.FAILED_BIO_IN, undertime_minutes=undertime)

    start, _end = scheduled_bounds(
        snapshot.shift_date, snapshot.scheduled_time_in, snapshot.scheduled_time_out
    )
    arrival, tardy = classify_arrival(
        whole_minutes(start, time_in),
        snapshot.grace_period_minutes,
        config.half_day_threshold_minutes,
    )

    if time_out is None:
        if arrival == Status.ON_TIME:
            return Derivation(status=Status.FAILED_BIO_OUT)
        return Derivation(
            status=arrival, secondary_status=Status.FAILED_BIO_OUT, tardy_minutes=tardy
        )

    if undertime:
        if arrival == Status.ON_TIME:
            return Derivation(status=Status.UNDERTIME, undertime_minutes=undertime)
        return Derivation(
            status=arrival,
            secondary_status=Status.UNDERTIME,
            tardy_minutes=tardy,
            undertime_minutes=undertime,
        )

    return Derivation(status=arrival, tardy_minutes=tardy)


def _derive_utility(
    time_in: datetime | None, time_out: datetime | None, config: EngineConfig
) -> Derivation:
    # no fixed start for utility staff: judge only on hours worked, and keep
    # tardy/undertime minutes empty so the shortfall is a flat undertime
    if time_in is None:
        return Derivation(status=Status.FAILED_BIO_IN)
    if time_out is None:
        return Derivation(status=Status.FAILED_BIO_OUT)
    if whole_minutes(time_in, time_out) >= config.utility_min_work_hours * 60:
        return Derivation(status=Status.ON_TIME)
    return Derivation(status=Status.UNDERTIME)


def apply_derivation(snapshot: AttendanceSnapshot, config: EngineConfig) -> AttendanceSnapshot:
    derived = derive_status(snapshot, config)
    return snapshot.model_copy(update=derived.model_dump())


def complete_departure(snapshot: AttendanceSnapshot) -> AttendanceSnapshot:
    """Fold a newly known departure into a reviewer-confirmed arrival verdict."""
    undertime = departure_undertime(snapshot)
    arrival = snapshot.status
    if arrival in (Status.ON_TIME, Status.FAILED_BIO_OUT):
        status = Status.UNDERTIME if undertime else Status.ON_TIME
        secondary = None
    else:
        status = arrival
        secondary = Status.UNDERTIME if undertime and arrival in _LATE_ARRIVALS else None
    return snapshot.model_copy(
        update={
            "status": status,
            "secondary_status": secondary,
            "undertime_minutes": undertime,
        }
    )


def reconcile_scans(
    base: AttendanceSnapshot,
    scans: Iterable[ScanSnapshot],
    config: EngineConfig,
) -> AttendanceSnapshot:
    """Merge all scans of one (user, shift date) into *base*.

    *base* carries the frozen schedule plus any reviewer decisions.  A
    partially verified record keeps the reviewer-confirmed arrival and
    status; scans may only supply the missing departure.
    """
    unique = distinct_scans(scans)
    scan_in, scan_out = pick_counterparts(
        unique, first_and_last=pairs_first_and_last(base, len(unique))
    )

    if base.is_partially_verified:
        scan_out, notes = screen_departure(base.actual_time_in, scan_out, config)
        if scan_out is None or base.actual_time_out is not None:
            warnings = tuple(dict.fromkeys(base.warnings + tuple(notes)))
            return base.model_copy(update={"scan_count": len(unique), "warnings": warnings})
        merged = base.model_copy(
            update={
                "actual_time_out": scan_out.scanned_at,
                "bio_out_site_id": scan_out.site_id,
                "scan_count": len(unique),
            }
        )
        return complete_departure(merged)

    scan_out, notes = screen_departure(
        scan_in.scanned_at if scan_in else None, scan_out, config
    )
    # schedule problems found at creation stick; the scan screen is redone
    reason = None if base.review_reason == IRREGULAR_SCANS else base.review_reason
    merged = base.model_copy(
        update={
            "actual_time_in": scan_in.scanned_at if scan_in else None,
            "bio_in_site_id": scan_in.site_id if scan_in else None,
            "actual_time_out": scan_out.scanned_at if scan_out else None,
            "bio_out_site_id": scan_out.site_id if scan_out else None,
            "review_reason": reason,
            "scan_count": len(unique),
        }
    )
    if reason is None and merged.has_schedule and merged.shift_type != ShiftType.UTILITY_24H:
        irregular = scan_pattern_warnings(merged, unique, config)
        if irregular:
            notes.extend(irregular)
            merged = merged.model_copy(update={"review_reason": IRREGULAR_SCANS})
    return apply_derivation(merged.model_copy(update={"warnings": tuple(notes)}), config)
