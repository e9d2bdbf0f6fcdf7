"""Enumerations shared by the models, the rule functions and the API."""

from __future__ import annotations

from enum import Enum


class ShiftType(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    NIGHT = "night"
    GRAVEYARD = "graveyard"
    UTILITY_24H = "utility_24h"


class ScanRole(str, Enum):
    TIME_IN = "time_in"
    TIME_OUT = "time_out"


class AttendanceStatus(str, Enum):
    NCNS = "ncns"
    ON_TIME = "on_time"
    TARDY = "tardy"
    HALF_DAY_ABSENCE = "half_day_absence"
    UNDERTIME = "undertime"
    FAILED_BIO_IN = "failed_bio_in"
    FAILED_BIO_OUT = "failed_bio_out"
    ADVISED_ABSENCE = "advised_absence"
    NEEDS_MANUAL_REVIEW = "needs_manual_review"


class VerificationState(str, Enum):
    UNVERIFIED = "unverified"
    PARTIALLY_VERIFIED = "partially_verified"
    VERIFIED = "verified"


class PointType(str, Enum):
    TARDY = "tardy"
    UNDERTIME = "undertime"
    HALF_DAY_ABSENCE = "half_day_absence"
    WHOLE_DAY_ABSENCE = "whole_day_absence"


class PointStatus(str, Enum):
    ACTIVE = "active"
    VOIDED = "voided"  # replaced after the record's outcome changed


class ExpirationType(str, Enum):
    SRO = "sro"
    GBRO = "gbro"
