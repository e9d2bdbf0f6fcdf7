"""
V1 API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from attendance_engine.api.v1.endpoints import attendance, health, points, scans

api_router = APIRouter()

# Biometric upload ingestion
api_router.include_router(scans.router)

# Attendance records, review actions, absence detection
api_router.include_router(attendance.router)

# Point ledger, excusal, SRO / GBRO
api_router.include_router(points.router)

api_router.include_router(health.router)
