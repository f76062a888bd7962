"""
V1 API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from app.api.v1.endpoints import (attendance, auth, health, leave,
                                  notifications, qr, schedule, staff, untime,
                                  wfh)

api_router = APIRouter()

# Auth (login, refresh, admin accounts)
api_router.include_router(auth.router)

# Staff accounts, weekly schedules, global schedule config
api_router.include_router(staff.router)
api_router.include_router(schedule.router)

# QR sessions and the attendance ledger
api_router.include_router(qr.router)
api_router.include_router(attendance.router)

# UnTime exceptions, leave and work from home
api_router.include_router(untime.router)
api_router.include_router(leave.router)
api_router.include_router(wfh.router)

# Real-time notifications, health
api_router.include_router(notifications.router)
api_router.include_router(health.router)
