"""
API router aggregator: wires all endpoint modules together.
"""

from fastapi import APIRouter

from app.api.v1.endpoints import (admin, attendance, auth, departments,
                                  employees, holidays, leaves, notifications,
                                  reports, roles, settings)

api_router = APIRouter()

# Auth, own profile
api_router.include_router(auth.router)

# Users & roles
api_router.include_router(admin.router)
api_router.include_router(roles.router)

# Organisation
api_router.include_router(departments.router)
api_router.include_router(employees.router)
api_router.include_router(holidays.router)

# Attendance, work schedule, leave
api_router.include_router(attendance.router)
api_router.include_router(settings.router)
api_router.include_router(leaves.router)

# Notifications
api_router.include_router(notifications.router)

# Reports, health
api_router.include_router(reports.router)
