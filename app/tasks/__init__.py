"""Scheduled tasks for the booking service.

This package contains jobs that run periodically to handle:
- Expiry of lapsed slot holds
"""

from app.tasks.expire_holds import run_expire_holds_task

__all__ = [
    "run_expire_holds_task",
]
