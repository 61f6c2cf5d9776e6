"""
Thin wrappers around the Gmail, Calendar and Drive REST APIs.

Each method maps onto one remote call (or a small fixed sequence of calls)
and returns plain dataclasses for the CLI to print.
"""

from .calendar import CalendarService
from .drive import DriveService
from .gmail import GmailService

__all__ = [
    "CalendarService",
    "DriveService",
    "GmailService",
]
