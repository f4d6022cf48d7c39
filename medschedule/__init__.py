"""
MedSchedule

A FastAPI-based appointment booking service: patients book visits, doctors
confirm, complete or cancel them, admins manage the directory, and every
connected client is told to refresh after each change.
"""

__version__ = "1.0.0"
