"""
Test suite for MedSchedule.

Contains service-level and HTTP/websocket tests for the appointment lifecycle.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
