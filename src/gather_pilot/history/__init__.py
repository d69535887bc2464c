"""Persistent record of finished gathering sessions."""
