"""Eorzean clock, timed-node scheduling and zone route ordering."""
