"""Gathering task queue, orchestrator and recovery ladder.

The orchestrator never blocks: every wait is a timestamp checked on a later
tick, and every engine callback only records state for the tick to act on.
"""
