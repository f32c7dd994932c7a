"""Core Layer — pure rules and values, no IO, no async, no sockets.

Invariants:
    - No module in core/ imports from services/, infrastructure/ or the client
    - All functions are deterministic given their inputs (clocks are passed in)
"""
