"""Game domain services: authentication, sessions, ledger and leaderboard.

This package contains the server-authoritative logic that HTTP routes,
socket handlers and background tasks call into, keeping transport concerns
separated from session and points bookkeeping.
"""
