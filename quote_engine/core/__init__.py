"""
Core modules for the quote engine.

This package contains the pure quote logic: pricing arithmetic, the status
workflow, expiry detection and presentation formatting. Nothing here
performs I/O or logs.
"""
