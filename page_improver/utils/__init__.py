"""
Utility modules for Page Improver.

This package contains configuration, logging and heartbeat helpers.
"""
