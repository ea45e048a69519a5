"""
Reaper - orphaned Compute Engine resource cleanup for integration tests.

This package finds virtual machines and disks left behind by test runs,
identified by a label, and requests their deletion.
"""

__version__ = "0.1.0"
