"""
bgservice: interval-based background services with database-backed mutual exclusion.

Components:
- services/: descriptor store + claim protocol, handler registry, execution loop, crash recovery
- daemon/: continuous mode (PID file, signals, run-time cap)
- maintenance/: built-in maintenance handlers and their default descriptors
- cli/: composition root and the `bgservice` command
"""

__version__ = "0.1.0"
