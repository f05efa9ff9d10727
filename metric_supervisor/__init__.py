"""
metric-supervisor: a liveness watchdog for a single subprocess.

The subprocess is considered alive as long as a counter exposed on a
Prometheus metrics endpoint keeps advancing.
"""

__version__ = "0.1.0"
