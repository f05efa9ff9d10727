"""
The Supervisor package.
Manages the lifecycle of the supervised subprocess.

This package contains the central Supervisor class and its helper modules,
which together start the subprocess, watch its progress metric, deliver
hang/fail signals and wait for it to exit.
"""
from .supervisor import Supervisor

__all__ = ['Supervisor']
