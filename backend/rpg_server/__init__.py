"""
Claude RPG Server
=================

Local dashboard backend that turns coding assistant hook events into an
RPG-style battle log with session and lifetime statistics.
"""

__version__ = "0.1.0"
