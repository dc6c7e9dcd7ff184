"""
Claude RPG - Core Package
=========================

Configuration, event tracking and live broadcast.
"""

from rpg_server.core.config import settings

__all__ = ["settings"]
