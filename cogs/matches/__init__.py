"""
Matches Package

Discord-facing side of the match lifecycle: voice state events and the
small set of slash commands.
"""

from .commands import MatchCommands
from .events import MatchEvents

__all__ = ["MatchCommands", "MatchEvents"]
