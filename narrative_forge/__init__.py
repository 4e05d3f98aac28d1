"""
Narrative Forge - inline scripting for interactive-fiction text
"""

__version__ = "0.1.0"

from .logic import LogicEngine, Resolution
from .state import FlagStore, FragmentLibrary

__all__ = ["LogicEngine", "Resolution", "FlagStore", "FragmentLibrary"]
