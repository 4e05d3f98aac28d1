"""
World files: JSON snapshots of flag state and fragments used by the CLI and web preview

Example world.json:
    {
        "current": "tavern",
        "flags": {"tavern": {"gold": 20}, "cave": {"visited": 1}},
        "fragments": {"tavern": {"$greeting": "Barkeep: Welcome back!"}},
        "placeholders": {"name": "Aria"},
        "conditions": {"_is_night": true},
        "settings": {"max_template_depth": 4}
    }
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .logic.engine import LogicEngine
from .logic.settings import EngineSettings
from .state import FlagStore, FragmentLibrary

logger = logging.getLogger(__name__)


class WorldError(ValueError):
    """A world file that cannot be loaded"""


def load_world(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise WorldError(f"{path}: invalid JSON ({e})") from e

    if not isinstance(data, dict):
        raise WorldError(f"{path}: a world must be a JSON object")
    return data


def _constant(value: Any):
    return lambda *_args: value


def build_engine(world: Optional[Mapping[str, Any]] = None) -> LogicEngine:
    """
    Create a LogicEngine over the world's flags and fragments.

    Static ``placeholders`` and ``conditions`` from the world are registered as
    constant functions, and the built-in ``flag`` action is always available.
    """
    world = world or {}

    flags = FlagStore(current=world.get("current", "main"), flags=world.get("flags"))
    fragments = FragmentLibrary(flags, world.get("fragments"))
    settings = EngineSettings.from_dict(world.get("settings", {}))

    engine = LogicEngine(flags, fragments, settings)
    engine.register_flag_action()

    for name, value in world.get("placeholders", {}).items():
        engine.register_placeholder(name, _constant(value))
    for name, value in world.get("conditions", {}).items():
        engine.register_condition(name, _constant(value))

    logger.debug(
        "World loaded: %d container(s), %d placeholder(s), %d condition(s)",
        len(flags.containers),
        len(engine.placeholders),
        len(engine.conditions),
    )
    return engine
