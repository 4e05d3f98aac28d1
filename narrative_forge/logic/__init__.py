"""
Narrative logic core: registries, conditions, branching text, actions and choices
"""

from .actions import ActionMap, ActionResolver, PayloadKind, fix_json, parse_action_object
from .branching import BranchResolver
from .choice import Choice, ChoiceBuilder
from .conditions import ConditionEvaluator
from .engine import LogicEngine
from .errors import AuthoringError, LogicError, RegistrationError, WiringError
from .events import Propagation, TriggerBus
from .pipeline import Resolution, TextPipeline
from .registry import ActionEntry, ConditionEntry, PlaceholderEntry
from .settings import EngineSettings

__all__ = [
    "LogicEngine",
    "EngineSettings",
    "Resolution",
    "TextPipeline",
    "ConditionEvaluator",
    "BranchResolver",
    "ActionMap",
    "ActionResolver",
    "PayloadKind",
    "Choice",
    "ChoiceBuilder",
    "Propagation",
    "TriggerBus",
    # Registry entries
    "ActionEntry",
    "ConditionEntry",
    "PlaceholderEntry",
    # Errors
    "LogicError",
    "AuthoringError",
    "RegistrationError",
    "WiringError",
    "fix_json",
    "parse_action_object",
]
