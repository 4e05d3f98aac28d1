"""
LogicEngine - owns the registries and wires every collaborator around them
"""

import logging
from typing import Any, Callable, Mapping, Optional, Union

from .actions import ActionMap, ActionResolver, fix_json
from .branching import BranchResolver
from .choice import Choice, ChoiceBuilder
from .conditions import ConditionEvaluator, FlagSource
from .events import TriggerBus
from .pipeline import FragmentSource, Resolution, TextPipeline
from .registry import (
    ActionEntry,
    ActionRegistry,
    ConditionEntry,
    ConditionRegistry,
    PlaceholderEntry,
    PlaceholderRegistry,
)
from .settings import EngineSettings

logger = logging.getLogger(__name__)

RESOLVE_BEFORE = "resolve_before"


class LogicEngine:
    """
    Narrative scripting interpreter for one game session.

    The three registries are populated at startup; each ``resolve_string`` call
    is a fresh pass over its input.

    Example:
        engine = LogicEngine(FlagStore(flags={"main": {"gold": 20}}))
        engine.register_placeholder("name", lambda: "World")
        engine.resolve_string("Hello |name|! if{gold>10}Rich!else{}Poor.fi{}").output
        # -> "Hello World! Rich!"
    """

    def __init__(
        self,
        flags: FlagSource,
        fragments: Optional[FragmentSource] = None,
        settings: Optional[EngineSettings] = None,
        triggers: Optional[TriggerBus] = None,
    ):
        self.settings = settings or EngineSettings()
        self.flags = flags
        self.triggers = triggers or TriggerBus()

        self.conditions = ConditionRegistry(self.settings.condition_sigil)
        self.actions = ActionRegistry()
        self.placeholders = PlaceholderRegistry()

        self.evaluator = ConditionEvaluator(self.conditions, flags)
        self.resolver = ActionResolver(self.actions)
        self.branches = BranchResolver(self.evaluator)
        self.pipeline = TextPipeline(self.placeholders, self.branches, self.resolver, fragments, self.settings)
        self.choices = ChoiceBuilder(self.actions, self.evaluator, self.resolver)

        self.talking_character_id: Optional[str] = None

    # Registration

    def register_condition(self, name: str, evaluator: Callable[..., Any]) -> ConditionEntry:
        return self.conditions.add(name, evaluator)

    def register_action(
        self,
        name: str,
        action: Optional[Callable[[Any], Any]] = None,
        choice_modifier: Optional[Callable[[Choice, Any], Any]] = None,
        event_delayed: bool = False,
        on_game_load: bool = False,
    ) -> ActionEntry:
        return self.actions.add(name, action, choice_modifier, event_delayed, on_game_load)

    def register_placeholder(self, name: str, resolver: Callable[..., Any]) -> PlaceholderEntry:
        return self.placeholders.add(name, resolver)

    def register_flag_action(self, name: str = "flag") -> ActionEntry:
        """Expose ``flags.apply`` to authored text, e.g. ``{"flag": "gold>5"}``"""
        return self.register_action(name, self.flags.apply)

    # Resolution

    def resolve_string(self, text: str, no_execute_actions: bool = False) -> Resolution:
        """
        Render ``text`` and collect its actions.

        Never raises on authoring errors. A ``resolve_before`` callback returning
        ``Propagation.STOP`` cancels the resolution.
        """
        if not self.triggers.trigger(RESOLVE_BEFORE, text):
            return Resolution(output="")

        resolution = self.pipeline.resolve(text, no_execute_actions)
        if not resolution.redirected:
            self.talking_character_id = resolution.speaker
        return resolution

    def perform_conditional_evaluation(
        self, params: Optional[Mapping[str, Any]] = None, is_active_clause: bool = False
    ) -> bool:
        return self.evaluator.evaluate(params, is_active_clause)

    def get_condition_value(self, key: str) -> Any:
        return self.evaluator.get_condition_value(key)

    # Actions

    def resolve_actions(self, params: Union[str, Mapping[str, Any], None], skip_delayed: bool = False) -> None:
        self.resolver.resolve_actions(params, skip_delayed)

    def get_delayed_actions(self, params: Mapping[str, Any]) -> ActionMap:
        return self.resolver.get_delayed_actions(params)

    def get_reload_actions(self, params: Mapping[str, Any]) -> ActionMap:
        return self.resolver.get_reload_actions(params)

    # Choices

    def create_custom_choice(
        self, choice_id: str, name: Optional[str] = None, params: Union[str, Mapping[str, Any], None] = None
    ) -> Choice:
        return self.choices.create(choice_id, name, params)

    @staticmethod
    def fix_json(text: str) -> str:
        return fix_json(text)
