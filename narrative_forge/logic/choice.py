"""
Choices whose visibility and availability derive from condition clauses
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Union

from .actions import ActionMap, ActionResolver, parse_action_object
from .conditions import ConditionEvaluator
from .errors import AuthoringError
from .registry import ActionRegistry

logger = logging.getLogger(__name__)


@dataclass
class Choice:
    """
    A presentable option.

    ``is_visible`` reads the ``if``/``ifOr`` clauses and ``is_available`` the
    ``active``/``activeOr`` clauses of ``params``; both are evaluated on every
    access so they always reflect current state.
    """

    id: str
    name: str = ""
    params: ActionMap = field(default_factory=ActionMap)
    evaluator: Optional[ConditionEvaluator] = field(default=None, repr=False)
    resolver: Optional[ActionResolver] = field(default=None, repr=False)
    name_computed: Optional[Callable[[], str]] = field(default=None, repr=False)

    @property
    def is_visible(self) -> bool:
        if self.evaluator is None:
            return True
        return self.evaluator.evaluate(self.params, is_active_clause=False)

    @property
    def is_available(self) -> bool:
        if self.evaluator is None:
            return True
        return self.evaluator.evaluate(self.params, is_active_clause=True)

    @property
    def display_name(self) -> str:
        if self.name_computed is None:
            return self.name
        return self.name_computed()

    def select(self) -> bool:
        """Run the choice's actions if it is available; returns whether it ran"""
        if not self.is_available:
            return False
        if self.resolver is not None:
            self.resolver.resolve_actions(self.params)
        return True


class ChoiceBuilder:
    """Creates Choices and applies each named action's choice modifier"""

    def __init__(self, actions: ActionRegistry, evaluator: ConditionEvaluator, resolver: ActionResolver):
        self.actions = actions
        self.evaluator = evaluator
        self.resolver = resolver

    def create(
        self, choice_id: str, name: Optional[str] = None, params: Union[str, Mapping[str, Any], None] = None
    ) -> Choice:
        if isinstance(params, str):
            try:
                params = parse_action_object(params)
            except AuthoringError as e:
                logger.error("Choice %s: %s", choice_id, e)
                params = {}

        choice = Choice(
            id=choice_id,
            name=name or "",
            params=ActionMap(params or {}),
            evaluator=self.evaluator,
            resolver=self.resolver,
        )
        self.apply_modifiers(choice)
        return choice

    def apply_modifiers(self, choice: Choice) -> None:
        for key in choice.params:
            entry = self.actions.find(key)
            if entry is not None and entry.choice_modifier is not None:
                entry.choice_modifier(choice, choice.params[key])

        if choice.name_computed is None:
            choice.name_computed = lambda: choice.name
