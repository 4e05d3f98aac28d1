"""
Name -> callable registries for conditions, actions and placeholders
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Iterator, Optional, TypeVar

from .errors import RegistrationError, WiringError

logger = logging.getLogger(__name__)

CONDITION_SIGIL = "_"


def _noop(*_args: Any) -> None:
    return None


@dataclass
class ConditionEntry:
    """A sigil-prefixed value getter used inside conditional expressions"""

    name: str
    evaluator: Callable[..., Any]


@dataclass
class ActionEntry:
    """A side-effecting operation invocable from text or choice parameters"""

    name: str
    action: Callable[[Any], Any] = _noop
    choice_modifier: Optional[Callable[[Any, Any], Any]] = None
    event_delayed: bool = False  # waits for an explicit later trigger
    on_game_load: bool = False  # re-run after a saved game is loaded


@dataclass
class PlaceholderEntry:
    """A named text-substitution function"""

    name: str
    resolver: Callable[..., Any]


E = TypeVar("E")


class Registry(Generic[E]):
    """
    Ordered mapping of name to entry.

    Re-registration overwrites the previous entry and logs a warning, which lets
    content override engine defaults.
    """

    kind = "entry"

    def __init__(self):
        self._entries: Dict[str, E] = {}

    def register(self, name: str, entry: E) -> E:
        if name in self._entries:
            logger.warning('%s "%s" already exists - overwriting', self.kind.capitalize(), name)
        self._entries[name] = entry
        return entry

    def get(self, name: str) -> E:
        """Return the entry for ``name`` or raise WiringError"""
        try:
            return self._entries[name]
        except KeyError:
            raise WiringError(f'{self.kind.capitalize()} "{name}" is not registered') from None

    def find(self, name: str) -> Optional[E]:
        return self._entries.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


class ConditionRegistry(Registry[ConditionEntry]):
    kind = "condition"

    def __init__(self, sigil: str = CONDITION_SIGIL):
        super().__init__()
        self.sigil = sigil

    def register(self, name: str, entry: ConditionEntry) -> ConditionEntry:
        if not name.startswith(self.sigil):
            raise RegistrationError(
                f"Error registering condition {name}: conditions need the {self.sigil} prefix, "
                f"e.g. {self.sigil}my_condition"
            )
        return super().register(name, entry)

    def add(self, name: str, evaluator: Callable[..., Any]) -> ConditionEntry:
        return self.register(name, ConditionEntry(name=name, evaluator=evaluator))


class ActionRegistry(Registry[ActionEntry]):
    kind = "action"

    def add(
        self,
        name: str,
        action: Optional[Callable[[Any], Any]] = None,
        choice_modifier: Optional[Callable[[Any, Any], Any]] = None,
        event_delayed: bool = False,
        on_game_load: bool = False,
    ) -> ActionEntry:
        entry = ActionEntry(
            name=name,
            action=action or _noop,
            choice_modifier=choice_modifier,
            event_delayed=event_delayed,
            on_game_load=on_game_load,
        )
        return self.register(name, entry)


class PlaceholderRegistry(Registry[PlaceholderEntry]):
    kind = "placeholder"

    def add(self, name: str, resolver: Callable[..., Any]) -> PlaceholderEntry:
        return self.register(name, PlaceholderEntry(name=name, resolver=resolver))
