"""
Embedded action objects: tolerant-JSON extraction, the ActionMap payload model
and action dispatch
"""

import json
import logging
import re
from collections.abc import MutableMapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

from json_repair import repair_json

from .conditions import CLAUSE_KEYS
from .errors import AuthoringError, WiringError
from .registry import ActionEntry, ActionRegistry

logger = logging.getLogger(__name__)

REDIRECT_KEY = "redirect"

# "." doubles as a path separator (scene ids, scoped flags), so everything that
# is not a decimal point is hidden from the repair pass.
_PATH_DOT = re.compile(r"\.(?!\d)")
_DOT_TOKEN = "__dot__"


def fix_json(text: str) -> str:
    """Repair near-JSON (unquoted keys, trailing commas, single quotes) into strict JSON"""
    protected = _PATH_DOT.sub(_DOT_TOKEN, text)
    repaired = repair_json(protected, ensure_ascii=False)
    return repaired.replace(_DOT_TOKEN, ".")


def parse_action_object(text: str) -> Dict[str, Any]:
    """Parse a brace group into a dict, raising AuthoringError when it is not an object"""
    try:
        parsed = json.loads(fix_json(text))
    except ValueError as e:
        raise AuthoringError(f'Failed to process JSON object "{text}": {e}') from e
    if not isinstance(parsed, dict):
        raise AuthoringError(f'Action block "{text}" is not an object')
    return parsed


class PayloadKind(Enum):
    SCALAR = "scalar"
    KEYED = "keyed"
    SEQUENCE = "sequence"


def classify_payload(payload: Any) -> PayloadKind:
    if isinstance(payload, (list, tuple)):
        return PayloadKind.SEQUENCE
    if isinstance(payload, Mapping):
        return PayloadKind.KEYED
    return PayloadKind.SCALAR


class ActionMap(MutableMapping):
    """
    Ordered action name -> payload mapping parsed from one fragment or choice.

    Each payload is classified when it is stored; a SEQUENCE payload means the
    action runs once per element. Later duplicate keys overwrite earlier ones.
    """

    def __init__(self, data: Optional[Mapping[str, Any]] = None):
        self._payloads: Dict[str, Any] = {}
        self._kinds: Dict[str, PayloadKind] = {}
        if data:
            self.update(data)

    def __getitem__(self, name: str) -> Any:
        return self._payloads[name]

    def __setitem__(self, name: str, payload: Any) -> None:
        self._payloads[name] = payload
        self._kinds[name] = classify_payload(payload)

    def __delitem__(self, name: str) -> None:
        del self._payloads[name]
        del self._kinds[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._payloads)

    def __len__(self) -> int:
        return len(self._payloads)

    def __repr__(self) -> str:
        return f"ActionMap({self._payloads!r})"

    def kind(self, name: str) -> PayloadKind:
        return self._kinds[name]

    def invocations(self, name: str) -> List[Any]:
        """Payloads to pass to the action, one per call"""
        payload = self._payloads[name]
        if self._kinds[name] is PayloadKind.SEQUENCE:
            return list(payload)
        return [payload]

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._payloads)


@dataclass
class Extraction:
    """Result of scanning one fragment for action blocks"""

    output: str
    actions: ActionMap
    redirected: bool = False


class ActionResolver:
    """Finds, parses and dispatches action objects embedded in text"""

    def __init__(self, actions: ActionRegistry):
        self.actions = actions

    def _coerce(self, params: Union[str, Mapping[str, Any], None]) -> ActionMap:
        if params is None:
            return ActionMap()
        if isinstance(params, ActionMap):
            return params
        if isinstance(params, str):
            return ActionMap(parse_action_object(params))
        return ActionMap(params)

    def resolve_actions(self, params: Union[str, Mapping[str, Any], None], skip_delayed: bool = False) -> None:
        """
        Invoke every registered action named in ``params``.

        Clause keys are ignored, unregistered names are logged and skipped, and
        delayed actions are left alone when ``skip_delayed`` is set.
        """
        try:
            action_map = self._coerce(params)
        except AuthoringError as e:
            logger.error("%s", e)
            return

        for name in action_map:
            if name in CLAUSE_KEYS:
                continue
            try:
                entry = self.actions.get(name)
            except WiringError as e:
                logger.error("%s", e)
                continue

            if skip_delayed and entry.event_delayed:
                continue

            for payload in action_map.invocations(name):
                logger.debug("Running action %s(%r)", name, payload)
                entry.action(payload)

    def _filter(self, params: Mapping[str, Any], flag: str) -> ActionMap:
        selected = ActionMap()
        for name in params:
            entry: Optional[ActionEntry] = self.actions.find(name)
            if entry is not None and getattr(entry, flag):
                selected[name] = params[name]
        return selected

    def get_delayed_actions(self, params: Mapping[str, Any]) -> ActionMap:
        """Subset of ``params`` that must wait for an explicit later trigger"""
        return self._filter(params, "event_delayed")

    def get_reload_actions(self, params: Mapping[str, Any]) -> ActionMap:
        """Subset of ``params`` that must be re-run after loading a saved game"""
        return self._filter(params, "on_game_load")

    def extract(self, text: str, no_execute_actions: bool = False) -> Extraction:
        """
        Remove every balanced ``{...}`` group from ``text`` and collect its actions.

        Non-delayed actions run as soon as their block is parsed unless
        ``no_execute_actions`` is set. A block holding ``redirect`` ends the scan
        at once with empty output. An unmatched ``{`` stops extraction and the
        text from that brace onwards is dropped.
        """
        accumulated = ActionMap()
        processed: List[str] = []
        remaining = text

        start = remaining.find("{")
        while start != -1:
            processed.append(remaining[:start])

            depth = 0
            end = -1
            for index in range(start, len(remaining)):
                char = remaining[index]
                if char == "{":
                    depth += 1
                elif char == "}":
                    depth -= 1
                    if depth == 0:
                        end = index
                        break

            if end == -1:
                logger.error("Unmatched open brace in text: %s", remaining[start:])
                remaining = ""
                break

            block = remaining[start : end + 1]
            try:
                parsed = parse_action_object(block)
            except AuthoringError as e:
                logger.error("%s", e)
            else:
                if parsed.get(REDIRECT_KEY):
                    return Extraction(output="", actions=ActionMap(parsed), redirected=True)

                if not no_execute_actions:
                    self.resolve_actions(parsed, skip_delayed=True)
                accumulated.update(parsed)

            remaining = remaining[end + 1 :]
            start = remaining.find("{")

        processed.append(remaining)
        return Extraction(output="".join(processed), actions=accumulated)
