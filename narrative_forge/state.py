"""
In-memory host state: container-scoped flags and named text fragments
"""

import logging
from typing import Any, Dict, Mapping, Optional, Union

from .logic.errors import AuthoringError

logger = logging.getLogger(__name__)

FLAG_OPERATORS = ("=", ">", "<")


class FlagStore:
    """
    Numeric flags scoped per container.

    ``get("gold")`` reads from the current container, ``get("cave.gold")`` from
    an explicit one. Flags that were never set read as 0.
    """

    def __init__(self, current: str = "main", flags: Optional[Mapping[str, Mapping[str, float]]] = None):
        self.current = current
        self.containers: Dict[str, Dict[str, float]] = {current: {}}
        for container, values in (flags or {}).items():
            self.containers.setdefault(container, {}).update(values)

    def _locate(self, flag_id: str):
        container, _, name = flag_id.rpartition(".")
        return (container or self.current), name

    def get(self, flag_id: str) -> float:
        container, name = self._locate(flag_id)
        return self.containers.get(container, {}).get(name, 0)

    def set(self, flag_id: str, value: float) -> None:
        container, name = self._locate(flag_id)
        self.containers.setdefault(container, {})[name] = value

    def add(self, flag_id: str, amount: float) -> None:
        self.set(flag_id, self.get(flag_id) + amount)

    def apply(self, data: Union[str, Mapping[str, Any]]) -> None:
        """
        Apply flag operations.

        Mapping form sets every key. String form accepts ``"a=1, b>2, c<3"``
        where ``=`` sets, ``>`` adds and ``<`` subtracts.
        """
        operations = []

        if isinstance(data, str):
            for pair in (part.strip() for part in data.split(",")):
                if not pair:
                    continue
                operator = next((op for op in FLAG_OPERATORS if op in pair), None)
                if operator is None:
                    logger.error('Invalid flag format: "%s". Use "key=value", "key>value", or "key<value"', pair)
                    continue
                key, _, raw_value = (piece.strip() for piece in pair.partition(operator))
                if not key:
                    logger.error('Invalid flag format: "%s". Flag key is empty', pair)
                    continue
                operations.append((key, operator, raw_value))
        else:
            operations.extend((key, "=", value) for key, value in data.items())

        for key, operator, raw_value in operations:
            try:
                value = float(raw_value)
            except (TypeError, ValueError):
                logger.error('Invalid flag value: "%s" for key "%s". Flags must be numbers.', raw_value, key)
                continue
            if value.is_integer():
                value = int(value)

            if operator == "=":
                self.set(key, value)
            elif operator == ">":
                self.add(key, value)
            else:
                self.add(key, -value)

    def to_dict(self) -> dict:
        return {"current": self.current, "flags": {name: dict(values) for name, values in self.containers.items()}}


class FragmentLibrary:
    """Named text fragments grouped by container, used by ``|$template|`` references"""

    def __init__(self, flags: Optional[FlagStore] = None, fragments: Optional[Mapping[str, Mapping[str, str]]] = None):
        self.flags = flags
        self.fragments: Dict[str, Dict[str, str]] = {}
        for container, entries in (fragments or {}).items():
            self.fragments[container] = dict(entries)

    def add(self, container: str, fragment_id: str, text: str) -> None:
        self.fragments.setdefault(container, {})[fragment_id] = text

    def get(self, fragment_id: str, container: Optional[str] = None) -> str:
        if container is None:
            if self.flags is None:
                raise AuthoringError(f"No container given for fragment {fragment_id}")
            container = self.flags.current
        entries = self.fragments.get(container)
        if entries is None:
            raise AuthoringError(f"Container {container} not found")
        if fragment_id not in entries:
            raise AuthoringError(f"Fragment {fragment_id} not found in container {container}")
        return entries[fragment_id]
