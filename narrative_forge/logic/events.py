"""
Named triggers whose callbacks can stop propagation
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class Propagation(Enum):
    """Explicit result of a trigger callback"""

    CONTINUE = "continue"
    STOP = "stop"


TriggerCallback = Callable[..., Optional[Propagation]]


class TriggerBus:
    """
    Ordered callbacks per trigger name.

    Callbacks run in registration order. Returning ``Propagation.STOP`` ends
    dispatch for that call; ``None`` or ``CONTINUE`` lets the next one run.
    """

    def __init__(self):
        self._callbacks: Dict[str, List[TriggerCallback]] = {}

    def on(self, trigger: str, callback: TriggerCallback) -> None:
        self._callbacks.setdefault(trigger, []).append(callback)

    def off(self, trigger: str, callback: TriggerCallback) -> None:
        callbacks = self._callbacks.get(trigger)
        if callbacks and callback in callbacks:
            callbacks.remove(callback)

    def listeners(self, trigger: str) -> List[TriggerCallback]:
        return list(self._callbacks.get(trigger, []))

    def trigger(self, trigger: str, *args: Any) -> bool:
        """Run callbacks for ``trigger``; False when one of them stopped propagation"""
        for callback in list(self._callbacks.get(trigger, [])):
            result = callback(*args)
            if result is Propagation.STOP:
                logger.debug("Trigger %s stopped by %r", trigger, callback)
                return False
        return True
