"""
Text resolution pipeline.

One fragment goes through a fixed sequence of passes:

1. ``[code]...[/code]`` escaping
2. ``|placeholder|`` substitution
3. ``if{}...fi{}`` conditional branches
4. ``|$template|`` substitution (recursive)
5. ``{...}`` action extraction
6. ``Speaker: text`` detection
7. ``*bold*`` / ``**italic**`` markup
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from .actions import ActionMap, ActionResolver
from .branching import BranchResolver
from .errors import AuthoringError, LogicError
from .registry import PlaceholderRegistry
from .settings import EngineSettings

logger = logging.getLogger(__name__)


class FragmentSource(Protocol):
    def get(self, fragment_id: str, container: Optional[str] = None) -> str: ...


@dataclass
class Resolution:
    """Rendered text plus the actions collected while rendering it"""

    output: str
    actions: ActionMap = field(default_factory=ActionMap)
    speaker: Optional[str] = None
    redirected: bool = False


CODE_ESCAPES = str.maketrans(
    {
        "&": "&amp;",
        "<": "&lt;",
        ">": "&gt;",
        "{": "&#123;",
        "}": "&#125;",
        "[": "&#91;",
        "]": "&#93;",
        "|": "&#124;",
        "*": "&#42;",
        "$": "&#36;",
    }
)


def stringify(value: Any) -> str:
    """Render a placeholder result the way authors expect to read it"""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class TextPipeline:
    """Runs the resolution passes over one fragment"""

    CODE_PATTERN = re.compile(r"\[code\](.*?)\[/code\]", re.DOTALL)
    PLACEHOLDER_PATTERN = re.compile(r"\|([^|]+?)\|")
    PLACEHOLDER_CALL = re.compile(r"^([a-zA-Z0-9_]+)(?:\(([^)]*)\))?$")
    TEMPLATE_PATTERN = re.compile(r"\|(\$[^|]+?)\|")
    SPEAKER_PATTERN = re.compile(r"^(\w+):\s*(.*)$")
    ITALIC_PATTERN = re.compile(r"\*\*(.*?)\*\*")
    BOLD_PATTERN = re.compile(r"\*(.*?)\*")

    def __init__(
        self,
        placeholders: PlaceholderRegistry,
        branches: BranchResolver,
        resolver: ActionResolver,
        fragments: Optional[FragmentSource] = None,
        settings: Optional[EngineSettings] = None,
    ):
        self.placeholders = placeholders
        self.branches = branches
        self.resolver = resolver
        self.fragments = fragments
        self.settings = settings or EngineSettings()
        self._depth = 0

    def resolve(self, text: str, no_execute_actions: bool = False) -> Resolution:
        """Resolve ``text``; authoring and wiring problems are logged, never raised"""
        collected = ActionMap()

        output = self.resolve_code(text)
        output = self.resolve_placeholders(output)
        output = self.branches.resolve(output)

        output, nested = self.resolve_templates(output, no_execute_actions, collected)
        if nested is not None:
            return nested

        extraction = self.resolver.extract(output, no_execute_actions)
        if extraction.redirected:
            return Resolution(output="", actions=extraction.actions, redirected=True)
        collected.update(extraction.actions)

        speaker, output = self.resolve_speaker(extraction.output)
        output = self.resolve_styles(output)
        return Resolution(output=output, actions=collected, speaker=speaker)

    def resolve_code(self, text: str) -> str:
        css_class = self.settings.code_css_class
        return self.CODE_PATTERN.sub(
            lambda m: f'<span class="{css_class}">{m.group(1).translate(CODE_ESCAPES)}</span>', text
        )

    def call_placeholder(self, expression: str) -> str:
        match = self.PLACEHOLDER_CALL.match(expression)
        if not match:
            raise AuthoringError(f"Invalid placeholder format: {expression}")
        name, args_string = match.group(1), match.group(2) or ""
        args = [arg.strip() for arg in args_string.split(",")] if args_string else []
        entry = self.placeholders.get(name)
        return stringify(entry.resolver(*args))

    def resolve_placeholders(self, text: str) -> str:
        def substitute(match):
            expression = match.group(1)
            if expression.startswith("$"):
                return match.group(0)
            try:
                return self.call_placeholder(expression)
            except LogicError as e:
                logger.error('Error resolving placeholder "%s": %s', expression, e)
                return match.group(0)
            except Exception as e:
                logger.error('Placeholder "%s" failed: %s', expression, e)
                return match.group(0)

        return self.PLACEHOLDER_PATTERN.sub(substitute, text)

    def load_template(self, reference: str) -> str:
        """``$name`` reads from the current container, ``$container.name`` from a named one"""
        if self.fragments is None:
            raise AuthoringError("No fragment source configured")
        container, dot, name = reference.partition(".")
        if dot:
            return self.fragments.get("$" + name, container[1:])
        return self.fragments.get(reference)

    def resolve_templates(self, text: str, no_execute_actions: bool, collected: ActionMap):
        """
        Substitute every ``|$template|`` with its resolved text.

        Returns the new text and, when a template redirected, the Resolution that
        must replace the whole fragment.
        """
        redirect: Optional[Resolution] = None

        def substitute(match):
            nonlocal redirect
            reference = match.group(1)
            if redirect is not None:
                return match.group(0)
            if self._depth >= self.settings.max_template_depth:
                logger.error(
                    'Error resolving template "%s": nesting deeper than %d', reference, self.settings.max_template_depth
                )
                return match.group(0)
            try:
                content = self.load_template(reference)
            except LogicError as e:
                logger.error('Error resolving template "%s": %s', reference, e)
                return match.group(0)

            self._depth += 1
            try:
                nested = self.resolve(content, no_execute_actions)
            finally:
                self._depth -= 1

            if nested.redirected:
                redirect = nested
                return ""
            collected.update(nested.actions)
            return nested.output

        output = self.TEMPLATE_PATTERN.sub(substitute, text)
        return output, redirect

    def resolve_speaker(self, text: str):
        match = self.SPEAKER_PATTERN.match(text)
        if match:
            return match.group(1), match.group(2)
        return None, text

    def resolve_styles(self, text: str) -> str:
        italic, bold = self.settings.italic_tag, self.settings.bold_tag
        output = self.ITALIC_PATTERN.sub(rf"<{italic}>\1</{italic}>", text)
        return self.BOLD_PATTERN.sub(rf"<{bold}>\1</{bold}>", output)
