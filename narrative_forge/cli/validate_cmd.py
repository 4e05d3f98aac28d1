"""
Static validation for narrative text with precise error reporting.

Checks brace balance, if{}/ifOr{}/else{}/fi{} chains, condition syntax, action
blocks, placeholders and template references against a LogicEngine's registries.
Nothing is executed.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import click

from narrative_forge.logic.actions import parse_action_object
from narrative_forge.logic.branching import find_closing_brace, keyword_before
from narrative_forge.logic.conditions import CLAUSE_KEYS, ORDERING_OPERATORS, parse_literal, split_conditions
from narrative_forge.logic.engine import LogicEngine
from narrative_forge.logic.errors import AuthoringError, LogicError
from narrative_forge.logic.pipeline import TextPipeline


# ANSI color codes for terminal output
class Colors:
    RED = "\033[91m"
    YELLOW = "\033[93m"
    GREEN = "\033[92m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    BOLD = "\033[1m"
    RESET = "\033[0m"


@dataclass
class ValidationIssue:
    """Represents a validation issue with location info"""

    line: int
    column: int
    severity: str  # 'error' or 'warning'
    message: str
    context: Optional[str] = None
    suggestion: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "line": self.line,
            "column": self.column,
            "severity": self.severity,
            "message": self.message,
            "suggestion": self.suggestion,
        }


def _blank(match) -> str:
    return re.sub(r"[^\n]", " ", match.group(0))


class ScriptValidator:
    """Validator for narrative text, using the engine's registries for name lookups.

    Problems that make resolution drop or misrender text are errors; names the
    engine does not know about and chain mistakes the resolver recovers from are
    warnings.
    """

    def __init__(self, engine: LogicEngine):
        self.engine = engine
        self.lines: List[str] = []
        self.errors: List[ValidationIssue] = []
        self.warnings: List[ValidationIssue] = []
        self.stats: Dict[str, int] = {}

        # Chain tracking
        self._text = ""
        self._chain_open = False
        self._chain_start = 0
        self._just_closed = False

    @property
    def issues(self) -> List[ValidationIssue]:
        return sorted(self.errors + self.warnings, key=lambda issue: (issue.line, issue.column))

    def validate(self, text: str) -> List[ValidationIssue]:
        """Check ``text`` and return every issue ordered by position"""
        self._text = text
        self.lines = text.splitlines()
        self.errors = []
        self.warnings = []
        self.stats = {"chains": 0, "conditions": 0, "action_blocks": 0, "placeholders": 0, "templates": 0}
        self._chain_open = False
        self._just_closed = False

        # [code] blocks are escaped before any other pass sees them
        scrubbed = TextPipeline.CODE_PATTERN.sub(_blank, text)

        self._check_placeholders(scrubbed)
        self._check_braces(scrubbed)
        return self.issues

    def validate_file(self, file_path: Path) -> bool:
        """Validate a file, print the report and return True when it has no errors"""
        if not file_path.exists():
            click.echo(f"❌ File not found: {file_path}", err=True)
            return False

        with open(file_path, "r", encoding="utf-8") as f:
            self.validate(f.read())

        self.report(file_path.name)
        return len(self.errors) == 0

    # Passes

    def _check_placeholders(self, text: str):
        for match in TextPipeline.PLACEHOLDER_PATTERN.finditer(text):
            expression = match.group(1)
            offset = match.start()

            if expression.startswith("$"):
                self.stats["templates"] += 1
                try:
                    self.engine.pipeline.load_template(expression)
                except LogicError as e:
                    self._add_warning(offset, f'Template "{expression}" cannot be loaded: {e}')
                continue

            self.stats["placeholders"] += 1
            call = TextPipeline.PLACEHOLDER_CALL.match(expression)
            if not call:
                self._add_error(
                    offset,
                    f'Malformed placeholder "|{expression}|"',
                    "Use |name| or |name(arg1, arg2)|",
                )
            elif call.group(1) not in self.engine.placeholders:
                self._add_warning(offset, f'Placeholder "{call.group(1)}" is not registered')

    def _check_braces(self, text: str):
        index = 0
        gap_start = 0  # literal text since the previous keyword

        while True:
            open_at = text.find("{", index)
            close_at = text.find("}", index)

            if close_at != -1 and (open_at == -1 or close_at < open_at):
                self._add_error(close_at, "Unmatched closing brace '}'")
                index = close_at + 1
                continue
            if open_at == -1:
                break

            end = find_closing_brace(text, open_at)
            if end == -1:
                self._add_error(
                    open_at,
                    "Unmatched opening brace '{'",
                    "Everything from this brace onwards is dropped from the output",
                )
                break

            keyword = keyword_before(text[:open_at])
            if keyword is None:
                self._just_closed = False
                self._check_action_block(open_at, text[open_at : end + 1])
            else:
                keyword_at = open_at - len(keyword)
                if text[gap_start:keyword_at]:
                    self._just_closed = False
                self._check_keyword(keyword, text[open_at + 1 : end].strip(), keyword_at)
                gap_start = end + 1

            index = end + 1

        if self._chain_open:
            self._add_warning(
                self._chain_start,
                "Conditional chain is not terminated with fi{}",
                "The chain is closed at the end of the text",
            )

    def _check_keyword(self, keyword: str, condition: str, offset: int):
        if keyword in ("fi", "else") and condition:
            self._add_warning(offset, f'{keyword}{{}} takes no condition; "{condition}" is ignored')

        if keyword == "fi":
            if not self._chain_open:
                self._add_warning(offset, "fi{} without an open if{} chain is ignored")
                return
            self._chain_open = False
            self._just_closed = True
            return

        if keyword == "else":
            if not self._chain_open:
                self._add_warning(offset, "else{} without an open if{} chain always shows its text")
                self._open_chain(offset)
            self._just_closed = False
            return

        if not condition:
            self._add_warning(offset, f"{keyword}{{}} has an empty condition and always fires")
        else:
            self._check_condition(keyword, condition, offset)

        if not self._chain_open:
            if self._just_closed:
                self._chain_open = True
            else:
                self._open_chain(offset)
        self._just_closed = False

    def _open_chain(self, offset: int):
        self._chain_open = True
        self._chain_start = offset
        self.stats["chains"] += 1

    def _check_condition(self, keyword: str, condition: str, offset: int):
        sigil = self.engine.evaluator.sigil

        for part in split_conditions(condition):
            self.stats["conditions"] += 1
            match = self.engine.evaluator.condition_pattern.match(part)
            if not match:
                self._add_error(
                    offset,
                    f'Malformed condition "{part}" in {keyword}{{}}',
                    "Use key==value, key!=value, key>value, key<value, key>=value or key<=value",
                )
                continue

            key, operator, raw_value = (piece.strip() for piece in match.groups())

            if key.startswith(sigil):
                call = self.engine.evaluator.call_pattern.match(key)
                if not call:
                    self._add_error(offset, f'Malformed condition call "{key}" in {keyword}{{}}')
                elif call.group(1) not in self.engine.conditions:
                    self._add_warning(offset, f'Condition "{call.group(1)}" is not registered')

            if operator in ORDERING_OPERATORS and isinstance(parse_literal(raw_value), str):
                self._add_error(
                    offset,
                    f'Operator "{operator}" cannot compare against the string "{raw_value}"',
                    "Ordering operators only work with numbers",
                )

    def _check_action_block(self, offset: int, block: str):
        self.stats["action_blocks"] += 1
        try:
            parsed = parse_action_object(block)
        except AuthoringError as e:
            self._add_error(offset, str(e))
            return

        for name in parsed:
            if name not in CLAUSE_KEYS and name not in self.engine.actions:
                self._add_warning(offset, f'Action "{name}" is not registered')

    # Issue bookkeeping

    def _position(self, offset: int):
        line = self._text.count("\n", 0, offset) + 1
        column = offset - (self._text.rfind("\n", 0, offset) + 1) + 1
        return line, column

    def _issue(self, severity: str, offset: int, message: str, suggestion: str = None) -> ValidationIssue:
        line, column = self._position(offset)
        context = self.lines[line - 1].rstrip() if line <= len(self.lines) else None
        return ValidationIssue(line, column, severity, message, context, suggestion)

    def _add_error(self, offset: int, message: str, suggestion: str = None):
        self.errors.append(self._issue("error", offset, message, suggestion))

    def _add_warning(self, offset: int, message: str, suggestion: str = None):
        self.warnings.append(self._issue("warning", offset, message, suggestion))

    # Reporting

    def report(self, name: str):
        """Print the validation report"""
        click.echo(f"\n{Colors.BOLD}{'=' * 80}{Colors.RESET}")
        click.echo(f"{Colors.BOLD}VALIDATION REPORT: {Colors.CYAN}{name}{Colors.RESET}")
        click.echo(f"{Colors.BOLD}{'=' * 80}{Colors.RESET}")

        if not self.errors and not self.warnings:
            click.echo(f"\n{Colors.GREEN}{Colors.BOLD}✅ VALIDATION PASSED - No issues found!{Colors.RESET}")
            self._print_statistics()
            return

        if self.errors:
            click.echo(f"\n{Colors.RED}{Colors.BOLD}❌ ERRORS ({len(self.errors)}):{Colors.RESET}")
            click.echo(f"{Colors.RED}{'━' * 60}{Colors.RESET}")
            for error in sorted(self.errors, key=lambda e: (e.line, e.column)):
                self._print_issue(error, Colors.RED)

        if self.warnings:
            click.echo(f"\n{Colors.YELLOW}{Colors.BOLD}⚠️  WARNINGS ({len(self.warnings)}):{Colors.RESET}")
            click.echo(f"{Colors.YELLOW}{'━' * 60}{Colors.RESET}")
            for warning in sorted(self.warnings, key=lambda w: (w.line, w.column)):
                self._print_issue(warning, Colors.YELLOW)

        click.echo(f"\n{Colors.BOLD}{'=' * 80}{Colors.RESET}")
        error_text = f"{Colors.RED}{len(self.errors)} error(s){Colors.RESET}"
        warning_text = f"{Colors.YELLOW}{len(self.warnings)} warning(s){Colors.RESET}"
        click.echo(f"{Colors.BOLD}Summary:{Colors.RESET} {error_text}, {warning_text}")

        if self.errors:
            click.echo(f"{Colors.RED}{Colors.BOLD}❌ VALIDATION FAILED{Colors.RESET}")
        else:
            click.echo(f"{Colors.GREEN}{Colors.BOLD}✅ VALIDATION PASSED WITH WARNINGS{Colors.RESET}")

        self._print_statistics()

    def _print_issue(self, issue: ValidationIssue, color: str):
        line_info = f"{color}{Colors.BOLD}Line {issue.line}{Colors.RESET}:{issue.column}"
        click.echo(f"\n  {line_info} - {Colors.BOLD}{issue.message}{Colors.RESET}")

        if issue.context:
            click.echo(f"    {color}{issue.line:4d}{Colors.RESET} │ {issue.context}")
            pointer = " " * (issue.column - 1) + f"{color}▲{Colors.RESET}"
            click.echo(f"         │ {pointer}")

        if issue.suggestion:
            click.echo(f"    {Colors.CYAN}💡 Suggestion:{Colors.RESET} {issue.suggestion}")

    def _print_statistics(self):
        click.echo(f"\n{Colors.BOLD}{Colors.BLUE}📊 STATISTICS:{Colors.RESET}")
        click.echo(f"{Colors.BLUE}{'─' * 40}{Colors.RESET}")
        click.echo(f"  • Conditional chains: {Colors.CYAN}{self.stats['chains']}{Colors.RESET}")
        click.echo(f"  • Conditions: {Colors.CYAN}{self.stats['conditions']}{Colors.RESET}")
        click.echo(f"  • Action blocks: {Colors.CYAN}{self.stats['action_blocks']}{Colors.RESET}")
        click.echo(f"  • Placeholders: {Colors.CYAN}{self.stats['placeholders']}{Colors.RESET}")
        click.echo(f"  • Templates: {Colors.CYAN}{self.stats['templates']}{Colors.RESET}")
        click.echo(f"  • Total lines: {Colors.CYAN}{len(self.lines)}{Colors.RESET}")
