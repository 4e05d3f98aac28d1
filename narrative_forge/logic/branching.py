"""
Inline conditional text: ``if{cond}...ifOr{cond}...else{}...fi{}``

The text is tokenized into literal runs and keyword markers, then parsed into a
flat list of Literal and Chain nodes. A chain holds its branches in order and
renders the body of the first branch whose condition holds.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Union

from .conditions import ConditionEvaluator
from .errors import LogicError

logger = logging.getLogger(__name__)

SHORT_KEYWORDS = ("if", "fi")
LONG_KEYWORDS = ("else", "ifOr")


@dataclass
class Keyword:
    kind: str  # if, ifOr, else, fi
    condition: str
    position: int


@dataclass
class Literal:
    text: str


@dataclass
class Branch:
    kind: str  # if, ifOr, else
    condition: str
    body: str = ""


@dataclass
class Chain:
    branches: List[Branch] = field(default_factory=list)
    terminated: bool = False


Token = Union[str, Keyword]
Node = Union[Literal, Chain]


def find_closing_brace(text: str, start: int) -> int:
    """Index of the ``}`` matching the ``{`` at ``start``, or -1"""
    depth = 0
    for index in range(start, len(text)):
        char = text[index]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return -1


def keyword_before(buffer: str) -> Optional[str]:
    """Keyword that ends ``buffer``, i.e. the one owning a ``{`` that follows it"""
    if buffer[-2:] in SHORT_KEYWORDS:
        return buffer[-2:]
    if buffer[-4:] in LONG_KEYWORDS:
        return buffer[-4:]
    return None


def tokenize(text: str) -> List[Token]:
    """
    Split text into literal strings and Keyword markers.

    A ``{`` directly preceded by ``if``, ``fi``, ``else`` or ``ifOr`` opens a
    keyword whose balanced brace group is its condition. Any other brace group
    is kept verbatim in the surrounding literal.
    """
    tokens: List[Token] = []
    buffer = ""
    index = 0

    while index < len(text):
        char = text[index]
        if char != "{":
            buffer += char
            index += 1
            continue

        end = find_closing_brace(text, index)
        if end == -1:
            # unmatched; left in place for the action pass to report
            buffer += text[index:]
            break

        keyword = keyword_before(buffer)
        if keyword is None:
            buffer += text[index : end + 1]
        else:
            buffer = buffer[: -len(keyword)]
            if buffer:
                tokens.append(buffer)
                buffer = ""
            tokens.append(Keyword(kind=keyword, condition=text[index + 1 : end].strip(), position=index))
        index = end + 1

    if buffer:
        tokens.append(buffer)
    return tokens


def parse(text: str) -> List[Node]:
    """
    Build the branch tree for ``text``.

    ``fi{}`` immediately followed by ``if{`` or ``ifOr{`` continues the chain it
    closed, so a branch that already fired suppresses the next block too. A stray
    ``else{}`` opens a chain of its own; a stray ``fi{}`` is dropped.
    """
    nodes: List[Node] = []
    chain: Optional[Chain] = None
    just_closed: Optional[Chain] = None

    for token in tokenize(text):
        if isinstance(token, str):
            if chain is None:
                nodes.append(Literal(token))
            else:
                chain.branches[-1].body += token
            just_closed = None
            continue

        if token.kind == "fi":
            if chain is None:
                logger.warning("Stray fi{} at position %d ignored", token.position)
            else:
                chain.terminated = True
                just_closed = chain
                chain = None
            continue

        if chain is None:
            if just_closed is not None and token.kind != "else":
                chain = just_closed
                chain.terminated = False
            else:
                chain = Chain()
                nodes.append(chain)
        just_closed = None

        condition = "" if token.kind == "else" else token.condition
        chain.branches.append(Branch(kind=token.kind, condition=condition))

    if chain is not None:
        logger.warning("Conditional chain not terminated with fi{}")

    return nodes


class BranchResolver:
    """Renders inline conditional text against a ConditionEvaluator"""

    def __init__(self, evaluator: ConditionEvaluator):
        self.evaluator = evaluator

    def test(self, branch: Branch) -> bool:
        if branch.kind == "else" or not branch.condition:
            return True
        clause = "ifOr" if branch.kind == "ifOr" else "if"
        try:
            return self.evaluator.evaluate({clause: branch.condition})
        except LogicError as e:
            logger.error('Error evaluating condition "%s": %s', branch.condition, e)
            return False
        except Exception as e:
            logger.error('Condition "%s" failed: %s', branch.condition, e)
            return False

    def render(self, nodes: List[Node]) -> str:
        output = []
        for node in nodes:
            if isinstance(node, Literal):
                output.append(node.text)
                continue
            for branch in node.branches:
                if self.test(branch):
                    output.append(branch.body)
                    break
        return "".join(output)

    def resolve(self, text: str) -> str:
        return self.render(parse(text))
