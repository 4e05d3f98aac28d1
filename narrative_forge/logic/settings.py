"""
Engine configuration
"""

from dataclasses import dataclass, fields
from typing import Any, Mapping

from .registry import CONDITION_SIGIL


@dataclass
class EngineSettings:
    """Tunable knobs for one LogicEngine"""

    condition_sigil: str = CONDITION_SIGIL
    max_template_depth: int = 8  # bounds |$template| recursion
    code_css_class: str = "output_code"
    bold_tag: str = "b"
    italic_tag: str = "i"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EngineSettings":
        """Build settings from a config mapping, ignoring unknown keys"""
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})
