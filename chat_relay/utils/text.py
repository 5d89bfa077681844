"""
Text helpers

Small utilities used while rendering prompts.
"""
import re
from typing import Dict, List


def truncate(text: str, max_chars: int) -> str:
    """Cut text to at most `max_chars` characters.

    This is a hard cut: no word-boundary search and no ellipsis, so prompt
    sizes stay exactly predictable.
    """
    if not text or max_chars <= 0:
        return ""
    return text[:max_chars]


_PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")


def fill_placeholders(template: str, values: Dict[str, str]) -> str:
    """Substitute ``{name}`` placeholders, leaving every other brace untouched.

    Unlike ``str.format`` this tolerates literal braces in free-form text
    (e.g. ``\\frac{}``) and leaves unknown names as they are.
    """
    def _replace(match: re.Match) -> str:
        name = match.group(1)
        return values[name] if name in values else match.group(0)

    return _PLACEHOLDER_RE.sub(_replace, template)


def placeholder_names(template: str) -> List[str]:
    """Names of the ``{name}`` placeholders in a template, in order of appearance."""
    return _PLACEHOLDER_RE.findall(template)
