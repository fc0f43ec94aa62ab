"""
Structural comparison of configuration values.

Used before touching user-global files: an existing entry that matches what
ai.json would write is left alone, and one that differs is never overwritten.
"""

from typing import Any, Optional


def deep_equal(a: Any, b: Any) -> bool:
    """Compare two JSON-like values structurally.

    Mappings compare by key set and then value by value, so key order does
    not matter. Sequences compare by length and then pairwise. Anything else
    compares by plain equality.
    """
    if isinstance(a, dict) or isinstance(b, dict):
        if not (isinstance(a, dict) and isinstance(b, dict)):
            return False
        if set(a.keys()) != set(b.keys()):
            return False
        return all(deep_equal(a[key], b[key]) for key in a)

    if isinstance(a, (list, tuple)) or isinstance(b, (list, tuple)):
        if not (isinstance(a, (list, tuple)) and isinstance(b, (list, tuple))):
            return False
        if len(a) != len(b):
            return False
        return all(deep_equal(x, y) for x, y in zip(a, b))

    # bool is an int subclass; True must not equal 1 here
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    return a == b


def mcp_configs_match(a: Any, b: Any) -> bool:
    """Whether two MCP server entries are structurally identical."""
    return deep_equal(a, b)


def _normalize_text(content: Optional[str]) -> str:
    return (content or '').replace('\r\n', '\n').strip()


def prompts_match(a: Optional[str], b: Optional[str]) -> bool:
    """Whether two prompt files differ only in line endings or surrounding whitespace."""
    return _normalize_text(a) == _normalize_text(b)
