"""
aix utility functions.

This module contains utility functions for frontmatter parsing and
formatting, JSON merging, file naming and timestamp formatting.
"""

import base64
import copy
import json
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import json5
import yaml

FRONTMATTER_PATTERN = re.compile(r'^---\r?\n([\s\S]*?)\r?\n---\r?\n?')

# Containers whose entries are replaced wholesale when merging editor JSON files
MCP_SERVER_CONTAINERS = ('mcpServers', 'servers', 'context_servers', 'mcp_servers')


def base64url(value: str) -> str:
    """Encode a string as unpadded base64url."""
    return base64.urlsafe_b64encode(value.encode('utf-8')).decode('ascii').rstrip('=')


def extract_frontmatter(raw_content: str) -> Tuple[str, str, bool]:
    """Split raw markdown into its frontmatter block and body.

    Args:
        raw_content: Markdown content that may start with a ``---`` block

    Returns:
        Tuple of (frontmatter_text, body, has_frontmatter). The body is
        stripped when a frontmatter block was found.
    """
    match = FRONTMATTER_PATTERN.match(raw_content)
    if not match:
        return '', raw_content, False
    return match.group(1), raw_content[match.end():].strip(), True


def _parse_simple_frontmatter(frontmatter: str) -> Dict[str, Any]:
    """Line-based fallback for frontmatter YAML rejects (e.g. unquoted ``*.ts``)."""
    result: Dict[str, Any] = {}
    current_key: Optional[str] = None
    array_values: List[str] = []

    for line in frontmatter.split('\n'):
        item = re.match(r'^\s+-\s+(.+)$', line)
        if item and current_key:
            array_values.append(item.group(1).strip().strip('"\''))
            continue

        if current_key and array_values:
            result[current_key] = array_values
            array_values = []
            current_key = None

        pair = re.match(r'^([\w-]+):\s*(.*)$', line)
        if not pair:
            continue

        key, raw_value = pair.group(1), pair.group(2).strip()
        if not raw_value:
            current_key = key
            array_values = []
        elif raw_value == 'true':
            result[key] = True
        elif raw_value == 'false':
            result[key] = False
        else:
            result[key] = re.sub(r'^["\']|["\']$', '', raw_value)

    if current_key and array_values:
        result[current_key] = array_values

    return result


def parse_frontmatter_fields(frontmatter: str) -> Dict[str, Any]:
    """Parse a frontmatter block into a dictionary."""
    if not frontmatter.strip():
        return {}
    try:
        parsed = yaml.safe_load(frontmatter)
    except yaml.YAMLError:
        return _parse_simple_frontmatter(frontmatter)
    if not isinstance(parsed, dict):
        return _parse_simple_frontmatter(frontmatter)
    return parsed


def parse_frontmatter(content: str) -> Tuple[Dict[str, Any], str]:
    """Parse YAML frontmatter from markdown content.

    Args:
        content: Markdown content that may contain frontmatter

    Returns:
        Tuple of (frontmatter_dict, body_content)
    """
    frontmatter, body, has_frontmatter = extract_frontmatter(content)
    if not has_frontmatter:
        return {}, content
    return parse_frontmatter_fields(frontmatter), body


def dump_yaml(data: Dict[str, Any]) -> str:
    """Serialize a mapping as block-style YAML, keeping key order."""
    return yaml.safe_dump(data, default_flow_style=False, sort_keys=False,
                          allow_unicode=True, width=float('inf'))


def render_frontmatter(fields: Dict[str, Any]) -> List[str]:
    """Render fields as the lines of a ``---`` delimited frontmatter block.

    Values are quoted by the YAML emitter wherever plain scalars would be
    misread, e.g. descriptions containing ``: `` or globs starting with ``*``.
    """
    if not fields:
        return []
    return ['---', dump_yaml(fields).rstrip('\n'), '---', '']


def content_starts_with_heading(content: str) -> bool:
    """Check whether content already opens with a level-one heading."""
    return bool(re.match(r'^#\s', content.strip()))


def strip_leading_heading(content: str, name: Optional[str]) -> str:
    """Remove a generated ``# name`` heading from parsed content."""
    if not name:
        return content
    for prefix in (f"# {name}\n", f"## {name}\n"):
        if content.startswith(prefix):
            return content[len(prefix):].lstrip('\n')
    return content


def split_globs(value: Any) -> List[str]:
    """Normalize a glob field (list or comma-separated string) into a list."""
    if value is None:
        return []
    if isinstance(value, list):
        return [str(v).strip() for v in value if str(v).strip()]
    return [g.strip() for g in str(value).split(',') if g.strip()]


def sanitize_file_name(name: str) -> str:
    """Sanitize a string for use as a filename."""
    sanitized = re.sub(r'[^a-z0-9-]', '-', name.lower())
    sanitized = re.sub(r'-+', '-', sanitized)
    return sanitized.strip('-')


def to_json(data: Any) -> str:
    """Serialize data the way editor JSON files are written."""
    return json.dumps(data, indent=2, ensure_ascii=False) + '\n'


def deep_merge_json(base: Dict, override: Dict, path: Optional[List[str]] = None) -> Dict:
    """Deep merge two JSON objects.

    Objects merge recursively, arrays and scalars are replaced. Individual
    MCP server entries are replaced as a whole rather than merged.
    """
    path = path or []
    result = copy.deepcopy(base)

    for key, new_value in override.items():
        old_value = result.get(key)
        replace_whole = bool(path) and path[-1] in MCP_SERVER_CONTAINERS
        if isinstance(new_value, dict) and isinstance(old_value, dict) and not replace_whole:
            result[key] = deep_merge_json(old_value, new_value, path + [key])
        else:
            result[key] = copy.deepcopy(new_value)

    return result


def read_text_if_exists(file_path: Path) -> Optional[str]:
    """Read a file, returning None if it does not exist."""
    try:
        return Path(file_path).read_text(encoding='utf-8')
    except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
        return None


def format_timestamp(timestamp_str: str) -> str:
    """Format ISO timestamp to human-readable relative or absolute time.

    Args:
        timestamp_str: ISO format timestamp string

    Returns:
        Human-readable time string like "2 hours ago" or "Jan 15, 2025 at 3:45 PM"
    """
    try:
        timestamp = datetime.fromisoformat(timestamp_str)
        now = datetime.now(timestamp.tzinfo) if timestamp.tzinfo else datetime.now()
        diff = now - timestamp

        if diff.total_seconds() < 60:
            seconds = int(diff.total_seconds())
            return "just now" if seconds < 10 else f"{seconds} seconds ago"
        elif diff.total_seconds() < 3600:
            minutes = int(diff.total_seconds() / 60)
            return f"{minutes} minute{'s' if minutes != 1 else ''} ago"
        elif diff.total_seconds() < 86400:
            hours = int(diff.total_seconds() / 3600)
            return f"{hours} hour{'s' if hours != 1 else ''} ago"
        elif diff.days < 30:
            return f"{diff.days} day{'s' if diff.days != 1 else ''} ago"
        else:
            return timestamp.strftime("%b %d, %Y at %I:%M %p")

    except (ValueError, AttributeError, TypeError):
        return timestamp_str


def format_size(size: int) -> str:
    """Format a byte count for display."""
    value = float(size)
    for unit in ('B', 'KB', 'MB'):
        if value < 1024:
            return f"{value:.0f} {unit}" if unit == 'B' else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


def parse_jsonc(content: str, file_path: str) -> Dict[str, Any]:
    """Parse a JSON-with-comments document.

    Raises:
        ConfigParseError: If the content is not valid JSONC or not an object
    """
    from .exceptions import ConfigParseError

    try:
        data = json5.loads(content)
    except ValueError as e:
        raise ConfigParseError(str(e), file_path, [{'path': file_path, 'message': str(e)}]) from e

    if not isinstance(data, dict):
        raise ConfigParseError("Expected a JSON object at the top level", file_path)
    return data


def read_jsonc_file(file_path: Path) -> Dict[str, Any]:
    """Read and parse a JSONC file."""
    from .exceptions import ConfigParseError

    try:
        content = Path(file_path).read_text(encoding='utf-8')
    except OSError as e:
        raise ConfigParseError(str(e), str(file_path)) from e
    return parse_jsonc(content, str(file_path))
