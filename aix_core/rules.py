"""
Rule loading for aix.

Loads rule entries from inline content, local files, git repositories or npm
packages, and provides ``{{variable}}`` interpolation and content checks.
"""

import os
import re
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .exceptions import AixError, ConfigError
from .models import Activation, EditorRule
from .resolver import ReferenceResolver
from .sources import SourceRef, normalize_source_ref
from .utils import parse_frontmatter, split_globs

DEFAULT_RULE_FILE = 'RULES.md'
MAX_RULE_LENGTH = 10000
MAX_WORKERS = 5

VARIABLE_PATTERN = re.compile(r'\{\{([^}]+)\}\}')

_MISSING = object()


def read_entry_content(name: str, entry: Dict[str, Any], base_dir: Path, project_root: Path,
                       default_file: str, kind: str) -> Tuple[str, Optional[str]]:
    """Read the content of a rule or prompt entry.

    Returns:
        Tuple of (content, source_path); source_path is None for inline content
    """
    if entry.get('content'):
        return entry['content'], None

    if entry.get('path') or entry.get('git') or entry.get('npm'):
        resolver = ReferenceResolver(project_root)
        return resolver.read_file(SourceRef.from_value(entry), base_dir, default_file)

    raise ConfigError(f'Invalid {kind} "{name}": no content source found')


def load_rule(name: str, value: Any, base_dir: Path, project_root: Optional[Path] = None) -> EditorRule:
    """Load a single rule entry.

    Args:
        name: Rule name (key in the rules section)
        value: String shorthand or rule object
        base_dir: Directory relative paths are resolved against
        project_root: Project root for npm lookups (defaults to base_dir)

    Returns:
        EditorRule with activation defaulting to ``always``
    """
    entry = normalize_source_ref(value) if isinstance(value, str) else value
    content, source_path = read_entry_content(
        name, entry, Path(base_dir), Path(project_root or base_dir), DEFAULT_RULE_FILE, 'rule'
    )

    description = entry.get('description')
    globs = entry.get('globs')
    if source_path:
        frontmatter, body = parse_frontmatter(content)
        if frontmatter:
            content = body.strip()
            description = description or frontmatter.get('description')
            globs = globs or split_globs(frontmatter.get('globs')) or None

    activation = Activation(entry.get('activation', 'always'), description, globs)
    return EditorRule(name, content, activation, source_path)


def load_rules(rules: Optional[Dict[str, Any]], base_dir: Path,
               project_root: Optional[Path] = None) -> Tuple[List[EditorRule], Dict[str, str]]:
    """Load every enabled rule, five at a time, keeping declaration order.

    Returns:
        Tuple of (loaded rules, error messages by rule name)
    """
    entries = [(name, value) for name, value in (rules or {}).items() if value is not False]

    def load_entry(entry: Tuple[str, Any]) -> Tuple[str, Optional[EditorRule], Optional[str]]:
        name, value = entry
        try:
            return name, load_rule(name, value, base_dir, project_root), None
        except AixError as e:
            return name, None, f'Failed to load rule "{name}": {e}'

    loaded: List[EditorRule] = []
    errors: Dict[str, str] = {}
    with ThreadPoolExecutor(max_workers=MAX_WORKERS) as executor:
        for name, rule, error in executor.map(load_entry, entries):
            if rule is not None:
                loaded.append(rule)
            else:
                errors[name] = error
    return loaded, errors


def build_interpolation_context(config: Dict[str, Any], project_root: Path, editor: str,
                                package_json: Optional[Dict[str, Any]] = None,
                                custom: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Build the context for ``{{variable}}`` interpolation."""
    package_json = package_json or {}
    return {
        'project': {
            'name': package_json.get('name') or Path(project_root).name,
            'version': package_json.get('version'),
            'description': package_json.get('description'),
        },
        'editor': editor,
        'env': dict(os.environ),
        'custom': custom or {},
    }


def _lookup(context: Dict[str, Any], path: str) -> Any:
    current: Any = context
    for part in path.split('.'):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return _MISSING if current is None else current


def interpolate(content: str, context: Dict[str, Any]) -> Tuple[str, List[str]]:
    """Replace ``{{path.to.value}}`` variables from context.

    Unknown variables are left in place.

    Returns:
        Tuple of (interpolated content, warnings for unknown variables)
    """
    warnings: List[str] = []

    def replace(match):
        path = match.group(1).strip()
        value = _lookup(context, path)
        if value is _MISSING:
            warnings.append(f"Unknown variable in rule: {path}")
            return match.group(0)
        return str(value)

    return VARIABLE_PATTERN.sub(replace, content), warnings


def has_unresolved_variables(content: str) -> bool:
    """Check if content still contains ``{{...}}`` variables."""
    return VARIABLE_PATTERN.search(content) is not None


def extract_variable_names(content: str) -> List[str]:
    """Return the variable names used in content, in order of appearance."""
    return [m.group(1) for m in VARIABLE_PATTERN.finditer(content)]


def validate_rule_content(content: str) -> Tuple[List[str], List[str]]:
    """Check rule content for common problems.

    Returns:
        Tuple of (errors, warnings)
    """
    errors: List[str] = []
    warnings: List[str] = []

    if not content.strip():
        errors.append('Rule content is empty')
    if len(content) > MAX_RULE_LENGTH:
        warnings.append('Rule content exceeds 10,000 characters')
    if '{{' in content and '}}' not in content:
        warnings.append('Unclosed variable interpolation')

    return errors, warnings


def deduplicate_rules(rules: List[EditorRule]) -> List[EditorRule]:
    """Keep the last definition of each rule name, at the position of its first."""
    last: Dict[str, EditorRule] = {}
    for rule in rules:
        last[rule.name] = rule
    return list(last.values())
