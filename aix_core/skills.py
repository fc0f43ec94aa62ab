"""
Skill resolution for aix.

A skill is a directory holding a ``SKILL.md`` (YAML frontmatter plus a
markdown body) and optional ``scripts/``, ``references/`` and ``assets/``
directories. Skills are resolved from local paths, git repositories or npm
packages.
"""

import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .exceptions import AixError, SkillParseError
from .resolver import ReferenceResolver, ResolvedReference
from .schema import validate_skill_frontmatter
from .sources import GIT_SHORTHAND_PREFIX, SourceRef, is_semver_range
from .utils import extract_frontmatter, parse_frontmatter_fields

SKILL_FILE = 'SKILL.md'
OPTIONAL_DIRS = ('scripts', 'references', 'assets')
MAX_WORKERS = 5


class ParsedSkill:
    """A resolved skill: its frontmatter, body and on-disk location."""

    def __init__(self, frontmatter: Dict[str, Any], body: str, base_path: Path, source: str,
                 reference: Optional[ResolvedReference] = None):
        self.frontmatter = frontmatter
        self.body = body
        self.base_path = Path(base_path)
        self.source = source
        self._reference = reference

    @property
    def name(self) -> str:
        return self.frontmatter['name']

    @property
    def description(self) -> str:
        return self.frontmatter.get('description', '')

    def cleanup(self):
        """Release downloaded content backing this skill."""
        if self._reference is not None:
            self._reference.cleanup()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'description': self.description,
            'base_path': str(self.base_path),
            'source': self.source,
        }


class SkillValidation:
    """Result of validate_skill()."""

    def __init__(self, errors: Optional[List[str]] = None, warnings: Optional[List[str]] = None):
        self.errors = errors or []
        self.warnings = warnings or []

    @property
    def valid(self) -> bool:
        return not self.errors


def parse_skill_md(skill_path: Path, source: str,
                   reference: Optional[ResolvedReference] = None) -> ParsedSkill:
    """Parse the SKILL.md of a skill directory.

    Args:
        skill_path: Skill directory
        source: 'local', 'git' or 'npm'
        reference: Resolved reference that owns the directory, if any

    Returns:
        ParsedSkill

    Raises:
        SkillParseError: If SKILL.md is missing, has no frontmatter, or the
            frontmatter fails validation
    """
    skill_md = Path(skill_path) / SKILL_FILE
    try:
        content = skill_md.read_text(encoding='utf-8')
    except OSError as e:
        raise SkillParseError(f"Cannot read {skill_md}: {e}") from e

    frontmatter_text, body, has_frontmatter = extract_frontmatter(content)
    if not has_frontmatter:
        raise SkillParseError(f"Invalid SKILL.md format: missing frontmatter in {skill_md}")

    frontmatter = parse_frontmatter_fields(frontmatter_text)
    result = validate_skill_frontmatter(frontmatter)
    if not result.success:
        details = '; '.join(f"{e['path']}: {e['message']}" for e in result.errors)
        raise SkillParseError(f"Invalid SKILL.md frontmatter in {skill_md}: {details}")

    return ParsedSkill(frontmatter, body, Path(skill_path), source, reference)


def _looks_like_package(value: str) -> bool:
    if value.startswith('@'):
        return len(value.split('/')) == 2
    return '/' not in value and ':' not in value and not value.startswith('.')


def parse_skill_ref(name: str, value: Any) -> SourceRef:
    """Parse a skill reference from ai.json.

    Strings may be local paths (``./``, ``../``, ``/``), git shorthands,
    HTTPS URLs, version ranges (the npm package named after the skill) or
    npm package names with an optional file subpath. Objects may use the
    ``{git, ref, path}``, ``{npm, path, version}``, ``{path}``,
    ``{version}`` or ``{source: ...}`` forms.
    """
    if value is False:
        raise SkillParseError(f'Skill "{name}" is disabled')

    if isinstance(value, str):
        if value.startswith(('./', '../', '/')):
            return SourceRef(kind=SourceRef.LOCAL, path=value)
        if GIT_SHORTHAND_PREFIX.match(value) or value.startswith(('https://', 'http://', 'git@')):
            return SourceRef.from_string(value)
        if is_semver_range(value):
            return SourceRef.from_string(value, default_package=name)
        ref = SourceRef.from_string(value)
        if ref.kind == SourceRef.NPM and (ref.path or _looks_like_package(value)):
            return ref
        raise SkillParseError(f'Cannot determine skill reference type for "{name}": {value}')

    if isinstance(value, dict):
        try:
            return SourceRef.from_value(value, default_package=name)
        except AixError as e:
            raise SkillParseError(f'Invalid skill reference for "{name}": {e}') from e

    raise SkillParseError(f'Invalid skill reference for "{name}": {value!r}')


def resolve_skill(name: str, value: Any, base_dir: Path, project_root: Optional[Path] = None) -> ParsedSkill:
    """Resolve one skill entry to a parsed skill.

    The returned skill keeps any git checkout alive until ``cleanup()``.
    """
    ref = parse_skill_ref(name, value)
    resolver = ReferenceResolver(project_root or base_dir)
    resolved = resolver.resolve(ref, base_dir, expect='dir')
    try:
        if not (resolved.location / SKILL_FILE).is_file():
            raise SkillParseError(
                f"SKILL.md not found in {resolved.location}. "
                f"Ensure the source exports a skill directory at \"{ref.path or '(root)'}\"."
            )
        return parse_skill_md(resolved.location, ref.kind, resolved)
    except BaseException:
        resolved.cleanup()
        raise


def resolve_all_skills(skills: Optional[Dict[str, Any]], base_dir: Path,
                       project_root: Optional[Path] = None) -> Tuple[Dict[str, ParsedSkill], Dict[str, str]]:
    """Resolve every enabled skill, five at a time.

    A failing skill does not stop the others.

    Returns:
        Tuple of (resolved skills by name, error messages by name), both in
        declaration order
    """
    entries = [(name, value) for name, value in (skills or {}).items() if value is not False]

    def resolve_entry(entry: Tuple[str, Any]) -> Tuple[str, Optional[ParsedSkill], Optional[str]]:
        name, value = entry
        try:
            return name, resolve_skill(name, value, base_dir, project_root), None
        except AixError as e:
            return name, None, f'Failed to resolve skill "{name}": {e}'

    resolved: Dict[str, ParsedSkill] = {}
    errors: Dict[str, str] = {}
    with ThreadPoolExecutor(max_workers=MAX_WORKERS) as executor:
        for name, skill, error in executor.map(resolve_entry, entries):
            if skill is not None:
                resolved[name] = skill
            else:
                errors[name] = error

    return resolved, errors


def release_skills(skills: Dict[str, ParsedSkill]):
    """Clean up every resolved skill."""
    for skill in skills.values():
        skill.cleanup()


def _check_dir(path: Path) -> Optional[str]:
    if not path.is_dir() or not os.access(str(path), os.R_OK | os.X_OK):
        return f"Cannot access {path.name}/ directory"
    return None


def validate_skill(skill: ParsedSkill) -> SkillValidation:
    """Check a parsed skill for completeness.

    Returns:
        SkillValidation with errors (unreadable SKILL.md, inaccessible
        optional directories) and warnings (name/directory mismatch, short
        description)
    """
    errors: List[str] = []
    warnings: List[str] = []

    skill_md = skill.base_path / SKILL_FILE
    if not os.access(skill_md, os.R_OK):
        errors.append('SKILL.md not found')

    dir_name = skill.base_path.name
    if dir_name and dir_name != skill.name:
        warnings.append(f'Skill name "{skill.name}" does not match directory name "{dir_name}"')

    present = [skill.base_path / d for d in OPTIONAL_DIRS if (skill.base_path / d).exists()]
    with ThreadPoolExecutor(max_workers=MAX_WORKERS) as executor:
        errors.extend(e for e in executor.map(_check_dir, present) if e)

    if len(skill.description) < 50:
        warnings.append('Description is short - consider adding more detail for better AI discovery')

    return SkillValidation(errors, warnings)
