"""
Rule formatting strategies for aix.

Each strategy renders an ``EditorRule`` in one editor's file format and can
recognize and parse that format back into content plus activation metadata.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from .models import EditorRule
from .utils import (
    content_starts_with_heading, extract_frontmatter, parse_frontmatter_fields, render_frontmatter,
    split_globs, strip_leading_heading,
)


class ParsedRule:
    """Content and activation recovered from an editor rule file."""

    def __init__(self, content: str, activation: Optional[str] = None,
                 description: Optional[str] = None, globs: Optional[List[str]] = None,
                 raw_frontmatter: Optional[Dict[str, Any]] = None):
        self.content = content
        self.activation = activation
        self.description = description
        self.globs = globs or []
        self.raw_frontmatter = raw_frontmatter or {}


def _heading_lines(rule: EditorRule, level: str = '#') -> List[str]:
    if rule.name and not content_starts_with_heading(rule.content):
        return [f"{level} {rule.name}", '']
    return []


class RulesStrategy(ABC):
    """Base rules strategy: markdown files with a ``# name`` heading."""

    RULES_DIR = 'rules'
    FILE_EXTENSION = '.md'
    GLOBAL_RULES_PATH: Optional[str] = None
    # Frontmatter key whose presence identifies this editor's format
    FORMAT_KEY: Optional[str] = None

    def is_supported(self) -> bool:
        return True

    def get_rules_dir(self) -> str:
        """Rules directory relative to the editor config dir."""
        return self.RULES_DIR

    def get_file_extension(self) -> str:
        return self.FILE_EXTENSION

    def get_global_rules_path(self) -> Optional[str]:
        """Global rules path relative to the home directory, or None."""
        return self.GLOBAL_RULES_PATH

    @abstractmethod
    def frontmatter_fields(self, rule: EditorRule) -> Dict[str, Any]:
        """Frontmatter fields for a rule, in output order; empty for none."""

    def format_rule(self, rule: EditorRule) -> str:
        lines = render_frontmatter(self.frontmatter_fields(rule))
        lines.extend(_heading_lines(rule))
        lines.append(rule.content)
        return '\n'.join(lines)

    def detect_format(self, content: str) -> bool:
        """Check whether content looks like this editor's rule format."""
        if self.FORMAT_KEY is None:
            return False
        frontmatter, _, has_frontmatter = extract_frontmatter(content)
        return has_frontmatter and self.FORMAT_KEY in parse_frontmatter_fields(frontmatter)

    def activation_from_frontmatter(self, fields: Dict[str, Any]) -> Tuple[Optional[str], Optional[str], List[str]]:
        """Map frontmatter fields to (activation, description, globs)."""
        return None, fields.get('description'), split_globs(fields.get('globs'))

    def parse_frontmatter(self, raw_content: str, name: Optional[str] = None) -> ParsedRule:
        """Split a rule file into content and activation metadata.

        Args:
            raw_content: File content as written by format_rule()
            name: Rule name; a generated ``# name`` heading is removed when given
        """
        frontmatter, body, has_frontmatter = extract_frontmatter(raw_content)
        if not has_frontmatter:
            content = strip_leading_heading(raw_content.strip(), name)
            return ParsedRule(content, 'always' if self.FORMAT_KEY is None else None)

        fields = parse_frontmatter_fields(frontmatter)
        activation, description, globs = self.activation_from_frontmatter(fields)
        return ParsedRule(strip_leading_heading(body, name), activation, description, globs, fields)

    def parse_global_rules(self, content: str) -> Tuple[List[str], List[str]]:
        """Split a global rules file into rule bodies.

        Returns:
            Tuple of (rules, warnings)
        """
        return ([content.strip()] if content.strip() else []), []


class ClaudeCodeRulesStrategy(RulesStrategy):
    """``.claude/rules/*.md`` with optional ``description`` and ``paths`` frontmatter."""

    GLOBAL_RULES_PATH = '.claude/CLAUDE.md'

    def frontmatter_fields(self, rule: EditorRule) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        activation = rule.activation
        if activation.description and activation.type in ('auto', 'manual'):
            fields['description'] = activation.description
        if activation.type == 'glob' and activation.globs:
            fields['paths'] = list(activation.globs)
        return fields

    def detect_format(self, content: str) -> bool:
        frontmatter, _, has_frontmatter = extract_frontmatter(content)
        if not has_frontmatter:
            return False
        fields = parse_frontmatter_fields(frontmatter)
        return 'paths' in fields or (set(fields) == {'description'})

    def activation_from_frontmatter(self, fields: Dict[str, Any]):
        globs = split_globs(fields.get('paths'))
        if globs:
            return 'glob', fields.get('description'), globs
        if fields.get('description'):
            return 'auto', fields['description'], []
        return 'always', None, []


class CursorRulesStrategy(RulesStrategy):
    """``.cursor/rules/*.mdc`` with ``description``, ``globs`` and ``alwaysApply``."""

    FILE_EXTENSION = '.mdc'
    FORMAT_KEY = 'alwaysApply'

    def frontmatter_fields(self, rule: EditorRule) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        activation = rule.activation
        if activation.description:
            fields['description'] = activation.description
        if activation.type == 'glob' and activation.globs:
            fields['globs'] = ', '.join(activation.globs)
        fields['alwaysApply'] = activation.type == 'always'
        return fields

    def activation_from_frontmatter(self, fields: Dict[str, Any]):
        description = fields.get('description')
        globs = split_globs(fields.get('globs'))
        always = fields.get('alwaysApply')
        if always is True or str(always).lower() == 'true':
            return 'always', description, []
        if globs:
            return 'glob', description, globs
        if description:
            return 'auto', description, []
        return 'manual', None, []

    def parse_global_rules(self, content: str):
        # Cursor keeps user rules in its settings UI
        return [], []


class WindsurfRulesStrategy(RulesStrategy):
    """``.windsurf/rules/*.md`` with a ``trigger`` field."""

    GLOBAL_RULES_PATH = '.codeium/windsurf/memories/global_rules.md'
    FORMAT_KEY = 'trigger'

    TRIGGERS = {
        'always': 'always_on',
        'auto': 'model_decision',
        'glob': 'glob',
        'manual': 'manual',
    }

    def frontmatter_fields(self, rule: EditorRule) -> Dict[str, Any]:
        activation = rule.activation
        fields: Dict[str, Any] = {'trigger': self.TRIGGERS[activation.type]}
        if activation.type == 'auto' and activation.description:
            fields['description'] = activation.description
        if activation.type == 'glob' and activation.globs:
            fields['globs'] = ', '.join(activation.globs)
        return fields

    def format_rule(self, rule: EditorRule) -> str:
        lines = render_frontmatter(self.frontmatter_fields(rule))
        lines.append(rule.content)
        return '\n'.join(lines)

    def activation_from_frontmatter(self, fields: Dict[str, Any]):
        by_trigger = {v: k for k, v in self.TRIGGERS.items()}
        return (by_trigger.get(fields.get('trigger')), fields.get('description'),
                split_globs(fields.get('globs')))


class KiroRulesStrategy(RulesStrategy):
    """``.kiro/steering/*.md`` with an ``inclusion`` field."""

    RULES_DIR = 'steering'
    GLOBAL_RULES_PATH = '.kiro/steering'
    FORMAT_KEY = 'inclusion'

    def frontmatter_fields(self, rule: EditorRule) -> Dict[str, Any]:
        activation = rule.activation
        if activation.type == 'glob':
            fields: Dict[str, Any] = {'inclusion': 'fileMatch'}
            if activation.globs:
                fields['fileMatchPattern'] = ','.join(activation.globs)
            return fields
        if activation.type == 'manual':
            return {'inclusion': 'manual'}
        fields = {'inclusion': 'always'}
        if activation.type == 'auto' and activation.description:
            fields['description'] = activation.description
        return fields

    def format_rule(self, rule: EditorRule) -> str:
        lines = render_frontmatter(self.frontmatter_fields(rule))
        lines.append(rule.content)
        return '\n'.join(lines)

    def activation_from_frontmatter(self, fields: Dict[str, Any]):
        inclusion = fields.get('inclusion')
        description = fields.get('description')
        if inclusion == 'fileMatch':
            return 'glob', description, split_globs(fields.get('fileMatchPattern'))
        if inclusion == 'manual':
            return 'manual', description, []
        if inclusion == 'always':
            return ('auto' if description else 'always'), description, []
        return None, description, []

    def parse_global_rules(self, content: str):
        return [], ['Kiro uses directory-based rules']


class CopilotRulesStrategy(RulesStrategy):
    """``.github/instructions/*.instructions.md`` with ``applyTo`` for glob rules."""

    RULES_DIR = '../.github/instructions'
    FILE_EXTENSION = '.instructions.md'
    FORMAT_KEY = 'applyTo'

    def frontmatter_fields(self, rule: EditorRule) -> Dict[str, Any]:
        if rule.activation.type == 'glob' and rule.activation.globs:
            return {'applyTo': ', '.join(rule.activation.globs)}
        return {}

    def activation_from_frontmatter(self, fields: Dict[str, Any]):
        globs = split_globs(fields.get('applyTo'))
        if globs:
            return 'glob', None, globs
        return 'always', None, []

    def parse_global_rules(self, content: str):
        return [], []


class CodexRulesStrategy(RulesStrategy):
    """Plain markdown sections combined into one ``AGENTS.md`` at the project root."""

    RULES_DIR = '..'
    GLOBAL_RULES_PATH = '.codex/AGENTS.md'
    SINGLE_FILE = 'AGENTS.md'

    def frontmatter_fields(self, rule: EditorRule) -> Dict[str, Any]:
        return {}

    def format_rule(self, rule: EditorRule) -> str:
        lines = _heading_lines(rule, '##')
        lines.append(rule.content)
        return '\n'.join(lines)

    def format_rules_file(self, rules: List[EditorRule]) -> str:
        lines = ['# AGENTS.md', '']
        for rule in rules:
            lines.extend([self.format_rule(rule), ''])
        return '\n'.join(lines)


class ZedRulesStrategy(RulesStrategy):
    """Plain markdown sections combined into one ``.rules`` file at the project root."""

    RULES_DIR = '..'
    FILE_EXTENSION = ''
    SINGLE_FILE = '.rules'

    def frontmatter_fields(self, rule: EditorRule) -> Dict[str, Any]:
        return {}

    def format_rules_file(self, rules: List[EditorRule]) -> str:
        lines: List[str] = []
        for rule in rules:
            lines.extend([self.format_rule(rule), ''])
        return '\n'.join(lines)

    def parse_global_rules(self, content: str):
        return [], []
