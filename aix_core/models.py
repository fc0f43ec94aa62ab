"""
Editor-facing data model for aix.

These are the unified shapes the strategies format into editor files and
parse back out of them.
"""

from typing import Any, Dict, List, Optional

ACTIONS = ('create', 'update', 'delete', 'unchanged')
CATEGORIES = ('skill', 'rule', 'workflow', 'mcp', 'hook', 'other')


class Activation:
    """When a rule applies: always, auto (by description), glob, or manual."""

    def __init__(self, type: str = 'always', description: Optional[str] = None,
                 globs: Optional[List[str]] = None):
        self.type = type
        self.description = description
        self.globs = list(globs) if globs else []

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'type': self.type}
        if self.description:
            data['description'] = self.description
        if self.globs:
            data['globs'] = list(self.globs)
        return data

    def __eq__(self, other) -> bool:
        if not isinstance(other, Activation):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"Activation({self.to_dict()!r})"


class EditorRule:
    """A rule ready to be formatted for an editor."""

    def __init__(self, name: str, content: str, activation: Optional[Activation] = None,
                 source_path: Optional[str] = None):
        self.name = name
        self.content = content
        self.activation = activation or Activation()
        self.source_path = source_path

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'name': self.name,
            'content': self.content,
            'activation': self.activation.to_dict(),
        }
        if self.source_path:
            data['source_path'] = self.source_path
        return data

    def __repr__(self) -> str:
        return f"EditorRule(name={self.name!r}, activation={self.activation.type!r})"


class EditorPrompt:
    """A prompt (slash command / workflow) ready to be formatted for an editor."""

    def __init__(self, name: str, content: str, description: Optional[str] = None,
                 argument_hint: Optional[str] = None):
        self.name = name
        self.content = content
        self.description = description
        self.argument_hint = argument_hint

    def to_dict(self) -> Dict[str, Any]:
        data = {'name': self.name, 'content': self.content}
        if self.description:
            data['description'] = self.description
        if self.argument_hint:
            data['argument_hint'] = self.argument_hint
        return data

    def __repr__(self) -> str:
        return f"EditorPrompt(name={self.name!r})"


class FileChange:
    """A planned or applied change to one file or directory.

    Directory changes carry what applying them means: a symlink_target
    to link to, or a source tree to copy. A merge copy adds the
    entries of source, minus exclude, to an existing directory instead
    of replacing it.
    """

    def __init__(self, path: str, action: str, content: Optional[str] = None,
                 is_directory: bool = False, category: str = 'other',
                 source: Optional[str] = None, symlink_target: Optional[str] = None,
                 merge: bool = False, exclude: Optional[List[str]] = None):
        if action not in ACTIONS:
            raise ValueError(f"Invalid action: {action}")
        if category not in CATEGORIES:
            raise ValueError(f"Invalid category: {category}")
        self.path = path
        self.action = action
        self.content = content
        self.is_directory = is_directory
        self.category = category
        self.source = source
        self.symlink_target = symlink_target
        self.merge = merge
        self.exclude = list(exclude or [])

    def to_dict(self) -> Dict[str, Any]:
        return {
            'path': str(self.path),
            'action': self.action,
            'is_directory': self.is_directory,
            'category': self.category,
        }

    def __repr__(self) -> str:
        return f"FileChange({self.action} {self.path})"


class EditorConfig:
    """Everything an adapter writes for one editor."""

    def __init__(self, rules: Optional[List[EditorRule]] = None,
                 prompts: Optional[List[EditorPrompt]] = None,
                 mcp: Optional[Dict[str, Any]] = None,
                 hooks: Optional[Dict[str, Any]] = None,
                 skills: Optional[Dict[str, Any]] = None):
        self.rules = rules or []
        self.prompts = prompts or []
        self.mcp = mcp or {}
        self.hooks = hooks or {}
        # name -> ParsedSkill
        self.skills = skills or {}
        # Per-entry failures and interpolation warnings collected while loading
        self.errors: List[str] = []
        self.warnings: List[str] = []


class ApplyResult:
    """Outcome of applying an EditorConfig."""

    def __init__(self, editor: str, changes: Optional[List[FileChange]] = None,
                 success: bool = True, errors: Optional[List[str]] = None,
                 warnings: Optional[List[str]] = None, dry_run: bool = False):
        self.editor = editor
        self.changes = changes or []
        self.success = success
        self.errors = errors or []
        self.warnings = warnings or []
        self.dry_run = dry_run
        # Filled in by AixManager.install()
        self.unsupported_features: Dict[str, Dict[str, Any]] = {}
        self.global_changes = None

    def count(self, action: str) -> int:
        """Count changes with the given action."""
        return sum(1 for change in self.changes if change.action == action)

    @property
    def changed(self) -> List[FileChange]:
        return [c for c in self.changes if c.action != 'unchanged']

    def to_dict(self) -> Dict[str, Any]:
        return {
            'editor': self.editor,
            'success': self.success,
            'dry_run': self.dry_run,
            'changes': [c.to_dict() for c in self.changes],
            'errors': list(self.errors),
            'warnings': list(self.warnings),
            'unsupported_features': self.unsupported_features,
        }
