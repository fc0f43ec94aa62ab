"""
Editor adapters for aix.

An adapter turns a resolved descriptor into the files of one editor. It
plans every change first (create / update / delete / unchanged, compared
byte for byte against what is on disk), then writes the plan sequentially and
restores earlier writes when a later one fails.
"""

import json
import os
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from .config import AixConfig
from .exceptions import AixError, FileOperationError
from .hal import EditorHAL, get_hal
from .merge import active_entries, merge_entries, normalize_editors
from .models import ApplyResult, EditorConfig, EditorRule, FileChange
from .prompts import load_prompts
from .rules import build_interpolation_context, deduplicate_rules, interpolate, load_rules
from .skill_strategies import apply_directory_change
from .skills import resolve_all_skills
from .utils import deep_merge_json, read_text_if_exists, sanitize_file_name, to_json


def in_scope(scopes: List[str], capability: str) -> bool:
    """Check a capability against install scopes; ``editors`` covers prompts and hooks."""
    if capability in scopes:
        return True
    return capability in ('prompts', 'hooks') and 'editors' in scopes


def filter_mcp_config(mcp: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Drop servers disabled with ``false``."""
    return active_entries(mcp)


def _read_package_json(project_root: Path) -> Dict[str, Any]:
    try:
        data = json.loads((Path(project_root) / AixConfig.PACKAGE_JSON_FILE).read_text(encoding='utf-8'))
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


class ApplyOptions:
    """Options shared by generate_config(), plan_changes() and apply().

    Attributes:
        dry_run: Plan only, write nothing
        scopes: Capabilities to install (defaults to AixConfig.DEFAULT_SCOPES)
        overwrite: Replace JSON files instead of merging into them
        clean: Delete generated rule and prompt files no longer in the plan
        config_base_dir: Directory relative entry paths resolve against
        skills: Already-resolved skills shared across editors
    """

    def __init__(self, dry_run: bool = False, scopes: Optional[List[str]] = None,
                 overwrite: bool = False, clean: bool = False,
                 config_base_dir: Optional[Path] = None, skills: Optional[Dict[str, Any]] = None):
        self.dry_run = dry_run
        self.scopes = list(scopes) if scopes else list(AixConfig.DEFAULT_SCOPES)
        self.overwrite = overwrite
        self.clean = clean
        self.config_base_dir = config_base_dir
        self.skills = skills


class EditorAdapter:
    """Writes the unified configuration in one editor's formats."""

    def __init__(self, editor: str, hal: Optional[EditorHAL] = None):
        self.editor = editor
        self.config_dir = AixConfig.get_editor_config(editor)['config_dir']
        hal = hal or get_hal()
        self.rules_strategy = hal.get_strategy('rules', editor)
        self.mcp_strategy = hal.get_strategy('mcp', editor)
        self.skills_strategy = hal.get_strategy('skills', editor)
        self.prompts_strategy = hal.get_strategy('prompts', editor)
        self.hooks_strategy = hal.get_strategy('hooks', editor)

    def detect(self, project_root: Path) -> bool:
        """Check whether the editor's config dir exists in the project."""
        return (Path(project_root) / self.config_dir).is_dir()

    def generate_config(self, config: Dict[str, Any], project_root: Path,
                        options: Optional[ApplyOptions] = None) -> EditorConfig:
        """Load everything this editor needs from a resolved descriptor.

        Skills resolved here (when options.skills is None) keep their
        downloads alive; release them with ``release_skills()``.
        """
        options = options or ApplyOptions()
        project_root = Path(project_root)
        base_dir = Path(options.config_base_dir or project_root)
        editor_config = EditorConfig()

        if in_scope(options.scopes, 'skills') and active_entries(config.get('skills')):
            if options.skills is not None:
                editor_config.skills = options.skills
            else:
                editor_config.skills, errors = resolve_all_skills(config['skills'], base_dir, project_root)
                editor_config.errors.extend(errors.values())

        if in_scope(options.scopes, 'rules'):
            editor_rules = normalize_editors(config.get('editors')).get(self.editor, {}).get('rules')
            rules, errors = load_rules(merge_entries(config.get('rules'), editor_rules), base_dir, project_root)
            editor_config.errors.extend(errors.values())

            context = build_interpolation_context(config, project_root, self.editor,
                                                  _read_package_json(project_root))
            for rule in rules:
                rule.content, warnings = interpolate(rule.content, context)
                editor_config.warnings.extend(warnings)

            rules.extend(self.skills_strategy.generate_skill_rules(editor_config.skills))
            editor_config.rules = deduplicate_rules(rules)

        if in_scope(options.scopes, 'prompts'):
            editor_config.prompts, errors = load_prompts(config.get('prompts'), base_dir, project_root)
            editor_config.errors.extend(errors.values())

        if in_scope(options.scopes, 'mcp'):
            editor_config.mcp = filter_mcp_config(config.get('mcp'))

        if in_scope(options.scopes, 'hooks'):
            editor_config.hooks = active_entries(config.get('hooks'))

        return editor_config

    def determine_action(self, path: Path, content: str) -> str:
        """Compare planned content against the file on disk."""
        existing = read_text_if_exists(path)
        if existing is None:
            return 'create'
        return 'unchanged' if existing == content else 'update'

    def plan_file_change(self, path: Path, content: str, category: str) -> FileChange:
        return FileChange(str(path), self.determine_action(path, content), content, category=category)

    def plan_json_file_change(self, path: Path, content: str, category: str,
                              overwrite: bool = False) -> FileChange:
        """Plan a JSON file, merged into the existing document unless overwrite is set."""
        existing = read_text_if_exists(path)
        if overwrite or existing is None:
            return self.plan_file_change(path, content, category)

        try:
            existing_json = json.loads(existing)
        except json.JSONDecodeError:
            return self.plan_file_change(path, content, category)
        if not isinstance(existing_json, dict):
            return self.plan_file_change(path, content, category)

        merged = to_json(deep_merge_json(existing_json, json.loads(content)))
        return self.plan_file_change(path, merged, category)

    def _rules_dir(self, project_root: Path) -> Path:
        return Path(os.path.normpath(Path(project_root) / self.config_dir / self.rules_strategy.get_rules_dir()))

    def _prompts_dir(self, project_root: Path) -> Path:
        return Path(os.path.normpath(Path(project_root) / self.config_dir / self.prompts_strategy.get_prompts_dir()))

    def _plan_rules(self, rules: List[EditorRule], project_root: Path) -> List[FileChange]:
        rules_dir = self._rules_dir(project_root)
        single_file = getattr(self.rules_strategy, 'SINGLE_FILE', None)
        if single_file:
            if not rules:
                return []
            content = self.rules_strategy.format_rules_file(rules)
            return [self.plan_file_change(rules_dir / single_file, content, 'rule')]

        ext = self.rules_strategy.get_file_extension()
        return [
            self.plan_file_change(rules_dir / f"{sanitize_file_name(rule.name) or 'rule'}{ext}",
                                  self.rules_strategy.format_rule(rule), 'rule')
            for rule in rules
        ]

    def _plan_mcp(self, mcp: Dict[str, Any], project_root: Path, overwrite: bool) -> List[FileChange]:
        strategy = self.mcp_strategy
        if not mcp or not strategy.is_supported() or strategy.is_global_only():
            return []
        if strategy.is_project_root_config():
            path = Path(project_root) / strategy.get_config_path()
        else:
            path = Path(project_root) / self.config_dir / strategy.get_config_path()

        content = strategy.format_config(mcp)
        if path.suffix == '.json':
            return [self.plan_json_file_change(path, content, 'mcp', overwrite)]
        return [self.plan_file_change(path, content, 'mcp')]

    def _plan_prompts(self, editor_config: EditorConfig, project_root: Path) -> List[FileChange]:
        strategy = self.prompts_strategy
        if not strategy.is_supported() or strategy.is_global_only():
            return []
        prompts_dir = self._prompts_dir(project_root)
        ext = strategy.get_file_extension()
        return [
            self.plan_file_change(prompts_dir / f"{sanitize_file_name(prompt.name) or 'prompt'}{ext}",
                                  strategy.format_prompt(prompt), 'workflow')
            for prompt in editor_config.prompts
        ]

    def _plan_hooks(self, hooks: Dict[str, Any], project_root: Path, overwrite: bool) -> List[FileChange]:
        if not hooks or not self.hooks_strategy.is_supported():
            return []
        changes = []
        config_dir = Path(project_root) / self.config_dir
        for relative, content in self.hooks_strategy.format_files(hooks).items():
            path = Path(os.path.normpath(config_dir / relative))
            if path.suffix == '.json':
                changes.append(self.plan_json_file_change(path, content, 'hook', overwrite))
            else:
                changes.append(self.plan_file_change(path, content, 'hook'))
        return changes

    def _plan_clean(self, changes: List[FileChange], project_root: Path,
                    scopes: List[str]) -> List[FileChange]:
        """Plan deletes for generated files that the current plan no longer produces."""
        planned: Set[str] = {str(Path(c.path)) for c in changes}
        targets = []
        if in_scope(scopes, 'rules') and not getattr(self.rules_strategy, 'SINGLE_FILE', None):
            targets.append((self._rules_dir(project_root), self.rules_strategy.get_file_extension(), 'rule'))
        if (in_scope(scopes, 'prompts') and self.prompts_strategy.is_supported()
                and not self.prompts_strategy.is_global_only()):
            targets.append((self._prompts_dir(project_root), self.prompts_strategy.get_file_extension(), 'workflow'))

        deletes = []
        for directory, ext, category in targets:
            if not directory.is_dir() or not ext:
                continue
            for path in sorted(directory.iterdir()):
                if path.is_file() and path.name.endswith(ext) and str(path) not in planned:
                    planned.add(str(path))
                    deletes.append(FileChange(str(path), 'delete', category=category))
        return deletes

    def plan_changes(self, editor_config: EditorConfig, project_root: Path,
                     options: Optional[ApplyOptions] = None) -> List[FileChange]:
        """Plan every file change for this editor; skill changes come first."""
        options = options or ApplyOptions()
        scopes = options.scopes
        changes: List[FileChange] = []

        if in_scope(scopes, 'rules'):
            changes.extend(self._plan_rules(editor_config.rules, project_root))
        if in_scope(scopes, 'mcp'):
            changes.extend(self._plan_mcp(editor_config.mcp, project_root, options.overwrite))
        if in_scope(scopes, 'prompts'):
            changes.extend(self._plan_prompts(editor_config, project_root))
        if in_scope(scopes, 'hooks'):
            changes.extend(self._plan_hooks(editor_config.hooks, project_root, options.overwrite))
        if options.clean:
            changes.extend(self._plan_clean(changes, project_root, scopes))

        if in_scope(scopes, 'skills') and editor_config.skills:
            skill_changes = self.skills_strategy.plan_skills(editor_config.skills, Path(project_root))
            changes = skill_changes + changes

        return changes

    def apply_changes(self, changes: List[FileChange]):
        """Write planned changes in order, restoring earlier writes if one fails.

        Directory changes (skill copies and symlinks) are carried out here too.
        On failure, directories created by this call are removed and file
        contents are restored; replaced directories keep their new content.

        Raises:
            FileOperationError: If a write fails
        """
        applied = []
        created_dirs: List[Path] = []
        try:
            for change in changes:
                if change.action == 'unchanged':
                    continue
                path = Path(change.path)
                if change.is_directory:
                    apply_directory_change(change)
                    if change.action == 'create':
                        created_dirs.append(path)
                    continue
                applied.append((path, read_text_if_exists(path)))
                if change.action == 'delete':
                    if path.exists():
                        path.unlink()
                else:
                    path.parent.mkdir(parents=True, exist_ok=True)
                    path.write_text(change.content or '', encoding='utf-8')
        except OSError as e:
            self._rollback(applied, created_dirs)
            raise FileOperationError(f"Failed to write {change.path}: {e}") from e

    def _rollback(self, applied, created_dirs: List[Path]):
        for path, original in reversed(applied):
            try:
                if original is None:
                    if path.exists():
                        path.unlink()
                else:
                    path.write_text(original, encoding='utf-8')
            except OSError as e:
                print(f"Warning: Could not restore {path}: {e}")

        for path in reversed(created_dirs):
            try:
                if path.is_symlink():
                    path.unlink()
                elif path.is_dir():
                    shutil.rmtree(path)
            except OSError as e:
                print(f"Warning: Could not remove {path}: {e}")

    def apply(self, editor_config: EditorConfig, project_root: Path,
              options: Optional[ApplyOptions] = None) -> ApplyResult:
        """Plan and (unless dry_run) write this editor's configuration."""
        options = options or ApplyOptions()
        result = ApplyResult(self.editor, dry_run=options.dry_run,
                             errors=list(editor_config.errors), warnings=list(editor_config.warnings))
        try:
            result.changes = self.plan_changes(editor_config, project_root, options)
            if not options.dry_run:
                self.apply_changes(result.changes)
        except (AixError, OSError) as e:
            result.errors.append(str(e))

        result.success = not result.errors
        return result

    def get_unsupported_features(self, config: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
        """Describe the parts of a descriptor this editor cannot express."""
        unsupported: Dict[str, Dict[str, Any]] = {}

        hooks = active_entries(config.get('hooks'))
        if hooks:
            if not self.hooks_strategy.is_supported():
                unsupported['hooks'] = {'reason': f"{self.editor} does not support hooks", 'all_unsupported': True}
            else:
                events = self.hooks_strategy.get_unsupported_events(hooks)
                if events:
                    unsupported['hooks'] = {'reason': f"{self.editor} does not support some hook events",
                                            'unsupported_events': events}

        prompts = list(active_entries(config.get('prompts')))
        if prompts and not self.prompts_strategy.is_supported():
            unsupported['prompts'] = {'reason': f"{self.editor} does not support prompts/commands",
                                      'prompts': prompts}

        return unsupported


_adapters: Dict[str, EditorAdapter] = {}


def get_adapter(editor: str) -> EditorAdapter:
    """Get the shared adapter for an editor."""
    if editor not in _adapters:
        _adapters[editor] = EditorAdapter(editor)
    return _adapters[editor]


def detect_editors(project_root: Path, project_only: bool = False) -> List[str]:
    """Detect editors used in a project, or installed for the user.

    Args:
        project_root: Project to inspect for editor config dirs
        project_only: Ignore editors that are only installed globally

    Returns:
        Editor names in table order
    """
    detected = []
    for editor in AixConfig.get_available_editors():
        if get_adapter(editor).detect(project_root):
            detected.append(editor)
        elif not project_only and any(p.is_dir() for p in AixConfig.get_global_data_paths(editor)):
            detected.append(editor)
    return detected
