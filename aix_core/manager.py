"""
Core manager for aix.

AixManager ties the pieces together for the CLI: it loads the descriptor,
resolves skills once per install, drives one adapter per editor, reconciles
user-global files and edits ai.json for ``remove`` and ``init``.
"""

import os
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .adapters import ApplyOptions, detect_editors, get_adapter, in_scope
from .cache import clean_stale_cache, clear_cache, get_cache_status
from .config import AixConfig, AixPaths, get_home_dir
from .exceptions import AixError, ConfigError, FileOperationError, InvalidEditorError
from .global_sync import analyze_global_changes, apply_global_changes, remove_from_global_mcp_config
from .importer import ImportResult, import_from_editor, write_imported_content
from .loader import LoadedConfig, remove_entry, require_config, write_config
from .merge import active_entries, enabled_editors, normalize_editors
from .models import ApplyResult
from .rules import load_rules, validate_rule_content
from .skills import release_skills, resolve_all_skills, validate_skill
from .tracking import GlobalTrackingService, make_tracking_key, remove_orphans, scan_orphans
from .utils import sanitize_file_name

# Singular names accepted by ``remove`` -> descriptor sections
SECTIONS = {
    'skill': 'skills',
    'rule': 'rules',
    'prompt': 'prompts',
    'mcp': 'mcp',
}

LIST_SECTIONS = ('rules', 'skills', 'mcp', 'prompts')


class ValidationReport:
    """Outcome of AixManager.validate()."""

    def __init__(self, loaded: LoadedConfig):
        self.loaded = loaded
        self.errors: List[str] = []
        self.warnings: List[str] = list(loaded.warnings)

    @property
    def valid(self) -> bool:
        return not self.errors


class AixManager:
    """Main manager class for aix operations."""

    def __init__(self, start_dir: Optional[Path] = None, config_path: Optional[str] = None,
                 tracking: Optional[GlobalTrackingService] = None):
        self.start_dir = Path(start_dir or Path.cwd()).resolve()
        self.config_path = config_path
        self.tracking = tracking or GlobalTrackingService()
        self._loaded: Optional[LoadedConfig] = None

    def load(self) -> LoadedConfig:
        """Load the descriptor once per manager.

        Raises:
            ConfigNotFoundError: If no descriptor exists
            ConfigError: If the descriptor cannot be resolved or is invalid
        """
        if self._loaded is None:
            self._loaded = require_config(self.start_dir, self.config_path)
        return self._loaded

    @property
    def project_root(self) -> Path:
        if self.config_path:
            return self.start_dir
        return Path(self.load().path).parent

    def resolve_editors(self, editors: Optional[List[str]] = None) -> List[str]:
        """Pick the editors to install to.

        Explicit names win, then the descriptor's enabled editors, then every
        editor whose config dir exists in the project.

        Raises:
            InvalidEditorError: If an explicit name is unknown
            AixError: If no editor can be determined
        """
        available = AixConfig.get_available_editors()
        if editors:
            selected = []
            for editor in editors:
                name = editor.lower()
                if name not in available:
                    raise InvalidEditorError(
                        f"Unknown editor: {editor}. Available editors: {', '.join(available)}")
                if name not in selected:
                    selected.append(name)
            return selected

        configured = enabled_editors(self.load().config)
        if configured:
            return configured

        detected = detect_editors(self.project_root, project_only=True)
        if not detected:
            raise AixError('No editors detected. Pass editor names to install to.')
        return detected

    def install(self, editors: Optional[List[str]] = None, dry_run: bool = False,
                scopes: Optional[List[str]] = None, overwrite: bool = False, clean: bool = False,
                skip_global: bool = False) -> List[ApplyResult]:
        """Install the descriptor into each editor.

        Skills are resolved once and shared by every editor; their downloads
        are released when the install finishes, whether it succeeded or not.
        Editors are processed one at a time so that global tracking updates
        never interleave.

        Returns:
            One ApplyResult per editor, with unsupported features and global
            changes attached
        """
        loaded = self.load()
        config = loaded.config
        project_root = self.project_root
        targets = self.resolve_editors(editors)
        options = ApplyOptions(dry_run=dry_run, scopes=scopes, overwrite=overwrite, clean=clean,
                               config_base_dir=loaded.config_base_dir)

        skill_errors: Dict[str, str] = {}
        if in_scope(options.scopes, 'skills') and active_entries(config.get('skills')):
            options.skills, skill_errors = resolve_all_skills(config['skills'], loaded.config_base_dir,
                                                              project_root)

        results = []
        try:
            for editor in targets:
                results.append(self._install_editor(editor, config, project_root, options,
                                                    list(skill_errors.values()), skip_global))
        finally:
            if options.skills:
                release_skills(options.skills)

        if not dry_run and all(result.success for result in results):
            cache_settings = (config.get('aix') or {}).get('cache') or {}
            clean_stale_cache(project_root,
                              cache_settings.get('maxCacheAgeDays', 7),
                              cache_settings.get('maxBackupAgeDays', 30))

        return results

    def _install_editor(self, editor: str, config: Dict[str, Any], project_root: Path,
                        options: ApplyOptions, skill_errors: List[str], skip_global: bool) -> ApplyResult:
        adapter = get_adapter(editor)
        try:
            editor_config = adapter.generate_config(config, project_root, options)
        except AixError as e:
            return ApplyResult(editor, success=False, errors=[str(e)], dry_run=options.dry_run)
        editor_config.errors.extend(skill_errors)

        result = adapter.apply(editor_config, project_root, options)
        result.unsupported_features = adapter.get_unsupported_features(config)

        changes = analyze_global_changes(editor, editor_config, adapter.mcp_strategy, adapter.prompts_strategy)
        if changes:
            result.global_changes = apply_global_changes(changes, str(project_root), skip_global,
                                                         options.dry_run, self.tracking)
            result.warnings.extend(result.global_changes.warnings)
        return result

    def validate(self, deep: bool = False) -> ValidationReport:
        """Validate the descriptor.

        Loading already validates the schema and raises on errors. With
        ``deep`` every skill is resolved and checked and every rule's
        content is loaded and checked as well.
        """
        loaded = self.load()
        report = ValidationReport(loaded)
        if not deep:
            return report

        config = loaded.config
        skills, errors = resolve_all_skills(config.get('skills'), loaded.config_base_dir, self.project_root)
        report.errors.extend(errors.values())
        try:
            for name, skill in skills.items():
                validation = validate_skill(skill)
                report.errors.extend(f'Skill "{name}": {e}' for e in validation.errors)
                report.warnings.extend(f'Skill "{name}": {w}' for w in validation.warnings)
        finally:
            release_skills(skills)

        rules, errors = load_rules(config.get('rules'), loaded.config_base_dir, self.project_root)
        report.errors.extend(errors.values())
        for rule in rules:
            rule_errors, rule_warnings = validate_rule_content(rule.content)
            report.errors.extend(f'Rule "{rule.name}": {e}' for e in rule_errors)
            report.warnings.extend(f'Rule "{rule.name}": {w}' for w in rule_warnings)

        return report

    def list_section(self, section: str) -> Dict[str, Any]:
        """Entries of a descriptor section, disabled ones included as ``False``."""
        if section not in LIST_SECTIONS:
            raise ValueError(f"Unknown section: {section}")
        return dict(self.load().config.get(section) or {})

    def list_editors(self) -> List[Dict[str, Any]]:
        """Every supported editor with its configured and detected state."""
        configured = normalize_editors(self.load().config.get('editors'))
        detected = detect_editors(self.project_root, project_only=True)
        rows = []
        for editor in AixConfig.get_available_editors():
            editor_config = configured.get(editor)
            rows.append({
                'editor': editor,
                'configured': editor_config is not None,
                'enabled': bool(editor_config) and editor_config.get('enabled', True),
                'detected': editor in detected,
            })
        return rows

    def remove(self, kind: str, name: str, disable: bool = False) -> List[str]:
        """Remove (or disable) an entry from ai.json and delete its generated files.

        Args:
            kind: One of ``skill``, ``rule``, ``prompt``, ``mcp``
            name: Entry name
            disable: Set the entry to ``false`` instead of deleting it

        Returns:
            Paths that were deleted
        """
        section = SECTIONS.get(kind)
        if section is None:
            raise ValueError(f"Unknown entry type: {kind}")

        loaded = self.load()
        if name not in (loaded.config.get(section) or {}):
            raise ConfigError(f'{kind} "{name}" not found in configuration')

        if not remove_entry(loaded, section, name, disable):
            if disable:
                raise ConfigError(f'{kind} "{name}" is already disabled')
            raise ConfigError(f'{kind} "{name}" is inherited and not defined in {loaded.path}; '
                              f'use --disable to turn it off')
        self._loaded = None

        if section == 'mcp':
            self._release_global_mcp(name)
        return self._delete_generated_files(section, name)

    def _release_global_mcp(self, name: str):
        """Drop this project from global MCP entries; remove entries nobody needs anymore."""
        for editor in AixConfig.get_available_editors():
            strategy = get_adapter(editor).mcp_strategy
            global_path = strategy.get_global_mcp_config_path()
            if not strategy.is_global_only() or not global_path:
                continue
            key = make_tracking_key(editor, 'mcp', name)
            if self.tracking.get_entry(key) is None:
                continue
            if not self.tracking.remove_project_dependency(key, str(self.project_root)):
                remove_from_global_mcp_config(get_home_dir() / global_path, name)

    def _generated_paths(self, section: str, name: str) -> List[Path]:
        project_root = self.project_root
        paths: List[Path] = []
        for editor in enabled_editors(self.load().config) or AixConfig.get_available_editors():
            adapter = get_adapter(editor)
            config_dir = project_root / adapter.config_dir
            if section == 'skills':
                paths.append(AixPaths(project_root).skill_dir(name))
                if adapter.skills_strategy.is_native():
                    paths.append(project_root / adapter.skills_strategy.editor_skills_dir / name)
                if hasattr(adapter.skills_strategy, 'POWERS_DIR'):
                    paths.append(project_root / adapter.skills_strategy.POWERS_DIR / name)
            elif section == 'rules' and not getattr(adapter.rules_strategy, 'SINGLE_FILE', None):
                file_name = f"{sanitize_file_name(name)}{adapter.rules_strategy.get_file_extension()}"
                paths.append(Path(os.path.normpath(config_dir / adapter.rules_strategy.get_rules_dir() / file_name)))
            elif section == 'prompts' and adapter.prompts_strategy.is_supported() \
                    and not adapter.prompts_strategy.is_global_only():
                file_name = f"{sanitize_file_name(name)}{adapter.prompts_strategy.get_file_extension()}"
                paths.append(Path(os.path.normpath(config_dir / adapter.prompts_strategy.get_prompts_dir() / file_name)))
        return list(dict.fromkeys(paths))

    def _delete_generated_files(self, section: str, name: str) -> List[str]:
        deleted = []
        for path in self._generated_paths(section, name):
            try:
                if path.is_symlink() or path.is_file():
                    path.unlink()
                elif path.is_dir():
                    shutil.rmtree(path)
                else:
                    continue
            except OSError as e:
                raise FileOperationError(f"Failed to delete {path}: {e}") from e
            deleted.append(str(path))
        return deleted

    def init(self, force: bool = False, from_editor: Optional[str] = None) -> Tuple[Path, Optional[ImportResult]]:
        """Create ai.json in the start directory.

        Args:
            force: Overwrite an existing ai.json
            from_editor: Import that editor's existing configuration

        Returns:
            Tuple of (ai.json path, import result or None)
        """
        config_path = self.start_dir / AixConfig.CONFIG_FILE
        if config_path.exists() and not force:
            raise FileOperationError(f"{AixConfig.CONFIG_FILE} already exists. Use --force to overwrite.")

        imported = None
        config: Dict[str, Any] = {'skills': {}, 'mcp': {}, 'rules': {}, 'prompts': {}}
        if from_editor:
            AixConfig.get_editor_config(from_editor)
            imported = import_from_editor(from_editor, self.start_dir)
            config = write_imported_content(self.start_dir, from_editor, imported)

        write_config(config_path, config)
        return config_path, imported

    def global_entries(self, editor: Optional[str] = None) -> List[Tuple[str, Dict[str, Any]]]:
        if editor:
            return self.tracking.list_entries_for_editor(editor)
        return self.tracking.list_entries()

    def global_cleanup(self, dry_run: bool = False, force: bool = False) -> Tuple[List[Tuple[str, Dict[str, Any]]], List[str]]:
        """Find fully orphaned tracking entries and remove them when forced.

        Returns:
            Tuple of (orphaned entries, removed keys)
        """
        orphans = scan_orphans(self.tracking, dry_run)
        removed = remove_orphans(self.tracking, orphans, confirmed=force and not dry_run)
        return orphans, removed

    def cache_status(self) -> Dict[str, Any]:
        return get_cache_status(self.start_dir)

    def cache_clear(self) -> Dict[str, Any]:
        return clear_cache(self.start_dir)
