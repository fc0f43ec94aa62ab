"""
Global configuration sync for aix.

Some editors only read MCP servers or prompts from files in the user's home
directory (Windsurf MCP, Codex MCP and prompts). Writing there affects every
project on the machine, so changes are analyzed first: identical entries are
only tracked, differing entries are never overwritten, and new entries are
written after backing up the file they land in.
"""

import json
import os
import shutil
import tomllib
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

import tomli_w

from .comparison import mcp_configs_match, prompts_match
from .config import AixPaths, get_home_dir
from .exceptions import AixError
from .models import EditorConfig
from .tracking import GlobalTrackingService, make_tracking_key
from .utils import read_text_if_exists, sanitize_file_name, to_json

SKIP_IDENTICAL = 'Already configured identically'
SKIP_CONFIG_DIFFERS = 'Existing config differs from ai.json - not modifying'
SKIP_PROMPT_DIFFERS = 'Existing prompt differs from ai.json - not modifying'
SKIP_CI = 'Skipped in CI environment'
SKIP_DISABLED = 'Global changes disabled'

# Files backed up during this process; each is snapshotted once
_backed_up: Set[str] = set()


class GlobalChangeRequest:
    """One MCP server or prompt destined for a user-global file."""

    def __init__(self, editor: str, entry_type: str, name: str, action: str,
                 global_path: Path, config: Any, strategy: Any = None,
                 skip_reason: Optional[str] = None, configs_match: bool = False):
        self.editor = editor
        self.type = entry_type
        self.name = name
        self.action = action
        self.global_path = Path(global_path)
        # Formatted server entry for mcp, file content for prompts
        self.config = config
        self.strategy = strategy
        self.skip_reason = skip_reason
        self.configs_match = configs_match

    @property
    def key(self) -> str:
        return make_tracking_key(self.editor, self.type, self.name)

    def skipped(self, reason: str) -> 'GlobalChangeRequest':
        return GlobalChangeRequest(self.editor, self.type, self.name, 'skip', self.global_path,
                                   self.config, self.strategy, reason, self.configs_match)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'editor': self.editor,
            'type': self.type,
            'name': self.name,
            'action': self.action,
            'global_path': str(self.global_path),
        }
        if self.skip_reason:
            data['skip_reason'] = self.skip_reason
        return data

    def __repr__(self) -> str:
        return f"GlobalChangeRequest({self.action} {self.key})"


class GlobalApplyResult:
    """Outcome of apply_global_changes()."""

    def __init__(self):
        self.applied: List[GlobalChangeRequest] = []
        self.skipped: List[GlobalChangeRequest] = []
        self.warnings: List[str] = []


def backup_global_config(file_path: Path) -> Optional[Path]:
    """Snapshot a global file into ``~/.aix/backups`` once per session.

    Returns:
        Backup path, or None if the file does not exist or was already backed up
    """
    file_path = Path(file_path)
    if str(file_path) in _backed_up or not file_path.exists():
        return None

    try:
        relative = file_path.relative_to(get_home_dir())
    except ValueError:
        relative = Path(file_path.name)

    flat_name = str(relative).replace('/', '_').replace('\\', '_')
    timestamp = datetime.now().isoformat().replace(':', '-').replace('.', '-')
    backup_path = AixPaths.global_backups_dir() / f"{flat_name}.{timestamp}.bak"
    backup_path.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(file_path, backup_path)

    _backed_up.add(str(file_path))
    return backup_path


def _analyze_mcp(editor: str, mcp: Dict[str, Any], strategy: Any) -> List[GlobalChangeRequest]:
    relative_path = strategy.get_global_mcp_config_path()
    if not relative_path or not mcp:
        return []

    global_path = get_home_dir() / relative_path
    existing_content = read_text_if_exists(global_path)
    existing: Dict[str, Any] = {}
    if existing_content:
        existing, _ = strategy.parse_global_mcp_config(existing_content)

    changes = []
    for name, server in strategy.format_servers(mcp).items():
        if name in existing:
            candidate = strategy.parse_server(server)
            match = mcp_configs_match(existing[name], candidate)
            reason = SKIP_IDENTICAL if match else SKIP_CONFIG_DIFFERS
            changes.append(GlobalChangeRequest(editor, 'mcp', name, 'skip', global_path, server,
                                               strategy, reason, match))
        else:
            changes.append(GlobalChangeRequest(editor, 'mcp', name, 'add', global_path, server, strategy))
    return changes


def _analyze_prompts(editor: str, editor_config: EditorConfig, strategy: Any) -> List[GlobalChangeRequest]:
    relative_dir = strategy.get_global_prompts_path()
    if not relative_dir:
        return []

    changes = []
    for prompt in editor_config.prompts:
        file_name = f"{sanitize_file_name(prompt.name)}{strategy.get_file_extension()}"
        global_path = get_home_dir() / relative_dir / file_name
        content = strategy.format_prompt(prompt)
        existing = read_text_if_exists(global_path)

        if existing is None:
            changes.append(GlobalChangeRequest(editor, 'prompt', prompt.name, 'add', global_path,
                                               content, strategy))
        else:
            match = prompts_match(existing, content)
            reason = SKIP_IDENTICAL if match else SKIP_PROMPT_DIFFERS
            changes.append(GlobalChangeRequest(editor, 'prompt', prompt.name, 'skip', global_path,
                                               content, strategy, reason, match))
    return changes


def analyze_global_changes(editor: str, editor_config: EditorConfig, mcp_strategy: Any,
                           prompts_strategy: Any) -> List[GlobalChangeRequest]:
    """Work out which global entries an install would add or leave alone.

    Only capabilities whose strategy is global-only take part; project-level
    files are handled by the editor adapter.

    Args:
        editor: Editor name
        editor_config: Generated configuration for the editor
        mcp_strategy: The editor's MCP strategy
        prompts_strategy: The editor's prompts strategy

    Returns:
        List of GlobalChangeRequest with action ``add`` or ``skip``
    """
    changes: List[GlobalChangeRequest] = []
    if mcp_strategy.is_supported() and mcp_strategy.is_global_only():
        changes.extend(_analyze_mcp(editor, editor_config.mcp, mcp_strategy))
    if prompts_strategy.is_supported() and prompts_strategy.is_global_only():
        changes.extend(_analyze_prompts(editor, editor_config, prompts_strategy))
    return changes


def _write_mcp_server(change: GlobalChangeRequest):
    strategy = change.strategy
    content = read_text_if_exists(change.global_path) or ''
    document = strategy.load_document(content)
    servers = document.get(strategy.CONTAINER_KEY)
    if not isinstance(servers, dict):
        servers = {}
        document[strategy.CONTAINER_KEY] = servers
    servers[change.name] = change.config

    change.global_path.parent.mkdir(parents=True, exist_ok=True)
    change.global_path.write_text(strategy.dump_document(document), encoding='utf-8')


def _write_prompt(change: GlobalChangeRequest):
    change.global_path.parent.mkdir(parents=True, exist_ok=True)
    change.global_path.write_text(change.config, encoding='utf-8')


def apply_global_changes(changes: List[GlobalChangeRequest], project_path: str,
                         skip_global: bool = False, dry_run: bool = False,
                         tracking: Optional[GlobalTrackingService] = None) -> GlobalApplyResult:
    """Apply analyzed global changes one at a time.

    Skips pass through with a warning unless the existing entry is identical,
    in which case the project is still recorded as a dependent. Adds are
    skipped in CI and when global changes are disabled. Failures never
    raise; they become warnings and skips.

    Args:
        changes: Output of analyze_global_changes()
        project_path: Project root recorded in the tracking file
        skip_global: Turn every add into a skip
        dry_run: Report only, write nothing
        tracking: Tracking service (defaults to the user's tracking file)

    Returns:
        GlobalApplyResult with applied, skipped and warnings
    """
    tracking = tracking or GlobalTrackingService()
    result = GlobalApplyResult()
    in_ci = bool(os.environ.get('CI'))

    # Sequential: every tracking update rewrites the whole file
    for change in changes:
        label = f"[{change.editor}] {change.type} \"{change.name}\""

        if change.action == 'skip':
            result.skipped.append(change)
            if change.configs_match:
                if not dry_run and not in_ci and not skip_global:
                    try:
                        tracking.add_project_dependency(
                            change.key, {'type': change.type, 'editor': change.editor, 'name': change.name},
                            project_path)
                    except AixError as e:
                        result.warnings.append(f"{label}: could not record dependency: {e}")
            else:
                result.warnings.append(f"{label}: {change.skip_reason}")
            continue

        if in_ci:
            result.skipped.append(change.skipped(SKIP_CI))
            result.warnings.append(f"[{change.editor}] Skipped global {change.type} \"{change.name}\" "
                                   f"- CI environment detected")
            continue

        if skip_global:
            result.skipped.append(change.skipped(SKIP_DISABLED))
            continue

        if dry_run:
            result.applied.append(change)
            continue

        try:
            backup_global_config(change.global_path)
            if change.type == 'mcp':
                _write_mcp_server(change)
            else:
                _write_prompt(change)
            tracking.add_project_dependency(
                change.key, {'type': change.type, 'editor': change.editor, 'name': change.name},
                project_path)
            result.applied.append(change)
        except (OSError, ValueError, AixError) as e:
            result.warnings.append(f"[{change.editor}] Failed to apply {change.type} \"{change.name}\": {e}")
            result.skipped.append(change.skipped(f"Failed: {e}"))

    return result


def remove_from_global_mcp_config(file_path: Path, name: str) -> bool:
    """Remove one server from a global MCP file, backing the file up first.

    TOML files use ``mcp_servers``; JSON files use ``mcpServers``.

    Returns:
        True if the server was found and removed
    """
    file_path = Path(file_path)
    content = read_text_if_exists(file_path)
    if content is None:
        return False

    is_toml = file_path.suffix == '.toml'
    container_key = 'mcp_servers' if is_toml else 'mcpServers'
    try:
        document = tomllib.loads(content) if is_toml else json.loads(content or '{}')
    except (tomllib.TOMLDecodeError, json.JSONDecodeError) as e:
        print(f"Warning: Could not parse {file_path}: {e}")
        return False

    servers = document.get(container_key)
    if not isinstance(servers, dict) or name not in servers:
        return False

    backup_global_config(file_path)
    del servers[name]
    file_path.write_text(tomli_w.dumps(document) if is_toml else to_json(document), encoding='utf-8')
    return True
