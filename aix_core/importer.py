"""
Import an editor's existing configuration into ai.json form.

Reads the editor's user-global rules, MCP servers and prompts plus the
project-level MCP file, then copies rule and prompt bodies into
``.aix/imported`` so the new descriptor can reference them by path.
"""

import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import AixConfig, AixPaths, get_home_dir
from .hal import EditorHAL, get_hal
from .utils import read_text_if_exists

IMPORTED_DIR = 'imported'


class ImportResult:
    """Configuration recovered from one editor."""

    def __init__(self):
        self.mcp: Dict[str, Any] = {}
        self.rules: List[str] = []
        self.prompts: Dict[str, str] = {}
        self.warnings: List[str] = []
        self.global_found = False
        self.local_found = False

    @property
    def is_empty(self) -> bool:
        return not (self.mcp or self.rules or self.prompts)


def _entry_name(value: str) -> str:
    """Reduce a file name to the lowercase-hyphen form entry names require."""
    return re.sub(r'[^a-z0-9]+', '-', value.lower()).strip('-')


def _read_directory(directory: Path) -> Dict[str, str]:
    if not directory.is_dir():
        return {}
    return {
        path.name: path.read_text(encoding='utf-8')
        for path in sorted(directory.iterdir()) if path.is_file()
    }


def import_from_editor(editor: str, project_root: Path, hal: Optional[EditorHAL] = None) -> ImportResult:
    """Collect an editor's global config and its project MCP file.

    Args:
        editor: Editor name
        project_root: Project whose local MCP file is read
        hal: HAL to take strategies from

    Returns:
        ImportResult
    """
    hal = hal or get_hal()
    home = get_home_dir()
    result = ImportResult()
    mcp_strategy = hal.get_strategy('mcp', editor)
    rules_strategy = hal.get_strategy('rules', editor)
    prompts_strategy = hal.get_strategy('prompts', editor)

    global_mcp_path = mcp_strategy.get_global_mcp_config_path()
    if global_mcp_path:
        content = read_text_if_exists(home / global_mcp_path)
        if content:
            mcp, warnings = mcp_strategy.parse_global_mcp_config(content)
            result.mcp.update(mcp)
            result.warnings.extend(warnings)
            result.global_found = result.global_found or bool(mcp)

    global_rules_path = rules_strategy.get_global_rules_path()
    if global_rules_path and (home / global_rules_path).is_file():
        rules, warnings = rules_strategy.parse_global_rules((home / global_rules_path).read_text(encoding='utf-8'))
        result.rules.extend(rules)
        result.warnings.extend(warnings)
        result.global_found = result.global_found or bool(rules)

    global_prompts_path = prompts_strategy.get_global_prompts_path()
    if global_prompts_path:
        prompts, warnings = prompts_strategy.parse_global_prompts(_read_directory(home / global_prompts_path))
        result.prompts.update(prompts)
        result.warnings.extend(warnings)
        result.global_found = result.global_found or bool(prompts)

    if mcp_strategy.is_supported() and not mcp_strategy.is_global_only():
        config_dir = AixConfig.get_editor_config(editor)['config_dir']
        if mcp_strategy.is_project_root_config():
            local_path = Path(project_root) / mcp_strategy.get_config_path()
        else:
            local_path = Path(project_root) / config_dir / mcp_strategy.get_config_path()
        content = read_text_if_exists(local_path)
        if content:
            mcp, warnings = mcp_strategy.parse_global_mcp_config(content)
            result.mcp.update(mcp)
            result.warnings.extend(warnings)
            result.local_found = bool(mcp)

    return result


def write_imported_content(project_root: Path, editor: str, result: ImportResult) -> Dict[str, Any]:
    """Write imported rules and prompts under ``.aix/imported`` and build a descriptor.

    Returns:
        Descriptor dict with skills, mcp, rules and prompts sections
    """
    paths = AixPaths(project_root)
    imported_dir = paths.aix_dir / IMPORTED_DIR
    config: Dict[str, Any] = {'skills': {}, 'mcp': dict(result.mcp), 'rules': {}, 'prompts': {}}

    for index, content in enumerate(result.rules, start=1):
        name = f"{editor}-rules" if len(result.rules) == 1 else f"{editor}-rules-{index}"
        path = imported_dir / 'rules' / f"{name}.md"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding='utf-8')
        config['rules'][name] = {'path': path.relative_to(paths.project_root).as_posix()}

    for prompt_name, content in result.prompts.items():
        name = _entry_name(prompt_name) or 'prompt'
        path = imported_dir / 'prompts' / f"{name}.md"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding='utf-8')
        config['prompts'][name] = {'path': path.relative_to(paths.project_root).as_posix()}

    return config
