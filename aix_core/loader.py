"""
Descriptor loading for aix.

Finds the project descriptor (``ai.json``, or the ``"ai"`` field of a
``package.json``), resolves its ``extends`` chain, validates it and merges
``ai.local.json`` on top.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .config import AixConfig, AixPaths
from .exceptions import (
    ConfigNotFoundError, ConfigValidationError, EmbeddedConfigUpdateError,
    FileOperationError,
)
from .inheritance import ExtendsResolver, rebase_relative_paths
from .merge import merge_configs
from .remote import open_source
from .schema import validate_config
from .sources import LOCAL, detect_source_type
from .utils import read_jsonc_file, to_json


class LoadedConfig:
    """A fully resolved descriptor and where it came from."""

    def __init__(self, path: Path, config: Dict[str, Any], source: str = 'file',
                 warnings: Optional[List[str]] = None, local_path: Optional[Path] = None,
                 has_local_overrides: bool = False, config_base_dir: Optional[Path] = None):
        self.path = path
        self.config = config
        self.source = source
        self.warnings = warnings or []
        self.local_path = local_path
        self.has_local_overrides = has_local_overrides
        self.config_base_dir = config_base_dir or Path(path).parent

    @property
    def is_embedded(self) -> bool:
        """Whether the descriptor lives in the ``"ai"`` field of package.json."""
        return self.source == 'package.json'

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for display."""
        return {
            'path': str(self.path),
            'source': self.source,
            'warnings': list(self.warnings),
            'local_path': str(self.local_path) if self.local_path else None,
            'has_local_overrides': self.has_local_overrides,
            'config_base_dir': str(self.config_base_dir),
        }


class ConfigDiscovery:
    """Result of searching for a descriptor."""

    def __init__(self, path: Path, raw: Dict[str, Any], source: str,
                 local_path: Optional[Path] = None, package_json_also_has_ai: bool = False):
        self.path = path
        self.raw = raw
        self.source = source
        self.local_path = local_path
        self.package_json_also_has_ai = package_json_also_has_ai


def _read_package_json(package_json_path: Path) -> Optional[Dict[str, Any]]:
    if not package_json_path.is_file():
        return None
    try:
        with open(package_json_path, encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        print(f"Warning: Could not read {package_json_path}: {e}")
        return None
    return data if isinstance(data, dict) else None


def find_config(start_dir: Optional[Path] = None, explicit_path: Optional[Path] = None) -> Optional[ConfigDiscovery]:
    """Search for a descriptor.

    Looks for ``ai.json`` in start_dir and each parent. A ``package.json``
    with an ``"ai"`` field is used when no ai.json exists at that level;
    a string value there points at a descriptor file.

    Returns:
        ConfigDiscovery, or None when nothing was found
    """
    start_dir = Path(start_dir or Path.cwd()).resolve()

    if explicit_path:
        path = (start_dir / explicit_path).resolve()
        if not path.is_file():
            return None
        local_path = path.parent / AixConfig.LOCAL_CONFIG_FILE
        return ConfigDiscovery(path, read_jsonc_file(path), 'file',
                               local_path if local_path.is_file() else None)

    for directory in [start_dir] + list(start_dir.parents):
        ai_json = directory / AixConfig.CONFIG_FILE
        local_json = directory / AixConfig.LOCAL_CONFIG_FILE
        local_path = local_json if local_json.is_file() else None
        package_json = _read_package_json(directory / AixConfig.PACKAGE_JSON_FILE)
        package_has_ai = package_json is not None and 'ai' in package_json

        if ai_json.is_file():
            return ConfigDiscovery(ai_json, read_jsonc_file(ai_json), 'file', local_path, package_has_ai)

        if package_has_ai and package_json['ai']:
            embedded = package_json['ai']
            if isinstance(embedded, str):
                referenced = (directory / embedded).resolve()
                if referenced.is_file():
                    return ConfigDiscovery(referenced, read_jsonc_file(referenced), 'file', local_path)
            elif isinstance(embedded, dict):
                return ConfigDiscovery(directory / AixConfig.PACKAGE_JSON_FILE, embedded,
                                       'package.json', local_path)

        if local_path:
            return ConfigDiscovery(local_path, {}, 'file', local_path)

    return None


def _validated(config: Dict[str, Any]) -> Dict[str, Any]:
    result = validate_config(config)
    if not result.success:
        raise ConfigValidationError(result.errors)
    return config


def load_local_overrides(config: Dict[str, Any], local_path: Path) -> Dict[str, Any]:
    """Validate ai.local.json and merge it over a resolved descriptor."""
    local = read_jsonc_file(local_path)
    result = validate_config(local, local=True)
    if not result.success:
        raise ConfigValidationError(result.errors)
    return merge_configs(config, local)


def _load_discovered(discovered: ConfigDiscovery, project_root: Path) -> LoadedConfig:
    base_dir = discovered.path.parent
    resolver = ExtendsResolver(project_root)
    resolved = resolver.resolve(discovered.raw, base_dir, [str(discovered.path)])
    config = _validated(resolved)

    warnings = []
    if discovered.package_json_also_has_ai:
        warnings.append(
            'Both ai.json and package.json "ai" field exist. '
            'Using ai.json (package.json "ai" field is ignored).'
        )

    has_local_overrides = False
    if discovered.local_path:
        config = load_local_overrides(config, discovered.local_path)
        has_local_overrides = True

    return LoadedConfig(
        path=discovered.path,
        config=config,
        source=discovered.source,
        warnings=warnings,
        local_path=discovered.local_path,
        has_local_overrides=has_local_overrides,
        config_base_dir=base_dir,
    )


def _load_remote(source: str, project_root: Path) -> LoadedConfig:
    resolver = ExtendsResolver(project_root)
    with open_source(source, project_root, AixPaths(project_root).git_downloads_dir) as loaded:
        if loaded.is_remote:
            resolved = resolver.resolve(loaded.config, visited=[loaded.path], base_url=loaded.base_url)
        else:
            checkout = loaded if loaded.source == 'git' else None
            resolved = resolver.resolve(loaded.config, loaded.base_dir, [loaded.path], checkout=checkout)
        config = rebase_relative_paths(resolved, loaded)

    return LoadedConfig(
        path=Path(project_root) / AixConfig.CONFIG_FILE,
        config=_validated(config),
        source='remote',
        config_base_dir=Path(project_root),
    )


def load_config(start_dir: Optional[Path] = None, config_path: Optional[str] = None) -> Optional[LoadedConfig]:
    """Load and resolve the project descriptor.

    Args:
        start_dir: Directory to start searching from (defaults to cwd)
        config_path: Explicit descriptor location: a local file, git
            shorthand or HTTPS URL

    Returns:
        LoadedConfig, or None when no descriptor exists
    """
    start_dir = Path(start_dir or Path.cwd()).resolve()

    if config_path and detect_source_type(config_path) != LOCAL:
        return _load_remote(config_path, start_dir)

    discovered = find_config(start_dir, Path(config_path) if config_path else None)
    if discovered is None:
        return None

    project_root = start_dir if config_path else discovered.path.parent
    return _load_discovered(discovered, project_root)


def require_config(start_dir: Optional[Path] = None, config_path: Optional[str] = None) -> LoadedConfig:
    """Load the project descriptor, raising when none exists."""
    loaded = load_config(start_dir, config_path)
    if loaded is None:
        raise ConfigNotFoundError(config_path)
    return loaded


def read_raw_config(loaded: LoadedConfig) -> Tuple[Path, Dict[str, Any]]:
    """Read the unresolved descriptor file for editing.

    Raises:
        EmbeddedConfigUpdateError: If the descriptor is embedded in package.json
    """
    if loaded.is_embedded:
        raise EmbeddedConfigUpdateError(str(loaded.path))
    if loaded.source == 'remote':
        raise FileOperationError(f"Cannot modify a remote config: {loaded.path}")
    return Path(loaded.path), read_jsonc_file(loaded.path)


def write_config(path: Path, config: Dict[str, Any]):
    """Write a descriptor back to disk."""
    try:
        Path(path).write_text(to_json(config), encoding='utf-8')
    except OSError as e:
        raise FileOperationError(f"Failed to write {path}: {e}") from e


def remove_entry(loaded: LoadedConfig, section: str, name: str, disable: bool = False) -> bool:
    """Remove or disable a named entry in the project descriptor.

    With ``disable`` the entry is set to ``false`` so that it stays off even
    when an ancestor defines it.

    Returns:
        True if the descriptor changed
    """
    path, raw = read_raw_config(loaded)
    entries = raw.setdefault(section, {})

    if disable:
        if entries.get(name) is False:
            return False
        entries[name] = False
    else:
        if name not in entries:
            return False
        del entries[name]
        if not entries:
            del raw[section]

    write_config(path, raw)
    return True
