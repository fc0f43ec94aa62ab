"""
Configuration management for aix.

Holds the static editor table, the project-scoped `.aix/` directory layout
and the user-global locations (tracking file, global backups).
"""

import os
import sys
from pathlib import Path
from typing import Dict, List

from .exceptions import InvalidEditorError


def get_home_dir() -> Path:
    """Return the home directory used for global state.

    ``AIX_HOME`` overrides the user's home, which keeps tests and sandboxes
    away from the real editor configuration files.
    """
    aix_home = os.environ.get('AIX_HOME')
    if aix_home:
        return Path(aix_home)
    return Path.home()


def get_platform() -> str:
    """Return the platform key used by the per-platform path tables."""
    if sys.platform == 'darwin':
        return 'darwin'
    if sys.platform.startswith('win'):
        return 'win32'
    return 'linux'


class AixConfig:
    """Static editor configuration for aix."""

    # Project config dir and global data dirs (relative to home) per editor
    EDITOR_CONFIGS = {
        'claude-code': {
            'config_dir': '.claude',
            'global_data_paths': {
                'darwin': ['.claude'],
                'linux': ['.claude'],
                'win32': ['.claude'],
            },
        },
        'cursor': {
            'config_dir': '.cursor',
            'global_data_paths': {
                'darwin': ['.cursor', 'Library/Application Support/Cursor'],
                'linux': ['.cursor', '.config/Cursor'],
                'win32': ['.cursor', 'AppData/Roaming/Cursor'],
            },
        },
        'windsurf': {
            'config_dir': '.windsurf',
            'global_data_paths': {
                'darwin': ['.codeium/windsurf'],
                'linux': ['.codeium/windsurf'],
                'win32': ['.codeium/windsurf'],
            },
        },
        'zed': {
            'config_dir': '.zed',
            'global_data_paths': {
                'darwin': ['.config/zed', 'Library/Application Support/Zed'],
                'linux': ['.config/zed', '.local/share/zed'],
                'win32': ['AppData/Roaming/Zed'],
            },
        },
        'codex': {
            'config_dir': '.codex',
            'global_data_paths': {
                'darwin': ['.codex'],
                'linux': ['.codex'],
                'win32': ['.codex'],
            },
        },
        'vscode': {
            'config_dir': '.vscode',
            'global_data_paths': {
                'darwin': ['Library/Application Support/Code'],
                'linux': ['.config/Code'],
                'win32': ['AppData/Roaming/Code'],
            },
        },
        'copilot': {
            'config_dir': '.vscode',
            'global_data_paths': {
                'darwin': ['Library/Application Support/Code'],
                'linux': ['.config/Code'],
                'win32': ['AppData/Roaming/Code'],
            },
        },
        'kiro': {
            'config_dir': '.kiro',
            'global_data_paths': {
                'darwin': ['.kiro'],
                'linux': ['.kiro'],
                'win32': ['.kiro'],
            },
        },
    }

    CONFIG_FILE = 'ai.json'
    LOCAL_CONFIG_FILE = 'ai.local.json'
    PACKAGE_JSON_FILE = 'package.json'
    DEFAULT_SCOPES = ['rules', 'mcp', 'skills', 'editors']

    @classmethod
    def get_available_editors(cls) -> List[str]:
        """Get list of available editor names."""
        return list(cls.EDITOR_CONFIGS.keys())

    @classmethod
    def get_editor_config(cls, editor: str) -> Dict:
        """Get the static configuration for an editor."""
        if editor not in cls.EDITOR_CONFIGS:
            available = ', '.join(cls.get_available_editors())
            raise InvalidEditorError(f"Unknown editor: {editor}. Available editors: {available}")
        return cls.EDITOR_CONFIGS[editor]

    @classmethod
    def get_global_data_paths(cls, editor: str) -> List[Path]:
        """Get the home-relative directories whose presence means the editor is installed."""
        paths = cls.get_editor_config(editor)['global_data_paths'].get(get_platform(), [])
        home = get_home_dir()
        return [home / p for p in paths]


class AixPaths:
    """Project-scoped and user-global directory layout."""

    AIX_DIR = '.aix'
    TMP_DIR = '.tmp'
    BACKUPS_DIR = 'backups'
    CACHE_DIR = 'cache'
    NPM_CACHE_DIR = 'node_modules'
    GIT_DOWNLOADS_DIR = 'git-downloads'
    SKILLS_DIR = 'skills'
    TRACKING_FILE = 'global-tracking.json'

    def __init__(self, project_root: Path):
        self.project_root = Path(project_root).resolve()
        self.aix_dir = self.project_root / self.AIX_DIR
        self.tmp_dir = self.aix_dir / self.TMP_DIR
        self.backups_dir = self.tmp_dir / self.BACKUPS_DIR
        self.cache_dir = self.tmp_dir / self.CACHE_DIR
        self.npm_cache_dir = self.tmp_dir / self.NPM_CACHE_DIR
        self.git_downloads_dir = self.cache_dir / self.GIT_DOWNLOADS_DIR
        self.skills_dir = self.aix_dir / self.SKILLS_DIR

    @classmethod
    def global_aix_dir(cls) -> Path:
        """Get the user-global `.aix` directory."""
        return get_home_dir() / cls.AIX_DIR

    @classmethod
    def global_tracking_path(cls) -> Path:
        """Get the path of the global tracking file."""
        return cls.global_aix_dir() / cls.TRACKING_FILE

    @classmethod
    def global_backups_dir(cls) -> Path:
        """Get the directory holding snapshots of global files."""
        return cls.global_aix_dir() / cls.BACKUPS_DIR

    def skill_dir(self, name: str) -> Path:
        """Get the installed location of a skill."""
        return self.skills_dir / name
