"""
MCP server strategies for aix.

Each strategy turns the unified ``mcp`` section into one editor's config file
and parses that file back. Servers with ``enabled: false`` are never written.
"""

import json
import tomllib
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

import tomli_w

from .config import get_platform
from .utils import to_json


def _string_map(value: Any) -> Dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(k): str(v) for k, v in value.items()}


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value]


class McpStrategy(ABC):
    """Base MCP strategy: one container of servers in an editor config file.

    Subclasses choose the file format and override the container key, paths
    and per-server shape.
    """

    CONTAINER_KEY = 'mcpServers'
    CONFIG_PATH = 'mcp.json'
    GLOBAL_CONFIG_PATH: Optional[str] = None

    def is_supported(self) -> bool:
        return True

    def is_global_only(self) -> bool:
        return False

    def is_project_root_config(self) -> bool:
        """Whether get_config_path() is relative to the project root instead of the config dir."""
        return False

    def get_config_path(self) -> str:
        return self.CONFIG_PATH

    def get_global_mcp_config_path(self) -> Optional[str]:
        """Global config path relative to the home directory, or None."""
        return self.GLOBAL_CONFIG_PATH

    def format_server(self, server: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Format one server; None drops it."""
        if 'command' in server:
            entry: Dict[str, Any] = {'command': server['command']}
            if server.get('args'):
                entry['args'] = list(server['args'])
            if server.get('env'):
                entry['env'] = dict(server['env'])
            return entry
        if 'url' in server:
            return {'url': server['url']}
        return None

    def format_servers(self, mcp: Dict[str, Any]) -> Dict[str, Any]:
        """Format every enabled server, keeping declaration order."""
        servers: Dict[str, Any] = {}
        for name, server in mcp.items():
            if not isinstance(server, dict) or server.get('enabled') is False:
                continue
            entry = self.format_server(server)
            if entry is not None:
                servers[name] = entry
        return servers

    def parse_server(self, server: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Parse one editor server entry into the unified shape; None if unknown."""
        if server.get('command'):
            parsed: Dict[str, Any] = {'command': str(server['command'])}
            args = _string_list(server.get('args'))
            env = _string_map(server.get('env'))
            if args:
                parsed['args'] = args
            if env:
                parsed['env'] = env
            return parsed
        if server.get('url'):
            return {'url': str(server['url'])}
        return None

    def parse_global_mcp_config(self, content: str) -> Tuple[Dict[str, Any], List[str]]:
        """Parse an editor MCP config file.

        Returns:
            Tuple of (servers in unified shape, warnings)
        """
        mcp: Dict[str, Any] = {}
        warnings: List[str] = []
        try:
            servers = self.load_document(content).get(self.CONTAINER_KEY) or {}
        except ValueError as e:
            return mcp, [f"Failed to parse MCP config: {e}"]

        for name, server in servers.items():
            parsed = self.parse_server(server) if isinstance(server, dict) else None
            if parsed is None:
                warnings.append(f'Skipping MCP server "{name}": unknown format')
            else:
                mcp[name] = parsed
        return mcp, warnings

    @abstractmethod
    def format_config(self, mcp: Dict[str, Any]) -> str:
        """Render the whole config file for the enabled servers."""

    @abstractmethod
    def load_document(self, content: str) -> Dict[str, Any]:
        """Parse a config file of this strategy's format.

        Raises:
            ValueError: If the content cannot be parsed
        """

    @abstractmethod
    def dump_document(self, data: Dict[str, Any]) -> str:
        """Serialize a parsed config document back to text."""


class JsonMcpStrategy(McpStrategy):
    """``{"mcpServers": {...}}`` JSON in the editor config dir."""

    def format_config(self, mcp: Dict[str, Any]) -> str:
        return to_json({self.CONTAINER_KEY: self.format_servers(mcp)})

    def load_document(self, content: str) -> Dict[str, Any]:
        data = json.loads(content) if content.strip() else {}
        if not isinstance(data, dict):
            raise ValueError('expected an object at the top level')
        return data

    def dump_document(self, data: Dict[str, Any]) -> str:
        return to_json(data)


class StandardMcpStrategy(JsonMcpStrategy):
    """``mcp.json`` with ``mcpServers`` (Cursor)."""

    GLOBAL_CONFIG_PATH = '.cursor/mcp.json'


class ClaudeCodeMcpStrategy(StandardMcpStrategy):
    """``.mcp.json`` at the project root; every server carries a ``type``."""

    CONFIG_PATH = '.mcp.json'
    GLOBAL_PATHS = {
        'darwin': 'Library/Application Support/Claude/claude_desktop_config.json',
        'linux': '.config/Claude/claude_desktop_config.json',
        'win32': 'AppData/Roaming/Claude/claude_desktop_config.json',
    }

    def is_project_root_config(self) -> bool:
        return True

    def get_global_mcp_config_path(self) -> Optional[str]:
        return self.GLOBAL_PATHS.get(get_platform())

    def format_server(self, server: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if 'command' in server:
            entry = {'type': 'stdio'}
            entry.update(super().format_server(server))
            return entry
        if 'url' in server:
            entry = {'type': 'http', 'url': server['url']}
            if server.get('headers'):
                entry['headers'] = dict(server['headers'])
            return entry
        return None

    def parse_server(self, server: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        parsed = super().parse_server(server)
        if parsed and 'url' in parsed and server.get('headers'):
            parsed['headers'] = _string_map(server['headers'])
        return parsed


class KiroMcpStrategy(StandardMcpStrategy):
    """``.kiro/settings/mcp.json`` with ``mcpServers``."""

    CONFIG_PATH = 'settings/mcp.json'
    GLOBAL_CONFIG_PATH = '.kiro/settings/mcp.json'


class ZedMcpStrategy(JsonMcpStrategy):
    """``.zed/settings.json`` with ``context_servers``."""

    CONTAINER_KEY = 'context_servers'
    CONFIG_PATH = 'settings.json'
    GLOBAL_CONFIG_PATH = '.config/zed/settings.json'

    def format_server(self, server: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if 'command' in server:
            return {
                'command': server['command'],
                'args': list(server.get('args') or []),
                'env': dict(server.get('env') or {}),
            }
        if 'url' in server:
            return {'url': server['url']}
        return None


class VSCodeMcpStrategy(JsonMcpStrategy):
    """``.vscode/mcp.json`` with ``servers``; remote servers are typed ``http``."""

    CONTAINER_KEY = 'servers'
    GLOBAL_PATHS = {
        'darwin': 'Library/Application Support/Code/User/mcp.json',
        'linux': '.config/Code/User/mcp.json',
        'win32': 'AppData/Roaming/Code/User/mcp.json',
    }

    def get_global_mcp_config_path(self) -> Optional[str]:
        return self.GLOBAL_PATHS.get(get_platform())

    def format_server(self, server: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if 'command' in server:
            return {
                'command': server['command'],
                'args': list(server.get('args') or []),
                'env': dict(server.get('env') or {}),
            }
        if 'url' in server:
            return {'type': 'http', 'url': server['url']}
        return None


class GlobalMcpStrategy(McpStrategy):
    """For editors that only read MCP servers from a user-global file."""

    def is_global_only(self) -> bool:
        return True

    def get_config_path(self) -> str:
        return ''


class WindsurfMcpStrategy(GlobalMcpStrategy, JsonMcpStrategy):
    """``~/.codeium/windsurf/mcp_config.json``; keeps ``disabledTools``."""

    GLOBAL_CONFIG_PATH = '.codeium/windsurf/mcp_config.json'

    def format_server(self, server: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        entry = super().format_server(server)
        if entry is not None and server.get('disabledTools'):
            entry['disabledTools'] = list(server['disabledTools'])
        return entry

    def parse_server(self, server: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        parsed = super().parse_server(server)
        if parsed is None:
            return None
        if server.get('disabled') is True:
            parsed['enabled'] = False
        disabled_tools = _string_list(server.get('disabledTools'))
        if disabled_tools:
            parsed['disabledTools'] = disabled_tools
        return parsed


class CodexMcpStrategy(GlobalMcpStrategy):
    """``~/.codex/config.toml`` with ``[mcp_servers.<name>]`` tables."""

    CONTAINER_KEY = 'mcp_servers'
    GLOBAL_CONFIG_PATH = '.codex/config.toml'

    def format_config(self, mcp: Dict[str, Any]) -> str:
        return tomli_w.dumps({self.CONTAINER_KEY: self.format_servers(mcp)})

    def load_document(self, content: str) -> Dict[str, Any]:
        try:
            return tomllib.loads(content)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(str(e)) from e

    def dump_document(self, data: Dict[str, Any]) -> str:
        return tomli_w.dumps(data)
