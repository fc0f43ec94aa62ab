"""
aix - One ai.json for every AI coding assistant.

This package installs a single declarative descriptor of skills, rules,
prompts, MCP servers and hooks into the native configuration of Claude Code,
Cursor, Windsurf, Zed, Codex, VS Code, GitHub Copilot and Kiro.
"""

__version__ = "1.0.0"

# Import adapters
from .adapters import (
    ApplyOptions,
    EditorAdapter,
    detect_editors,
    get_adapter,
)

# Import exceptions
from .exceptions import (
    AixError,
    CircularDependencyError,
    ConfigError,
    ConfigNotFoundError,
    ConfigValidationError,
    FileOperationError,
    InvalidEditorError,
    RemoteFetchError,
    SourceResolutionError,
)

# Import HAL
from .hal import (
    EditorHAL,
    get_hal,
)

# Import loading
from .loader import (
    LoadedConfig,
    load_config,
    require_config,
)

# Import manager
from .manager import AixManager

# Import models
from .models import (
    ApplyResult,
    EditorConfig,
    FileChange,
)

__all__ = [
    # Version
    "__version__",
    # Exceptions
    "AixError",
    "ConfigError",
    "ConfigNotFoundError",
    "ConfigValidationError",
    "CircularDependencyError",
    "RemoteFetchError",
    "SourceResolutionError",
    "InvalidEditorError",
    "FileOperationError",
    # Loading
    "LoadedConfig",
    "load_config",
    "require_config",
    # Adapters
    "ApplyOptions",
    "EditorAdapter",
    "get_adapter",
    "detect_editors",
    # Models
    "ApplyResult",
    "EditorConfig",
    "FileChange",
    # HAL
    "EditorHAL",
    "get_hal",
    # Manager
    "AixManager",
]
