"""
aix exceptions.

This module contains all custom exception classes used throughout aix. Every
error carries a stable machine-readable ``code`` next to its human message.
"""

from typing import Dict, List, Optional


class AixError(Exception):
    """Base exception for aix errors."""

    code = 'AIX_ERROR'

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        if code:
            self.code = code


class ConfigError(AixError):
    """Base exception for configuration errors."""
    code = 'CONFIG_ERROR'


class ConfigNotFoundError(ConfigError):
    """Raised when no ai.json can be located."""

    def __init__(self, search_path: Optional[str] = None):
        if search_path:
            message = f"Config file not found at: {search_path}"
        else:
            message = "No ai.json found in current directory or parents"
        super().__init__(message, 'CONFIG_NOT_FOUND')
        self.search_path = search_path


class ConfigValidationError(ConfigError):
    """Raised when a descriptor fails schema validation.

    Carries every violated field, not just the first one.
    """

    def __init__(self, errors: List[Dict[str, str]]):
        details = '\n'.join(f"  - {e['path']}: {e['message']}" for e in errors)
        super().__init__(f"Invalid ai.json configuration:\n{details}", 'CONFIG_VALIDATION_ERROR')
        self.errors = errors


class CircularDependencyError(ConfigError):
    """Raised when an extends chain loops back on itself."""

    def __init__(self, path: List[str]):
        super().__init__(f"Circular dependency detected: {' -> '.join(path)}", 'CIRCULAR_DEPENDENCY')
        self.path = path


class ConfigParseError(ConfigError):
    """Raised when a config file cannot be read or parsed."""

    def __init__(self, message: str, file_path: str, issues: Optional[List[Dict[str, str]]] = None):
        super().__init__(f"Failed to parse {file_path}: {message}", 'CONFIG_PARSE_ERROR')
        self.file_path = file_path
        self.issues = issues or []


class EmbeddedConfigUpdateError(ConfigError):
    """Raised when trying to modify a config embedded in package.json."""

    def __init__(self, package_json_path: str):
        super().__init__(
            f"Cannot modify config embedded in {package_json_path}. "
            "Move the \"ai\" field to a standalone ai.json to edit it with aix.",
            'EMBEDDED_CONFIG_UPDATE'
        )
        self.package_json_path = package_json_path


class RemoteFetchError(ConfigError):
    """Raised when a remote config cannot be fetched."""

    def __init__(self, url: str, cause: str):
        super().__init__(f"Failed to fetch {url}: {cause}", 'REMOTE_FETCH_ERROR')
        self.url = url
        self.cause = cause


class UnsupportedUrlError(ConfigError):
    """Raised for URL schemes or source kinds that cannot be loaded."""

    def __init__(self, url: str):
        super().__init__(
            f"Unsupported URL: {url}. Use https://, a git shorthand (github:user/repo) or a local path.",
            'UNSUPPORTED_URL'
        )
        self.url = url


class SourceResolutionError(AixError):
    """Raised when a source reference cannot be materialized."""
    code = 'SOURCE_RESOLUTION_ERROR'


class SkillParseError(AixError):
    """Raised when a SKILL.md is missing or malformed."""
    code = 'SKILL_PARSE_ERROR'


class TrackingError(AixError):
    """Raised when the global tracking file cannot be used."""
    code = 'TRACKING_ERROR'


class InvalidEditorError(AixError):
    """Raised when an unknown editor is requested."""
    code = 'INVALID_EDITOR'


class FileOperationError(AixError):
    """Raised when file operations fail."""
    code = 'FILE_OPERATION_ERROR'
