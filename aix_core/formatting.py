"""
Output formatting utilities for aix.

Provides color codes and formatting functions for terminal output.
"""

import os
from pathlib import Path
from typing import Any, Dict, List

from .models import ApplyResult, FileChange
from .utils import format_size, format_timestamp


class Colors:
    """ANSI color codes for terminal output."""
    RED = '\033[0;31m'
    GREEN = '\033[0;32m'
    YELLOW = '\033[1;33m'
    BLUE = '\033[0;34m'
    MAGENTA = '\033[0;35m'
    CYAN = '\033[0;36m'
    GRAY = '\033[0;90m'
    NC = '\033[0m'  # No Color

    @staticmethod
    def colorize(text: str, color: str) -> str:
        """Wrap text in color codes."""
        return f"{color}{text}{Colors.NC}"


def colored_status(status_type: str, message: str = "") -> str:
    """Return a colored status message.

    Args:
        status_type: Type of status (SUCCESS, ERROR, WARNING, INFO, CREATE, etc.)
        message: Optional message to append after the status

    Returns:
        Colored status string
    """
    color_map = {
        'SUCCESS': Colors.GREEN,
        'ERROR': Colors.RED,
        'WARNING': Colors.YELLOW,
        'INFO': Colors.BLUE,
        'TIP': Colors.CYAN,
        'CREATE': Colors.GREEN,
        'UPDATE': Colors.CYAN,
        'DELETE': Colors.RED,
        'UNCHANGED': Colors.GRAY,
        'SKIP': Colors.YELLOW,
        'DRY RUN': Colors.MAGENTA,
        'UNSUPPORTED': Colors.YELLOW,
    }

    color = color_map.get(status_type, Colors.NC)
    status_text = Colors.colorize(f"[{status_type}]", color)

    if message:
        return f"{status_text} {message}"
    return status_text


def display_path(path: str, project_root: Path) -> str:
    """Show a path relative to the project when it lives inside it."""
    relative = os.path.relpath(path, project_root)
    return path if relative.startswith('..') else relative


def format_change(change: FileChange, project_root: Path) -> str:
    suffix = '/' if change.is_directory else ''
    return f"   {colored_status(change.action.upper())} {display_path(change.path, project_root)}{suffix}"


def format_apply_result(result: ApplyResult, project_root: Path, verbose: bool = False) -> str:
    """Format one editor's install result for display.

    Unchanged files are only listed in verbose mode.

    Args:
        result: ApplyResult from AixManager.install()
        project_root: Project root for relative paths
        verbose: Also list unchanged files

    Returns:
        Formatted multi-line string
    """
    if not result.success:
        lines = [colored_status('ERROR', f"Failed to install to {result.editor}")]
        lines.extend(f"   {error}" for error in result.errors)
    elif result.dry_run:
        lines = [colored_status('DRY RUN', f"Changes for {result.editor}:")]
    elif not result.changed:
        lines = [colored_status('SUCCESS', f"{result.editor} is up to date")]
    else:
        lines = [colored_status('SUCCESS', f"Installed to {result.editor}")]

    for change in result.changes:
        if change.action != 'unchanged' or verbose:
            lines.append(format_change(change, project_root))

    if result.changes:
        counts = ', '.join(f"{result.count(action)} {action}"
                           for action in ('create', 'update', 'delete', 'unchanged') if result.count(action))
        lines.append(f"   {counts}")

    if result.global_changes:
        for change in result.global_changes.applied:
            verb = 'Would add' if result.dry_run else 'Added'
            message = f'{verb} global {change.type} "{change.name}" in {change.global_path}'
            lines.append(f"   {colored_status('INFO', message)}")

    return '\n'.join(lines)


def format_unsupported_features(unsupported: Dict[str, Dict[str, Any]]) -> List[str]:
    """Warning lines for features an editor cannot express."""
    lines = []
    for feature, details in unsupported.items():
        if feature == 'prompts':
            items = f": {', '.join(details['prompts'])}"
        elif details.get('unsupported_events'):
            items = f": {', '.join(details['unsupported_events'])}"
        else:
            items = ''
        lines.append(colored_status('UNSUPPORTED', f"{details['reason']}{items}"))
    return lines


def format_global_entry(entry: Dict[str, Any], verbose: bool = False) -> str:
    """Format a global tracking entry for display."""
    projects = entry.get('projects', [])
    info = (f"{entry.get('editor')} {entry.get('type')} \"{entry.get('name')}\"\n"
            f"   Projects: {len(projects)}\n"
            f"   Added: {format_timestamp(entry.get('addedAt', ''))}")
    if verbose:
        for project in projects:
            info += f"\n      - {project}"
    return info


def format_cache_status(status: Dict[str, Any]) -> str:
    """Format get_cache_status() output."""
    labels = (('backups', 'Backups'), ('git_cache', 'Git cache'), ('npm_cache', 'npm cache'))
    lines = []
    for key, label in labels:
        category = status[key]
        lines.append(f"   {label:<10} {format_size(category['size']):>10}  ({category['count']} files)")
    lines.append(f"   {'Total':<10} {format_size(status['total_size']):>10}")
    return '\n'.join(lines)
