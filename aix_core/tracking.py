"""
Global tracking for aix.

Entries written to user-global editor files (Windsurf and Codex MCP servers,
Codex prompts) are recorded in ``~/.aix/global-tracking.json`` together with
the projects that depend on them, so a shared entry is only removed once no
project needs it anymore.
"""

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .config import AixPaths
from .exceptions import TrackingError

TRACKING_VERSION = 1


def make_tracking_key(editor: str, entry_type: str, name: str) -> str:
    """Build the ``editor:type:name`` key of a tracking entry."""
    return f"{editor}:{entry_type}:{name}"


def _normalize_project(project_path: str) -> str:
    normalized = str(project_path).rstrip('/\\')
    return normalized or str(project_path)


class GlobalTrackingService:
    """Reads and writes the global tracking file.

    Every mutating method loads the whole file, applies one change and writes
    the whole file back. There is no locking, so callers must not run
    mutations concurrently.
    """

    def __init__(self, file_path: Optional[Path] = None):
        self.file_path = Path(file_path) if file_path else AixPaths.global_tracking_path()

    def _empty(self) -> Dict[str, Any]:
        return {'version': TRACKING_VERSION, 'entries': {}}

    def load(self) -> Dict[str, Any]:
        """Load the tracking file.

        A missing or unreadable file yields an empty registry.

        Raises:
            TrackingError: If the file has an unsupported version
        """
        if not self.file_path.exists():
            return self._empty()

        try:
            with open(self.file_path, encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            print(f"Warning: Could not load global tracking file: {e}")
            return self._empty()

        if not isinstance(data, dict):
            print(f"Warning: Ignoring malformed global tracking file: {self.file_path}")
            return self._empty()

        version = data.get('version')
        if version != TRACKING_VERSION:
            raise TrackingError(f"Unsupported tracking file version: {version}")

        if not isinstance(data.get('entries'), dict):
            data['entries'] = {}
        return data

    def save(self, data: Dict[str, Any]):
        """Write the tracking file, creating ``~/.aix`` if needed."""
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.file_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            raise TrackingError(f"Could not save global tracking file: {e}") from e

    def add_project_dependency(self, key: str, entry: Dict[str, str], project_path: str):
        """Record that a project depends on a global entry.

        Args:
            key: Tracking key from make_tracking_key()
            entry: Dict with ``type``, ``editor`` and ``name``
            project_path: Project root directory
        """
        data = self.load()
        project = _normalize_project(project_path)
        existing = data['entries'].get(key)

        if existing is None:
            data['entries'][key] = {
                'type': entry['type'],
                'editor': entry['editor'],
                'name': entry['name'],
                'projects': [project],
                'addedAt': datetime.now(timezone.utc).isoformat(),
            }
        elif project not in existing['projects']:
            existing['projects'].append(project)
        else:
            return

        self.save(data)

    def remove_project_dependency(self, key: str, project_path: str) -> List[str]:
        """Drop a project from an entry.

        The entry itself is deleted once no project depends on it.

        Returns:
            Projects still depending on the entry
        """
        data = self.load()
        existing = data['entries'].get(key)
        if existing is None:
            return []

        project = _normalize_project(project_path)
        remaining = [p for p in existing['projects'] if p != project]
        if remaining:
            existing['projects'] = remaining
        else:
            del data['entries'][key]

        self.save(data)
        return remaining

    def get_entry(self, key: str) -> Optional[Dict[str, Any]]:
        return self.load()['entries'].get(key)

    def has_project_dependency(self, key: str, project_path: str) -> bool:
        entry = self.get_entry(key)
        return bool(entry) and _normalize_project(project_path) in entry['projects']

    def list_entries(self) -> List[Tuple[str, Dict[str, Any]]]:
        return list(self.load()['entries'].items())

    def list_entries_for_editor(self, editor: str) -> List[Tuple[str, Dict[str, Any]]]:
        return [(key, entry) for key, entry in self.list_entries() if entry.get('editor') == editor]

    def get_orphaned_entries(self) -> List[Tuple[str, Dict[str, Any]]]:
        """Entries no project is recorded against."""
        return [(key, entry) for key, entry in self.list_entries() if not entry.get('projects')]

    def remove_entry(self, key: str) -> bool:
        """Delete an entry outright. Returns False if it was not tracked."""
        data = self.load()
        if key not in data['entries']:
            return False
        del data['entries'][key]
        self.save(data)
        return True

    def get_entries_for_project(self, project_path: str) -> List[Tuple[str, Dict[str, Any]]]:
        project = _normalize_project(project_path)
        return [(key, entry) for key, entry in self.list_entries() if project in entry.get('projects', [])]

    def remove_all_for_project(self, project_path: str) -> List[str]:
        """Remove a project from every entry.

        Returns:
            Keys of entries that were deleted because they became empty
        """
        removed = []
        # Sequential on purpose: each call rewrites the whole file
        for key, _ in self.get_entries_for_project(project_path):
            if not self.remove_project_dependency(key, project_path):
                removed.append(key)
        return removed


def scan_orphans(service: GlobalTrackingService, dry_run: bool = False) -> List[Tuple[str, Dict[str, Any]]]:
    """Find entries whose dependent projects no longer exist on disk.

    Entries with some surviving projects are rewritten to list only those
    projects, even in dry-run mode. Entries with none left are returned
    for the caller to confirm and remove.

    Args:
        service: Tracking service to scan
        dry_run: Ignored for partially orphaned entries, which are always
            rewritten

    Returns:
        List of (key, entry) tuples that are fully orphaned
    """
    data = service.load()
    orphans = []
    rewritten = False

    for key, entry in data['entries'].items():
        projects = entry.get('projects', [])
        surviving = [p for p in projects if os.path.isdir(p)]
        if not surviving:
            orphans.append((key, entry))
        elif len(surviving) != len(projects):
            entry['projects'] = surviving
            rewritten = True

    if rewritten:
        service.save(data)
    return orphans


def remove_orphans(service: GlobalTrackingService, orphans: List[Tuple[str, Dict[str, Any]]],
                   confirmed: bool) -> List[str]:
    """Remove fully orphaned entries, only when the removal was confirmed.

    Returns:
        Keys that were removed
    """
    if not confirmed:
        return []

    removed = []
    for key, _ in orphans:
        if service.remove_entry(key):
            removed.append(key)
    return removed
