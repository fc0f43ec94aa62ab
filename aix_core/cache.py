"""
Project cache management for aix.

Everything temporary lives under ``.aix/.tmp``: backups, cached git rules and
prompts, and the npm install cache. Installed skills under ``.aix/skills``
are not cache and are never touched here.
"""

import os
import shutil
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

from .config import AixPaths

CACHE_MAX_AGE_DAYS = 7
BACKUP_MAX_AGE_DAYS = 30


def _scan_directory(directory: Path) -> Dict[str, Any]:
    """Size and file list of a directory tree."""
    entries: List[Dict[str, Any]] = []
    total = 0
    if directory.is_dir():
        for root, _, files in os.walk(directory):
            for file_name in files:
                file_path = Path(root) / file_name
                try:
                    stats = file_path.stat()
                except OSError:
                    continue
                total += stats.st_size
                entries.append({
                    'path': str(file_path),
                    'size': stats.st_size,
                    'modified_at': datetime.fromtimestamp(stats.st_mtime).isoformat(),
                })
    return {'size': total, 'count': len(entries), 'entries': entries}


def get_cache_status(project_root: Path) -> Dict[str, Any]:
    """Report the size and file count of every cache category.

    Returns:
        Dict with ``backups``, ``git_cache`` and ``npm_cache`` categories
        (each ``{size, count, entries}``) and ``total_size``
    """
    paths = AixPaths(project_root)
    status = {
        'backups': _scan_directory(paths.backups_dir),
        'git_cache': _scan_directory(paths.cache_dir),
        'npm_cache': _scan_directory(paths.npm_cache_dir),
    }
    status['total_size'] = sum(category['size'] for category in status.values())
    return status


def clear_cache(project_root: Path) -> Dict[str, Any]:
    """Delete ``.aix/.tmp``.

    Returns:
        Dict with ``freed_bytes`` and ``deleted_paths``
    """
    paths = AixPaths(project_root)
    result: Dict[str, Any] = {'freed_bytes': 0, 'deleted_paths': []}
    if not paths.tmp_dir.exists():
        return result

    result['freed_bytes'] = get_cache_status(project_root)['total_size']
    shutil.rmtree(paths.tmp_dir, ignore_errors=True)
    result['deleted_paths'].append(str(paths.tmp_dir))
    return result


def _directory_size(path: Path) -> int:
    if not path.is_dir():
        return path.stat().st_size
    return sum(f.stat().st_size for f in path.rglob('*') if f.is_file())


def _clean_old_entries(directory: Path, cutoff: float, result: Dict[str, Any]):
    if not directory.is_dir():
        return
    for entry in directory.iterdir():
        try:
            if entry.stat().st_mtime >= cutoff:
                continue
            size = _directory_size(entry)
            if entry.is_dir():
                shutil.rmtree(entry)
            else:
                entry.unlink()
        except OSError as e:
            print(f"Warning: Could not remove stale cache entry {entry}: {e}")
            continue
        result['deleted_paths'].append(str(entry))
        result['freed_bytes'] += size


def clean_stale_cache(project_root: Path, max_cache_age_days: int = CACHE_MAX_AGE_DAYS,
                      max_backup_age_days: int = BACKUP_MAX_AGE_DAYS) -> Dict[str, Any]:
    """Drop cached downloads and backups older than the given ages.

    Called after every successful install.

    Returns:
        Dict with ``freed_bytes`` and ``deleted_paths``
    """
    paths = AixPaths(project_root)
    result: Dict[str, Any] = {'freed_bytes': 0, 'deleted_paths': []}
    now = time.time()
    _clean_old_entries(paths.cache_dir, now - max_cache_age_days * 86400, result)
    _clean_old_entries(paths.backups_dir, now - max_backup_age_days * 86400, result)
    return result
