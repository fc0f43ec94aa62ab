"""Tests for project cache management."""

import os
import time
from pathlib import Path

from aix_core.cache import clean_stale_cache, clear_cache, get_cache_status

DAY = 86400


def make_file(path: Path, content: str = 'x', age_days: float = 0) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    if age_days:
        old = time.time() - age_days * DAY
        os.utime(path, (old, old))
    return path


class TestCacheStatus:
    """Test get_cache_status()."""

    def test_categories(self, project_dir: Path):
        """Each category reports its own size and file count."""
        tmp = project_dir / '.aix' / '.tmp'
        make_file(tmp / 'backups' / 'a.bak', 'abc')
        make_file(tmp / 'cache' / 'git-downloads' / 'repo' / 'rule.md', 'hello')
        make_file(tmp / 'node_modules' / 'pkg' / 'package.json', '{}')
        make_file(project_dir / '.aix' / 'skills' / 'pdf' / 'SKILL.md', 'not cache')

        status = get_cache_status(project_dir)

        assert (status['backups']['size'], status['backups']['count']) == (3, 1)
        assert (status['git_cache']['size'], status['git_cache']['count']) == (5, 1)
        assert (status['npm_cache']['size'], status['npm_cache']['count']) == (2, 1)
        assert status['total_size'] == 10

    def test_empty_project(self, project_dir: Path):
        """A project without a cache reports zero."""
        assert get_cache_status(project_dir)['total_size'] == 0


class TestClearCache:
    """Test clear_cache()."""

    def test_clears_tmp_only(self, project_dir: Path):
        """The temporary tree goes; installed skills stay."""
        make_file(project_dir / '.aix' / '.tmp' / 'cache' / 'x', '1234')
        skill = make_file(project_dir / '.aix' / 'skills' / 'pdf' / 'SKILL.md')

        result = clear_cache(project_dir)

        assert result['freed_bytes'] == 4
        assert not (project_dir / '.aix' / '.tmp').exists()
        assert skill.exists()

    def test_nothing_to_clear(self, project_dir: Path):
        """Clearing a clean project is a no-op."""
        assert clear_cache(project_dir) == {'freed_bytes': 0, 'deleted_paths': []}


class TestCleanStaleCache:
    """Test clean_stale_cache()."""

    def test_age_limits(self, project_dir: Path):
        """Old cache entries and old backups are removed, recent ones kept."""
        tmp = project_dir / '.aix' / '.tmp'
        old_cache = make_file(tmp / 'cache' / 'old.md', 'old', age_days=8)
        fresh_cache = make_file(tmp / 'cache' / 'fresh.md', 'new')
        old_backup = make_file(tmp / 'backups' / 'old.bak', 'b', age_days=31)
        recent_backup = make_file(tmp / 'backups' / 'recent.bak', 'b', age_days=10)

        result = clean_stale_cache(project_dir)

        assert not old_cache.exists()
        assert not old_backup.exists()
        assert fresh_cache.exists()
        assert recent_backup.exists()
        assert result['freed_bytes'] == 4
        assert sorted(Path(p).name for p in result['deleted_paths']) == ['old.bak', 'old.md']
