"""Tests for syncing global-only editor configuration."""

import json
import tomllib
from pathlib import Path

from aix_core.global_sync import (
    SKIP_CI, SKIP_CONFIG_DIFFERS, SKIP_DISABLED, SKIP_IDENTICAL, analyze_global_changes,
    apply_global_changes, backup_global_config, remove_from_global_mcp_config,
)
from aix_core.hal import get_hal
from aix_core.models import EditorConfig, EditorPrompt

GITHUB = {'command': 'npx', 'args': ['gh-mcp']}


def analyze(editor: str, editor_config: EditorConfig):
    hal = get_hal()
    return analyze_global_changes(editor, editor_config, hal.get_strategy('mcp', editor),
                                  hal.get_strategy('prompts', editor))


def windsurf_config_path(home_dir: Path) -> Path:
    return home_dir / '.codeium' / 'windsurf' / 'mcp_config.json'


def write_windsurf_servers(home_dir: Path, servers):
    path = windsurf_config_path(home_dir)
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({'mcpServers': servers}))
    return path


class TestAnalyze:
    """Test analyze_global_changes()."""

    def test_project_level_editors_have_no_global_changes(self):
        """Editors with project MCP files are not synced globally."""
        assert analyze('cursor', EditorConfig(mcp={'github': GITHUB})) == []

    def test_new_server_is_added(self, home_dir: Path):
        """A server missing from the global file is an add."""
        changes = analyze('windsurf', EditorConfig(mcp={'github': GITHUB, 'off': {'command': 'x', 'enabled': False}}))

        assert [(c.name, c.action) for c in changes] == [('github', 'add')]
        assert changes[0].global_path == windsurf_config_path(home_dir)
        assert changes[0].key == 'windsurf:mcp:github'

    def test_identical_and_differing_servers_are_skipped(self, home_dir: Path):
        """Existing entries are never overwritten."""
        write_windsurf_servers(home_dir, {'github': GITHUB, 'db': {'command': 'other'}})

        changes = analyze('windsurf', EditorConfig(mcp={'github': GITHUB, 'db': {'command': 'mine'}}))

        assert [(c.name, c.action, c.skip_reason) for c in changes] == [
            ('github', 'skip', SKIP_IDENTICAL),
            ('db', 'skip', SKIP_CONFIG_DIFFERS),
        ]

    def test_codex_prompts(self, home_dir: Path):
        """Codex prompts go to the global prompts directory."""
        changes = analyze('codex', EditorConfig(prompts=[EditorPrompt('review', 'Review it.', 'Review code')]))

        assert len(changes) == 1
        assert changes[0].type == 'prompt'
        assert changes[0].global_path == home_dir / '.codex' / 'prompts' / 'review.md'


class TestApply:
    """Test apply_global_changes()."""

    def test_add_writes_and_tracks(self, home_dir: Path, project_dir: Path, tracking_service):
        """Added servers are written and the project recorded."""
        changes = analyze('windsurf', EditorConfig(mcp={'github': GITHUB}))

        result = apply_global_changes(changes, str(project_dir), tracking=tracking_service)

        assert [c.name for c in result.applied] == ['github']
        written = json.loads(windsurf_config_path(home_dir).read_text())
        assert written == {'mcpServers': {'github': GITHUB}}
        assert tracking_service.get_entry('windsurf:mcp:github')['projects'] == [str(project_dir)]

    def test_add_keeps_other_servers_and_backs_up(self, home_dir: Path, project_dir: Path, tracking_service):
        """Existing servers survive and the file is snapshotted first."""
        write_windsurf_servers(home_dir, {'mine': {'command': 'keep'}})
        changes = analyze('windsurf', EditorConfig(mcp={'github': GITHUB}))

        apply_global_changes(changes, str(project_dir), tracking=tracking_service)

        written = json.loads(windsurf_config_path(home_dir).read_text())
        assert set(written['mcpServers']) == {'mine', 'github'}
        backups = list((home_dir / '.aix' / 'backups').iterdir())
        assert len(backups) == 1
        assert backups[0].name.startswith('.codeium_windsurf_mcp_config.json.')
        assert json.loads(backups[0].read_text()) == {'mcpServers': {'mine': {'command': 'keep'}}}

    def test_identical_entry_records_dependency(self, home_dir: Path, project_dir: Path, tracking_service):
        """Identical entries are tracked without touching the file."""
        path = write_windsurf_servers(home_dir, {'github': GITHUB})
        before = path.read_text()

        result = apply_global_changes(analyze('windsurf', EditorConfig(mcp={'github': GITHUB})),
                                      str(project_dir), tracking=tracking_service)

        assert result.warnings == []
        assert path.read_text() == before
        assert tracking_service.has_project_dependency('windsurf:mcp:github', str(project_dir))

    def test_differing_entry_warns(self, home_dir: Path, project_dir: Path, tracking_service):
        """Differing entries produce a warning and no tracking."""
        write_windsurf_servers(home_dir, {'github': {'command': 'other'}})

        result = apply_global_changes(analyze('windsurf', EditorConfig(mcp={'github': GITHUB})),
                                      str(project_dir), tracking=tracking_service)

        assert result.warnings == [f'[windsurf] mcp "github": {SKIP_CONFIG_DIFFERS}']
        assert tracking_service.get_entry('windsurf:mcp:github') is None

    def test_ci_skips_adds(self, home_dir: Path, project_dir: Path, tracking_service, monkeypatch):
        """Nothing global is written in CI."""
        monkeypatch.setenv('CI', 'true')

        result = apply_global_changes(analyze('windsurf', EditorConfig(mcp={'github': GITHUB})),
                                      str(project_dir), tracking=tracking_service)

        assert [c.skip_reason for c in result.skipped] == [SKIP_CI]
        assert 'CI environment detected' in result.warnings[0]
        assert not windsurf_config_path(home_dir).exists()

    def test_skip_global_and_dry_run(self, home_dir: Path, project_dir: Path, tracking_service):
        """skip_global skips adds; dry_run reports them without writing."""
        changes = analyze('windsurf', EditorConfig(mcp={'github': GITHUB}))

        skipped = apply_global_changes(changes, str(project_dir), skip_global=True, tracking=tracking_service)
        planned = apply_global_changes(changes, str(project_dir), dry_run=True, tracking=tracking_service)

        assert [c.skip_reason for c in skipped.skipped] == [SKIP_DISABLED]
        assert [c.name for c in planned.applied] == ['github']
        assert not windsurf_config_path(home_dir).exists()
        assert tracking_service.list_entries() == []

    def test_codex_prompt_written(self, home_dir: Path, project_dir: Path, tracking_service):
        """Prompts are written as whole files."""
        changes = analyze('codex', EditorConfig(prompts=[EditorPrompt('review', 'Review it.', 'Review code')]))

        apply_global_changes(changes, str(project_dir), tracking=tracking_service)

        prompt = home_dir / '.codex' / 'prompts' / 'review.md'
        assert prompt.read_text() == '---\ndescription: Review code\n---\n\nReview it.'
        assert tracking_service.get_entry('codex:prompt:review') is not None


class TestRemoveFromGlobalConfig:
    """Test remove_from_global_mcp_config()."""

    def test_codex_toml(self, home_dir: Path, project_dir: Path, tracking_service):
        """Servers are removed from TOML files too."""
        changes = analyze('codex', EditorConfig(mcp={'github': GITHUB, 'db': {'command': 'pg'}}))
        apply_global_changes(changes, str(project_dir), tracking=tracking_service)
        path = home_dir / '.codex' / 'config.toml'

        assert remove_from_global_mcp_config(path, 'github')
        assert tomllib.loads(path.read_text()) == {'mcp_servers': {'db': {'command': 'pg'}}}
        assert not remove_from_global_mcp_config(path, 'github')

    def test_json(self, home_dir: Path):
        """JSON files lose just the named server."""
        path = write_windsurf_servers(home_dir, {'a': {'command': 'x'}, 'b': {'command': 'y'}})

        assert remove_from_global_mcp_config(path, 'a')
        assert json.loads(path.read_text()) == {'mcpServers': {'b': {'command': 'y'}}}

    def test_missing_file(self, home_dir: Path):
        """Nothing to remove from a missing file."""
        assert not remove_from_global_mcp_config(home_dir / 'nope.json', 'a')


class TestBackup:
    """Test backup_global_config()."""

    def test_once_per_file(self, home_dir: Path):
        """A file is only backed up once per process."""
        path = home_dir / '.codex' / 'settings.json'
        path.parent.mkdir()
        path.write_text('{}')

        assert backup_global_config(path) is not None
        assert backup_global_config(path) is None
        assert backup_global_config(home_dir / 'missing.json') is None
