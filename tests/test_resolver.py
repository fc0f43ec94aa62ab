"""Tests for reference resolution (local, git, npm)."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from aix_core.exceptions import SourceResolutionError
from aix_core.git import build_template, create_download_key
from aix_core.npm import resolve_npm_path, version_satisfies
from aix_core.resolver import ReferenceResolver
from aix_core.sources import SourceRef


def fake_clone(files):
    """Build a run_git_command replacement that writes files into the clone target."""
    def run(args, cwd=None, timeout=120):
        if args[0] == 'clone':
            target = Path(args[-1])
            for name, content in files.items():
                path = target / name
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_text(content)
        return 0, '', ''
    return run


def install_node_package(root: Path, name: str, version: str = '1.0.0') -> Path:
    package = root / 'node_modules' / name
    package.mkdir(parents=True)
    (package / 'package.json').write_text(json.dumps({'name': name, 'version': version}))
    return package


class TestGitDownloads:
    """Test download slot naming."""

    def test_template_collapses_provider_urls(self):
        """Provider URLs and shorthands share one template."""
        assert build_template('https://github.com/org/repo.git', 'main') == 'github:org/repo#main'
        assert build_template('https://example.com/x.git') == 'https://example.com/x.git'

    def test_download_key(self):
        """Shorthand templates give readable, hashed keys."""
        key = create_download_key('github:org/repo#main')
        assert key.startswith('org-repo-main-')
        assert len(create_download_key('https://example.com/x.git')) <= 32


class TestReferenceResolver:
    """Test ReferenceResolver."""

    def test_local_relative_to_base_dir(self, project_dir: Path):
        """Relative local paths resolve against the given base directory."""
        (project_dir / 'docs').mkdir()
        (project_dir / 'docs' / 'rule.md').write_text('  Rule body.  \n')
        resolver = ReferenceResolver(project_dir)

        content, source_path = resolver.read_file(SourceRef.from_string('./docs/rule.md'))

        assert content == 'Rule body.'
        assert source_path == str(project_dir / 'docs' / 'rule.md')

    def test_missing_local_path(self, project_dir: Path):
        """A missing path fails to resolve."""
        resolver = ReferenceResolver(project_dir)
        with pytest.raises(SourceResolutionError):
            resolver.resolve(SourceRef.from_string('./missing.md'))

    def test_expect_directory(self, project_dir: Path):
        """A file where a directory is expected is an error."""
        (project_dir / 'file.md').write_text('x')
        resolver = ReferenceResolver(project_dir)
        with pytest.raises(SourceResolutionError):
            resolver.resolve(SourceRef.from_string('./file.md'), expect='dir')

    def test_git_checkout_removed_after_use(self, project_dir: Path):
        """The git checkout only lives until cleanup."""
        resolver = ReferenceResolver(project_dir)
        source = SourceRef.from_value({'git': {'url': 'github:acme/rules', 'path': 'style.md'}})

        with patch('aix_core.git.run_git_command', side_effect=fake_clone({'style.md': 'Style.'})):
            with resolver.resolve(source, expect='file') as resolved:
                location = resolved.location
                assert location.read_text() == 'Style.'

        assert not location.exists()

    def test_git_default_file(self, project_dir: Path):
        """A git reference without a path reads the default file."""
        resolver = ReferenceResolver(project_dir)
        source = SourceRef.from_string('github:acme/prompts')

        with patch('aix_core.git.run_git_command', side_effect=fake_clone({'README.md': 'Prompt.'})):
            content, source_path = resolver.read_file(source, default_file='README.md')

        assert content == 'Prompt.'
        assert source_path == 'https://github.com/acme/prompts#HEAD:README.md'

    def test_git_clone_failure(self, project_dir: Path):
        """A failing clone surfaces as SourceResolutionError."""
        resolver = ReferenceResolver(project_dir)
        with patch('aix_core.git.run_git_command', return_value=(128, '', 'not found')):
            with pytest.raises(SourceResolutionError, match='Failed to clone'):
                resolver.resolve(SourceRef.from_string('github:acme/missing'))

    def test_npm_from_node_modules(self, project_dir: Path):
        """Unversioned packages must already be installed."""
        package = install_node_package(project_dir, '@acme/rules')
        (package / 'style.md').write_text('From npm.')
        resolver = ReferenceResolver(project_dir)

        content, _ = resolver.read_file(SourceRef.from_string('@acme/rules/style.md'))

        assert content == 'From npm.'

    def test_bare_package_path_falls_back_to_node_modules(self, project_dir: Path):
        """An implicit path with no local file reads from an installed package."""
        package = install_node_package(project_dir, 'team-rules')
        (package / 'rules').mkdir()
        (package / 'rules' / 'style.md').write_text('Team style.')
        resolver = ReferenceResolver(project_dir)

        content, _ = resolver.read_file(SourceRef.from_string('team-rules/rules/style.md'))

        assert content == 'Team style.'

    def test_local_file_wins_over_package(self, project_dir: Path):
        """An existing project file is read before any package of the same name."""
        package = install_node_package(project_dir, 'docs')
        (package / 'style.md').write_text('From npm.')
        (project_dir / 'docs').mkdir()
        (project_dir / 'docs' / 'style.md').write_text('From the project.')
        resolver = ReferenceResolver(project_dir)

        content, _ = resolver.read_file(SourceRef.from_string('docs/style.md'))

        assert content == 'From the project.'

    def test_npm_not_installed(self, project_dir: Path):
        """Without a version, a missing package is an error."""
        with pytest.raises(SourceResolutionError, match='not found in node_modules'):
            resolve_npm_path('not-installed-anywhere-pkg', project_dir)


class TestNpmInstall:
    """Test versioned npm installs into the project cache."""

    def test_installs_into_cache(self, project_dir: Path):
        """A versioned package is installed with npm into .aix/.tmp."""
        tmp_dir = project_dir / '.aix' / '.tmp'

        def fake_npm(args, cwd=None):
            install_node_package(tmp_dir, 'helper', '2.0.0')
            return 0, '', ''

        with patch('aix_core.npm.run_npm_command', side_effect=fake_npm) as mock_npm:
            location = resolve_npm_path('helper', project_dir, version='2.0.0')

        assert location == tmp_dir / 'node_modules' / 'helper'
        assert 'helper@2.0.0' in mock_npm.call_args[0][0]

    def test_cached_exact_version_not_reinstalled(self, project_dir: Path):
        """An exact cached version skips npm."""
        install_node_package(project_dir / '.aix' / '.tmp', 'helper', '2.0.0')

        with patch('aix_core.npm.run_npm_command') as mock_npm:
            resolve_npm_path('helper', project_dir, version='2.0.0')

        mock_npm.assert_not_called()

    def test_cached_version_in_range_not_reinstalled(self, project_dir: Path):
        """A cached version satisfying a caret range skips npm."""
        install_node_package(project_dir / '.aix' / '.tmp', 'helper', '1.2.3')

        with patch('aix_core.npm.run_npm_command') as mock_npm:
            location = resolve_npm_path('helper', project_dir, version='^1.2.0')

        mock_npm.assert_not_called()
        assert location == project_dir / '.aix' / '.tmp' / 'node_modules' / 'helper'

    def test_cached_version_outside_range_reinstalled(self, project_dir: Path):
        """A cached version outside the range is replaced."""
        install_node_package(project_dir / '.aix' / '.tmp', 'helper', '1.2.3')

        with patch('aix_core.npm.run_npm_command', return_value=(0, '', '')) as mock_npm:
            resolve_npm_path('helper', project_dir, version='^2.0.0')

        mock_npm.assert_called_once()

        mock_npm.assert_not_called()

    def test_install_failure(self, project_dir: Path):
        """npm errors surface as SourceResolutionError."""
        with patch('aix_core.npm.run_npm_command', return_value=(1, '', 'E404')):
            with pytest.raises(SourceResolutionError, match='E404'):
                resolve_npm_path('helper', project_dir, version='^1.0.0')


class TestVersionRanges:
    """Test matching cached package versions against requested ranges."""

    @pytest.mark.parametrize('version,spec,expected', [
        ('1.2.3', '1.2.3', True),
        ('1.2.4', '1.2.3', False),
        ('1.2.3', '^1.2.0', True),
        ('2.0.0', '^1.2.0', False),
        ('0.2.5', '^0.2.3', True),
        ('0.3.0', '^0.2.3', False),
        ('1.2.9', '~1.2.0', True),
        ('1.3.0', '~1.2.0', False),
        ('1.9.0', '1.x', True),
        ('1.5.0', '>=1.2.0 <2.0.0', True),
        ('2.0.0', '>=1.2.0 <2.0.0', False),
        ('1.5.0', '1.0.0 - 1.6.0', True),
        ('3.1.0', '^1.0.0 || ^3.0.0', True),
        ('1.0.0', '*', True),
        ('1.0.0', 'latest', False),
    ])
    def test_version_satisfies(self, version, spec, expected):
        """Ranges follow npm semantics for the common operators."""
        assert version_satisfies(version, spec) is expected
