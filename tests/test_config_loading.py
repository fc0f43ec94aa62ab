"""Tests for descriptor discovery, extends resolution and merging."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from aix_core.exceptions import (
    CircularDependencyError, ConfigNotFoundError, ConfigParseError, ConfigValidationError,
)
from aix_core.inheritance import resolve_extends
from aix_core.loader import find_config, load_config, require_config
from aix_core.merge import (
    active_entries, enabled_editors, filter_config_by_scopes, merge_configs, normalize_editors,
)


def write_json(path: Path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data))
    return path


class TestMerge:
    """Test descriptor merging."""

    def test_override_replaces_entry(self):
        """A later entry replaces the earlier one as a whole."""
        base = {'mcp': {'github': {'command': 'old', 'args': ['a']}}}
        override = {'mcp': {'github': {'command': 'new'}}}

        merged = merge_configs(base, override)

        assert merged['mcp']['github'] == {'command': 'new'}

    def test_false_is_sticky(self):
        """Once disabled, an entry cannot be re-enabled by a later config."""
        merged = merge_configs({'rules': {'style': 'x'}}, {'rules': {'style': False}})
        merged = merge_configs(merged, {'rules': {'style': 'again'}})

        assert merged['rules']['style'] is False
        assert active_entries(merged['rules']) == {}

    def test_extends_not_carried(self):
        """The merged result never contains extends."""
        merged = merge_configs({'extends': './a.json', 'rules': {}}, {'skills': {}})
        assert 'extends' not in merged

    def test_editors_deep_merge(self):
        """Editors merge per editor after normalization."""
        merged = merge_configs(
            {'editors': ['cursor', 'windsurf']},
            {'editors': {'cursor': {'enabled': False}}},
        )

        assert merged['editors'] == {'cursor': {'enabled': False}, 'windsurf': {'enabled': True}}
        assert enabled_editors(merged) == ['windsurf']

    def test_normalize_editors(self):
        """Array and object forms normalize to the same shape."""
        normalized = normalize_editors(['zed', {'kiro': {'rules': {'a': 'b'}}}])
        assert normalized == {'zed': {'enabled': True}, 'kiro': {'enabled': True, 'rules': {'a': 'b'}}}

    def test_filter_by_scopes(self):
        """Only the requested sections survive."""
        config = {'rules': {}, 'mcp': {}, 'skills': {}}
        assert filter_config_by_scopes(config, ['mcp', 'bogus']) == {'mcp': {}}


class TestExtends:
    """Test extends chain resolution."""

    def test_local_ancestor_paths_become_absolute(self, project_dir: Path):
        """Relative rule paths of an ancestor resolve against the ancestor's directory."""
        shared = project_dir / 'shared'
        write_json(shared / 'base.json', {
            'rules': {'base': {'path': './rules/base.md'}, 'inline': 'Be nice.'},
        })
        config = {'extends': './shared/base.json', 'rules': {'local': 'Local rule.'}}

        resolved = resolve_extends(config, project_dir)

        assert resolved['rules']['base'] == {'path': str((shared / 'rules' / 'base.md').resolve())}
        assert resolved['rules']['inline'] == 'Be nice.'
        assert resolved['rules']['local'] == 'Local rule.'
        assert 'extends' not in resolved

    def test_later_ancestor_wins(self, project_dir: Path):
        """Ancestors merge in declaration order, then the descriptor itself."""
        write_json(project_dir / 'a.json', {'mcp': {'x': {'command': 'a'}}, 'rules': {'r': 'A'}})
        write_json(project_dir / 'b.json', {'mcp': {'x': {'command': 'b'}}})
        config = {'extends': ['./a.json', './b.json'], 'rules': {'r': 'own'}}

        resolved = resolve_extends(config, project_dir)

        assert resolved['mcp']['x'] == {'command': 'b'}
        assert resolved['rules']['r'] == 'own'

    def test_cycle_detected(self, project_dir: Path):
        """A chain that loops back fails with the full path."""
        write_json(project_dir / 'a.json', {'extends': './b.json'})
        write_json(project_dir / 'b.json', {'extends': './a.json'})

        with pytest.raises(CircularDependencyError) as exc_info:
            resolve_extends({'extends': './a.json'}, project_dir)

        assert len(exc_info.value.path) == 3

    def test_diamond_is_not_a_cycle(self, project_dir: Path):
        """The same ancestor reached through two branches is allowed."""
        write_json(project_dir / 'common.json', {'rules': {'common': 'c'}})
        write_json(project_dir / 'a.json', {'extends': './common.json'})
        write_json(project_dir / 'b.json', {'extends': './common.json'})

        resolved = resolve_extends({'extends': ['./a.json', './b.json']}, project_dir)

        assert resolved['rules'] == {'common': 'c'}

    def test_missing_ancestor(self, project_dir: Path):
        """A missing local ancestor is a parse error."""
        with pytest.raises(ConfigParseError):
            resolve_extends({'extends': './nope.json'}, project_dir)

    def test_git_ancestor_paths_become_git_refs(self, project_dir: Path):
        """Paths inside a git ancestor point back into the same repository."""
        def fake_git(args, cwd=None, timeout=120):
            target = Path(args[-1])
            write_json(target / 'ai.json', {'rules': {'style': {'path': './rules/style.md'}}})
            return 0, '', ''

        with patch('aix_core.git.run_git_command', side_effect=fake_git):
            resolved = resolve_extends({'extends': 'github:acme/shared'}, project_dir)

        assert resolved['rules']['style'] == {
            'git': {'url': 'https://github.com/acme/shared', 'path': 'rules/style.md'},
        }
        downloads = project_dir / '.aix' / '.tmp' / 'cache' / 'git-downloads'
        assert not downloads.exists() or not any(downloads.iterdir())

    def test_local_file_inside_git_ancestor(self, project_dir: Path):
        """A file extended from within a checkout also resolves to git references."""
        def fake_git(args, cwd=None, timeout=120):
            target = Path(args[-1])
            write_json(target / 'ai.json', {'extends': './presets/base.json'})
            write_json(target / 'presets' / 'base.json', {
                'rules': {'style': {'path': '../rules/style.md'}},
                'skills': {'pdf': './skills/pdf'},
            })
            return 0, '', ''

        with patch('aix_core.git.run_git_command', side_effect=fake_git):
            resolved = resolve_extends({'extends': 'github:acme/shared#v2'}, project_dir)

        assert resolved['rules']['style'] == {
            'git': {'url': 'https://github.com/acme/shared', 'path': 'rules/style.md', 'ref': 'v2'},
        }
        assert resolved['skills']['pdf'] == {
            'git': 'https://github.com/acme/shared', 'path': 'presets/skills/pdf', 'ref': 'v2',
        }

    def test_local_file_cannot_escape_git_ancestor(self, project_dir: Path):
        """Extending a file outside the checkout is refused."""
        write_json(project_dir / 'outside.json', {'rules': {'r': 'x'}})

        def fake_git(args, cwd=None, timeout=120):
            write_json(Path(args[-1]) / 'ai.json', {'extends': str(project_dir / 'outside.json')})
            return 0, '', ''

        with patch('aix_core.git.run_git_command', side_effect=fake_git):
            with pytest.raises(ConfigParseError, match='escapes the repository'):
                resolve_extends({'extends': 'github:acme/shared'}, project_dir)

    def test_url_ancestor_inlines_content(self, project_dir: Path):
        """Rule files next to a URL ancestor are fetched and inlined."""
        documents = {
            'https://example.com/cfg/ai.json': json.dumps({'rules': {'style': './style.md'}}),
            'https://example.com/cfg/style.md': 'Fetched rule.',
        }

        with patch('aix_core.remote.fetch_text', side_effect=lambda url: documents[url]), \
                patch('aix_core.inheritance.fetch_text', side_effect=lambda url: documents[url]):
            resolved = resolve_extends({'extends': 'https://example.com/cfg/ai.json'}, project_dir)

        assert resolved['rules']['style'] == {'content': 'Fetched rule.'}


class TestLoader:
    """Test descriptor discovery and loading."""

    def test_find_in_parent(self, project_dir: Path, write_ai_json):
        """Discovery walks up from the start directory."""
        write_ai_json({'rules': {}})
        nested = project_dir / 'src' / 'deep'
        nested.mkdir(parents=True)

        discovered = find_config(nested)

        assert discovered.path == project_dir / 'ai.json'

    def test_package_json_embedded(self, project_dir: Path):
        """The "ai" field of package.json is used when there is no ai.json."""
        write_json(project_dir / 'package.json', {'name': 'app', 'ai': {'rules': {'x': 'y'}}})

        loaded = load_config(project_dir)

        assert loaded.is_embedded
        assert loaded.config['rules'] == {'x': 'y'}

    def test_ai_json_wins_over_package_json(self, project_dir: Path, write_ai_json):
        """Both present: ai.json is used and a warning is recorded."""
        write_ai_json({'rules': {'a': 'from ai.json'}})
        write_json(project_dir / 'package.json', {'ai': {'rules': {'b': 'x'}}})

        loaded = load_config(project_dir)

        assert loaded.config['rules'] == {'a': 'from ai.json'}
        assert len(loaded.warnings) == 1

    def test_local_overrides(self, project_dir: Path, write_ai_json):
        """ai.local.json merges over the resolved descriptor."""
        write_ai_json({'mcp': {'db': {'command': 'prod'}}, 'rules': {'r': 'x'}})
        write_json(project_dir / 'ai.local.json', {'mcp': {'db': {'command': 'dev'}}})

        loaded = load_config(project_dir)

        assert loaded.has_local_overrides
        assert loaded.config['mcp']['db'] == {'command': 'dev'}
        assert loaded.config['rules'] == {'r': 'x'}

    def test_local_overrides_cannot_extend(self, project_dir: Path, write_ai_json):
        """extends in ai.local.json is rejected."""
        write_ai_json({})
        write_json(project_dir / 'ai.local.json', {'extends': './x.json'})

        with pytest.raises(ConfigValidationError) as exc_info:
            load_config(project_dir)

        assert [e['path'] for e in exc_info.value.errors] == ['extends']

    def test_invalid_local_overrides_list_every_error(self, project_dir: Path, write_ai_json):
        """Schema errors in ai.local.json are reported like those of ai.json."""
        write_ai_json({})
        write_json(project_dir / 'ai.local.json', {'mcp': {'a': {'args': ['x']}, 'b': {'args': ['y']}}})

        with pytest.raises(ConfigValidationError) as exc_info:
            load_config(project_dir)

        paths = [e['path'] for e in exc_info.value.errors]
        assert any(p.startswith('mcp.a') for p in paths)
        assert any(p.startswith('mcp.b') for p in paths)

    def test_jsonc_comments(self, project_dir: Path):
        """ai.json may contain comments and trailing commas."""
        (project_dir / 'ai.json').write_text('{\n  // rules\n  "rules": {"a": "b",},\n}\n')

        loaded = load_config(project_dir)

        assert loaded.config['rules'] == {'a': 'b'}

    def test_invalid_config(self, project_dir: Path, write_ai_json):
        """Schema errors surface as ConfigValidationError."""
        write_ai_json({'mcp': {'x': {}}})

        with pytest.raises(ConfigValidationError) as exc_info:
            load_config(project_dir)

        assert exc_info.value.errors[0]['path'] == 'mcp.x'

    def test_not_found(self, project_dir: Path):
        """require_config raises when nothing is found."""
        assert load_config(project_dir) is None
        with pytest.raises(ConfigNotFoundError):
            require_config(project_dir)

    def test_explicit_remote_config(self, project_dir: Path):
        """A git --config resolves relative paths into the repository."""
        def fake_git(args, cwd=None, timeout=120):
            write_json(Path(args[-1]) / 'team' / 'ai.json', {'rules': {'style': './style.md'}})
            return 0, '', ''

        with patch('aix_core.git.run_git_command', side_effect=fake_git):
            loaded = load_config(project_dir, 'github:acme/configs/team')

        assert loaded.source == 'remote'
        assert loaded.config_base_dir == project_dir
        assert loaded.config['rules']['style'] == {
            'git': {'url': 'https://github.com/acme/configs', 'path': 'team/style.md'},
        }
