"""Tests for rule and prompt loading."""

from pathlib import Path

import pytest

from aix_core.exceptions import ConfigError
from aix_core.models import Activation, EditorRule
from aix_core.prompts import load_prompt, load_prompts
from aix_core.rules import (
    build_interpolation_context,
    deduplicate_rules,
    extract_variable_names,
    has_unresolved_variables,
    interpolate,
    load_rule,
    load_rules,
    validate_rule_content,
)


class TestLoadRule:
    """Test loading single rules."""

    def test_inline_content(self, temp_dir: Path):
        """Inline content is used as-is with the configured activation."""
        rule = load_rule('tests', {'content': 'Write tests.', 'activation': 'glob',
                                   'globs': ['**/*.test.ts']}, temp_dir)

        assert rule.content == 'Write tests.'
        assert rule.activation == Activation('glob', None, ['**/*.test.ts'])
        assert rule.source_path is None

    def test_default_activation(self, temp_dir: Path):
        """Activation defaults to always."""
        assert load_rule('x', {'content': 'y'}, temp_dir).activation.type == 'always'

    def test_file_frontmatter_fills_metadata(self, temp_dir: Path):
        """Frontmatter in a rule file supplies description and globs."""
        (temp_dir / 'style.md').write_text(
            '---\ndescription: Style guide\nglobs: "*.ts, *.tsx"\n---\n\n# Style\n\nUse tabs.\n')

        rule = load_rule('style', './style.md', temp_dir)

        assert rule.content == '# Style\n\nUse tabs.'
        assert rule.activation.description == 'Style guide'
        assert rule.activation.globs == ['*.ts', '*.tsx']
        assert rule.source_path == str(temp_dir / 'style.md')

    def test_config_wins_over_frontmatter(self, temp_dir: Path):
        """Fields set in ai.json take precedence over frontmatter."""
        (temp_dir / 'r.md').write_text('---\ndescription: From file\n---\nBody\n')

        rule = load_rule('r', {'path': './r.md', 'description': 'From config'}, temp_dir)

        assert rule.activation.description == 'From config'

    def test_no_content_source(self, temp_dir: Path):
        """An entry without any source is an error."""
        with pytest.raises(ConfigError):
            load_rule('empty', {'description': 'nothing'}, temp_dir)

    def test_load_rules_keeps_order_and_errors(self, temp_dir: Path):
        """Rules load in declaration order; failures are reported by name."""
        rules = {
            'b': {'content': 'B'},
            'missing': './missing.md',
            'a': {'content': 'A'},
            'off': False,
        }

        loaded, errors = load_rules(rules, temp_dir)

        assert [r.name for r in loaded] == ['b', 'a']
        assert list(errors) == ['missing']


class TestInterpolation:
    """Test {{variable}} interpolation."""

    def test_known_and_unknown_variables(self, temp_dir: Path):
        """Known variables are replaced, unknown ones kept with a warning."""
        context = build_interpolation_context({}, temp_dir, 'cursor',
                                              package_json={'name': 'app', 'version': '1.2.3'})

        content, warnings = interpolate('{{project.name}}@{{ project.version }} in {{editor}} {{nope}}',
                                        context)

        assert content == 'app@1.2.3 in cursor {{nope}}'
        assert warnings == ['Unknown variable in rule: nope']

    def test_project_name_defaults_to_directory(self, project_dir: Path):
        """Without package.json the project name is the directory name."""
        context = build_interpolation_context({}, project_dir, 'zed')
        assert context['project']['name'] == 'project'

    def test_variable_helpers(self):
        """Variables can be detected and listed."""
        assert has_unresolved_variables('a {{b}}')
        assert not has_unresolved_variables('plain')
        assert extract_variable_names('{{a}} and {{b.c}}') == ['a', 'b.c']


class TestRuleHelpers:
    """Test rule validation and deduplication."""

    def test_validate_rule_content(self):
        """Empty content is an error, oversized content a warning."""
        assert validate_rule_content('  ') == (['Rule content is empty'], [])
        errors, warnings = validate_rule_content('x' * 10001)
        assert errors == []
        assert warnings == ['Rule content exceeds 10,000 characters']
        assert validate_rule_content('{{open')[1] == ['Unclosed variable interpolation']

    def test_deduplicate_keeps_last_at_first_position(self):
        """The last definition wins but keeps the first position."""
        rules = [EditorRule('a', 'first'), EditorRule('b', 'b'), EditorRule('a', 'second')]

        result = deduplicate_rules(rules)

        assert [(r.name, r.content) for r in result] == [('a', 'second'), ('b', 'b')]


class TestLoadPrompt:
    """Test prompt loading."""

    def test_frontmatter(self, temp_dir: Path):
        """Prompt files supply description and argument hint."""
        (temp_dir / 'review.md').write_text(
            '---\ndescription: Review code\nargument-hint: "[file]"\n---\nReview $ARGUMENTS.\n')

        prompt = load_prompt('review', './review.md', temp_dir)

        assert prompt.content == 'Review $ARGUMENTS.'
        assert prompt.description == 'Review code'
        assert prompt.argument_hint == '[file]'

    def test_inline(self, temp_dir: Path):
        """Inline prompts keep their configured fields."""
        prompt = load_prompt('fix', {'content': 'Fix it', 'argumentHint': '<issue>'}, temp_dir)
        assert (prompt.content, prompt.argument_hint, prompt.description) == ('Fix it', '<issue>', None)

    def test_load_prompts(self, temp_dir: Path):
        """Disabled prompts are skipped."""
        loaded, errors = load_prompts({'a': {'content': 'A'}, 'b': False}, temp_dir)
        assert [p.name for p in loaded] == ['a']
        assert errors == {}
