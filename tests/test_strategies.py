"""Tests for the per-editor rule, prompt, MCP and hook strategies."""

import json
import tomllib

import pytest
import yaml

from aix_core.exceptions import InvalidEditorError
from aix_core.hal import CAPABILITIES, get_hal
from aix_core.hook_strategies import (
    ClaudeCodeHooksStrategy, CursorHooksStrategy, KiroHooksStrategy, NoHooksStrategy,
)
from aix_core.mcp_strategies import (
    ClaudeCodeMcpStrategy, CodexMcpStrategy, GlobalMcpStrategy, McpStrategy, VSCodeMcpStrategy,
    WindsurfMcpStrategy, ZedMcpStrategy,
)
from aix_core.models import Activation, EditorPrompt, EditorRule
from aix_core.prompt_strategies import (
    ClaudeCodePromptsStrategy, CursorPromptsStrategy, KiroPromptsStrategy, WindsurfPromptsStrategy,
)
from aix_core.rules_strategies import (
    ClaudeCodeRulesStrategy, CodexRulesStrategy, CopilotRulesStrategy, CursorRulesStrategy,
    KiroRulesStrategy, RulesStrategy, WindsurfRulesStrategy,
)
from aix_core.utils import extract_frontmatter

SERVERS = {
    'github': {'command': 'npx', 'args': ['-y', 'gh-mcp']},
    'remote': {'url': 'https://mcp.example.com', 'headers': {'Authorization': 'Bearer x'}},
    'off': {'command': 'nothing', 'enabled': False},
}


class TestRulesStrategies:
    """Test rule formatting and parsing."""

    def test_cursor_glob_rule(self):
        """Cursor glob rules carry globs and alwaysApply: false."""
        strategy = CursorRulesStrategy()
        rule = EditorRule('tests', 'Write tests.', Activation('glob', None, ['*.ts', '*.tsx']))

        content = strategy.format_rule(rule)

        assert content == "---\nglobs: '*.ts, *.tsx'\nalwaysApply: false\n---\n\n# tests\n\nWrite tests."
        assert strategy.detect_format(content)

        parsed = strategy.parse_frontmatter(content, 'tests')
        assert parsed.content == 'Write tests.'
        assert parsed.activation == 'glob'
        assert parsed.globs == ['*.ts', '*.tsx']

    def test_cursor_always_rule(self):
        """Always rules set alwaysApply: true."""
        content = CursorRulesStrategy().format_rule(EditorRule('style', '# Style\n\nTabs.'))
        assert content == '---\nalwaysApply: true\n---\n\n# Style\n\nTabs.'

    def test_windsurf_trigger(self):
        """Windsurf maps auto rules to model_decision."""
        strategy = WindsurfRulesStrategy()
        rule = EditorRule('style', 'Body', Activation('auto', 'Style guide'))

        content = strategy.format_rule(rule)

        assert content == '---\ntrigger: model_decision\ndescription: Style guide\n---\n\nBody'
        parsed = strategy.parse_frontmatter(content)
        assert (parsed.activation, parsed.description) == ('auto', 'Style guide')

    def test_kiro_auto_is_always_with_description(self):
        """Kiro has no auto mode; the description is kept with inclusion: always."""
        strategy = KiroRulesStrategy()
        content = strategy.format_rule(EditorRule('style', 'Body', Activation('auto', 'When styling')))

        assert content.startswith('---\ninclusion: always\ndescription: When styling\n---\n')
        assert strategy.parse_frontmatter(content).activation == 'auto'

    def test_kiro_file_match(self):
        """Glob rules become fileMatch with a joined pattern."""
        content = KiroRulesStrategy().format_rule(EditorRule('ts', 'Body', Activation('glob', None, ['*.ts', '*.tsx'])))
        assert "inclusion: fileMatch\nfileMatchPattern: '*.ts,*.tsx'" in content

    def test_claude_paths(self):
        """Claude glob rules list their globs under paths."""
        strategy = ClaudeCodeRulesStrategy()
        content = strategy.format_rule(EditorRule('ts', 'Body', Activation('glob', None, ['src/**/*.ts'])))

        parsed = strategy.parse_frontmatter(content, 'ts')

        assert strategy.detect_format(content)
        assert parsed.activation == 'glob'
        assert parsed.globs == ['src/**/*.ts']
        assert parsed.content == 'Body'

    def test_copilot_plain_rule(self):
        """Copilot always rules have no frontmatter."""
        strategy = CopilotRulesStrategy()
        assert strategy.format_rule(EditorRule('style', 'Tabs.')) == '# style\n\nTabs.'
        assert strategy.get_file_extension() == '.instructions.md'

    def test_codex_single_file(self):
        """Codex rules are combined into AGENTS.md sections."""
        strategy = CodexRulesStrategy()
        content = strategy.format_rules_file([EditorRule('style', 'Tabs.'), EditorRule('tests', 'Test.')])
        assert content == '# AGENTS.md\n\n## style\n\nTabs.\n\n## tests\n\nTest.\n'

    def test_parse_global_rules(self):
        """Global rule files become one rule; Kiro reports its directory layout."""
        assert ClaudeCodeRulesStrategy().parse_global_rules('  Be brief.  ') == (['Be brief.'], [])
        assert ClaudeCodeRulesStrategy().parse_global_rules('   ') == ([], [])
        assert KiroRulesStrategy().parse_global_rules('x') == ([], ['Kiro uses directory-based rules'])

    @pytest.mark.parametrize('strategy', [
        CursorRulesStrategy(), WindsurfRulesStrategy(), KiroRulesStrategy(), ClaudeCodeRulesStrategy(),
    ])
    def test_description_with_yaml_syntax(self, strategy):
        """Descriptions containing YAML syntax are quoted and parse back unchanged."""
        description = 'Style: tabs, not spaces #1'
        content = strategy.format_rule(EditorRule('style', 'Body', Activation('auto', description)))

        fields = yaml.safe_load(extract_frontmatter(content)[0])

        assert fields['description'] == description
        assert strategy.parse_frontmatter(content, 'style').description == description

    def test_base_is_abstract(self):
        """Each editor strategy must provide its frontmatter fields."""
        with pytest.raises(TypeError):
            RulesStrategy()


class TestPromptsStrategies:
    """Test prompt formatting."""

    PROMPT = EditorPrompt('review', 'Review it.', 'Review code', '[file]')

    def test_claude(self):
        """Claude commands carry description and argument-hint."""
        content = ClaudeCodePromptsStrategy().format_prompt(self.PROMPT)
        assert content == "---\ndescription: Review code\nargument-hint: '[file]'\n---\n\nReview it."

        parsed = ClaudeCodePromptsStrategy().parse_frontmatter(content)
        assert (parsed.content, parsed.description, parsed.argument_hint) == ('Review it.', 'Review code', '[file]')

    def test_cursor(self):
        """Cursor commands are plain markdown with a heading."""
        assert CursorPromptsStrategy().format_prompt(self.PROMPT) == '# review\n\nReview code\n\nReview it.'

    def test_windsurf(self):
        """Windsurf workflows always have frontmatter."""
        content = WindsurfPromptsStrategy().format_prompt(self.PROMPT)
        assert content == '---\ndescription: Review code\n---\n\n# review\n\nReview it.'

    def test_kiro_manual_steering(self):
        """Kiro prompts are manual steering files and parse back from the global dir."""
        strategy = KiroPromptsStrategy()
        content = strategy.format_prompt(self.PROMPT)

        assert content.startswith('---\ninclusion: manual\n')
        assert "argumentHint: '[file]'" in content

        prompts, warnings = strategy.parse_global_prompts({'prompt-review.md': content, 'notes.md': 'plain'})
        assert prompts == {'review': 'Review it.'}
        assert warnings == []


class TestMcpStrategies:
    """Test MCP config formatting."""

    def test_claude_types(self):
        """Claude servers are typed; disabled servers are dropped."""
        data = json.loads(ClaudeCodeMcpStrategy().format_config(SERVERS))

        assert data == {'mcpServers': {
            'github': {'type': 'stdio', 'command': 'npx', 'args': ['-y', 'gh-mcp']},
            'remote': {'type': 'http', 'url': 'https://mcp.example.com',
                       'headers': {'Authorization': 'Bearer x'}},
        }}

    def test_zed_context_servers(self):
        """Zed uses context_servers with explicit args and env."""
        data = json.loads(ZedMcpStrategy().format_config({'github': SERVERS['github']}))
        assert data == {'context_servers': {'github': {'command': 'npx', 'args': ['-y', 'gh-mcp'], 'env': {}}}}

    def test_vscode_servers(self):
        """VS Code uses servers and types remote servers as http."""
        data = json.loads(VSCodeMcpStrategy().format_config({'remote': SERVERS['remote']}))
        assert data == {'servers': {'remote': {'type': 'http', 'url': 'https://mcp.example.com'}}}

    def test_codex_toml(self):
        """Codex writes TOML mcp_servers tables."""
        strategy = CodexMcpStrategy()
        data = tomllib.loads(strategy.format_config({'github': SERVERS['github']}))

        assert data == {'mcp_servers': {'github': {'command': 'npx', 'args': ['-y', 'gh-mcp']}}}
        assert strategy.is_global_only()

    def test_windsurf_parse(self):
        """Windsurf keeps disabled state and disabled tools when parsing."""
        parsed = WindsurfMcpStrategy().parse_server({'command': 'x', 'disabled': True, 'disabledTools': ['a']})
        assert parsed == {'command': 'x', 'enabled': False, 'disabledTools': ['a']}

    def test_parse_global_config_warnings(self):
        """Unknown entries and unparsable files produce warnings."""
        strategy = ClaudeCodeMcpStrategy()
        mcp, warnings = strategy.parse_global_mcp_config(json.dumps({'mcpServers': {
            'ok': {'command': 'run'}, 'weird': {'transport': 'x'},
        }}))

        assert mcp == {'ok': {'command': 'run'}}
        assert warnings == ['Skipping MCP server "weird": unknown format']

        mcp, warnings = strategy.parse_global_mcp_config('{not json')
        assert mcp == {}
        assert warnings[0].startswith('Failed to parse MCP config')

    def test_bases_are_abstract(self):
        """Only strategies with a file format can be instantiated."""
        with pytest.raises(TypeError):
            McpStrategy()
        with pytest.raises(TypeError):
            GlobalMcpStrategy()

        strategy = WindsurfMcpStrategy()
        assert strategy.is_global_only()
        assert json.loads(strategy.format_config({'github': SERVERS['github']})) == {
            'mcpServers': {'github': {'command': 'npx', 'args': ['-y', 'gh-mcp']}},
        }


class TestHooksStrategies:
    """Test hook event translation."""

    HOOKS = {
        'pre_command': [{'hooks': [{'command': './check.sh', 'timeout': 5}]}],
        'session_start': [{'hooks': [{'command': './hello.sh'}]}],
    }

    def test_claude_matchers(self):
        """Tool events get an injected matcher."""
        formatted = ClaudeCodeHooksStrategy().format_hooks(self.HOOKS)

        assert formatted['PreToolUse'] == [{
            'matcher': 'Bash',
            'hooks': [{'type': 'command', 'command': './check.sh', 'timeout': 5}],
        }]
        assert formatted['SessionStart'][0]['hooks'][0]['command'] == './hello.sh'

    def test_cursor_unsupported_events(self):
        """Events missing from the table are unsupported."""
        strategy = CursorHooksStrategy()

        assert strategy.get_unsupported_events(self.HOOKS) == ['session_start']
        assert strategy.format_hooks(self.HOOKS) == {'beforeShellExecution': [{'command': './check.sh', 'timeout': 5}]}

    def test_kiro_one_file_per_hook(self):
        """Kiro writes one hook file per command, numbered per event."""
        hooks = {'post_file_write': [{'matcher': '*.ts', 'hooks': [{'command': 'lint'}, {'command': 'fmt'}]}]}

        files = KiroHooksStrategy().format_files(hooks)

        assert sorted(files) == ['hooks/post-file-write-hook-0.kiro.hook', 'hooks/post-file-write-hook-1.kiro.hook']
        hook = json.loads(files['hooks/post-file-write-hook-1.kiro.hook'])
        assert hook['when'] == {'type': 'fileEdited', 'patterns': ['*.ts']}
        assert hook['then'] == {'type': 'runCommand', 'command': 'fmt'}

    def test_no_hooks(self):
        """Editors without hooks write nothing."""
        strategy = NoHooksStrategy()
        assert not strategy.is_supported()
        assert strategy.format_files(self.HOOKS) == {}


class TestHAL:
    """Test the strategy table."""

    def test_copilot_shares_vscode(self):
        """Copilot and VS Code use the same strategy objects."""
        hal = get_hal()
        for capability in CAPABILITIES:
            assert hal.get_strategy(capability, 'copilot') is hal.get_strategy(capability, 'vscode')

    def test_every_editor_has_every_capability(self):
        """The table is complete."""
        hal = get_hal()
        assert len(hal.get_editors()) == 8
        for editor in hal.get_editors():
            assert set(hal.get_strategies(editor)) == set(CAPABILITIES)

    def test_supports(self):
        """Zed has no prompts, Kiro has hooks."""
        assert not get_hal().supports('prompts', 'zed')
        assert get_hal().supports('hooks', 'kiro')

    def test_unknown_editor_and_capability(self):
        """Unknown names raise."""
        with pytest.raises(InvalidEditorError):
            get_hal().get_strategy('rules', 'notepad')
        with pytest.raises(ValueError):
            get_hal().get_strategy('themes', 'cursor')
