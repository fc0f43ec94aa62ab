"""
Hook formatting strategies for aix.

ai.json uses generic snake_case events (``pre_command``, ``agent_stop``, ...).
Each strategy translates them through a static table into its editor's event
names; events missing from the table are reported as unsupported.
"""

from typing import Any, Dict, List

from .utils import sanitize_file_name, to_json

# Tool matchers injected for events that target one tool in Claude-style configs
TOOL_MATCHERS = {
    'pre_command': 'Bash',
    'post_command': 'Bash',
    'pre_file_read': 'Read',
    'post_file_read': 'Read',
    'pre_file_write': 'Write|Edit',
    'post_file_write': 'Write|Edit',
    'pre_mcp_tool': 'mcp__.*',
    'post_mcp_tool': 'mcp__.*',
}

CLAUDE_EVENTS = {
    'pre_tool_use': 'PreToolUse',
    'post_tool_use': 'PostToolUse',
    'pre_file_read': 'PreToolUse',
    'post_file_read': 'PostToolUse',
    'pre_file_write': 'PreToolUse',
    'post_file_write': 'PostToolUse',
    'pre_command': 'PreToolUse',
    'post_command': 'PostToolUse',
    'pre_mcp_tool': 'PreToolUse',
    'post_mcp_tool': 'PostToolUse',
    'session_start': 'SessionStart',
    'session_end': 'SessionEnd',
    'agent_stop': 'Stop',
    'pre_prompt': 'UserPromptSubmit',
}


class HooksStrategy:
    """Base hooks strategy; subclasses set EVENT_MAP and CONFIG_PATH."""

    EVENT_MAP: Dict[str, str] = {}
    CONFIG_PATH = ''

    def is_supported(self) -> bool:
        return True

    def get_config_path(self) -> str:
        return self.CONFIG_PATH

    def get_unsupported_events(self, hooks: Dict[str, Any]) -> List[str]:
        """Events in hooks that this editor cannot express."""
        return [event for event in hooks if event not in self.EVENT_MAP]

    def format_hook(self, hook: Dict[str, Any]) -> Dict[str, Any]:
        entry: Dict[str, Any] = {'command': hook['command']}
        if hook.get('timeout'):
            entry['timeout'] = hook['timeout']
        return entry

    def format_hooks(self, hooks: Dict[str, Any]) -> Dict[str, Any]:
        """Translate hooks into this editor's ``{event: [...]}`` table."""
        formatted: Dict[str, List[Any]] = {}
        for event, matchers in hooks.items():
            editor_event = self.EVENT_MAP.get(event)
            if not editor_event:
                continue
            entries = formatted.setdefault(editor_event, [])
            for matcher in matchers:
                entries.extend(self.format_hook(h) for h in matcher.get('hooks', []))
        return formatted

    def format_config(self, hooks: Dict[str, Any]) -> str:
        return to_json({'hooks': self.format_hooks(hooks)})

    def format_files(self, hooks: Dict[str, Any]) -> Dict[str, str]:
        """Files to write, keyed by path relative to the editor config dir.

        Empty when no event translates.
        """
        if not self.format_hooks(hooks):
            return {}
        return {self.get_config_path(): self.format_config(hooks)}


class ClaudeCodeHooksStrategy(HooksStrategy):
    """``.claude/settings.json`` with PascalCase events and tool matchers."""

    EVENT_MAP = CLAUDE_EVENTS
    CONFIG_PATH = 'settings.json'

    def format_hooks(self, hooks: Dict[str, Any]) -> Dict[str, Any]:
        formatted: Dict[str, List[Any]] = {}
        for event, matchers in hooks.items():
            editor_event = self.EVENT_MAP.get(event)
            if not editor_event:
                continue
            entries = formatted.setdefault(editor_event, [])
            for matcher in matchers:
                entries.append({
                    'matcher': TOOL_MATCHERS.get(event, matcher.get('matcher', '')),
                    'hooks': [dict(type='command', **self.format_hook(h)) for h in matcher.get('hooks', [])],
                })
        return formatted


class VSCodeHooksStrategy(ClaudeCodeHooksStrategy):
    """``.github/hooks/hooks.json``; same structure as Claude Code without SessionEnd."""

    EVENT_MAP = {k: v for k, v in CLAUDE_EVENTS.items() if k != 'session_end'}
    CONFIG_PATH = '../.github/hooks/hooks.json'


class CursorHooksStrategy(HooksStrategy):
    """``.cursor/hooks.json`` with camelCase events."""

    EVENT_MAP = {
        'pre_command': 'beforeShellExecution',
        'post_command': 'afterShellExecution',
        'pre_mcp_tool': 'beforeMCPExecution',
        'post_mcp_tool': 'afterMCPExecution',
        'post_file_write': 'afterFileEdit',
        'pre_prompt': 'beforeSubmitPrompt',
        'agent_stop': 'stop',
    }
    CONFIG_PATH = 'hooks.json'


class WindsurfHooksStrategy(HooksStrategy):
    """``.windsurf/hooks.json`` with snake_case Cascade events."""

    EVENT_MAP = {
        'pre_file_read': 'pre_read_code',
        'post_file_read': 'post_read_code',
        'pre_file_write': 'pre_write_code',
        'post_file_write': 'post_write_code',
        'pre_command': 'pre_run_command',
        'post_command': 'post_run_command',
        'pre_mcp_tool': 'pre_mcp_tool_use',
        'post_mcp_tool': 'post_mcp_tool_use',
        'pre_prompt': 'pre_user_prompt',
        'agent_stop': 'post_cascade_response',
    }
    CONFIG_PATH = 'hooks.json'

    def format_hook(self, hook: Dict[str, Any]) -> Dict[str, Any]:
        entry: Dict[str, Any] = {'command': hook['command']}
        if 'show_output' in hook:
            entry['show_output'] = hook['show_output']
        if hook.get('working_directory'):
            entry['working_directory'] = hook['working_directory']
        return entry


class KiroHooksStrategy(HooksStrategy):
    """One ``.kiro/hooks/<name>.kiro.hook`` JSON file per hook command."""

    EVENT_MAP = {
        'post_file_write': 'fileEdited',
        'pre_prompt': 'promptSubmit',
        'agent_stop': 'agentStop',
    }
    CONFIG_PATH = 'hooks'
    FILE_EXTENSION = '.kiro.hook'

    def format_hooks(self, hooks: Dict[str, Any]) -> Dict[str, Any]:
        formatted: Dict[str, Any] = {}
        for event, matchers in hooks.items():
            kiro_event = self.EVENT_MAP.get(event)
            if not kiro_event:
                continue
            index = 0
            for matcher in matchers:
                for hook in matcher.get('hooks', []):
                    name = f"{event}-hook-{index}"
                    index += 1
                    when: Dict[str, Any] = {'type': kiro_event}
                    if matcher.get('matcher'):
                        when['patterns'] = [matcher['matcher']]
                    formatted[name] = {
                        'name': name,
                        'version': '1.0.0',
                        'description': f"Hook for {event}",
                        'when': when,
                        'then': {'type': 'runCommand', 'command': hook['command']},
                    }
        return formatted

    def format_files(self, hooks: Dict[str, Any]) -> Dict[str, str]:
        return {
            f"{self.CONFIG_PATH}/{sanitize_file_name(name)}{self.FILE_EXTENSION}": to_json(hook)
            for name, hook in self.format_hooks(hooks).items()
        }


class NoHooksStrategy(HooksStrategy):
    """For editors without hooks; every event is unsupported."""

    def is_supported(self) -> bool:
        return False

    def format_config(self, hooks: Dict[str, Any]) -> str:
        return ''

    def format_files(self, hooks: Dict[str, Any]) -> Dict[str, str]:
        return {}
