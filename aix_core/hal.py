"""
aix Hardware Abstraction Layer (HAL).

This module provides the HAL that maps every (capability, editor) pair to the
strategy that formats that capability for that editor. Supported editors are
Claude Code, Cursor, Windsurf, Zed, Codex, VS Code, GitHub Copilot and Kiro.
"""

from typing import Any, Dict, List

from .config import AixConfig
from .exceptions import InvalidEditorError
from .hook_strategies import (
    ClaudeCodeHooksStrategy, CursorHooksStrategy, KiroHooksStrategy, NoHooksStrategy,
    VSCodeHooksStrategy, WindsurfHooksStrategy,
)
from .mcp_strategies import (
    ClaudeCodeMcpStrategy, CodexMcpStrategy, KiroMcpStrategy, StandardMcpStrategy,
    VSCodeMcpStrategy, WindsurfMcpStrategy, ZedMcpStrategy,
)
from .prompt_strategies import (
    ClaudeCodePromptsStrategy, CodexPromptsStrategy, CursorPromptsStrategy, KiroPromptsStrategy,
    NoPromptsStrategy, VSCodePromptsStrategy, WindsurfPromptsStrategy,
)
from .rules_strategies import (
    ClaudeCodeRulesStrategy, CodexRulesStrategy, CopilotRulesStrategy, CursorRulesStrategy,
    KiroRulesStrategy, WindsurfRulesStrategy, ZedRulesStrategy,
)
from .skill_strategies import KiroSkillsStrategy, NativeSkillsStrategy, PointerSkillsStrategy

CAPABILITIES = ('rules', 'mcp', 'skills', 'prompts', 'hooks')


class EditorHAL:
    """Hardware Abstraction Layer (HAL) for editor configuration formats.

    Strategies are stateless, so one instance per (capability, editor) is
    shared by every adapter. GitHub Copilot reads the same files as VS Code
    and shares all of its strategies.
    """

    def __init__(self):
        """Initialize the HAL with the static strategy table."""
        vscode = {
            'rules': CopilotRulesStrategy(),
            'mcp': VSCodeMcpStrategy(),
            'skills': NativeSkillsStrategy('.github/skills'),
            'prompts': VSCodePromptsStrategy(),
            'hooks': VSCodeHooksStrategy(),
        }
        self._strategies: Dict[str, Dict[str, Any]] = {
            'claude-code': {
                'rules': ClaudeCodeRulesStrategy(),
                'mcp': ClaudeCodeMcpStrategy(),
                'skills': NativeSkillsStrategy('.claude/skills'),
                'prompts': ClaudeCodePromptsStrategy(),
                'hooks': ClaudeCodeHooksStrategy(),
            },
            'cursor': {
                'rules': CursorRulesStrategy(),
                'mcp': StandardMcpStrategy(),
                'skills': NativeSkillsStrategy('.cursor/skills'),
                'prompts': CursorPromptsStrategy(),
                'hooks': CursorHooksStrategy(),
            },
            'windsurf': {
                'rules': WindsurfRulesStrategy(),
                'mcp': WindsurfMcpStrategy(),
                'skills': NativeSkillsStrategy('.windsurf/skills'),
                'prompts': WindsurfPromptsStrategy(),
                'hooks': WindsurfHooksStrategy(),
            },
            'zed': {
                'rules': ZedRulesStrategy(),
                'mcp': ZedMcpStrategy(),
                'skills': PointerSkillsStrategy(),
                'prompts': NoPromptsStrategy(),
                'hooks': NoHooksStrategy(),
            },
            'codex': {
                'rules': CodexRulesStrategy(),
                'mcp': CodexMcpStrategy(),
                'skills': NativeSkillsStrategy('.codex/skills'),
                'prompts': CodexPromptsStrategy(),
                'hooks': NoHooksStrategy(),
            },
            'vscode': vscode,
            'copilot': vscode,
            'kiro': {
                'rules': KiroRulesStrategy(),
                'mcp': KiroMcpStrategy(),
                'skills': KiroSkillsStrategy(),
                'prompts': KiroPromptsStrategy(),
                'hooks': KiroHooksStrategy(),
            },
        }

    def get_editors(self) -> List[str]:
        return list(self._strategies.keys())

    def get_strategy(self, capability: str, editor: str) -> Any:
        """Get the strategy for a capability of an editor.

        Args:
            capability: One of CAPABILITIES
            editor: Editor name

        Returns:
            Strategy instance

        Raises:
            InvalidEditorError: If the editor is unknown
            ValueError: If the capability is unknown
        """
        if editor not in self._strategies:
            available = ', '.join(AixConfig.get_available_editors())
            raise InvalidEditorError(f"Unknown editor: {editor}. Available editors: {available}")
        if capability not in CAPABILITIES:
            raise ValueError(f"Unknown capability: {capability}")
        return self._strategies[editor][capability]

    def get_strategies(self, editor: str) -> Dict[str, Any]:
        """Get every capability strategy for an editor."""
        return {capability: self.get_strategy(capability, editor) for capability in CAPABILITIES}

    def supports(self, capability: str, editor: str) -> bool:
        """Check whether an editor supports a capability at all."""
        strategy = self.get_strategy(capability, editor)
        return getattr(strategy, 'is_supported', lambda: True)()


# Global HAL instance
_hal_instance = None


def get_hal() -> EditorHAL:
    """Get the global HAL instance (singleton pattern)."""
    global _hal_instance
    if _hal_instance is None:
        _hal_instance = EditorHAL()
    return _hal_instance
