"""
Prompt (slash command / workflow) formatting strategies for aix.
"""

from typing import Any, Dict, List, Optional, Tuple

from .config import get_platform
from .models import EditorPrompt
from .utils import (
    content_starts_with_heading, extract_frontmatter, parse_frontmatter_fields, render_frontmatter,
    strip_leading_heading,
)


class ParsedPrompt:
    """Content and metadata recovered from an editor prompt file."""

    def __init__(self, content: str, description: Optional[str] = None,
                 argument_hint: Optional[str] = None):
        self.content = content
        self.description = description
        self.argument_hint = argument_hint


class PromptsStrategy:
    """Base prompts strategy: ``commands/*.md`` with optional frontmatter."""

    PROMPTS_DIR = 'commands'
    FILE_EXTENSION = '.md'
    GLOBAL_PROMPTS_PATH: Optional[str] = None
    ARGUMENT_HINT_KEY = 'argument-hint'

    def is_supported(self) -> bool:
        return True

    def is_global_only(self) -> bool:
        return False

    def get_prompts_dir(self) -> str:
        return self.PROMPTS_DIR

    def get_file_extension(self) -> str:
        return self.FILE_EXTENSION

    def get_global_prompts_path(self) -> Optional[str]:
        """Global prompts directory relative to the home directory, or None."""
        return self.GLOBAL_PROMPTS_PATH

    def frontmatter_fields(self, prompt: EditorPrompt) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        if prompt.description:
            fields['description'] = prompt.description
        if prompt.argument_hint:
            fields[self.ARGUMENT_HINT_KEY] = prompt.argument_hint
        return fields

    def format_prompt(self, prompt: EditorPrompt) -> str:
        lines = render_frontmatter(self.frontmatter_fields(prompt))
        lines.append(prompt.content)
        return '\n'.join(lines)

    def detect_format(self, content: str) -> bool:
        """Check whether content looks like this editor's prompt format."""
        frontmatter, _, has_frontmatter = extract_frontmatter(content)
        if not has_frontmatter:
            return False
        return self.ARGUMENT_HINT_KEY in parse_frontmatter_fields(frontmatter)

    def parse_frontmatter(self, raw_content: str, name: Optional[str] = None) -> ParsedPrompt:
        """Split a prompt file into content, description and argument hint."""
        frontmatter, body, has_frontmatter = extract_frontmatter(raw_content)
        if not has_frontmatter:
            return ParsedPrompt(strip_leading_heading(raw_content.strip(), name))

        fields = parse_frontmatter_fields(frontmatter)
        description = fields.get('description')
        argument_hint = fields.get(self.ARGUMENT_HINT_KEY)
        return ParsedPrompt(
            strip_leading_heading(body, name),
            str(description) if description is not None else None,
            str(argument_hint) if argument_hint is not None else None,
        )

    def parse_global_prompts(self, files: Dict[str, str]) -> Tuple[Dict[str, str], List[str]]:
        """Collect prompts from a global prompts directory.

        Args:
            files: File name to content for every file in the directory

        Returns:
            Tuple of (prompt content by name, warnings)
        """
        prompts: Dict[str, str] = {}
        for file_name, content in files.items():
            if not file_name.endswith(self.FILE_EXTENSION) or not content.strip():
                continue
            prompts[file_name[:-len(self.FILE_EXTENSION)]] = content.strip()
        return prompts, []


class ClaudeCodePromptsStrategy(PromptsStrategy):
    """``.claude/commands/*.md``."""


class CursorPromptsStrategy(PromptsStrategy):
    """``.cursor/commands/*.md``: plain markdown, no frontmatter."""

    GLOBAL_PROMPTS_PATH = '.cursor/commands'

    def format_prompt(self, prompt: EditorPrompt) -> str:
        if content_starts_with_heading(prompt.content):
            return prompt.content
        lines = [f"# {prompt.name}", '']
        if prompt.description:
            lines.extend([prompt.description, ''])
        lines.append(prompt.content)
        return '\n'.join(lines)

    def detect_format(self, content: str) -> bool:
        return False

    def parse_frontmatter(self, raw_content: str, name: Optional[str] = None) -> ParsedPrompt:
        content = strip_leading_heading(raw_content.strip(), name)
        return ParsedPrompt(content)


class WindsurfPromptsStrategy(PromptsStrategy):
    """``.windsurf/workflows/*.md``: always carries a frontmatter block."""

    PROMPTS_DIR = 'workflows'
    GLOBAL_PROMPTS_PATH = '.codeium/windsurf/global_workflows'

    def format_prompt(self, prompt: EditorPrompt) -> str:
        if prompt.description:
            lines = render_frontmatter({'description': prompt.description})
        else:
            lines = ['---', '---', '']
        if not content_starts_with_heading(prompt.content):
            lines.extend([f"# {prompt.name}", ''])
        lines.append(prompt.content)
        return '\n'.join(lines)

    def detect_format(self, content: str) -> bool:
        return False


class VSCodePromptsStrategy(PromptsStrategy):
    """``.github/prompts/*.prompt.md``."""

    PROMPTS_DIR = '../.github/prompts'
    FILE_EXTENSION = '.prompt.md'
    GLOBAL_PATHS = {
        'darwin': 'Library/Application Support/Code/User/prompts',
        'linux': '.config/Code/User/prompts',
        'win32': 'AppData/Roaming/Code/User/prompts',
    }

    def get_global_prompts_path(self) -> Optional[str]:
        return self.GLOBAL_PATHS.get(get_platform())

    def detect_format(self, content: str) -> bool:
        frontmatter, _, has_frontmatter = extract_frontmatter(content)
        if not has_frontmatter:
            return False
        fields = parse_frontmatter_fields(frontmatter)
        return 'mode' in fields or 'tools' in fields


class CodexPromptsStrategy(PromptsStrategy):
    """``~/.codex/prompts/*.md``; Codex only reads prompts globally."""

    PROMPTS_DIR = ''
    GLOBAL_PROMPTS_PATH = '.codex/prompts'
    # Frontmatter keys that belong to other editors' prompt formats
    FOREIGN_KEYS = ('mode', 'tools', 'allowed-tools', 'context')

    def is_global_only(self) -> bool:
        return True

    def detect_format(self, content: str) -> bool:
        frontmatter, _, has_frontmatter = extract_frontmatter(content)
        if not has_frontmatter:
            return False
        fields = parse_frontmatter_fields(frontmatter)
        return 'description' in fields and not any(k in fields for k in self.FOREIGN_KEYS)

    def parse_global_prompts(self, files: Dict[str, str]) -> Tuple[Dict[str, str], List[str]]:
        return {}, []


class KiroPromptsStrategy(PromptsStrategy):
    """``.kiro/steering/*.md`` files with ``inclusion: manual``."""

    PROMPTS_DIR = 'steering'
    GLOBAL_PROMPTS_PATH = '.kiro/steering'
    ARGUMENT_HINT_KEY = 'argumentHint'

    def frontmatter_fields(self, prompt: EditorPrompt) -> Dict[str, Any]:
        return {'inclusion': 'manual', **super().frontmatter_fields(prompt)}

    def detect_format(self, content: str) -> bool:
        frontmatter, _, has_frontmatter = extract_frontmatter(content)
        return has_frontmatter and parse_frontmatter_fields(frontmatter).get('inclusion') == 'manual'

    def parse_global_prompts(self, files: Dict[str, str]) -> Tuple[Dict[str, str], List[str]]:
        prompts: Dict[str, str] = {}
        for file_name, content in files.items():
            if not file_name.endswith('.md') or not self.detect_format(content):
                continue
            name = file_name[:-len('.md')]
            if name.startswith('prompt-'):
                name = name[len('prompt-'):]
            prompts[name] = extract_frontmatter(content)[1]
        return prompts, []


class NoPromptsStrategy(PromptsStrategy):
    """For editors without file-based prompts."""

    PROMPTS_DIR = ''
    FILE_EXTENSION = ''

    def is_supported(self) -> bool:
        return False

    def format_prompt(self, prompt: EditorPrompt) -> str:
        return ''

    def detect_format(self, content: str) -> bool:
        return False

    def parse_global_prompts(self, files: Dict[str, Any]) -> Tuple[Dict[str, str], List[str]]:
        return {}, []
