"""
Prompt loading for aix.

Prompts are reusable slash commands / workflows. They load from the same
sources as rules; frontmatter in a prompt file supplies ``description`` and
``argument-hint`` when ai.json does not set them.
"""

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .exceptions import AixError
from .models import EditorPrompt
from .rules import MAX_WORKERS, read_entry_content
from .sources import normalize_source_ref
from .utils import parse_frontmatter

DEFAULT_PROMPT_FILE = 'prompt.md'


def load_prompt(name: str, value: Any, base_dir: Path, project_root: Optional[Path] = None) -> EditorPrompt:
    """Load a single prompt entry."""
    entry = normalize_source_ref(value) if isinstance(value, str) else value
    content, source_path = read_entry_content(
        name, entry, Path(base_dir), Path(project_root or base_dir), DEFAULT_PROMPT_FILE, 'prompt'
    )

    description = entry.get('description')
    argument_hint = entry.get('argumentHint')
    if source_path:
        frontmatter, body = parse_frontmatter(content)
        if frontmatter:
            content = body.strip()
            description = description or frontmatter.get('description')
            argument_hint = argument_hint or frontmatter.get('argument-hint')

    return EditorPrompt(name, content, description, argument_hint)


def load_prompts(prompts: Optional[Dict[str, Any]], base_dir: Path,
                 project_root: Optional[Path] = None) -> Tuple[List[EditorPrompt], Dict[str, str]]:
    """Load every enabled prompt, five at a time, keeping declaration order.

    Returns:
        Tuple of (loaded prompts, error messages by prompt name)
    """
    entries = [(name, value) for name, value in (prompts or {}).items() if value is not False]

    def load_entry(entry: Tuple[str, Any]):
        name, value = entry
        try:
            return name, load_prompt(name, value, base_dir, project_root), None
        except AixError as e:
            return name, None, f'Failed to load prompt "{name}": {e}'

    loaded: List[EditorPrompt] = []
    errors: Dict[str, str] = {}
    with ThreadPoolExecutor(max_workers=MAX_WORKERS) as executor:
        for name, prompt, error in executor.map(load_entry, entries):
            if prompt is not None:
                loaded.append(prompt)
            else:
                errors[name] = error
    return loaded, errors
