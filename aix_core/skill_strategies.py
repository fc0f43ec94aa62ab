"""
Skill installation strategies for aix.

Every strategy plans a copy of each resolved skill at ``.aix/skills/<name>``,
the project's single installed copy. Editors with native Agent Skills support
get a symlink from their own skills directory; the rest get a pointer rule
that tells the assistant where ``SKILL.md`` lives. Kiro gets a generated Power.

Strategies only plan. The directory copies and symlinks they describe are
carried out by ``apply_directory_change()`` when the adapter applies its plan.
"""

import filecmp
import os
import re
import shutil
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, List, Optional

from .config import AixPaths
from .models import Activation, EditorRule, FileChange
from .skills import MAX_WORKERS, SKILL_FILE, ParsedSkill
from .utils import read_text_if_exists, render_frontmatter

SCRIPT_EXTENSIONS = ('.sh', '.bash', '.zsh', '.py', '.rb', '.js', '.ts', '.mjs')


def trees_match(source: Path, target: Path) -> bool:
    """Check whether two directory trees hold the same files with the same content."""
    if not target.is_dir():
        return False
    comparison = filecmp.dircmp(source, target)
    if comparison.left_only or comparison.right_only or comparison.funny_files:
        return False
    _, mismatch, errors = filecmp.cmpfiles(source, target, comparison.common_files, shallow=False)
    if mismatch or errors:
        return False
    return all(trees_match(source / d, target / d) for d in comparison.common_dirs)


def resources_match(source: Path, target: Path, exclude: List[str]) -> bool:
    """Check whether every entry of source, minus excluded names, is present unchanged in target."""
    if not target.is_dir():
        return False
    for entry in source.iterdir():
        if entry.name in exclude:
            continue
        counterpart = target / entry.name
        if entry.is_dir():
            if not trees_match(entry, counterpart):
                return False
        elif not counterpart.is_file() or not filecmp.cmp(entry, counterpart, shallow=False):
            return False
    return True


def plan_skill_copy(skill: ParsedSkill, target: Path) -> FileChange:
    """Plan replacing target with a copy of the skill tree."""
    if trees_match(skill.base_path, target):
        action = 'unchanged'
    else:
        action = 'update' if target.exists() else 'create'
    return FileChange(str(target), action, f"[skill directory: {skill.base_path}]",
                      is_directory=True, category='skill', source=str(skill.base_path))


def _remove_path(path: Path):
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.is_dir():
        shutil.rmtree(path)


def copy_resources(source: Path, target: Path, exclude: List[str]):
    """Copy the entries of source into target, skipping excluded names; scripts become executable."""
    target.mkdir(parents=True, exist_ok=True)
    for entry in source.iterdir():
        if entry.name in exclude:
            continue
        destination = target / entry.name
        if entry.is_dir():
            shutil.copytree(entry, destination, dirs_exist_ok=True)
        elif entry.is_file():
            shutil.copy2(entry, destination)
            if entry.name.endswith(SCRIPT_EXTENSIONS):
                destination.chmod(0o755)


def apply_directory_change(change: FileChange):
    """Carry out a planned directory change: a symlink, a merged copy or a replaced tree."""
    path = Path(change.path)
    if change.symlink_target is not None:
        _remove_path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        os.symlink(change.symlink_target, path, target_is_directory=True)
    elif change.source is not None and change.merge:
        copy_resources(Path(change.source), path, change.exclude)
    elif change.source is not None:
        _remove_path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copytree(change.source, path, symlinks=True)


class SkillsStrategy(ABC):
    """Base skills strategy: every skill is copied to ``.aix/skills``."""

    @abstractmethod
    def is_native(self) -> bool:
        """Whether the editor reads Agent Skills from its own skills directory."""

    @abstractmethod
    def generate_skill_rules(self, skills: Dict[str, ParsedSkill]) -> List[EditorRule]:
        """Rules to add to the editor's rules for the given skills, keyed by ai.json name."""

    def get_skills_dir(self) -> str:
        return f"{AixPaths.AIX_DIR}/{AixPaths.SKILLS_DIR}"

    def plan_skill(self, name: str, skill: ParsedSkill, project_root: Path) -> List[FileChange]:
        return [plan_skill_copy(skill, AixPaths(project_root).skill_dir(name))]

    def plan_skills(self, skills: Dict[str, ParsedSkill], project_root: Path) -> List[FileChange]:
        """Plan every skill, five at a time, keeping declaration order."""
        def plan(item):
            name, skill = item
            return self.plan_skill(name, skill, Path(project_root))

        changes: List[FileChange] = []
        with ThreadPoolExecutor(max_workers=MAX_WORKERS) as executor:
            for skill_changes in executor.map(plan, skills.items()):
                changes.extend(skill_changes)
        return changes


class NativeSkillsStrategy(SkillsStrategy):
    """Symlinks ``<editor skills dir>/<name>`` to ``.aix/skills/<name>``."""

    def __init__(self, editor_skills_dir: str):
        self.editor_skills_dir = editor_skills_dir

    def is_native(self) -> bool:
        return True

    def generate_skill_rules(self, skills: Dict[str, ParsedSkill]) -> List[EditorRule]:
        return []

    def plan_skill(self, name: str, skill: ParsedSkill, project_root: Path) -> List[FileChange]:
        changes = super().plan_skill(name, skill, project_root)
        aix_skill_dir = AixPaths(project_root).skill_dir(name)

        link_path = Path(project_root) / self.editor_skills_dir / name
        target = os.path.relpath(aix_skill_dir, link_path.parent)

        if link_path.is_symlink() and os.readlink(link_path) == target:
            action = 'unchanged'
        else:
            action = 'update' if link_path.is_symlink() or link_path.exists() else 'create'

        changes.append(FileChange(str(link_path), action, f"[symlink -> {target}]",
                                  is_directory=True, category='skill', symlink_target=target))
        return changes


class PointerSkillsStrategy(SkillsStrategy):
    """Adds an always-on ``skill-<name>`` rule pointing at the installed copy."""

    def is_native(self) -> bool:
        return False

    def generate_skill_rules(self, skills: Dict[str, ParsedSkill]) -> List[EditorRule]:
        rules = []
        for name, skill in skills.items():
            frontmatter = skill.frontmatter
            description = frontmatter.get('description') or 'No description provided'
            # The copy lives under the ai.json key, which may differ from the SKILL.md name
            location = f"{self.get_skills_dir()}/{name}/"

            sections = [description]
            if frontmatter.get('compatibility'):
                sections.extend(['', f"**Compatibility**: {frontmatter['compatibility']}"])
            if frontmatter.get('license'):
                sections.extend(['', f"**License**: {frontmatter['license']}"])
            if frontmatter.get('allowed-tools'):
                sections.extend(['', f"**Allowed Tools**: {frontmatter['allowed-tools']}"])
            if frontmatter.get('metadata'):
                sections.extend(['', '## Metadata'])
                sections.extend(f"- **{k}**: {v}" for k, v in frontmatter['metadata'].items())

            sections.extend([
                '',
                '## Location',
                '',
                f"This skill is installed at `{location}`. Read the `SKILL.md` file there for full instructions.",
                '',
                '## Quick Reference',
                '',
                f"- **Instructions**: `{location}SKILL.md`",
                f"- **Scripts**: `{location}scripts/` (if available)",
                f"- **References**: `{location}references/` (if available)",
                '',
                'When you need to use this skill, read the SKILL.md file for detailed instructions.',
            ])
            rules.append(EditorRule(f"skill-{name}", '\n'.join(sections), Activation('always', description)))
        return rules


class KiroSkillsStrategy(SkillsStrategy):
    """Converts skills into Kiro Powers under ``.kiro/powers/<name>``."""

    POWERS_DIR = '.kiro/powers'
    POWER_FILE = 'POWER.md'

    def is_native(self) -> bool:
        return False

    def generate_skill_rules(self, skills: Dict[str, ParsedSkill]) -> List[EditorRule]:
        return []

    def plan_skill(self, name: str, skill: ParsedSkill, project_root: Path) -> List[FileChange]:
        changes = super().plan_skill(name, skill, project_root)

        power_dir = Path(project_root) / self.POWERS_DIR / name
        if resources_match(skill.base_path, power_dir, [SKILL_FILE]):
            action = 'unchanged'
        else:
            action = 'update' if power_dir.is_dir() else 'create'
        changes.append(FileChange(str(power_dir), action, f"[power resources: {skill.base_path}]",
                                  is_directory=True, category='skill', source=str(skill.base_path),
                                  merge=True, exclude=[SKILL_FILE]))

        power_md = power_dir / self.POWER_FILE
        content = self.generate_power_md(name, skill)
        existing = read_text_if_exists(power_md)
        if existing is None:
            action = 'create'
        else:
            action = 'unchanged' if existing == content else 'update'
        changes.append(FileChange(str(power_md), action, content, category='skill'))
        return changes

    def generate_power_md(self, name: str, skill: ParsedSkill) -> str:
        description = skill.frontmatter.get('description') or f"{name} skill converted to Kiro Power"
        frontmatter = {
            'name': name,
            'description': description,
            'keywords': ', '.join(self.generate_keywords(name, skill.frontmatter.get('description'))),
        }
        lines = render_frontmatter(frontmatter) + [
            '# Onboarding',
            '',
            f"This Power was converted from the Agent Skill: {name}",
            '',
            '## Setup',
            '',
            'To install this Power:',
            '1. Open Kiro IDE',
            '2. Navigate to Powers settings',
            f"3. Install from local directory: `{self.POWERS_DIR}/{name}/`",
            '',
            '# Workflows',
            '',
            skill.body or f"Use this Power for {name}-related tasks.",
        ]
        return '\n'.join(lines)

    def generate_keywords(self, name: str, description: Optional[str] = None) -> List[str]:
        """Up to five keywords from the skill name parts and description words."""
        keywords: List[str] = []
        for part in re.split(r'[-_]', name):
            if len(part) > 2 and part.lower() not in keywords:
                keywords.append(part.lower())
        for word in (description or '').lower().split():
            cleaned = re.sub(r'[^a-z0-9]', '', word)
            if len(cleaned) > 3 and cleaned not in keywords:
                keywords.append(cleaned)
        return keywords[:5]
