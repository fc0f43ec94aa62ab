"""Pytest configuration and fixtures for aix tests."""

import json
import tempfile
from pathlib import Path
from typing import Any, Dict, Generator

import pytest

from aix_core.tracking import GlobalTrackingService


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir).resolve()


@pytest.fixture(autouse=True)
def home_dir(tmp_path: Path, monkeypatch) -> Path:
    """Point aix at a throwaway home so no test touches real editor files."""
    home = tmp_path / 'home'
    home.mkdir()
    monkeypatch.setenv('AIX_HOME', str(home))
    monkeypatch.delenv('CI', raising=False)
    return home


@pytest.fixture
def project_dir(temp_dir: Path) -> Path:
    """Create an empty project directory."""
    project = temp_dir / 'project'
    project.mkdir()
    return project


@pytest.fixture
def write_ai_json(project_dir: Path):
    """Write an ai.json into the project and return its path."""
    def _write(config: Dict[str, Any], directory: Path = None) -> Path:
        path = (directory or project_dir) / 'ai.json'
        path.write_text(json.dumps(config, indent=2))
        return path
    return _write


@pytest.fixture
def tracking_service(temp_dir: Path) -> GlobalTrackingService:
    """Create a tracking service backed by a temporary file."""
    return GlobalTrackingService(temp_dir / 'tracking' / 'global-tracking.json')


@pytest.fixture
def skill_dir(temp_dir: Path) -> Path:
    """Create a valid local skill directory."""
    skill = temp_dir / 'skills' / 'pdf-tools'
    skill.mkdir(parents=True)
    (skill / 'SKILL.md').write_text("""---
name: pdf-tools
description: Work with PDF files
---

# PDF Tools

Use pdftotext to extract text.
""")
    return skill
