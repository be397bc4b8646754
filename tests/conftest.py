"""
Pytest configuration and shared fixtures.

Provides fixtures for isolated config, sample authored content, parsed and
canonical entities, and on-disk content trees.
"""

import json
import os
from pathlib import Path
from typing import Any

import pytest

from canonsync.core.content.canonicalize import Canonicalizer
from canonsync.core.content.hashing import HashEngine
from canonsync.core.content.models import Course
from canonsync.core.content.raw import parse_course

# ==============================================================================
# Environment Fixtures
# ==============================================================================


@pytest.fixture
def clean_env(monkeypatch):
    """
    Provide a clean environment without CANONSYNC_* env vars.

    Removes all CANONSYNC_* environment variables to ensure tests
    don't inherit configuration from the system.
    """
    for key in list(os.environ.keys()):
        if key.startswith("CANONSYNC_"):
            monkeypatch.delenv(key, raising=False)

    monkeypatch.setenv("XDG_CONFIG_HOME", "/tmp/test-config")

    yield monkeypatch

    # load_layered_env writes to os.environ directly
    for key in list(os.environ.keys()):
        if key.startswith("CANONSYNC_"):
            del os.environ[key]


@pytest.fixture
def isolated_config(clean_env, tmp_path, monkeypatch):
    """
    Provide completely isolated config environment.

    Sets XDG_CONFIG_HOME and the working directory to temporary locations
    to prevent tests from loading system or user configs.
    """
    config_home = tmp_path / "config"
    config_home.mkdir()
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))

    project = tmp_path / "project"
    project.mkdir()
    monkeypatch.chdir(project)

    from canonsync.core.config import clear_cache

    clear_cache()
    yield config_home
    clear_cache()


# ==============================================================================
# Sample Data Fixtures
# ==============================================================================


def option_data(text: str, correct: bool = False, **extra: Any) -> dict[str, Any]:
    data: dict[str, Any] = {"text": text, **extra}
    if correct:
        data["correct"] = True
    return data


def question_data(text: str, *options: dict[str, Any], **extra: Any) -> dict[str, Any]:
    return {"text": text, "options": list(options), **extra}


@pytest.fixture
def sample_question_dict() -> dict[str, Any]:
    """An authored question with messy formatting."""
    return question_data(
        "  what is  2 + 2 ? ",
        option_data("four", correct=True),
        option_data("  five "),
        option_data("twenty  two"),
        source={"type": "exam", "date": "2024-07-01"},
        topic="arithmetic",
    )


@pytest.fixture
def sample_course_dict(sample_question_dict) -> dict[str, Any]:
    """An authored course with two questions."""
    return {
        "name": "Math  101",
        "short_name": "M101",
        "description": "Introductory   mathematics",
        "tags": [" basics ", ""],
        "year": 1,
        "questions": [
            sample_question_dict,
            question_data(
                "Which one is prime?",
                option_data("7", correct=True),
                option_data("8"),
                source={"type": "self_assessment"},
            ),
        ],
    }


@pytest.fixture
def sample_bundle_dict() -> dict[str, Any]:
    return {"name": "Year one", "course_keys": ["math101", " phys101 "], "discount": "0.15"}


@pytest.fixture
def sample_icon_dict() -> dict[str, Any]:
    return {"is_initial": True, "description": " A  star ", "image": "star.png"}


@pytest.fixture
def engine() -> HashEngine:
    return HashEngine()


@pytest.fixture
def canonicalizer(engine) -> Canonicalizer:
    return Canonicalizer(engine=engine)


@pytest.fixture
def course(sample_course_dict) -> Course:
    """Parsed, not yet canonical course."""
    return parse_course("math101", sample_course_dict)


@pytest.fixture
def canonical_course(canonicalizer, course) -> Course:
    return canonicalizer.course(course)


# ==============================================================================
# File Fixtures
# ==============================================================================


def write_json(path: Path, data: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2))
    return path


@pytest.fixture
def content_root(tmp_path, sample_course_dict, sample_bundle_dict, sample_icon_dict) -> Path:
    """
    Provide a content tree with one course, one bundle and one icon.

    Creates:
    - content/courses/math101.json
    - content/bundles/year1.json
    - content/icons/star.json
    """
    root = tmp_path / "content"
    write_json(root / "courses" / "math101.json", sample_course_dict)
    write_json(root / "bundles" / "year1.json", sample_bundle_dict)
    write_json(root / "icons" / "star.json", sample_icon_dict)
    return root
