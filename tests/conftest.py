# tests/conftest.py
"""Shared test fixtures.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

from __future__ import annotations

import os
from collections.abc import Iterator

import pytest
from hypothesis import Phase, Verbosity, settings

from datasubjects.core.storage import SubjectDB
from datasubjects.plugins.manager import PluginManager
from tests.fixtures.database import (
    create_form_tables,
    make_subject_db,
    seed_core_rows,
    seed_form_rows,
)


@pytest.fixture
def db() -> Iterator[SubjectDB]:
    """Fresh in-memory database with the core log tables (empty)."""
    database = make_subject_db()
    yield database
    database.close()


@pytest.fixture
def seeded_db() -> Iterator[SubjectDB]:
    """In-memory database with core rows and the log_form table family."""
    database = make_subject_db()
    seed_core_rows(database)
    create_form_tables(database)
    seed_form_rows(database)
    yield database
    database.close()


@pytest.fixture
def plugin_manager() -> PluginManager:
    """Plugin manager with the built-in core tables registered."""
    manager = PluginManager()
    manager.register_builtin_plugins()
    return manager


# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Load profile from environment, default to "ci"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))
