"""Unit tests for the context module."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from storybook.context import LibraryContext, get_default_context


class TestLibraryContext:
    """Test cases for the LibraryContext class."""

    def test_context_initialization_defaults(self):
        """Test context initialization with default values."""
        context = LibraryContext()

        assert context.reuse_threshold == 70.0
        assert context.default_min_quality == 0.5
        assert context.default_quality_score == 0.5
        assert context.max_matches == 3
        assert context.default_mood == "joyful"
        assert context.generation_attempts == 3
        assert context.retry_delays == (1.0, 3.0)

    def test_quality_bounds(self):
        with pytest.raises(ValidationError):
            LibraryContext(default_min_quality=1.5)

    def test_max_matches_positive(self):
        with pytest.raises(ValidationError):
            LibraryContext(max_matches=0)


class TestGetDefaultContext:
    """Test environment overrides."""

    def test_no_overrides(self):
        with patch.dict(os.environ, {}, clear=True):
            assert get_default_context() == LibraryContext()

    def test_environment_overrides(self):
        env = {"STORYBOOK_REUSE_THRESHOLD": "80", "STORYBOOK_MIN_QUALITY": "0.7"}
        with patch.dict(os.environ, env, clear=True):
            context = get_default_context()

        assert context.reuse_threshold == 80.0
        assert context.default_min_quality == 0.7
