"""Tests for the CLI interface."""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from storybook.cli import cli
from storybook.errors import StorageUnavailable


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def patched_db(mongo_db):
    with patch("storybook.cli.get_mongo_database", return_value=mongo_db), \
         patch("storybook.cli.create_indexes") as mock_indexes:
        yield mock_indexes


class TestCLI:
    """Test the library commands."""

    def test_cli_help(self, runner):
        result = runner.invoke(cli, ['--help'])
        assert result.exit_code == 0
        assert 'backfill' in result.output
        assert 'search' in result.output

    def test_backfill_status_empty(self, runner, patched_db):
        result = runner.invoke(cli, ['backfill-status'])
        assert result.exit_code == 0
        assert 'already in the library' in result.output

    def test_backfill(self, runner, patched_db, page_service, make_spec):
        story = page_service.create_story("Lisbon Adventure", "watercolor")
        page_service.add_page(story.id, 1, "https://cdn/1.png", make_spec())

        status = runner.invoke(cli, ['backfill-status'])
        assert 'Eligible pages: 1' in status.output

        result = runner.invoke(cli, ['backfill'])

        assert result.exit_code == 0
        assert 'Added: 1' in result.output
        patched_db.assert_called_once()

    def test_backfill_storage_unavailable(self, runner, patched_db):
        patched_db.side_effect = StorageUnavailable("database offline")

        result = runner.invoke(cli, ['backfill'])

        assert result.exit_code == 1
        assert 'database offline' in result.output

    def test_search_json(self, runner, patched_db, library, make_spec):
        library.add_to_library("page-1", "https://cdn/1.png", make_spec(), "watercolor")

        result = runner.invoke(cli, [
            'search', '-c', 'Mia', '-c', 'Leo',
            '--location', 'Lisbon', '--mood', 'joyful',
            '--art-style', 'watercolor', '--as-json',
        ])

        assert result.exit_code == 0
        matches = json.loads(result.stdout)
        assert matches[0]['originatingPageId'] == 'page-1'
        assert matches[0]['matchScore'] == pytest.approx(90.0)

    def test_search_no_matches(self, runner, patched_db):
        result = runner.invoke(cli, ['search', '--mood', 'calm', '--art-style', 'watercolor'])
        assert result.exit_code == 0
        assert 'No reusable images found' in result.output

    def test_search_invalid_quality(self, runner, patched_db):
        result = runner.invoke(cli, [
            'search', '--mood', 'calm', '--art-style', 'watercolor', '--min-quality', '2',
        ])
        assert result.exit_code == 2

    def test_search_requires_mood(self, runner):
        result = runner.invoke(cli, ['search', '--art-style', 'watercolor'])
        assert result.exit_code == 2
