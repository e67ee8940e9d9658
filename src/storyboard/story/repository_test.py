"""
Integration tests for StoryRepository.

Run with: STORYBOARD_ENV=test pytest src/storyboard/story/repository_test.py -v
"""

from datetime import datetime, timedelta, timezone

import pytest

from storyboard.errors import DuplicateKeyError
from storyboard.story.repository import StoryRepository


def make_story(story_id: str, **overrides) -> dict:
    now = datetime.now(timezone.utc)
    story = {
        "id": story_id,
        "title": "A title",
        "description": "A description",
        "persona": "Tester",
        "created_at": now,
        "updated_at": now,
    }
    story.update(overrides)
    return story


class TestInsert:
    """Tests for StoryRepository.insert()"""

    def test_insert_success(self, db_connection):
        repo = StoryRepository()

        result = repo.insert(make_story("US-100", title="Checkout"))

        assert result["id"] == "US-100"
        assert result["title"] == "Checkout"
        assert result["created_at"] == result["updated_at"]

    def test_insert_duplicate_id_raises(self, db_connection):
        repo = StoryRepository()
        repo.insert(make_story("US-DUP"))

        with pytest.raises(DuplicateKeyError):
            repo.insert(make_story("US-DUP"))


class TestGetById:
    """Tests for StoryRepository.get_by_id()"""

    def test_get_by_id_success(self, db_connection, sample_stories):
        repo = StoryRepository()

        result = repo.get_by_id("US-001")

        assert result is not None
        assert result["title"] == "User Login Feature"
        assert result["persona"] == "Registered User"

    def test_get_by_id_not_found(self, db_connection):
        repo = StoryRepository()

        assert repo.get_by_id("US-404") is None


class TestGetAll:
    """Tests for StoryRepository.get_all()"""

    def test_get_all_ordered_by_created_at(self, db_connection, sample_stories):
        repo = StoryRepository()

        result = repo.get_all()

        assert [s["id"] for s in result] == ["US-001", "US-002", "US-003", "US-004", "US-005"]

    def test_get_all_empty(self, db_connection):
        repo = StoryRepository()

        assert repo.get_all() == []


class TestGetPaginated:
    """Tests for StoryRepository.get_paginated()"""

    @pytest.mark.parametrize("limit,offset,expected", [
        (2, 0, ["US-001", "US-002"]),
        (2, 2, ["US-003", "US-004"]),
        (2, 4, ["US-005"]),
        (10, 5, []),
    ])
    def test_get_paginated(self, db_connection, sample_stories, limit, offset, expected):
        repo = StoryRepository()

        result = repo.get_paginated(limit, offset)

        assert [s["id"] for s in result] == expected


class TestUpdate:
    """Tests for StoryRepository.update()"""

    def test_update_only_given_fields(self, db_connection, sample_stories):
        repo = StoryRepository()
        later = sample_stories[0]["created_at"] + timedelta(days=1)

        result = repo.update(
            "US-001",
            {"title": "Updated User Login Feature", "persona": "Updated Persona", "updated_at": later},
        )

        assert result["title"] == "Updated User Login Feature"
        assert result["persona"] == "Updated Persona"
        assert "registered user" in result["description"]
        assert result["updated_at"] == later

    def test_update_not_found(self, db_connection):
        repo = StoryRepository()

        assert repo.update("US-404", {"title": "Nope"}) is None

    def test_update_rejects_unknown_columns(self, db_connection, sample_stories):
        repo = StoryRepository()

        with pytest.raises(ValueError):
            repo.update("US-001", {"id": "US-999"})


class TestDelete:
    """Tests for StoryRepository.delete()"""

    def test_delete_removes_story_and_criteria(self, db_connection, sample_criteria):
        repo = StoryRepository()

        assert repo.delete("US-001") is True

        assert repo.get_by_id("US-001") is None
        remaining = db_connection.execute(
            "SELECT COUNT(*) FROM acceptance_criteria WHERE user_story_id = %s", ("US-001",)
        ).fetchone()[0]
        assert remaining == 0

    def test_delete_not_found(self, db_connection):
        repo = StoryRepository()

        assert repo.delete("US-404") is False


class TestSearch:
    """Tests for StoryRepository.search()"""

    @pytest.mark.parametrize("query,expected", [
        ("login", ["US-001"]),
        ("LOGIN", ["US-001"]),
        ("password", ["US-003"]),
        ("end user", ["US-005"]),
        ("account", ["US-001", "US-002", "US-003"]),
        ("nothing matches this", []),
    ])
    def test_search(self, db_connection, sample_stories, query, expected):
        repo = StoryRepository()

        result = repo.search(query)

        assert [s["id"] for s in result] == expected

    def test_search_treats_wildcards_literally(self, db_connection, sample_stories):
        repo = StoryRepository()
        repo.insert(make_story("US-PCT", title="Discount of 50% off"))

        assert [s["id"] for s in repo.search("50%")] == ["US-PCT"]
        assert repo.search("%") == [repo.get_by_id("US-PCT")]


class TestPersona:
    """Tests for persona lookups and grouping"""

    def test_get_by_persona(self, db_connection, sample_stories):
        repo = StoryRepository()

        result = repo.get_by_persona("Registered User")

        assert [s["id"] for s in result] == ["US-001", "US-003", "US-004"]

    def test_get_grouped_by_persona(self, db_connection, sample_stories):
        repo = StoryRepository()

        grouped = repo.get_grouped_by_persona()

        assert set(grouped) == {"Registered User", "New User", "End User"}
        assert [s["id"] for s in grouped["Registered User"]] == ["US-001", "US-003", "US-004"]

    def test_count_by_persona(self, db_connection, sample_stories):
        repo = StoryRepository()

        assert repo.count_by_persona() == {"End User": 1, "New User": 1, "Registered User": 3}


class TestCount:
    """Tests for StoryRepository.count()"""

    def test_count(self, db_connection, sample_stories):
        assert StoryRepository().count() == 5

    def test_count_empty(self, db_connection):
        assert StoryRepository().count() == 0
