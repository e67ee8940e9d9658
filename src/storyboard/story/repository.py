from typing import List, Optional

from storyboard import db

COLUMNS = "id, title, description, persona, created_at, updated_at"
UPDATABLE_COLUMNS = ("title", "description", "persona", "updated_at")


class StoryRepository:
    """
    Repository for user story data access.
    Encapsulates all SQL and queries for the user_stories table.

    Lookups return None (or an empty list) when nothing matches; the only
    exceptions raised are StorageError and its subclasses.
    """

    def insert(self, story: dict) -> dict:
        """Insert a user story. Timestamps must already be set."""
        return db.fetch_one(
            f"""
            INSERT INTO user_stories (id, title, description, persona, created_at, updated_at)
            VALUES (%s, %s, %s, %s, %s, %s)
            RETURNING {COLUMNS}
            """,
            (
                story["id"],
                story["title"],
                story["description"],
                story["persona"],
                story["created_at"],
                story["updated_at"],
            ),
        )

    def get_by_id(self, story_id: str) -> Optional[dict]:
        """Get a user story by ID."""
        return db.fetch_one(
            f"SELECT {COLUMNS} FROM user_stories WHERE id = %s",
            (story_id,),
        )

    def lock(self, story_id: str) -> bool:
        """
        Lock a user story row until the current transaction ends.

        Serializes concurrent writers adding acceptance criteria to the same
        story. Returns False if the story does not exist.
        """
        row = db.fetch_one(
            "SELECT id FROM user_stories WHERE id = %s FOR UPDATE",
            (story_id,),
        )
        return row is not None

    def get_all(self) -> List[dict]:
        """Get all user stories, oldest first."""
        return db.fetch_all(
            f"SELECT {COLUMNS} FROM user_stories ORDER BY created_at, id"
        )

    def get_paginated(self, limit: int, offset: int) -> List[dict]:
        """
        Get one page of user stories.

        Ordered by created_at ascending so pages stay stable across calls.
        """
        return db.fetch_all(
            f"""
            SELECT {COLUMNS}
            FROM user_stories
            ORDER BY created_at, id
            LIMIT %s OFFSET %s
            """,
            (limit, offset),
        )

    def update(self, story_id: str, fields: dict) -> Optional[dict]:
        """
        Update the given columns of a user story.

        Columns missing from ``fields`` keep their current value.
        Returns the updated row, or None if the story does not exist.
        """
        unknown = set(fields) - set(UPDATABLE_COLUMNS)
        if unknown:
            raise ValueError(f"Cannot update columns: {sorted(unknown)}")
        if not fields:
            return self.get_by_id(story_id)

        assignments = ", ".join(f"{column} = %s" for column in fields)
        return db.fetch_one(
            f"""
            UPDATE user_stories
            SET {assignments}
            WHERE id = %s
            RETURNING {COLUMNS}
            """,
            (*fields.values(), story_id),
        )

    def delete(self, story_id: str) -> bool:
        """
        Delete a user story and all of its acceptance criteria.

        Returns True if the story existed.
        """
        with db.transaction():
            db.execute(
                "DELETE FROM acceptance_criteria WHERE user_story_id = %s",
                (story_id,),
            )
            deleted = db.execute("DELETE FROM user_stories WHERE id = %s", (story_id,))
        return deleted > 0

    def search(self, query: str) -> List[dict]:
        """Case-insensitive substring search across title, description and persona."""
        pattern = db.contains_pattern(query)
        return db.fetch_all(
            f"""
            SELECT {COLUMNS}
            FROM user_stories
            WHERE title ILIKE %s OR description ILIKE %s OR persona ILIKE %s
            ORDER BY created_at, id
            """,
            (pattern, pattern, pattern),
        )

    def get_by_persona(self, persona: str) -> List[dict]:
        """Get all user stories written for a persona."""
        return db.fetch_all(
            f"""
            SELECT {COLUMNS}
            FROM user_stories
            WHERE persona = %s
            ORDER BY created_at, id
            """,
            (persona,),
        )

    def count(self) -> int:
        return db.fetch_value("SELECT COUNT(*) AS count FROM user_stories", default=0)

    def get_grouped_by_persona(self) -> dict[str, List[dict]]:
        """Map each persona to its stories, oldest first."""
        grouped: dict[str, List[dict]] = {}
        for story in self.get_all():
            grouped.setdefault(story["persona"], []).append(story)
        return grouped

    def count_by_persona(self) -> dict[str, int]:
        rows = db.fetch_all(
            """
            SELECT persona, COUNT(*) AS count
            FROM user_stories
            GROUP BY persona
            ORDER BY persona
            """
        )
        return {row["persona"]: row["count"] for row in rows}
