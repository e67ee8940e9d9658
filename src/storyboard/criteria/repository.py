from typing import List, Optional

from storyboard import db

COLUMNS = "id, user_story_id, description, created_at, updated_at"
UPDATABLE_COLUMNS = ("description", "updated_at")


class CriteriaRepository:
    """
    Repository for acceptance criteria data access.
    Encapsulates all SQL and queries for the acceptance_criteria table.
    """

    def insert(self, criteria: dict) -> dict:
        """Insert one acceptance criterion. Timestamps must already be set."""
        return db.fetch_one(
            f"""
            INSERT INTO acceptance_criteria (id, user_story_id, description, created_at, updated_at)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING {COLUMNS}
            """,
            (
                criteria["id"],
                criteria["user_story_id"],
                criteria["description"],
                criteria["created_at"],
                criteria["updated_at"],
            ),
        )

    def create_batch(self, rows: List[dict]) -> List[dict]:
        """
        Insert several acceptance criteria in one transaction.

        If any insert fails none of the rows are kept.
        """
        with db.transaction():
            return [self.insert(row) for row in rows]

    def get_by_id(self, criteria_id: str) -> Optional[dict]:
        return db.fetch_one(
            f"SELECT {COLUMNS} FROM acceptance_criteria WHERE id = %s",
            (criteria_id,),
        )

    def get_by_ids(self, criteria_ids: List[str]) -> List[dict]:
        """Get the acceptance criteria whose IDs are in ``criteria_ids``."""
        if not criteria_ids:
            return []
        return db.fetch_all(
            f"SELECT {COLUMNS} FROM acceptance_criteria WHERE id = ANY(%s) ORDER BY id",
            (list(criteria_ids),),
        )

    def get_by_user_story_id(self, user_story_id: str) -> List[dict]:
        """Get all acceptance criteria for a user story, oldest first."""
        return db.fetch_all(
            f"""
            SELECT {COLUMNS}
            FROM acceptance_criteria
            WHERE user_story_id = %s
            ORDER BY created_at, id
            """,
            (user_story_id,),
        )

    def get_all(self) -> List[dict]:
        return db.fetch_all(
            f"SELECT {COLUMNS} FROM acceptance_criteria ORDER BY created_at, id"
        )

    def update(self, criteria_id: str, fields: dict) -> Optional[dict]:
        """
        Update the given columns of an acceptance criterion.
        Returns the updated row, or None if it does not exist.
        """
        unknown = set(fields) - set(UPDATABLE_COLUMNS)
        if unknown:
            raise ValueError(f"Cannot update columns: {sorted(unknown)}")
        if not fields:
            return self.get_by_id(criteria_id)

        assignments = ", ".join(f"{column} = %s" for column in fields)
        return db.fetch_one(
            f"""
            UPDATE acceptance_criteria
            SET {assignments}
            WHERE id = %s
            RETURNING {COLUMNS}
            """,
            (*fields.values(), criteria_id),
        )

    def delete(self, criteria_id: str) -> bool:
        deleted = db.execute("DELETE FROM acceptance_criteria WHERE id = %s", (criteria_id,))
        return deleted > 0

    def delete_by_user_story_id(self, user_story_id: str) -> int:
        """Delete all acceptance criteria for a user story. Returns the number deleted."""
        return db.execute(
            "DELETE FROM acceptance_criteria WHERE user_story_id = %s",
            (user_story_id,),
        )

    def search(self, query: str) -> List[dict]:
        """Case-insensitive substring search over descriptions."""
        return db.fetch_all(
            f"""
            SELECT {COLUMNS}
            FROM acceptance_criteria
            WHERE description ILIKE %s
            ORDER BY created_at, id
            """,
            (db.contains_pattern(query),),
        )

    def count(self) -> int:
        return db.fetch_value("SELECT COUNT(*) AS count FROM acceptance_criteria", default=0)

    def count_by_user_story_id(self, user_story_id: str) -> int:
        return db.fetch_value(
            "SELECT COUNT(*) AS count FROM acceptance_criteria WHERE user_story_id = %s",
            (user_story_id,),
            default=0,
        )

    def count_grouped_by_user_story(self) -> dict[str, int]:
        """
        Count acceptance criteria per user story.

        Stories without any criteria are included with a count of 0.
        """
        rows = db.fetch_all(
            """
            SELECT s.id AS user_story_id, COUNT(c.id) AS count
            FROM user_stories s
            LEFT JOIN acceptance_criteria c ON c.user_story_id = s.id
            GROUP BY s.id
            ORDER BY s.id
            """
        )
        return {row["user_story_id"]: row["count"] for row in rows}
