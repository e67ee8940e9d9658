import logging
from collections import Counter
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from storyboard import db
from storyboard.config import Config, config
from storyboard.criteria.repository import CriteriaRepository
from storyboard.errors import (
    AlreadyExistsError,
    DuplicateKeyError,
    ForeignKeyError,
    LimitExceededError,
    NotFoundError,
    ParentNotFoundError,
    ValidationError,
)
from storyboard.models import CreateCriteriaRequest, UpdateCriteriaRequest
from storyboard.story.repository import StoryRepository
from storyboard.validators import validate_id, validate_text

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_LENGTH = 1000


@contextmanager
def integrity_errors(criteria_ids: str, user_story_ids: str):
    """Map constraint violations raised on insert to service errors."""
    try:
        yield
    except DuplicateKeyError as e:
        raise AlreadyExistsError(f"Acceptance criteria already exists: {criteria_ids}") from e
    except ForeignKeyError as e:
        raise ParentNotFoundError(f"User story not found: {user_story_ids}") from e


class CriteriaService:
    """
    Business rules for acceptance criteria: validation, uniqueness,
    the per-story cap, batch creation and statistics.
    """

    def __init__(self, settings: Config = None):
        self.config = settings or config
        self.repository = CriteriaRepository()
        self.stories = StoryRepository()

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    def create(self, request: CreateCriteriaRequest) -> dict:
        """Create one acceptance criterion after validating it."""
        self._validate_create(request)

        if self.repository.get_by_id(request.id) is not None:
            raise AlreadyExistsError(f"Acceptance criteria already exists: {request.id}")

        now = datetime.now(timezone.utc)
        with integrity_errors(request.id, request.user_story_id):
            with db.transaction():
                self._check_parent(request.user_story_id, adding=1)
                criteria = self.repository.insert(
                    {
                        "id": request.id,
                        "user_story_id": request.user_story_id,
                        "description": request.description,
                        "created_at": now,
                        "updated_at": now,
                    }
                )

        logger.info("Created acceptance criteria %s for %s", criteria["id"], criteria["user_story_id"])
        return criteria

    def create_batch(self, requests: List[CreateCriteriaRequest]) -> List[dict]:
        """
        Create several acceptance criteria as one unit.

        Every request is validated before anything is written. The rows are
        then inserted in a single transaction, so either all of them are
        persisted or none are.
        """
        if not requests:
            raise ValidationError("requests", "Cannot create empty batch of acceptance criteria")

        for request in requests:
            self._validate_create(request)

        ids = [request.id for request in requests]
        duplicates = sorted(i for i, n in Counter(ids).items() if n > 1)
        if duplicates:
            raise AlreadyExistsError(f"Acceptance criteria repeated in batch: {', '.join(duplicates)}")

        existing = self.repository.get_by_ids(ids)
        if existing:
            taken = ", ".join(row["id"] for row in existing)
            raise AlreadyExistsError(f"Acceptance criteria already exists: {taken}")

        per_story = Counter(request.user_story_id for request in requests)
        start = datetime.now(timezone.utc)

        with integrity_errors(", ".join(ids), ", ".join(per_story)):
            with db.transaction():
                # Lock parents in a fixed order so concurrent batches cannot deadlock
                for user_story_id in sorted(per_story):
                    self._check_parent(user_story_id, adding=per_story[user_story_id])

                rows = []
                for i, request in enumerate(requests):
                    # Strictly increasing stamps keep the request order when sorting by created_at
                    stamp = start + timedelta(microseconds=i)
                    rows.append(
                        {
                            "id": request.id,
                            "user_story_id": request.user_story_id,
                            "description": request.description,
                            "created_at": stamp,
                            "updated_at": stamp,
                        }
                    )
                created = self.repository.create_batch(rows)

        logger.info("Created %d acceptance criteria", len(created))
        return created

    # -------------------------------------------------------------------------
    # Read
    # -------------------------------------------------------------------------

    def get_by_id(self, criteria_id: str) -> Optional[dict]:
        return self.repository.get_by_id(criteria_id)

    def get_by_user_story_id(self, user_story_id: str) -> List[dict]:
        """Criteria for a user story, oldest first. Empty if the story does not exist."""
        return self.repository.get_by_user_story_id(user_story_id)

    def get_all(self) -> List[dict]:
        return self.repository.get_all()

    def search(self, query: str) -> List[dict]:
        """Substring search over descriptions. A blank query matches nothing."""
        if query is None or not query.strip():
            return []
        return self.repository.search(query)

    def count_by_user_story_id(self, user_story_id: str) -> int:
        return self.repository.count_by_user_story_id(user_story_id)

    def count_all(self) -> int:
        return self.repository.count()

    def get_statistics(self) -> dict:
        total_criteria = self.repository.count()
        total_stories = self.stories.count()
        distribution = self.repository.count_grouped_by_user_story()

        return {
            "total_criteria": total_criteria,
            "total_stories": total_stories,
            "avg_criteria_per_story": (
                total_criteria / total_stories if total_stories > 0 else 0.0
            ),
            "criteria_distribution": distribution,
        }

    # -------------------------------------------------------------------------
    # Update / Delete
    # -------------------------------------------------------------------------

    def update(self, criteria_id: str, request: UpdateCriteriaRequest) -> dict:
        """Apply a partial update and stamp updated_at."""
        existing = self.repository.get_by_id(criteria_id)
        if existing is None:
            raise NotFoundError(f"Acceptance criteria not found: {criteria_id}")

        changes = request.changes()
        if "description" in changes:
            validate_text(
                "description",
                changes["description"],
                "Acceptance criteria description",
                MAX_DESCRIPTION_LENGTH,
            )

        changes["updated_at"] = max(datetime.now(timezone.utc), existing["created_at"])
        updated = self.repository.update(criteria_id, changes)
        if updated is None:
            raise NotFoundError(f"Acceptance criteria not found: {criteria_id}")

        logger.info("Updated acceptance criteria %s", criteria_id)
        return updated

    def delete(self, criteria_id: str) -> None:
        if not self.repository.delete(criteria_id):
            raise NotFoundError(f"Acceptance criteria not found: {criteria_id}")
        logger.info("Deleted acceptance criteria %s", criteria_id)

    def delete_by_user_story_id(self, user_story_id: str) -> int:
        """Delete every criterion of a user story. Returns how many were removed."""
        deleted = self.repository.delete_by_user_story_id(user_story_id)
        logger.info("Deleted %d acceptance criteria for %s", deleted, user_story_id)
        return deleted

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _validate_create(self, request: CreateCriteriaRequest) -> None:
        validate_id("id", request.id, self.config.criteria_id_prefix, "Acceptance criteria ID")
        validate_id("user_story_id", request.user_story_id, self.config.story_id_prefix, "User story ID")
        validate_text(
            "description",
            request.description,
            "Acceptance criteria description",
            MAX_DESCRIPTION_LENGTH,
        )

    def _check_parent(self, user_story_id: str, adding: int) -> None:
        """
        Lock the parent story and make sure it can take ``adding`` more criteria.

        Must run inside a transaction.
        """
        if not self.stories.lock(user_story_id):
            logger.warning("Rejected criteria for missing user story %s", user_story_id)
            raise ParentNotFoundError(f"User story not found: {user_story_id}")

        limit = self.config.max_criteria_per_story
        existing = self.repository.count_by_user_story_id(user_story_id)
        if existing + adding > limit:
            logger.warning("User story %s is at the criteria limit (%d)", user_story_id, limit)
            raise LimitExceededError(
                f"User story {user_story_id} already has {existing} acceptance criteria. "
                f"Maximum allowed is {limit}."
            )

