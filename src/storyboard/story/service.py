import logging
from datetime import datetime, timezone
from typing import List, Optional

from storyboard import db
from storyboard.config import Config, config
from storyboard.errors import (
    AlreadyExistsError,
    DuplicateKeyError,
    NotFoundError,
    ValidationError,
)
from storyboard.models import CreateCriteriaRequest, CreateStoryRequest, UpdateStoryRequest
from storyboard.story.repository import StoryRepository
from storyboard.validators import validate_id, validate_text

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 2000


class StoryService:
    """
    Handles business logic for user stories, using repositories for data access.

    Pure reads pass absence through (None or an empty list). Operations that
    need the story to exist (update, delete) raise NotFoundError instead.
    """

    def __init__(self, settings: Config = None, criteria_service=None):
        # Imported here because the criteria service depends on the story repository
        from storyboard.criteria.service import CriteriaService

        self.config = settings or config
        self.repository = StoryRepository()
        self.criteria = criteria_service or CriteriaService(self.config)

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    def create(self, request: CreateStoryRequest) -> dict:
        """Validate and persist a new user story."""
        self._validate_create(request)

        if self.repository.get_by_id(request.id) is not None:
            raise AlreadyExistsError(f"User story already exists: {request.id}")

        story = self._insert(request)
        logger.info("Created user story %s", story["id"])
        return story

    def create_with_criteria(
        self,
        story_request: CreateStoryRequest,
        criteria_requests: List[CreateCriteriaRequest],
    ) -> dict:
        """
        Create a user story together with its initial acceptance criteria.

        Runs as one transaction: if any criterion is rejected the story is not
        kept either.
        """
        self._validate_create(story_request)

        for criteria in criteria_requests:
            if criteria.user_story_id != story_request.id:
                raise ValidationError(
                    "user_story_id",
                    f"Acceptance criteria {criteria.id} does not belong to user story {story_request.id}",
                )

        if self.repository.get_by_id(story_request.id) is not None:
            raise AlreadyExistsError(f"User story already exists: {story_request.id}")

        with db.transaction():
            story = self._insert(story_request)
            acceptance_criteria = (
                self.criteria.create_batch(criteria_requests) if criteria_requests else []
            )

        logger.info(
            "Created user story %s with %d acceptance criteria",
            story["id"],
            len(acceptance_criteria),
        )
        return {**story, "acceptance_criteria": acceptance_criteria}

    # -------------------------------------------------------------------------
    # Read
    # -------------------------------------------------------------------------

    def get_by_id(self, story_id: str) -> Optional[dict]:
        return self.repository.get_by_id(story_id)

    def get_with_criteria(self, story_id: str) -> Optional[dict]:
        """The story plus its acceptance criteria (oldest first), or None."""
        story = self.repository.get_by_id(story_id)
        if story is None:
            return None
        return {
            **story,
            "acceptance_criteria": self.criteria.get_by_user_story_id(story_id),
        }

    def get_all(self) -> List[dict]:
        return self.repository.get_all()

    def get_all_with_criteria(self) -> List[dict]:
        stories = self.repository.get_all()
        criteria_by_story: dict[str, List[dict]] = {}
        for criteria in self.criteria.get_all():
            criteria_by_story.setdefault(criteria["user_story_id"], []).append(criteria)
        return [
            {**story, "acceptance_criteria": criteria_by_story.get(story["id"], [])}
            for story in stories
        ]

    def get_paginated(self, limit: int, offset: int = 0) -> List[dict]:
        """One page of stories ordered by creation time."""
        max_page_size = self.config.max_page_size
        if limit <= 0 or limit > max_page_size:
            raise ValidationError("limit", f"Limit must be between 1 and {max_page_size}")
        if offset < 0:
            raise ValidationError("offset", "Offset must be non-negative")
        return self.repository.get_paginated(limit, offset)

    def get_by_persona(self, persona: str) -> List[dict]:
        if persona is None or not persona.strip():
            return []
        return self.repository.get_by_persona(persona)

    def get_grouped_by_persona(self) -> dict[str, List[dict]]:
        return self.repository.get_grouped_by_persona()

    def search(self, query: str) -> List[dict]:
        """
        Case-insensitive substring search across title, description and persona.
        A blank query matches nothing.
        """
        if query is None or not query.strip():
            return []
        return self.repository.search(query)

    def get_statistics(self) -> dict:
        total_stories = self.repository.count()
        total_criteria = self.criteria.count_all()
        stories_by_persona = self.repository.count_by_persona()

        return {
            "total_stories": total_stories,
            "total_criteria": total_criteria,
            "personas_count": len(stories_by_persona),
            "avg_criteria_per_story": (
                total_criteria / total_stories if total_stories > 0 else 0.0
            ),
            "stories_by_persona": stories_by_persona,
        }

    # -------------------------------------------------------------------------
    # Update / Delete
    # -------------------------------------------------------------------------

    def update(self, story_id: str, request: UpdateStoryRequest) -> dict:
        """Apply the supplied fields and stamp updated_at."""
        existing = self.repository.get_by_id(story_id)
        if existing is None:
            raise NotFoundError(f"User story not found: {story_id}")

        changes = request.changes()
        self._validate_changes(changes)

        changes["updated_at"] = max(datetime.now(timezone.utc), existing["created_at"])
        updated = self.repository.update(story_id, changes)
        if updated is None:
            raise NotFoundError(f"User story not found: {story_id}")

        logger.info("Updated user story %s (%s)", story_id, ", ".join(request.changes()) or "touch")
        return updated

    def delete(self, story_id: str) -> None:
        """Delete a user story and, with it, all of its acceptance criteria."""
        if not self.repository.delete(story_id):
            raise NotFoundError(f"User story not found: {story_id}")
        logger.info("Deleted user story %s", story_id)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _insert(self, request: CreateStoryRequest) -> dict:
        now = datetime.now(timezone.utc)
        try:
            return self.repository.insert(
                {
                    "id": request.id,
                    "title": request.title,
                    "description": request.description,
                    "persona": request.persona,
                    "created_at": now,
                    "updated_at": now,
                }
            )
        except DuplicateKeyError as e:
            # Lost a race with a concurrent create
            raise AlreadyExistsError(f"User story already exists: {request.id}") from e

    def _validate_create(self, request: CreateStoryRequest) -> None:
        validate_id("id", request.id, self.config.story_id_prefix, "User story ID")
        self._validate_changes(
            {
                "title": request.title,
                "description": request.description,
                "persona": request.persona,
            }
        )

    @staticmethod
    def _validate_changes(fields: dict) -> None:
        if "title" in fields:
            validate_text("title", fields["title"], "User story title", MAX_TITLE_LENGTH)
        if "description" in fields:
            validate_text(
                "description",
                fields["description"],
                "User story description",
                MAX_DESCRIPTION_LENGTH,
            )
        if "persona" in fields:
            validate_text("persona", fields["persona"], "User story persona")
