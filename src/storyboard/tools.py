"""
Tool router.

Maps named operations with JSON-shaped arguments onto the story and
criteria services. Arguments are checked for structure only; the services
enforce the business rules. Every call returns a structured value:

    {"ok": True, "result": ...}
    {"ok": False, "error": {"kind": ..., "message": ...}}
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable

from storyboard.criteria.service import CriteriaService
from storyboard.errors import NotFoundError, StoryboardError, ValidationError
from storyboard.models import (
    CreateCriteriaRequest,
    CreateStoryRequest,
    UpdateCriteriaRequest,
    UpdateStoryRequest,
)
from storyboard.story.service import StoryService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    handler: Callable[["ToolRouter", dict], Any]


TOOLS: dict[str, Tool] = {}


def tool(name: str, description: str):
    """Register a handler under ``name``."""

    def decorator(func):
        TOOLS[name] = Tool(name=name, description=description, handler=func)
        return func

    return decorator


# =============================================================================
# Argument Helpers
# =============================================================================


def _str(args: dict, key: str) -> str:
    value = args.get(key)
    if value is None:
        raise ValidationError(key, f"Missing required argument: {key}")
    if not isinstance(value, str):
        raise ValidationError(key, f"Argument {key} must be a string")
    return value


def _int(args: dict, key: str, default: int = None) -> int:
    value = args.get(key, default)
    if value is None:
        raise ValidationError(key, f"Missing required argument: {key}")
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(key, f"Argument {key} must be an integer")
    return value


def _list(args: dict, key: str) -> list:
    value = args.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(key, f"Argument {key} must be a list")
    return value


def _found(value, what: str, record_id: str):
    if value is None:
        raise NotFoundError(f"{what} not found: {record_id}")
    return value


def to_json(value: Any) -> Any:
    """Convert service results into JSON-ready values."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): to_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json(v) for v in value]
    return value


# =============================================================================
# Router
# =============================================================================


class ToolRouter:
    """Dispatches tool calls to the services it was given."""

    def __init__(self, stories: StoryService = None, criteria: CriteriaService = None):
        if criteria is None:
            # Reuse the story service's criteria service
            criteria = stories.criteria if stories is not None else CriteriaService()
        self.criteria = criteria
        self.stories = stories or StoryService(criteria_service=criteria)

    def list_tools(self) -> list[dict]:
        return [{"name": t.name, "description": t.description} for t in TOOLS.values()]

    def call_tool(self, name: str, arguments: dict = None) -> dict:
        registered = TOOLS.get(name)
        if registered is None:
            return {
                "ok": False,
                "error": {"kind": "unknown_tool", "message": f"Unknown tool: {name}"},
            }

        arguments = {} if arguments is None else arguments
        try:
            if not isinstance(arguments, dict):
                raise ValidationError("arguments", "Tool arguments must be an object")
            result = registered.handler(self, arguments)
        except StoryboardError as e:
            logger.warning("Tool %s failed (%s): %s", name, e.kind, e.message)
            return {"ok": False, "error": e.to_dict()}

        return {"ok": True, "result": to_json(result)}


# =============================================================================
# User Story Tools
# =============================================================================


@tool("create_user_story", "Create a new user story with ID, title, description, and persona")
def create_user_story(router: ToolRouter, args: dict):
    return router.stories.create(CreateStoryRequest.from_dict(args))


@tool(
    "create_user_story_with_criteria",
    "Create a user story and its acceptance criteria in one step",
)
def create_user_story_with_criteria(router: ToolRouter, args: dict):
    story = CreateStoryRequest.from_dict(args.get("user_story"))
    criteria = [
        CreateCriteriaRequest.from_dict({"user_story_id": story.id, **item})
        if isinstance(item, dict)
        else CreateCriteriaRequest.from_dict(item)
        for item in _list(args, "acceptance_criteria")
    ]
    return router.stories.create_with_criteria(story, criteria)


@tool("get_user_story", "Retrieve a user story by its ID")
def get_user_story(router: ToolRouter, args: dict):
    story_id = _str(args, "id")
    return _found(router.stories.get_by_id(story_id), "User story", story_id)


@tool("get_user_story_with_criteria", "Retrieve a user story with its acceptance criteria")
def get_user_story_with_criteria(router: ToolRouter, args: dict):
    story_id = _str(args, "id")
    return _found(router.stories.get_with_criteria(story_id), "User story", story_id)


@tool("get_all_user_stories", "Get all user stories in the system")
def get_all_user_stories(router: ToolRouter, args: dict):
    if args.get("include_criteria"):
        return router.stories.get_all_with_criteria()
    return router.stories.get_all()


@tool("get_user_stories_paginated", "Get one page of user stories ordered by creation time")
def get_user_stories_paginated(router: ToolRouter, args: dict):
    return router.stories.get_paginated(_int(args, "limit"), _int(args, "offset", 0))


@tool("get_user_stories_by_persona", "Get all user stories written for a persona")
def get_user_stories_by_persona(router: ToolRouter, args: dict):
    return router.stories.get_by_persona(_str(args, "persona"))


@tool("get_user_stories_grouped_by_persona", "Get user stories grouped by persona")
def get_user_stories_grouped_by_persona(router: ToolRouter, args: dict):
    return router.stories.get_grouped_by_persona()


@tool("update_user_story", "Update the title, description, or persona of a user story")
def update_user_story(router: ToolRouter, args: dict):
    story_id = _str(args, "id")
    changes = {k: v for k, v in args.items() if k != "id"}
    return router.stories.update(story_id, UpdateStoryRequest.from_dict(changes))


@tool("delete_user_story", "Delete a user story and all of its acceptance criteria")
def delete_user_story(router: ToolRouter, args: dict):
    story_id = _str(args, "id")
    router.stories.delete(story_id)
    return {"deleted": story_id}


@tool("search_user_stories", "Search user stories by text in title, description, or persona")
def search_user_stories(router: ToolRouter, args: dict):
    return router.stories.search(_str(args, "query"))


@tool(
    "get_user_stories_statistics",
    "Get statistics about user stories including counts and metrics",
)
def get_user_stories_statistics(router: ToolRouter, args: dict):
    return router.stories.get_statistics()


# =============================================================================
# Acceptance Criteria Tools
# =============================================================================


@tool("create_acceptance_criteria", "Add an acceptance criterion to a user story")
def create_acceptance_criteria(router: ToolRouter, args: dict):
    return router.criteria.create(CreateCriteriaRequest.from_dict(args))


@tool(
    "create_acceptance_criteria_batch",
    "Add several acceptance criteria at once; either all are created or none",
)
def create_acceptance_criteria_batch(router: ToolRouter, args: dict):
    requests = [CreateCriteriaRequest.from_dict(item) for item in _list(args, "acceptance_criteria")]
    return router.criteria.create_batch(requests)


@tool("get_acceptance_criteria", "Retrieve an acceptance criterion by its ID")
def get_acceptance_criteria(router: ToolRouter, args: dict):
    criteria_id = _str(args, "id")
    return _found(router.criteria.get_by_id(criteria_id), "Acceptance criteria", criteria_id)


@tool("get_acceptance_criteria_for_story", "Get the acceptance criteria of a user story")
def get_acceptance_criteria_for_story(router: ToolRouter, args: dict):
    return router.criteria.get_by_user_story_id(_str(args, "user_story_id"))


@tool("get_all_acceptance_criteria", "Get all acceptance criteria in the system")
def get_all_acceptance_criteria(router: ToolRouter, args: dict):
    return router.criteria.get_all()


@tool("update_acceptance_criteria", "Update the description of an acceptance criterion")
def update_acceptance_criteria(router: ToolRouter, args: dict):
    criteria_id = _str(args, "id")
    changes = {k: v for k, v in args.items() if k != "id"}
    return router.criteria.update(criteria_id, UpdateCriteriaRequest.from_dict(changes))


@tool("delete_acceptance_criteria", "Delete an acceptance criterion")
def delete_acceptance_criteria(router: ToolRouter, args: dict):
    criteria_id = _str(args, "id")
    router.criteria.delete(criteria_id)
    return {"deleted": criteria_id}


@tool(
    "delete_acceptance_criteria_for_story",
    "Delete every acceptance criterion of a user story",
)
def delete_acceptance_criteria_for_story(router: ToolRouter, args: dict):
    user_story_id = _str(args, "user_story_id")
    return {"deleted_count": router.criteria.delete_by_user_story_id(user_story_id)}


@tool("search_acceptance_criteria", "Search acceptance criteria by text in the description")
def search_acceptance_criteria(router: ToolRouter, args: dict):
    return router.criteria.search(_str(args, "query"))


@tool(
    "count_acceptance_criteria_for_story",
    "Count the acceptance criteria of a user story",
)
def count_acceptance_criteria_for_story(router: ToolRouter, args: dict):
    user_story_id = _str(args, "user_story_id")
    return {"count": router.criteria.count_by_user_story_id(user_story_id)}


@tool(
    "get_acceptance_criteria_statistics",
    "Get statistics about acceptance criteria including per-story distribution",
)
def get_acceptance_criteria_statistics(router: ToolRouter, args: dict):
    return router.criteria.get_statistics()
