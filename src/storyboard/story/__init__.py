"""
Story

This package provides the repository and service for user stories.
"""

from storyboard.story.repository import StoryRepository
from storyboard.story.service import StoryService

__all__ = ["StoryRepository", "StoryService"]
