"""
Criteria

This package provides the repository and service for acceptance criteria,
the verifiable conditions attached to a user story.
"""

from storyboard.criteria.repository import CriteriaRepository
from storyboard.criteria.service import CriteriaService

__all__ = ["CriteriaRepository", "CriteriaService"]
