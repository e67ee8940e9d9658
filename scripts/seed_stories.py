"""Seed sample user stories and acceptance criteria into the database."""
from storyboard.cli import criteria_ids
from storyboard.errors import StoryboardError
from storyboard.models import CreateCriteriaRequest, CreateStoryRequest
from storyboard.story.service import StoryService

# Story numbers; the configured prefix is added when seeding
INITIAL_STORIES = [
    {
        "number": "001",
        "title": "User Login Feature",
        "description": "As a registered user, I want to log into the system so that I can access my account",
        "persona": "Registered User",
        "criteria": [
            "Given I am on the login page, When I enter valid credentials, Then I should be logged in successfully",
            "Given I am on the login page, When I enter invalid credentials, Then I should see an error message",
        ],
    },
    {
        "number": "002",
        "title": "User Registration",
        "description": "As a new user, I want to create an account so that I can access the platform",
        "persona": "New User",
        "criteria": [
            "Given I am on the registration page, When I fill out all required fields with valid data, "
            "Then my account should be created",
        ],
    },
    {
        "number": "003",
        "title": "Password Reset",
        "description": "As a user, I want to reset my password so that I can regain access to my account",
        "persona": "Registered User",
        "criteria": [
            "Given I am on the password reset page, When I enter my email, Then I should receive a reset link",
        ],
    },
]


def seed(service: StoryService) -> list[str]:
    """Create the sample stories that are missing. Returns the IDs created."""
    created = []
    for story in INITIAL_STORIES:
        story_id = f"{service.config.story_id_prefix}{story['number']}"
        if service.get_by_id(story_id):
            print(f"Skipping {story_id} - already exists")
            continue

        ids = criteria_ids(service.config, story_id, len(story["criteria"]))
        criteria = [
            CreateCriteriaRequest(id=criteria_id, user_story_id=story_id, description=text)
            for criteria_id, text in zip(ids, story["criteria"])
        ]
        request = CreateStoryRequest(
            id=story_id,
            title=story["title"],
            description=story["description"],
            persona=story["persona"],
        )

        try:
            result = service.create_with_criteria(request, criteria)
        except StoryboardError as e:
            print(f"Skipping {story_id} - {e.message}")
            continue

        created.append(result["id"])
        print(f"Created: {result['id']} with {len(result['acceptance_criteria'])} acceptance criteria")
    return created


def main():
    seed(StoryService())


if __name__ == "__main__":
    main()
