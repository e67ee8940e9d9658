import os
from dataclasses import dataclass

from dotenv import load_dotenv

# Load the appropriate .env file on module import
env = os.environ.get("STORYBOARD_ENV", "development").lower()
env_file = f".env.{env}"
if os.path.exists(env_file):
    load_dotenv(env_file)
else:
    # Fall back to the default .env file
    load_dotenv()


@dataclass
class Config:
    environment: str
    database_url: str
    story_id_prefix: str = "US-"
    criteria_id_prefix: str = "AC-"
    max_criteria_per_story: int = 20
    max_page_size: int = 100
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Config":
        return cls(
            environment=env,
            database_url=os.environ.get(
                "DATABASE_URL", f"postgresql://localhost:5432/storyboard_{env}"
            ),
            story_id_prefix=os.environ.get("STORY_ID_PREFIX", "US-"),
            criteria_id_prefix=os.environ.get("CRITERIA_ID_PREFIX", "AC-"),
            max_criteria_per_story=int(os.environ.get("MAX_CRITERIA_PER_STORY", "20")),
            max_page_size=int(os.environ.get("MAX_PAGE_SIZE", "100")),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )


config = Config.from_env()
