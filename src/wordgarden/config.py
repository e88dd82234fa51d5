"""Configuration settings for Word Garden."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Define base directory
BASE_DIR = Path(__file__).parent.parent.parent

# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)


# Define data directories from environment variables
DATA_DIR = Path(os.getenv("DATA_DIR", "./data"))
LOGS_DIR = DATA_DIR / "logs"

# Learning settings
LEVELS = {1: "Beginner", 2: "Intermediate", 3: "Advanced"}
REVIEW_LADDER = [(6, 14), (4, 7), (2, 2)]  # (min correct answers, days until next review)


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default)


def ensure_directories() -> None:
    """Ensure all required directories exist."""
    directories = [
        DATA_DIR,
        LOGS_DIR,
    ]

    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)


@dataclass
class PathSettings:
    """Path configuration settings."""
    base_dir: Path = BASE_DIR
    data_dir: Path = DATA_DIR
    logs_dir: Path = LOGS_DIR


@dataclass
class DatabaseSettings:
    """Local progress database settings."""
    url: str = field(default_factory=lambda: _env("DATABASE_URL", "sqlite:///wordgarden.db"))
    echo: bool = field(default_factory=lambda: _env("DATABASE_ECHO", "false").lower() == "true")


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = field(default_factory=lambda: _env("LOG_LEVEL", "INFO"))
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    dir: Optional[str] = field(default_factory=lambda: os.getenv("LOG_DIR"))
    rotation: str = field(default_factory=lambda: _env("LOG_ROTATION", "midnight"))
    interval: int = field(default_factory=lambda: int(_env("LOG_INTERVAL", "1")))
    backup_count: int = field(default_factory=lambda: int(_env("LOG_BACKUP_COUNT", "7")))


@dataclass
class StoreSettings:
    """Backing store (Supabase REST) settings."""
    url: str = field(default_factory=lambda: _env("SUPABASE_URL").rstrip("/"))
    service_role_key: str = field(default_factory=lambda: _env("SUPABASE_SERVICE_ROLE_KEY"))
    timeout: float = field(default_factory=lambda: float(_env("UPSTREAM_TIMEOUT", "30")))
    word_list_limit: int = 2000
    profile_list_limit: int = 100
    word_list_cache_ttl: float = field(default_factory=lambda: float(_env("WORD_LIST_CACHE_TTL", "60")))

    @property
    def configured(self) -> bool:
        return bool(self.url and self.service_role_key)


@dataclass
class GenerationSettings:
    """Word generation settings."""
    api_key: str = field(default_factory=lambda: _env("ANTHROPIC_API_KEY"))
    model: str = field(default_factory=lambda: _env("ANTHROPIC_MODEL", "claude-sonnet-4-6"))
    max_tokens: int = field(default_factory=lambda: int(_env("GENERATION_MAX_TOKENS", "700")))
    words_per_request: int = 12
    prompt_version: int = 1
    existing_words_limit: int = 200
    cache_ttl: float = field(default_factory=lambda: float(_env("GENERATION_CACHE_TTL", str(6 * 60 * 60))))
    raw_output_limit: int = 2000


@dataclass
class RateLimitSettings:
    """Per-client rate limits for the generation endpoint."""
    per_minute: int = field(default_factory=lambda: int(_env("RATE_LIMIT_PER_MINUTE", "6")))
    per_day: int = field(default_factory=lambda: int(_env("RATE_LIMIT_PER_DAY", "40")))
    day_retry_after: int = 60 * 60


@dataclass
class AuthSettings:
    """Shared admin secret settings."""
    admin_password: str = field(default_factory=lambda: _env("WORDGARDEN_ADMIN_PASSWORD").strip())
    min_sync_code_length: int = 6
    min_profile_code_length: int = 4


@dataclass
class ApiSettings:
    """HTTP server and client settings."""
    host: str = field(default_factory=lambda: _env("API_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(_env("API_PORT", "8000")))
    base_url: str = field(default_factory=lambda: _env("WORDGARDEN_API_URL", "http://localhost:8000"))
    metrics_port: Optional[int] = field(
        default_factory=lambda: int(os.environ["METRICS_PORT"]) if os.getenv("METRICS_PORT") else None
    )


@dataclass
class LearningSettings:
    """Learning process settings."""
    max_level: int = 3
    mastery_min_correct: int = 4
    mastery_min_ratio: float = 0.8
    weak_min_attempts: int = 2
    weak_max_ratio: float = 0.6
    weak_min_wrong: int = 2
    level_up_mastered_ratio: float = 0.7
    level_up_accuracy: float = 0.65
    level_up_min_attempted: int = 10
    review_ladder: list[tuple[int, int]] = field(default_factory=lambda: list(REVIEW_LADDER))
    default_review_days: int = 1
    learning_new_words: int = 4
    learning_review_words: int = 2
    learning_session_size: int = 6
    learning_fallback_words: int = 4
    daily_review_words: int = 2
    daily_new_words: int = 3
    daily_session_size: int = 5
    weak_drill_size: int = 8
    placement_words_per_level: dict[int, int] = field(default_factory=lambda: {1: 4, 2: 3, 3: 3})
    placement_pass_ratio: float = 0.7
    distractors: int = 3
    recent_words_limit: int = 30


@dataclass
class SyncSettings:
    """Client-side progress sync settings."""
    debounce_seconds: float = field(default_factory=lambda: float(_env("SYNC_DEBOUNCE_SECONDS", "0.9")))


def get_path_settings() -> PathSettings:
    """Get path settings."""
    return PathSettings()


def get_database_settings() -> DatabaseSettings:
    """Get database settings."""
    return DatabaseSettings()


def get_logging_settings() -> LoggingSettings:
    """Get logging settings."""
    return LoggingSettings()


def get_store_settings() -> StoreSettings:
    """Get backing store settings."""
    return StoreSettings()


def get_generation_settings() -> GenerationSettings:
    """Get generation settings."""
    return GenerationSettings()


def get_rate_limit_settings() -> RateLimitSettings:
    """Get rate limit settings."""
    return RateLimitSettings()


def get_auth_settings() -> AuthSettings:
    """Get auth settings."""
    return AuthSettings()


def get_api_settings() -> ApiSettings:
    """Get API settings."""
    return ApiSettings()


def get_learning_settings() -> LearningSettings:
    """Get learning settings."""
    return LearningSettings()


def get_sync_settings() -> SyncSettings:
    """Get sync settings."""
    return SyncSettings()


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    paths: PathSettings = field(default_factory=get_path_settings)
    database: DatabaseSettings = field(default_factory=get_database_settings)
    logging: LoggingSettings = field(default_factory=get_logging_settings)
    store: StoreSettings = field(default_factory=get_store_settings)
    generation: GenerationSettings = field(default_factory=get_generation_settings)
    rate_limit: RateLimitSettings = field(default_factory=get_rate_limit_settings)
    auth: AuthSettings = field(default_factory=get_auth_settings)
    api: ApiSettings = field(default_factory=get_api_settings)
    learning: LearningSettings = field(default_factory=get_learning_settings)
    sync: SyncSettings = field(default_factory=get_sync_settings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid.

        Missing secrets are not checked here: the endpoints report them as
        configuration errors per request.
        """
        if self.rate_limit.per_minute < 1 or self.rate_limit.per_day < 1:
            raise ValueError("RATE_LIMIT_PER_MINUTE and RATE_LIMIT_PER_DAY must be positive")

        if self.generation.cache_ttl < 0:
            raise ValueError("GENERATION_CACHE_TTL cannot be negative")

        if self.store.word_list_cache_ttl < 0:
            raise ValueError("WORD_LIST_CACHE_TTL cannot be negative")

        if self.sync.debounce_seconds < 0:
            raise ValueError("SYNC_DEBOUNCE_SECONDS cannot be negative")

        if not 0 < self.learning.mastery_min_ratio <= 1:
            raise ValueError("mastery_min_ratio must be in (0, 1]")


# Create global settings instance
settings = Settings()
settings.validate()
