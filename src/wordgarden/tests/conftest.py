"""Test configuration."""
import os
import random
from pathlib import Path
from typing import Callable, List

import pytest
from dotenv import load_dotenv
from faker import Faker

# Set test environment before any imports
os.environ["ENV"] = "test"
os.environ.setdefault("DATABASE_URL", "sqlite://")

# Load test environment variables
test_env_path = Path(__file__).parent.parent.parent.parent / ".env.test"
load_dotenv(test_env_path)

# Import after environment setup
from wordgarden.config import ensure_directories
from wordgarden.models.progress_models import Progress, Word

fake = Faker()


@pytest.fixture(autouse=True)
def setup_test_environment():
    """Set up test environment before each test."""
    ensure_directories()
    yield


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def make_word() -> Callable[..., Word]:
    """Build words with unique ids and complete fields."""
    counter = iter(range(1, 10_000))

    def _make(level: int = 1, **overrides) -> Word:
        word_id = next(counter)
        fields = {
            "id": word_id,
            "word": f"{fake.word()}{word_id}",
            "level": level,
            "definition": fake.sentence(nb_words=6),
            "swedish": fake.word(),
            "sentence": f"The ___ {fake.sentence(nb_words=4).lower()}",
            "source": "ai",
        }
        fields.update(overrides)
        return Word(**fields)

    return _make


@pytest.fixture
def word_list(make_word) -> List[Word]:
    """Ten words per level."""
    return [make_word(level=level) for level in (1, 2, 3) for _ in range(10)]


@pytest.fixture
def progress() -> Progress:
    return Progress()

