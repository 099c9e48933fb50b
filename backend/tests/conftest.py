import os
import uuid

import jwt
import pytest

# Must happen before smartrunner.core.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ.pop("AUTH_SECRET", None)

from smartrunner.tracking.models import PositionSample  # noqa: E402


def make_token(user_id: str) -> str:
    return jwt.encode({"sub": user_id}, "not-checked", algorithm="HS256")


@pytest.fixture
def user_id():
    return f"user_{uuid.uuid4().hex[:8]}"


@pytest.fixture
def auth_headers(user_id):
    return {"Authorization": f"Bearer {make_token(user_id)}"}


def north_walk(n: int, step_deg: float = 0.0005, every_ms: int = 10_000, accuracy: float = 5.0):
    """n samples heading north, ~55 m apart every 10 s by default."""
    return [
        PositionSample(
            latitude=12.9716 + i * step_deg,
            longitude=77.5946,
            timestamp=1_700_000_000_000 + i * every_ms,
            accuracy=accuracy,
        )
        for i in range(n)
    ]
