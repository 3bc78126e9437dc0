from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sqltutor.dataset_util import DATASET_SOURCE_ENV, load_dataset  # noqa: E402
from sqltutor.engine_util import QueryEngine  # noqa: E402
from sqltutor.session_util import START_LESSON_ENV, TutorialSession  # noqa: E402

SEEDED_ROWS = {
    "users": 5,
    "events": 3,
    "messages": 2,
    "classes": 5,
    "class_enrollments": 20,
    "class_attendance": 19,
}


@pytest.fixture
def seeded_rows() -> dict[str, int]:
    return dict(SEEDED_ROWS)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep local .env or shell configuration out of the tests."""
    monkeypatch.delenv(DATASET_SOURCE_ENV, raising=False)
    monkeypatch.delenv(START_LESSON_ENV, raising=False)


@pytest.fixture
def empty_engine() -> Iterator[QueryEngine]:
    engine = QueryEngine()
    try:
        yield engine
    finally:
        engine.close()


@pytest.fixture
def engine(empty_engine: QueryEngine) -> QueryEngine:
    load_dataset(empty_engine)
    return empty_engine


@pytest.fixture
def session() -> Iterator[TutorialSession]:
    tutorial = TutorialSession()
    assert tutorial.initialize() is True
    try:
        yield tutorial
    finally:
        tutorial.close()
