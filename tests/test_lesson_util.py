import dataclasses

import pytest

from sqltutor.engine_util import QueryEngine, QueryOk
from sqltutor.lesson_util import DATASET_TABLES, Lesson, LessonCatalog, load_lesson_catalog


def _lesson(lesson_id: int) -> Lesson:
    return Lesson(id=lesson_id, title=f"Lesson {lesson_id}", content="<p>x</p>", solution="SELECT 1;", hint="h")


def test_catalog_has_ten_sequential_lessons() -> None:
    catalog = load_lesson_catalog()
    assert len(catalog) == 10
    assert catalog.ids == list(range(1, 11))
    assert catalog.first_id == 1
    assert [l.id for l in catalog] == catalog.ids


def test_lesson_titles_in_order() -> None:
    titles = [l.title for l in load_lesson_catalog()]
    assert titles[0] == "Introduction & Basic SELECT"
    assert titles[5] == "JOIN Operations"
    assert titles[-1] == "Views and Reports"


def test_only_first_lesson_has_starter_query() -> None:
    catalog = load_lesson_catalog()
    assert catalog.get(1).starter_query == "SELECT * FROM users;"
    assert all(not l.starter_query for l in catalog if l.id != 1)


def test_every_lesson_has_content_solution_and_hint() -> None:
    for lesson in load_lesson_catalog():
        assert lesson.content.strip()
        assert lesson.solution.strip()
        assert lesson.hint.strip()


def test_overview_mentions_every_table() -> None:
    overview = load_lesson_catalog().overview
    for table in DATASET_TABLES:
        assert f"<strong>{table}</strong>" in overview


def test_every_solution_runs_and_returns_rows(engine: QueryEngine) -> None:
    for lesson in load_lesson_catalog():
        outcome = engine.execute(lesson.solution)
        assert isinstance(outcome, QueryOk), lesson.title
        assert outcome.result_sets and outcome.result_sets[0].row_count > 0, lesson.title


def test_get_unknown_lesson_returns_none() -> None:
    catalog = load_lesson_catalog()
    assert catalog.get(0) is None
    assert catalog.get(11) is None
    assert 11 not in catalog


def test_choices_round_trip_through_parse_choice() -> None:
    catalog = load_lesson_catalog()
    choices = catalog.choices()
    assert choices[2] == "3 - Sorting and Ordering"
    assert [catalog.parse_choice(c) for c in choices] == catalog.ids


@pytest.mark.parametrize("choice", [None, "", "Overview", "abc - title"])
def test_parse_choice_rejects_non_numeric(choice) -> None:
    assert load_lesson_catalog().parse_choice(choice) is None


def test_parse_choice_accepts_ids() -> None:
    catalog = load_lesson_catalog()
    assert catalog.parse_choice(4) == 4
    assert catalog.parse_choice("99") == 99


def test_catalog_sorts_lessons_by_id() -> None:
    catalog = LessonCatalog([_lesson(2), _lesson(1)])
    assert catalog.ids == [1, 2]
    assert catalog.overview == ""


@pytest.mark.parametrize("ids", [[1, 1], [1, 3], [2, 3], [0, 1]])
def test_catalog_rejects_bad_ids(ids: list[int]) -> None:
    with pytest.raises(ValueError):
        LessonCatalog([_lesson(i) for i in ids])


def test_lessons_are_immutable() -> None:
    lesson = load_lesson_catalog().get(1)
    with pytest.raises(dataclasses.FrozenInstanceError):
        lesson.title = "changed"
