import dataclasses
import sqlite3

import pytest

from sqltutor.engine_util import QueryEngine
from sqltutor.lesson_util import load_lesson_catalog
from sqltutor.render_util import NO_RESULTS_MESSAGE, PLACEHOLDER_MESSAGE, QUERY_FAILED
from sqltutor.session_util import (
    EMPTY_QUERY_MESSAGE,
    FATAL_MESSAGE,
    START_LESSON_ENV,
    PreviewMode,
    SessionNotReadyError,
    SessionState,
    SessionStateError,
    TutorialSession,
)


class CountingEngine(QueryEngine):
    def __init__(self):
        super().__init__()
        self.calls = []

    def execute(self, sql):
        self.calls.append(sql)
        return super().execute(sql)


class BrokenEngine(QueryEngine):
    def run_script(self, script):
        raise sqlite3.OperationalError("disk I/O error")


def _snapshot(session: TutorialSession) -> dict:
    return dataclasses.asdict(session.view) | {"lesson": session.active_lesson_id}


def test_initialize_shows_first_lesson(session: TutorialSession) -> None:
    lesson = load_lesson_catalog().get(1)
    assert session.state is SessionState.READY
    assert session.active_lesson_id == 1
    assert session.view.content_html == lesson.content
    assert session.view.query_text == "SELECT * FROM users;"
    assert PLACEHOLDER_MESSAGE in session.view.results_html
    assert session.view.status_text == ""
    assert session.dataset_origin == "primary"


def test_initialize_twice_is_rejected(session: TutorialSession) -> None:
    with pytest.raises(SessionStateError):
        session.initialize()


def test_initialize_failure_is_fatal() -> None:
    def failing_factory():
        raise sqlite3.OperationalError("unable to open database")

    session = TutorialSession(engine_factory=failing_factory)
    assert session.initialize() is False
    assert session.state is SessionState.FATAL
    assert FATAL_MESSAGE in session.view.results_html
    assert session.view.status_failed is True
    with pytest.raises(SessionNotReadyError):
        session.switch_lesson(1)
    with pytest.raises(SessionStateError):
        session.initialize()


def test_dataset_failure_is_fatal() -> None:
    session = TutorialSession(engine_factory=BrokenEngine)
    assert session.initialize() is False
    assert session.state is SessionState.FATAL
    session.close()


def test_catalog_failure_is_fatal() -> None:
    def failing_loader():
        raise ValueError("Lesson ids must be unique")

    session = TutorialSession(catalog_loader=failing_loader)
    assert session.initialize() is False
    assert session.state is SessionState.FATAL
    session.close()


def test_actions_before_initialize_raise() -> None:
    session = TutorialSession()
    with pytest.raises(SessionNotReadyError):
        session.execute_query("SELECT 1")
    with pytest.raises(SessionNotReadyError):
        session.preview_table("users")


def test_start_lesson_argument() -> None:
    session = TutorialSession()
    session.initialize(start_lesson=None)
    assert session.active_lesson_id is None
    assert session.view.content_html == session.catalog.overview
    session.close()


@pytest.mark.parametrize("start_lesson", [7, 42, 0])
def test_start_lesson_argument_falls_back_to_first(start_lesson: int) -> None:
    session = TutorialSession()
    assert session.initialize(start_lesson=start_lesson) is True
    expected = start_lesson if start_lesson == 7 else 1
    assert session.active_lesson_id == expected
    assert session.view.content_html == session.catalog.get(expected).content
    session.close()


@pytest.mark.parametrize(
    ("value", "expected"),
    [("overview", None), ("0", None), ("4", 4), ("4 - Working with Users", 4), ("42", 1), ("junk", 1)],
)
def test_start_lesson_from_environment(monkeypatch: pytest.MonkeyPatch, value: str, expected) -> None:
    monkeypatch.setenv(START_LESSON_ENV, value)
    session = TutorialSession()
    assert session.initialize() is True
    assert session.active_lesson_id == expected
    session.close()


def test_starter_query_returns_all_users(session: TutorialSession) -> None:
    rendered = session.execute_query(session.view.query_text)
    assert rendered.failed is False
    assert rendered.status_text.startswith("Query executed in ")
    assert rendered.status_text.endswith("5 rows returned")
    assert rendered.results_html.count("<tr>") == 5
    assert session.view.results_html == rendered.results_html


@pytest.mark.parametrize("text", ["", "   ", "\n\t", None])
def test_empty_input_never_reaches_engine(text) -> None:
    session = TutorialSession(engine_factory=CountingEngine)
    session.initialize()
    before = session.view.content_html
    rendered = session.execute_query(text)
    assert rendered.failed is True
    assert EMPTY_QUERY_MESSAGE in rendered.results_html
    assert rendered.status_text == QUERY_FAILED
    assert session.engine.calls == []
    assert session.view.content_html == before
    session.close()


def test_empty_input_before_ready_shows_error() -> None:
    rendered = TutorialSession().execute_query("  ")
    assert EMPTY_QUERY_MESSAGE in rendered.results_html


def test_missing_table_reports_engine_message(session: TutorialSession) -> None:
    rendered = session.execute_query("SELECT * FROM nope_table;")
    assert rendered.failed is True
    assert rendered.status_text == QUERY_FAILED
    assert "SQL Error: no such table: nope_table" in rendered.results_html
    assert session.state is SessionState.READY


def test_statement_without_rows(session: TutorialSession) -> None:
    rendered = session.execute_query("UPDATE users SET approved = 0 WHERE id = 2")
    assert rendered.failed is False
    assert NO_RESULTS_MESSAGE in rendered.results_html
    assert "rows returned" not in rendered.status_text


def test_first_statement_with_rows_is_shown(session: TutorialSession) -> None:
    rendered = session.execute_query("SELECT * FROM users WHERE 0; SELECT 1 AS x;")
    assert rendered.failed is False
    assert rendered.results_html.count("<tr>") == 1
    assert "<th>x</th>" in rendered.results_html
    assert rendered.status_text.endswith("1 row returned")


def test_unencodable_input_is_a_query_error(session: TutorialSession) -> None:
    rendered = session.execute_query("SELECT '\ud800';")
    assert rendered.failed is True
    assert rendered.status_text == QUERY_FAILED
    assert "SQL Error: " in rendered.results_html
    assert session.state is SessionState.READY


def test_changes_persist_within_session(session: TutorialSession) -> None:
    session.execute_query(
        "INSERT INTO users (username, email, password) VALUES ('zoe', 'zoe@email.com', 'pw');"
        "SELECT COUNT(*) FROM users;"
    )
    assert "<td>6</td>" in session.view.results_html
    rendered = session.execute_query("SELECT username FROM users WHERE username = 'zoe'")
    assert rendered.status_text.endswith("1 row returned")


def test_sessions_are_isolated() -> None:
    first, second = TutorialSession(), TutorialSession()
    first.initialize()
    second.initialize()
    first.execute_query("DELETE FROM users")
    assert second.execute_query("SELECT * FROM users").status_text.endswith("5 rows returned")
    first.close()
    second.close()


def test_switch_lesson_resets_results_and_hint(session: TutorialSession) -> None:
    session.execute_query("SELECT 1")
    session.show_hint()
    session.view.query_text = "SELECT 2"
    assert session.switch_lesson(3) is True
    assert session.active_lesson_id == 3
    assert session.view.content_html == session.catalog.get(3).content
    assert PLACEHOLDER_MESSAGE in session.view.results_html
    assert session.view.status_text == ""
    assert session.view.hint_text == ""
    # No starter query on lesson 3, so typed text stays
    assert session.view.query_text == "SELECT 2"


def test_switch_lesson_is_idempotent(session: TutorialSession) -> None:
    session.switch_lesson(5)
    once = _snapshot(session)
    session.switch_lesson(5)
    assert _snapshot(session) == once


@pytest.mark.parametrize("lesson_id", [0, 11, 99, "3", None])
def test_switch_to_unknown_lesson_changes_nothing(session: TutorialSession, lesson_id) -> None:
    before = _snapshot(session)
    assert session.switch_lesson(lesson_id) is False
    assert _snapshot(session) == before


def test_show_solution_matches_manual_entry(session: TutorialSession) -> None:
    session.switch_lesson(6)
    solution = session.catalog.get(6).solution
    rendered = session.show_solution()
    assert session.view.query_text == solution
    manual = session.execute_query(solution)
    assert rendered.results_html == manual.results_html
    assert rendered.status_text.split(" • ")[1] == manual.status_text.split(" • ")[1]


def test_show_solution_on_overview_does_nothing(session: TutorialSession) -> None:
    session.show_overview()
    before = _snapshot(session)
    assert session.show_solution() is None
    assert _snapshot(session) == before


def test_show_hint(session: TutorialSession) -> None:
    assert session.show_hint() == session.catalog.get(1).hint
    session.show_overview()
    assert session.show_hint() == ""


def test_clear(session: TutorialSession) -> None:
    session.execute_query("SELECT * FROM users")
    session.clear()
    assert session.view.query_text == ""
    assert PLACEHOLDER_MESSAGE in session.view.results_html
    assert session.view.status_text == ""


def test_list_tables(session: TutorialSession, seeded_rows: dict[str, int]) -> None:
    assert session.list_tables() == sorted(seeded_rows)


def test_validator_runs_after_successful_queries_only() -> None:
    calls = []
    session = TutorialSession(query_validator=lambda lesson, query: calls.append((lesson.id, query)))
    session.initialize()
    session.execute_query("SELECT 1")
    session.execute_query("SELECT * FROM nope")
    session.show_overview()
    session.execute_query("SELECT 2")
    assert calls == [(1, "SELECT 1")]
    session.close()


def test_panel_preview_toggles(session: TutorialSession) -> None:
    session.execute_query("SELECT 1")
    results_before = session.view.rendered
    content_before = session.view.content_html

    panel = session.preview_table("users")
    assert panel.count("<tr>") == 5
    assert "Showing first" not in panel
    assert list(session.view.panels) == ["users"]

    assert session.preview_table("users") == ""
    assert session.view.panels == {}
    assert session.view.rendered == results_before
    assert session.view.content_html == content_before


def test_panel_preview_is_capped(session: TutorialSession) -> None:
    panel = session.preview_table("class_enrollments", PreviewMode.PANEL)
    assert panel.count("<tr>") == 10
    assert "Showing first 10 rows..." in panel


def test_panels_stay_open_independently(session: TutorialSession) -> None:
    session.preview_table("users")
    session.preview_table("events")
    session.preview_table("users")
    assert list(session.view.panels) == ["events"]


def test_preview_of_empty_table(session: TutorialSession) -> None:
    session.execute_query("DELETE FROM messages")
    assert "No data found" in session.preview_table("messages")


def test_preview_of_missing_table_reports_error(session: TutorialSession) -> None:
    results_before = session.view.rendered
    panel = session.preview_table("nope")
    assert "Error loading table: no such table: nope" in panel
    assert session.view.rendered == results_before


def test_replace_preview_restores_baseline(session: TutorialSession) -> None:
    baseline = session.view.content_html
    replaced = session.preview_table("class_enrollments", PreviewMode.REPLACE)
    assert replaced.startswith("<h2>📊 class_enrollments</h2>")
    assert replaced.count("<tr>") == 20
    assert "Showing first" not in replaced

    session.preview_table("users", "replace")
    assert session.view.content_html.startswith("<h2>📊 users</h2>")

    assert session.preview_table("users", PreviewMode.REPLACE) == baseline
    assert session.view.content_html == baseline


def test_replace_preview_escapes_table_name(session: TutorialSession) -> None:
    content = session.preview_table("<b>", PreviewMode.REPLACE)
    assert content.startswith("<h2>📊 &lt;b&gt;</h2>")


def test_lesson_switch_drops_replaced_preview(session: TutorialSession) -> None:
    session.preview_table("users", PreviewMode.REPLACE)
    session.switch_lesson(2)
    lesson_content = session.view.content_html
    session.preview_table("users", PreviewMode.REPLACE)
    assert session.preview_table("users", PreviewMode.REPLACE) == lesson_content
