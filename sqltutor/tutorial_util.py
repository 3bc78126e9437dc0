"""SQLチュートリアルタブユーティリティ.

レッスン選択、レッスン本文、SQL入力、実行結果、テーブルプレビューを1画面にまとめたUIを提供します。
ページ読み込み時にタブごとのセッションを生成し、gr.Stateで保持します。
"""

import html
import logging
import traceback

import gradio as gr

from sqltutor.lesson_util import DATASET_TABLES
from sqltutor.render_util import render_error, render_status_html
from sqltutor.session_util import (
    FATAL_MESSAGE,
    PreviewMode,
    SessionNotReadyError,
    TutorialSession,
)

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

PREVIEW_MODE_CHOICES = [
    ("Side panel (first 10 rows)", PreviewMode.PANEL.value),
    ("Replace lesson content", PreviewMode.REPLACE.value),
]


def _status(session):
    return render_status_html(session.view.rendered)


def _fatal_results():
    rendered = render_error(FATAL_MESSAGE)
    return rendered.results_html, render_status_html(rendered)


def _unexpected_results(action: str, e: Exception):
    logger.error(f"{action} failed: {e}")
    logger.error(traceback.format_exc())
    rendered = render_error(f"{action} failed: {e}")
    return rendered.results_html, render_status_html(rendered)


def _hint_update(session):
    text = session.view.hint_text
    return gr.Markdown(visible=bool(text), value=f"💡 **Hint:** {text}" if text else "")


def _panels_html(session) -> str:
    parts = []
    for table_name, panel_html in session.view.panels.items():
        parts.append(f'<div class="table-preview"><h4>{html.escape(table_name)}</h4>{panel_html}</div>')
    return "\n".join(parts)


def create_session(dataset_source=None) -> TutorialSession:
    """新しいセッションを生成して初期化する。失敗してもFATAL状態のセッションを返す."""
    session = TutorialSession(dataset_source=dataset_source)
    session.initialize()
    return session


def _close_session(session):
    # タブが閉じられた時にGradioから呼ばれる
    if session is not None:
        session.close()


def on_load():
    session = create_session()
    if not session.ready:
        results_html, status_html = _fatal_results()
        return (
            session,
            gr.Dropdown(choices=[], value=None, interactive=False),
            "",
            "",
            results_html,
            status_html,
            gr.Markdown(visible=False, value=""),
            gr.Dropdown(choices=[], value=None, interactive=False),
        )
    lesson = session.active_lesson
    tables = session.list_tables() or list(DATASET_TABLES)
    return (
        session,
        gr.Dropdown(choices=session.catalog.choices(), value=lesson.choice if lesson else None, interactive=True),
        session.view.content_html,
        session.view.query_text,
        session.view.results_html,
        _status(session),
        _hint_update(session),
        gr.Dropdown(choices=tables, value=tables[0] if tables else None, interactive=True),
    )


def on_execute(session, sql_text):
    if session is None:
        return _fatal_results()
    try:
        session.execute_query(sql_text)
        return session.view.results_html, _status(session)
    except SessionNotReadyError:
        return _fatal_results()
    except Exception as e:
        return _unexpected_results("Query execution", e)


def on_clear(session):
    if session is None or not session.ready:
        return ("", *_fatal_results())
    session.clear()
    return session.view.query_text, session.view.results_html, _status(session)


def on_show_solution(session, sql_text):
    if session is None or not session.ready:
        return (sql_text, *_fatal_results())
    session.view.query_text = sql_text or ""
    try:
        session.show_solution()
    except Exception as e:
        return (session.view.query_text, *_unexpected_results("Show solution", e))
    return session.view.query_text, session.view.results_html, _status(session)


def on_show_hint(session):
    if session is None or not session.ready:
        return gr.Markdown(visible=False, value="")
    session.show_hint()
    return _hint_update(session)


def on_lesson_change(session, choice, sql_text):
    if session is None or not session.ready:
        return ("", sql_text, *_fatal_results(), gr.Markdown(visible=False, value=""))
    session.view.query_text = sql_text or ""
    session.switch_lesson(session.catalog.parse_choice(choice))
    return (
        session.view.content_html,
        session.view.query_text,
        session.view.results_html,
        _status(session),
        _hint_update(session),
    )


def on_show_overview(session):
    if session is None or not session.ready:
        return (gr.Dropdown(), "", *_fatal_results(), gr.Markdown(visible=False, value=""))
    session.show_overview()
    return (
        gr.Dropdown(value=None),
        session.view.content_html,
        session.view.results_html,
        _status(session),
        _hint_update(session),
    )


def on_preview_table(session, table_name, mode):
    if session is None or not session.ready:
        return gr.HTML(), gr.HTML()
    if not table_name:
        logger.error("テーブルが未選択です")
        return session.view.content_html, _panels_html(session)
    session.preview_table(table_name, PreviewMode(mode or PreviewMode.PANEL.value))
    return session.view.content_html, _panels_html(session)


def build_tutorial_tab():
    """SQLチュートリアルのUIを構築する.

    Returns:
        list: ページ読み込み時に on_load で更新するコンポーネント（先頭はセッションを保持するgr.State）
    """
    session_state = gr.State(value=None, delete_callback=_close_session)

    with gr.Row():
        with gr.Column(scale=1):
            with gr.Accordion(label="1. Lessons", open=True):
                lesson_select = gr.Dropdown(show_label=False, choices=[], value=None, container=False)
                overview_btn = gr.Button("Overview", variant="secondary")

            with gr.Accordion(label="2. Database Tables", open=True):
                gr.Markdown("Table", elem_classes="input-label")
                table_select = gr.Dropdown(show_label=False, choices=list(DATASET_TABLES), value=None, container=False)
                preview_mode = gr.Radio(
                    label="Show data in",
                    choices=PREVIEW_MODE_CHOICES,
                    value=PreviewMode.PANEL.value,
                )
                preview_btn = gr.Button("Show / Hide Data", variant="secondary")
                panels_html = gr.HTML(value="")

        with gr.Column(scale=3):
            with gr.Accordion(label="3. Lesson", open=True):
                lesson_html = gr.HTML(value="", elem_id="lesson-text")

            with gr.Accordion(label="4. SQL Editor", open=True):
                sql_input = gr.Textbox(
                    show_label=False,
                    placeholder="Type your SQL query here... (Ctrl+Enter to run)",
                    lines=6,
                    max_lines=15,
                    interactive=True,
                    autoscroll=False,
                    container=False,
                    elem_id="sql-input",
                )
                with gr.Row():
                    clear_btn = gr.Button("Clear", variant="secondary")
                    hint_btn = gr.Button("Show Hint", variant="secondary")
                    solution_btn = gr.Button("Show Solution", variant="secondary")
                    run_btn = gr.Button("Run Query", variant="primary", elem_id="run-query")
                hint_md = gr.Markdown(visible=False)

            with gr.Accordion(label="5. Results", open=True):
                status_html = gr.HTML(value="")
                results_html = gr.HTML(value="")

    # イベントハンドラの接続
    run_btn.click(fn=on_execute, inputs=[session_state, sql_input], outputs=[results_html, status_html])
    clear_btn.click(fn=on_clear, inputs=[session_state], outputs=[sql_input, results_html, status_html])
    solution_btn.click(
        fn=on_show_solution,
        inputs=[session_state, sql_input],
        outputs=[sql_input, results_html, status_html],
    )
    hint_btn.click(fn=on_show_hint, inputs=[session_state], outputs=[hint_md])
    lesson_select.input(
        fn=on_lesson_change,
        inputs=[session_state, lesson_select, sql_input],
        outputs=[lesson_html, sql_input, results_html, status_html, hint_md],
    )
    overview_btn.click(
        fn=on_show_overview,
        inputs=[session_state],
        outputs=[lesson_select, lesson_html, results_html, status_html, hint_md],
    )
    preview_btn.click(
        fn=on_preview_table,
        inputs=[session_state, table_select, preview_mode],
        outputs=[lesson_html, panels_html],
    )

    return [
        session_state,
        lesson_select,
        lesson_html,
        sql_input,
        results_html,
        status_html,
        hint_md,
        table_select,
    ]
