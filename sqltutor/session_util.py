"""チュートリアルセッションユーティリティモジュール.

ブラウザのタブごとに1つ生成されるセッションを提供します。
クエリエンジン・データセット・レッスンカタログを初期化し、
SQLの実行、レッスン切替、解答表示、テーブルプレビューを処理して
結果を表示領域（TutorialView）に反映します。
"""

import enum
import html
import logging
import os
import time
import traceback
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from sqltutor.dataset_util import load_dataset
from sqltutor.engine_util import QueryEngine, QueryError
from sqltutor.lesson_util import Lesson, LessonCatalog, load_lesson_catalog
from sqltutor.render_util import (
    Rendered,
    render_error,
    render_placeholder,
    render_success,
    render_table,
)

logger = logging.getLogger(__name__)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

START_LESSON_ENV = "SQLTUTOR_START_LESSON"
FATAL_MESSAGE = "Failed to initialize the tutorial. Please refresh the page."
EMPTY_QUERY_MESSAGE = "Please enter a SQL query."
PREVIEW_ROW_LIMIT = 10

QueryValidator = Callable[[Lesson, str], None]

_FROM_ENV = object()


class SessionState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FATAL = "fatal"


class PreviewMode(enum.Enum):
    PANEL = "panel"
    REPLACE = "replace"


class SessionNotReadyError(RuntimeError):
    """Raised when an action is requested before the session is ready."""


class SessionStateError(RuntimeError):
    """Raised when initialize() is called on a session that already started."""


@dataclass
class TutorialView:
    """画面の表示領域.

    Attributes:
        content_html: レッスン本文（またはプレビュー）領域
        results_html: 結果領域
        status_text: ステータス行
        status_failed: ステータス行が失敗表示かどうか
        query_text: SQL入力欄
        hint_text: ヒント
        panels: 開いているテーブルプレビュー {テーブル名: HTML}
    """

    content_html: str = ""
    results_html: str = ""
    status_text: str = ""
    status_failed: bool = False
    query_text: str = ""
    hint_text: str = ""
    panels: Dict[str, str] = field(default_factory=dict)

    def show(self, rendered: Rendered):
        self.results_html = rendered.results_html
        self.status_text = rendered.status_text
        self.status_failed = rendered.failed

    @property
    def rendered(self) -> Rendered:
        return Rendered(results_html=self.results_html, status_text=self.status_text, failed=self.status_failed)


def _log_query_validation(lesson: Lesson, query_text: str):
    # No expected-answer checking yet; this is where it would plug in.
    logger.debug(f"Query validation skipped for lesson {lesson.id} ({len(query_text)} chars)")


def start_lesson_from_env(catalog: LessonCatalog) -> Optional[int]:
    """環境変数から開始レッスンを決定する。0/overviewは概要表示（None）."""
    raw = os.environ.get(START_LESSON_ENV, "").strip().lower()
    if not raw:
        return catalog.first_id
    if raw in ("0", "overview"):
        return None
    lesson_id = catalog.parse_choice(raw)
    if lesson_id not in catalog:
        logger.warning(f"{START_LESSON_ENV}={raw!r} is not a lesson; starting at lesson {catalog.first_id}")
        return catalog.first_id
    return lesson_id


class TutorialSession:
    """1タブ分のチュートリアルセッション.

    Args:
        engine_factory: 空のクエリエンジンを生成する関数
        dataset_source: データセットの読み込み元（省略時は設定値）
        catalog_loader: レッスンカタログを構築する関数
        query_validator: 実行成功後に呼ばれる検証フック
    """

    def __init__(
        self,
        engine_factory: Callable[[], QueryEngine] = QueryEngine,
        dataset_source: Optional[str] = None,
        catalog_loader: Callable[[], LessonCatalog] = load_lesson_catalog,
        query_validator: Optional[QueryValidator] = None,
    ):
        self._engine_factory = engine_factory
        self._dataset_source = dataset_source
        self._catalog_loader = catalog_loader
        self._query_validator = query_validator or _log_query_validation
        self.engine: Optional[QueryEngine] = None
        self.catalog: Optional[LessonCatalog] = None
        self.state = SessionState.UNINITIALIZED
        self.active_lesson_id: Optional[int] = None
        self.dataset_origin: Optional[str] = None
        self.view = TutorialView()
        self._baseline_content: Optional[str] = None
        self._replaced_table: Optional[str] = None

    @property
    def ready(self) -> bool:
        return self.state is SessionState.READY

    @property
    def active_lesson(self) -> Optional[Lesson]:
        if self.catalog is None or self.active_lesson_id is None:
            return None
        return self.catalog.get(self.active_lesson_id)

    def initialize(self, start_lesson=_FROM_ENV) -> bool:
        """セッションを初期化する.

        エンジン取得・データ投入・カタログ読込・開始レッスン表示を順に行います。
        いずれかが失敗した場合はFATAL状態になり、再読み込みを促すメッセージを表示します。

        Args:
            start_lesson: 開始レッスンid。Noneは概要表示、省略時は環境変数またはカタログ先頭

        Returns:
            bool: READYになった場合True
        """
        if self.state is not SessionState.UNINITIALIZED:
            raise SessionStateError(f"Session already {self.state.value}")
        self.state = SessionState.INITIALIZING
        logger.info("Initializing tutorial session")
        try:
            self.engine = self._engine_factory()
            self.dataset_origin = load_dataset(self.engine, self._dataset_source)
            self.catalog = self._catalog_loader()
            if start_lesson is _FROM_ENV:
                start_lesson = start_lesson_from_env(self.catalog)
            elif start_lesson is not None and self.catalog.get(start_lesson) is None:
                logger.warning(f"Start lesson {start_lesson!r} not found; starting at lesson {self.catalog.first_id}")
                start_lesson = self.catalog.first_id
            self.state = SessionState.READY
            if start_lesson is None:
                self.show_overview()
            else:
                self.switch_lesson(start_lesson)
        except Exception as e:
            logger.error(f"Failed to initialize tutorial: {e}")
            logger.error(traceback.format_exc())
            self.state = SessionState.FATAL
            self.view.show(render_error(FATAL_MESSAGE))
            return False
        logger.info(f"Tutorial session ready (dataset: {self.dataset_origin}, lessons: {len(self.catalog)})")
        return True

    def _require_ready(self):
        if self.state is not SessionState.READY:
            raise SessionNotReadyError(f"Session is {self.state.value}")

    def _reset_results(self):
        self.view.show(render_placeholder())

    def _set_content(self, content_html: str):
        self.view.content_html = content_html
        self._baseline_content = None
        self._replaced_table = None

    def execute_query(self, query_text: str) -> Rendered:
        """SQLを実行して結果領域とステータス行を更新する.

        空入力はエンジンを呼ばずにエラー表示にします。エンジンのエラーは
        そのままのメッセージで表示し、呼び出し元へは伝播しません。

        Args:
            query_text: 入力されたSQL（複数文可）

        Returns:
            Rendered: 表示した内容
        """
        query = (query_text or "").strip()
        if not query:
            rendered = render_error(EMPTY_QUERY_MESSAGE)
            self.view.show(rendered)
            return rendered
        self._require_ready()

        t0 = time.perf_counter()
        outcome = self.engine.execute(query)
        elapsed_ms = (time.perf_counter() - t0) * 1000

        if isinstance(outcome, QueryError):
            logger.info(f"Query failed after {elapsed_ms:.2f}ms: {outcome.message}")
            rendered = render_error(f"SQL Error: {outcome.message}")
        else:
            rendered = render_success(outcome.result_sets, elapsed_ms)
            lesson = self.active_lesson
            if lesson is not None:
                self._query_validator(lesson, query)
        self.view.show(rendered)
        return rendered

    def switch_lesson(self, lesson_id) -> bool:
        """レッスンを切り替える.

        存在しないidは警告ログのみで何も変更しません。

        Args:
            lesson_id: レッスンid

        Returns:
            bool: 切り替えた場合True
        """
        self._require_ready()
        lesson = self.catalog.get(lesson_id) if isinstance(lesson_id, int) else None
        if lesson is None:
            logger.warning(f"Lesson not found: {lesson_id!r}")
            return False
        self.active_lesson_id = lesson.id
        self._set_content(lesson.content)
        self._reset_results()
        self.view.hint_text = ""
        if lesson.starter_query:
            self.view.query_text = lesson.starter_query
        logger.info(f"Loaded lesson {lesson.id}: {lesson.title}")
        return True

    def show_overview(self):
        self._require_ready()
        self.active_lesson_id = None
        self._set_content(self.catalog.overview)
        self._reset_results()
        self.view.hint_text = ""

    def show_solution(self) -> Optional[Rendered]:
        """模範解答を入力欄に設定して実行する。レッスンがない場合は何もしない."""
        self._require_ready()
        lesson = self.active_lesson
        if lesson is None or not lesson.solution:
            return None
        self.view.query_text = lesson.solution
        return self.execute_query(lesson.solution)

    def show_hint(self) -> str:
        self._require_ready()
        lesson = self.active_lesson
        if lesson is not None and lesson.hint:
            self.view.hint_text = lesson.hint
        return self.view.hint_text

    def clear(self):
        """入力欄・結果領域・ステータス行を初期状態に戻す."""
        self._require_ready()
        self.view.query_text = ""
        self._reset_results()

    def list_tables(self):
        self._require_ready()
        return self.engine.table_names()

    def _table_preview_html(self, table_name: str, limit: Optional[int]) -> str:
        sql = f"SELECT * FROM {table_name}"
        if limit is not None:
            sql += f" LIMIT {int(limit)}"
        outcome = self.engine.execute(sql)
        if isinstance(outcome, QueryError):
            logger.warning(f"Error loading table {table_name!r}: {outcome.message}")
            return render_error(f"Error loading table: {outcome.message}").results_html
        result = outcome.result_sets[0] if outcome.result_sets else None
        if result is None or result.row_count == 0:
            return '<p class="no-results">No data found</p>'
        table_html = render_table(result.columns, result.rows)
        if limit is not None and result.row_count == limit:
            table_html += f'<p class="preview-note">Showing first {limit} rows...</p>'
        return table_html

    def preview_table(self, table_name: str, mode: PreviewMode = PreviewMode.PANEL) -> str:
        """テーブルのデータ表示を切り替える.

        PANELは先頭10行をパネルに表示し、同じテーブルで再度呼ぶと閉じます。
        REPLACEはレッスン本文を全行の表で置き換え、同じテーブルで再度呼ぶと
        置き換え前の本文を復元します。結果領域とステータス行は変更しません。

        Args:
            table_name: テーブル名（検証しない）
            mode: 表示方法

        Returns:
            str: パネルのHTML（閉じた場合は空文字）、またはREPLACE後の本文HTML
        """
        self._require_ready()
        mode = PreviewMode(mode)
        if mode is PreviewMode.PANEL:
            if table_name in self.view.panels:
                del self.view.panels[table_name]
                return ""
            panel_html = self._table_preview_html(table_name, PREVIEW_ROW_LIMIT)
            self.view.panels[table_name] = panel_html
            return panel_html

        if self._replaced_table == table_name:
            self.view.content_html = self._baseline_content
            self._baseline_content = None
            self._replaced_table = None
            return self.view.content_html
        if self._replaced_table is None:
            self._baseline_content = self.view.content_html
        self._replaced_table = table_name
        self.view.content_html = f"<h2>📊 {html.escape(str(table_name))}</h2>" + self._table_preview_html(table_name, None)
        return self.view.content_html

    def close(self):
        if self.engine is not None:
            self.engine.close()
