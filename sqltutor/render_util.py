"""結果表示ユーティリティモジュール.

クエリ結果・エラー・空結果を、表のHTMLと1行のステータスに変換します。
すべて純粋関数で、同じ入力には同じ出力を返します。
"""

import html
from dataclasses import dataclass
from typing import Sequence

import pandas as pd

from sqltutor.engine_util import ResultSet, first_result_set

NULL_MARKER = "NULL"
PLACEHOLDER_MESSAGE = "Run a query to see results here..."
NO_RESULTS_MESSAGE = "Query executed successfully but returned no results."
QUERY_FAILED = "Query failed"
RESULTS_TABLE_CLASS = "results-table"


@dataclass(frozen=True)
class Rendered:
    """結果領域とステータス行の表示内容.

    Attributes:
        results_html: 結果領域のHTML
        status_text: ステータス行のテキスト
        failed: 失敗表示かどうか
    """

    results_html: str
    status_text: str = ""
    failed: bool = False


def cell_text(value) -> str:
    """セル値を表示用の文字列に変換する。NoneはNULLマーカー."""
    if value is None:
        return NULL_MARKER
    if isinstance(value, (bytes, bytearray)):
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError:
            return value.decode("latin1")
    # 整数値のREALは "2.0" ではなく "2" と表示する
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return str(value)


def render_table(columns: Sequence[str], rows: Sequence[Sequence], classes: str = RESULTS_TABLE_CLASS) -> str:
    """列名と行からHTMLの表を生成する.

    列名は重複も含めてそのままの順序で、行も元の順序で出力します。

    Args:
        columns: 列名
        rows: 行
        classes: tableタグに付与するCSSクラス

    Returns:
        str: エスケープ済みの表HTML
    """
    cleaned_rows = [[cell_text(v) for v in r] for r in rows]
    df = pd.DataFrame(cleaned_rows, columns=list(columns), dtype=object)
    # to_html truncates long cells to display.max_colwidth otherwise
    with pd.option_context("display.max_colwidth", None):
        return df.to_html(index=False, escape=True, border=0, classes=classes)


def _message_html(message: str) -> str:
    return f'<p class="no-results">{html.escape(message)}</p>'


def format_elapsed(elapsed_ms: float) -> str:
    return f"Query executed in {elapsed_ms:.2f}ms"


def format_row_count(count: int) -> str:
    return f"{count} row{'' if count == 1 else 's'} returned"


def render_success(result_sets: Sequence[ResultSet], elapsed_ms: float) -> Rendered:
    """成功した実行結果を表示内容に変換する.

    最初の結果セットのみ表示します。結果セットがない、または0行の場合は
    「結果なし」のメッセージと実行時間のみのステータスになります。

    Args:
        result_sets: 結果セットの一覧
        elapsed_ms: 実行時間（ミリ秒）

    Returns:
        Rendered: 表示内容
    """
    result = first_result_set(result_sets)
    if result is None or result.row_count == 0:
        return Rendered(results_html=_message_html(NO_RESULTS_MESSAGE), status_text=format_elapsed(elapsed_ms))
    table_html = render_table(result.columns, result.rows)
    status = f"{format_elapsed(elapsed_ms)} • {format_row_count(result.row_count)}"
    return Rendered(results_html=table_html, status_text=status)


def render_error(message: str) -> Rendered:
    """エラーメッセージを失敗表示に変換する。メッセージは加工しません."""
    return Rendered(results_html=_message_html(f"❌ {message}"), status_text=QUERY_FAILED, failed=True)


def render_placeholder() -> Rendered:
    return Rendered(results_html=_message_html(PLACEHOLDER_MESSAGE))


def render_status_html(rendered: Rendered) -> str:
    """ステータス行のHTML。失敗時は query-error クラスで区別します."""
    if not rendered.status_text:
        return ""
    css = "query-info query-error" if rendered.failed else "query-info"
    return f'<div class="{css}">{html.escape(rendered.status_text)}</div>'
