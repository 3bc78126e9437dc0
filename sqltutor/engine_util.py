"""組み込みクエリエンジンユーティリティモジュール.

セッションごとにインメモリのSQLiteデータベースを保持し、SQLテキストを
文単位で順番に実行します。行を返す文ごとに結果セットを収集し、
エンジンのエラーは例外ではなく QueryError として返却します。
"""

import logging
import sqlite3
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple, Union

logger = logging.getLogger(__name__)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

# sqlite3 raises Warning instead of ProgrammingError for some misuse on older interpreters
ENGINE_ERRORS = (sqlite3.Error, sqlite3.Warning)


@dataclass(frozen=True)
class ResultSet:
    """1文の実行結果（列名と行）.

    Attributes:
        columns: 列名のリスト（重複あり得る）
        rows: 行タプルのリスト
    """

    columns: List[str]
    rows: List[Tuple] = field(default_factory=list)

    def __post_init__(self):
        width = len(self.columns)
        for idx, row in enumerate(self.rows):
            if len(row) != width:
                raise ValueError(f"Row {idx} has {len(row)} cells, expected {width}")

    @property
    def row_count(self) -> int:
        return len(self.rows)


@dataclass(frozen=True)
class QueryOk:
    result_sets: List[ResultSet] = field(default_factory=list)


@dataclass(frozen=True)
class QueryError:
    message: str


QueryOutcome = Union[QueryOk, QueryError]


def split_sql_statements(sql: str) -> List[str]:
    """SQLテキストを文単位に分割する.

    文字列リテラル、コメント、トリガー本体内のセミコロンでは分割しません。
    判定は sqlite3.complete_statement に任せます。

    Args:
        sql (str): 分割するSQL

    Returns:
        list[str]: 前後の空白を除いた文のリスト
    """
    if not sql:
        return []
    stmts = []
    buf = []
    for ch in str(sql):
        buf.append(ch)
        if ch == ";" and sqlite3.complete_statement("".join(buf)):
            st = "".join(buf).strip()
            if st.rstrip(";").strip():
                stmts.append(st)
            buf = []
    tail = "".join(buf).strip()
    if tail:
        stmts.append(tail)
    return stmts


class QueryEngine:
    """インメモリSQLiteデータベースのラッパー.

    自動コミットモードで接続するため、DDL/DMLは実行直後に反映されます。
    """

    def __init__(self, database: str = ":memory:"):
        self._database = database
        self._conn = sqlite3.connect(database, isolation_level=None, check_same_thread=False)
        logger.info(f"Query engine opened: {database}")

    @property
    def closed(self) -> bool:
        return self._conn is None

    def execute(self, sql: str) -> QueryOutcome:
        """SQLテキストを実行する.

        文は記述順に実行され、失敗した文で停止します（それ以前の文は反映済み）。

        Args:
            sql (str): 1文以上のSQL

        Returns:
            QueryOk | QueryError: 1行以上を返した文の結果セット一覧、またはエラーメッセージ
        """
        if self._conn is None:
            return QueryError("Query engine is closed")
        result_sets = []
        try:
            cursor = self._conn.cursor()
            try:
                for st in split_sql_statements(sql):
                    cursor.execute(st)
                    if cursor.description is None:
                        continue
                    cols = [d[0] for d in cursor.description]
                    rows = [tuple(r) for r in cursor.fetchall()]
                    # 0行の結果セットは返さない
                    if rows:
                        result_sets.append(ResultSet(columns=cols, rows=rows))
            finally:
                cursor.close()
        except (*ENGINE_ERRORS, UnicodeError) as e:
            # 孤立サロゲートを含む入力はUTF-8に変換できずUnicodeEncodeErrorになる
            logger.info(f"Statement failed: {e}")
            return QueryError(str(e) or e.__class__.__name__)
        return QueryOk(result_sets=result_sets)

    def run_script(self, script: str) -> int:
        """スクリプト全体を1トランザクションで実行する.

        途中で失敗した場合はロールバックし、部分的な表を残しません。

        Args:
            script (str): スキーマ定義と初期データのSQL

        Returns:
            int: 実行した文の数

        Raises:
            ValueError: 実行可能な文が含まれていない場合
            sqlite3.Error: いずれかの文が失敗した場合
        """
        statements = split_sql_statements(script)
        if not statements:
            raise ValueError("SQL script contains no statements")
        cursor = self._conn.cursor()
        try:
            cursor.execute("BEGIN")
            try:
                for st in statements:
                    cursor.execute(st)
            except ENGINE_ERRORS:
                if self._conn.in_transaction:
                    cursor.execute("ROLLBACK")
                raise
            cursor.execute("COMMIT")
        finally:
            cursor.close()
        return len(statements)

    def table_names(self) -> List[str]:
        cursor = self._conn.execute(
            "SELECT name FROM sqlite_master "
            "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )
        return [row[0] for row in cursor.fetchall()]

    def close(self):
        if self._conn is not None:
            try:
                self._conn.close()
            finally:
                self._conn = None
                logger.info(f"Query engine closed: {self._database}")


def first_result_set(result_sets: Sequence[ResultSet]):
    """最初の結果セットを返す。存在しない場合はNone."""
    return result_sets[0] if result_sets else None
