"""データセット読み込みユーティリティモジュール.

スキーマと初期データのSQLスクリプトを、同梱ファイル（既定）・ローカルパス・HTTPのURL
のいずれかから読み込み、新しいクエリエンジンに1回だけ実行します。
読み込みに失敗した場合は、同じ表と初期データを定義するインラインのスクリプトを使用します。
"""

import logging
import os
import sqlite3
from pathlib import Path
from typing import Optional

import httpx

from sqltutor.engine_util import QueryEngine

logger = logging.getLogger(__name__)

DATASET_SOURCE_ENV = "SQLTUTOR_DATASET_SOURCE"
BUNDLED_DATASET = Path(__file__).resolve().parent / "data" / "community_center.sql"
FETCH_TIMEOUT = 10.0

PRIMARY = "primary"
FALLBACK = "fallback"


class DatasetLoadError(RuntimeError):
    """主スクリプトとフォールバックの両方が読み込めなかった場合の例外."""


FALLBACK_SCRIPT = """
-- Community Center Database Schema (inline fallback)
CREATE TABLE users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username VARCHAR(80) NOT NULL UNIQUE,
    email VARCHAR(120) NOT NULL UNIQUE,
    password VARCHAR(255) NOT NULL,
    user_type TEXT CHECK(user_type IN ('visitor','worker')) NOT NULL DEFAULT 'visitor',
    approved BOOLEAN NOT NULL DEFAULT 0,
    created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title VARCHAR(150) NOT NULL,
    description TEXT,
    event_date DATE NOT NULL,
    event_time TIME NOT NULL,
    location VARCHAR(200),
    created_by INTEGER,
    created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (created_by) REFERENCES users(id)
);

CREATE TABLE messages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER,
    subject VARCHAR(100) NOT NULL,
    content TEXT NOT NULL,
    senderName VARCHAR(50) NOT NULL,
    senderUsername VARCHAR(80) NOT NULL,
    recipientWorker VARCHAR(80) NOT NULL,
    timestamp DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
    status VARCHAR(20) NOT NULL DEFAULT 'sent',
    responses TEXT,
    created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (user_id) REFERENCES users(id)
);

CREATE TABLE classes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    teacher_id INTEGER NOT NULL,
    name VARCHAR(100) NOT NULL,
    subject TEXT CHECK(subject IN ('fitness', 'arts', 'education', 'social', 'senior', 'youth', 'other')) NOT NULL DEFAULT 'other',
    description TEXT,
    capacity INTEGER NOT NULL DEFAULT 20,
    schedule VARCHAR(200),
    status TEXT CHECK(status IN ('active', 'completed', 'cancelled')) NOT NULL DEFAULT 'active',
    created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (teacher_id) REFERENCES users(id)
);

CREATE TABLE class_enrollments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    class_id INTEGER NOT NULL,
    student_id INTEGER,
    student_name VARCHAR(100) NOT NULL,
    student_email VARCHAR(120),
    student_phone VARCHAR(20),
    enrollment_date DATE NOT NULL DEFAULT (date('now')),
    status TEXT CHECK(status IN ('active', 'completed', 'dropped', 'waitlist')) NOT NULL DEFAULT 'active',
    notes TEXT,
    created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (class_id) REFERENCES classes(id),
    FOREIGN KEY (student_id) REFERENCES users(id)
);

CREATE TABLE class_attendance (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    class_id INTEGER NOT NULL,
    student_id INTEGER,
    student_name VARCHAR(100) NOT NULL,
    attendance_date DATE NOT NULL,
    status TEXT CHECK(status IN ('present', 'absent', 'late', 'excused')) NOT NULL DEFAULT 'present',
    notes TEXT,
    recorded_by INTEGER NOT NULL,
    recorded_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (class_id) REFERENCES classes(id),
    FOREIGN KEY (student_id) REFERENCES users(id),
    FOREIGN KEY (recorded_by) REFERENCES users(id)
);

-- Sample Data
INSERT INTO users (username, email, password, user_type, approved) VALUES
('teacher_admin', 'teacher@community.com', 'password123', 'worker', 1),
('john_student', 'john@email.com', 'password123', 'visitor', 1),
('mary_student', 'mary@email.com', 'password123', 'visitor', 1),
('david_student', 'david@email.com', 'password123', 'visitor', 1),
('sarah_student', 'sarah@email.com', 'password123', 'visitor', 1);

INSERT INTO events (title, description, event_date, event_time, location, created_by) VALUES
('Community Breakfast', 'Monthly community breakfast for all ages', '2025-11-15', '09:00:00', 'Main Hall', 1),
('Holiday Party', 'End of year celebration', '2025-12-15', '18:00:00', 'Main Hall', 1),
('New Year Workshop', 'Goal setting for the new year', '2025-12-30', '14:00:00', 'Conference Room', 1);

INSERT INTO messages (user_id, subject, content, senderName, senderUsername, recipientWorker, timestamp, status) VALUES
(2, 'Class Schedule Question', 'What time does the yoga class start on Mondays?', 'John Smith', 'john_student', 'teacher_admin', datetime('now'), 'sent'),
(3, 'Registration Help', 'I need help registering for the art class', 'Mary Johnson', 'mary_student', 'teacher_admin', datetime('now'), 'sent');

INSERT INTO classes (teacher_id, name, subject, description, capacity, schedule) VALUES
(1, 'Beginner Yoga', 'fitness', 'Gentle yoga for beginners and seniors', 20, 'Mondays & Wednesdays 10-11 AM'),
(1, 'Senior Art Class', 'arts', 'Watercolor painting and drawing for seniors', 12, 'Tuesdays 2-4 PM'),
(1, 'Computer Skills', 'education', 'Basic computer and internet skills', 15, 'Thursdays 10-12 PM'),
(1, 'Youth Basketball', 'youth', 'Basketball skills and games for youth', 16, 'Saturdays 9-11 AM'),
(1, 'Book Club', 'social', 'Monthly book discussions', 10, 'First Friday of each month 7-8 PM');

INSERT INTO class_enrollments (class_id, student_id, student_name, student_email, student_phone) VALUES
(1, 2, 'John Smith', 'john@email.com', '555-0101'),
(1, 3, 'Mary Johnson', 'mary@email.com', '555-0102'),
(1, 4, 'David Wilson', 'david@email.com', '555-0103'),
(1, NULL, 'Alice Brown', 'alice@email.com', '555-0104'),
(1, NULL, 'Robert Davis', 'robert@email.com', '555-0105'),
(2, 3, 'Mary Johnson', 'mary@email.com', '555-0102'),
(2, NULL, 'Helen Wilson', 'helen@email.com', '555-0106'),
(2, NULL, 'Frank Miller', 'frank@email.com', '555-0107'),
(2, NULL, 'Betty White', 'betty@email.com', '555-0108'),
(3, 2, 'John Smith', 'john@email.com', '555-0101'),
(3, 4, 'David Wilson', 'david@email.com', '555-0103'),
(3, 5, 'Sarah Davis', 'sarah@email.com', '555-0109'),
(3, NULL, 'Tom Anderson', 'tom@email.com', '555-0110'),
(3, NULL, 'Linda Garcia', 'linda@email.com', '555-0111'),
(4, NULL, 'Jake Martinez', 'jake@email.com', '555-0112'),
(4, NULL, 'Emma Thompson', 'emma@email.com', '555-0113'),
(4, NULL, 'Noah Rodriguez', 'noah@email.com', '555-0114'),
(5, 2, 'John Smith', 'john@email.com', '555-0101'),
(5, 3, 'Mary Johnson', 'mary@email.com', '555-0102'),
(5, NULL, 'Patricia Lee', 'patricia@email.com', '555-0115');

INSERT INTO class_attendance (class_id, student_id, student_name, attendance_date, status, recorded_by) VALUES
(1, 2, 'John Smith', '2025-10-28', 'present', 1),
(1, 3, 'Mary Johnson', '2025-10-28', 'present', 1),
(1, 4, 'David Wilson', '2025-10-28', 'absent', 1),
(1, NULL, 'Alice Brown', '2025-10-28', 'present', 1),
(1, NULL, 'Robert Davis', '2025-10-28', 'late', 1),
(1, 2, 'John Smith', '2025-10-30', 'present', 1),
(1, 3, 'Mary Johnson', '2025-10-30', 'present', 1),
(1, 4, 'David Wilson', '2025-10-30', 'present', 1),
(1, NULL, 'Alice Brown', '2025-10-30', 'present', 1),
(1, NULL, 'Robert Davis', '2025-10-30', 'absent', 1),
(2, 3, 'Mary Johnson', '2025-10-29', 'present', 1),
(2, NULL, 'Helen Wilson', '2025-10-29', 'present', 1),
(2, NULL, 'Frank Miller', '2025-10-29', 'absent', 1),
(2, NULL, 'Betty White', '2025-10-29', 'present', 1),
(3, 2, 'John Smith', '2025-10-31', 'present', 1),
(3, 4, 'David Wilson', '2025-10-31', 'present', 1),
(3, 5, 'Sarah Davis', '2025-10-31', 'late', 1),
(3, NULL, 'Tom Anderson', '2025-10-31', 'present', 1),
(3, NULL, 'Linda Garcia', '2025-10-31', 'absent', 1);
""".strip()


def resolve_source(source: Optional[str] = None) -> str:
    """読み込み元を決定する。引数、環境変数、同梱ファイルの順に優先."""
    if source:
        return str(source)
    configured = os.environ.get(DATASET_SOURCE_ENV, "").strip()
    if configured:
        return configured
    return str(BUNDLED_DATASET)


def read_script(source: str) -> str:
    """ローカルパスまたはHTTP(S)のURLからスクリプトを読み込む.

    Args:
        source: ファイルパスまたはURL

    Returns:
        str: スクリプト本文

    Raises:
        httpx.HTTPError: URLを取得できない場合
        OSError: ファイルを読めない場合
        ValueError: スクリプトが空の場合
    """
    if source.startswith(("http://", "https://")):
        logger.info(f"Fetching dataset script from {source}")
        response = httpx.get(source, timeout=FETCH_TIMEOUT, follow_redirects=True)
        response.raise_for_status()
        text = response.text
    else:
        logger.info(f"Reading dataset script from {source}")
        text = Path(source).read_text(encoding="utf-8")
    if not text.strip():
        raise ValueError(f"Dataset script is empty: {source}")
    return text


def load_dataset(engine: QueryEngine, source: Optional[str] = None, fallback_script: str = FALLBACK_SCRIPT) -> str:
    """チュートリアル用のスキーマと初期データをエンジンに投入する.

    Args:
        engine: 生成直後のクエリエンジン
        source: 設定値より優先する読み込み元（省略可）
        fallback_script: 主スクリプトが失敗した場合に使うスクリプト

    Returns:
        str: 読み込んだスクリプトに応じて PRIMARY または FALLBACK

    Raises:
        DatasetLoadError: 両方のスクリプトが失敗した場合
    """
    resolved = resolve_source(source)
    try:
        count = engine.run_script(read_script(resolved))
        logger.info(f"Dataset loaded from {resolved} ({count} statements)")
        return PRIMARY
    except (httpx.HTTPError, OSError, UnicodeDecodeError, ValueError, sqlite3.Error, sqlite3.Warning) as e:
        logger.warning(f"Primary dataset failed ({resolved}): {e}; using inline fallback")

    try:
        count = engine.run_script(fallback_script)
    except (ValueError, sqlite3.Error, sqlite3.Warning) as e:
        logger.error(f"Fallback dataset failed: {e}")
        raise DatasetLoadError(f"Failed to load the tutorial dataset: {e}") from e
    logger.info(f"Dataset loaded from inline fallback ({count} statements)")
    return FALLBACK
