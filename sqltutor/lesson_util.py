"""レッスンカタログユーティリティモジュール.

コミュニティセンターのデータベースを題材にした10ステップのSQLレッスンを提供します。
レッスン本文はHTMLとしてそのまま表示され、ロジックからは解釈しません。
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Optional

logger = logging.getLogger(__name__)

DATASET_TABLES = (
    "users",
    "classes",
    "class_enrollments",
    "class_attendance",
    "events",
    "messages",
)


@dataclass(frozen=True)
class Lesson:
    """1つのレッスン.

    Attributes:
        id: 1から始まる連番
        title: 表示タイトル
        content: 説明HTML
        solution: 模範解答SQL
        hint: ヒント
        starter_query: 入力欄に事前設定するSQL（最初のレッスンのみ）
    """

    id: int
    title: str
    content: str
    solution: str
    hint: str
    starter_query: str = ""

    @property
    def choice(self) -> str:
        return f"{self.id} - {self.title}"


class LessonCatalog:
    """読み取り専用のレッスン一覧（id順）."""

    def __init__(self, lessons: Iterable[Lesson], overview: str = ""):
        ordered = sorted(lessons, key=lambda l: l.id)
        expected = list(range(1, len(ordered) + 1))
        actual = [l.id for l in ordered]
        if actual != expected:
            raise ValueError(f"Lesson ids must be unique and sequential from 1: {actual}")
        self._lessons = MappingProxyType({l.id: l for l in ordered})
        self._overview = overview

    def __len__(self) -> int:
        return len(self._lessons)

    def __iter__(self) -> Iterator[Lesson]:
        return iter(self._lessons.values())

    def __contains__(self, lesson_id) -> bool:
        return lesson_id in self._lessons

    @property
    def ids(self) -> List[int]:
        return list(self._lessons)

    @property
    def first_id(self) -> Optional[int]:
        return next(iter(self._lessons), None)

    @property
    def overview(self) -> str:
        return self._overview

    def get(self, lesson_id) -> Optional[Lesson]:
        """idでレッスンを取得する。存在しない場合はNone."""
        return self._lessons.get(lesson_id)

    def choices(self) -> List[str]:
        return [l.choice for l in self]

    def parse_choice(self, choice) -> Optional[int]:
        """ドロップダウンの選択値からレッスンidを取り出す.

        Args:
            choice: "<id> - <title>" 形式の文字列、またはid

        Returns:
            int | None: 数値として解釈できない場合はNone（存在確認は行わない）
        """
        if isinstance(choice, int):
            return choice
        head = str(choice or "").split(" - ")[0].strip()
        try:
            return int(head)
        except ValueError:
            return None


def _overview_html() -> str:
    return """
<h2>🏢 Community Center SQL Tutorial</h2>
<p>Learn SQL step by step with a small database that runs entirely inside this session.
Nothing you do here is saved: reload the page to start over with fresh data.</p>

<h3>The Database</h3>
<ul>
    <li><strong>users</strong> - Teachers (workers) and students (visitors)</li>
    <li><strong>classes</strong> - Various classes offered by teachers</li>
    <li><strong>class_enrollments</strong> - Students enrolled in classes</li>
    <li><strong>class_attendance</strong> - Daily attendance records</li>
    <li><strong>events</strong> - Community events and activities</li>
    <li><strong>messages</strong> - Communication between students and teachers</li>
</ul>

<h3>How It Works</h3>
<ol>
    <li>Pick a lesson from the list.</li>
    <li>Type a query and press <strong>Run Query</strong> (or Ctrl+Enter).</li>
    <li>Stuck? Use <strong>Show Hint</strong> or <strong>Show Solution</strong>.</li>
</ol>
""".strip()


def _lessons() -> List[Dict]:
    """レッスン定義を返す.

    Returns:
        list[dict]: 各レッスンの {id, title, content, solution, hint[, starter_query]}
    """
    lessons: List[Dict] = [
        {
            "id": 1,
            "title": "Introduction & Basic SELECT",
            "content": """
<h2>🎓 Welcome to Community Center SQL!</h2>
<p>Welcome to your SQL journey! You'll be learning SQL using a real community center database that manages users, classes, events, and attendance.</p>

<h3>Explore the Database Tables</h3>
<p>👈 Use the table browser and click "Show Data" on any table to see the actual data!</p>
<p>Our community center database contains:</p>
<ul>
    <li><strong>users</strong> - Teachers (workers) and students (visitors)</li>
    <li><strong>classes</strong> - Various classes offered by teachers</li>
    <li><strong>class_enrollments</strong> - Students enrolled in classes</li>
    <li><strong>class_attendance</strong> - Daily attendance records</li>
    <li><strong>events</strong> - Community events and activities</li>
    <li><strong>messages</strong> - Communication between students and teachers</li>
</ul>

<h3>Exercise 1 — Tasks</h3>
<p>Let's start with the most basic SQL command: <code>SELECT</code>. This command lets you retrieve data from a table.</p>

<ol>
    <li><strong>Find the <code>username</code> of each user</strong> (hint: look at the users table schema)</li>
    <li><strong>Find the <code>name</code> of each class</strong></li>
    <li><strong>Find the <code>title</code> and <code>event_date</code> of each event</strong></li>
    <li><strong>Find all the information about each user</strong></li>
</ol>

<p><strong>Start here:</strong> Type your first query to see all users:</p>
<pre><code>SELECT * FROM users;</code></pre>
<p>The <code>*</code> means "all columns" and <code>FROM users</code> specifies which table to query.</p>

<p><strong>Stuck?</strong> Click "Show Solution" for help, or explore the table data in the table browser!</p>
""".strip(),
            "solution": "SELECT * FROM users;",
            "hint": "Use SELECT * FROM users; to see all user data. Then try SELECT username FROM users; for just usernames.",
            "starter_query": "SELECT * FROM users;",
        },
        {
            "id": 2,
            "title": "Filtering with WHERE",
            "content": """
<h2>🔍 Filtering Data with WHERE</h2>
<p>Great job! Now let's learn to filter data. The <code>WHERE</code> clause lets you specify conditions.</p>

<h3>Finding Specific Users</h3>
<p>Let's find only the teachers in our community center. Teachers have <code>user_type = 'worker'</code>.</p>
<p><strong>Task:</strong> Write a query to find all users who are teachers (workers):</p>
<pre><code>SELECT * FROM users WHERE user_type = 'worker';</code></pre>

<h3>Different WHERE Conditions</h3>
<p>You can use various conditions:</p>
<ul>
    <li><code>=</code> for exact matches</li>
    <li><code>!=</code> or <code>&lt;&gt;</code> for not equal</li>
    <li><code>LIKE</code> for pattern matching</li>
    <li><code>AND</code>, <code>OR</code> for multiple conditions</li>
</ul>

<h3>Try It!</h3>
<p>Find all the teachers, then try finding all approved users!</p>
""".strip(),
            "solution": "SELECT * FROM users WHERE user_type = 'worker';",
            "hint": "Use WHERE user_type = 'worker' to filter for teachers",
        },
        {
            "id": 3,
            "title": "Sorting and Ordering",
            "content": """
<h2>📊 Sorting Results with ORDER BY</h2>
<p>Now let's learn to sort our results! The <code>ORDER BY</code> clause organizes data.</p>

<h3>Sorting Users</h3>
<p><strong>Task:</strong> Get all users sorted by their username alphabetically:</p>
<pre><code>SELECT * FROM users ORDER BY username;</code></pre>

<h3>Sorting Options</h3>
<ul>
    <li><code>ORDER BY column</code> - ascending (A to Z, 1 to 10)</li>
    <li><code>ORDER BY column DESC</code> - descending (Z to A, 10 to 1)</li>
    <li><code>ORDER BY column1, column2</code> - multiple sort criteria</li>
</ul>

<h3>Try It!</h3>
<p>Sort users by username, then try sorting by created_at to see newest users first!</p>
""".strip(),
            "solution": "SELECT * FROM users ORDER BY username;",
            "hint": "Use ORDER BY username to sort alphabetically",
        },
        {
            "id": 4,
            "title": "Working with Users",
            "content": """
<h2>👥 Exploring User Data</h2>
<p>Let's dive deeper into our users table and practice more complex queries.</p>

<h3>Selecting Specific Columns</h3>
<p>Instead of using <code>*</code>, we can select specific columns:</p>
<p><strong>Task:</strong> Get just the username, email, and user_type of all users:</p>
<pre><code>SELECT username, email, user_type FROM users;</code></pre>

<h3>Combining WHERE and ORDER BY</h3>
<p><strong>Next Task:</strong> Find all approved students (visitors) sorted by username:</p>
<pre><code>SELECT username, email FROM users
WHERE user_type = 'visitor' AND approved = 1
ORDER BY username;</code></pre>

<h3>Try It!</h3>
<p>Practice selecting specific columns and combining different clauses!</p>
""".strip(),
            "solution": "SELECT username, email, user_type FROM users;",
            "hint": "List the column names separated by commas after SELECT",
        },
        {
            "id": 5,
            "title": "Class Management",
            "content": """
<h2>📚 Exploring Classes</h2>
<p>Now let's look at the classes offered at our community center!</p>

<h3>Finding Classes</h3>
<p><strong>Task:</strong> See all active classes:</p>
<pre><code>SELECT name, subject, capacity, schedule FROM classes WHERE status = 'active';</code></pre>

<h3>Filtering by Subject</h3>
<p><strong>Next Task:</strong> Find all fitness classes:</p>
<pre><code>SELECT name, description, schedule FROM classes WHERE subject = 'fitness';</code></pre>

<h3>Class Subjects Available</h3>
<p>Our community center offers classes in: fitness, arts, education, social, senior, youth, and other.</p>

<h3>Try It!</h3>
<p>Explore different class subjects and see what's available!</p>
""".strip(),
            "solution": "SELECT name, subject, capacity, schedule FROM classes WHERE status = 'active';",
            "hint": "Filter classes using WHERE status = 'active'",
        },
        {
            "id": 6,
            "title": "JOIN Operations",
            "content": """
<h2>🔗 Connecting Tables with JOINs</h2>
<p>Now for the exciting part - connecting data from multiple tables!</p>

<h3>Understanding JOINs</h3>
<p>JOINs let us combine data from related tables. Let's connect classes with their teachers.</p>

<p><strong>Task:</strong> Get class names with their teacher's username:</p>
<pre><code>SELECT classes.name, classes.subject, users.username as teacher
FROM classes
JOIN users ON classes.teacher_id = users.id;</code></pre>

<h3>Types of JOINs</h3>
<ul>
    <li><code>JOIN</code> (or INNER JOIN) - only matching records</li>
    <li><code>LEFT JOIN</code> - all records from left table</li>
    <li><code>RIGHT JOIN</code> - all records from right table</li>
</ul>

<h3>Try It!</h3>
<p>See which teachers are running which classes!</p>
""".strip(),
            "solution": "SELECT classes.name, classes.subject, users.username as teacher FROM classes JOIN users ON classes.teacher_id = users.id;",
            "hint": "Use JOIN to connect classes and users tables on teacher_id = id",
        },
        {
            "id": 7,
            "title": "Aggregate Functions",
            "content": """
<h2>📈 Counting and Summarizing Data</h2>
<p>Let's learn to summarize our data with aggregate functions!</p>

<h3>Basic Counting</h3>
<p><strong>Task:</strong> Count how many users we have:</p>
<pre><code>SELECT COUNT(*) as total_users FROM users;</code></pre>

<h3>Grouping Data</h3>
<p><strong>Next Task:</strong> Count users by type:</p>
<pre><code>SELECT user_type, COUNT(*) as count
FROM users
GROUP BY user_type;</code></pre>

<h3>Other Aggregate Functions</h3>
<ul>
    <li><code>COUNT()</code> - count records</li>
    <li><code>SUM()</code> - sum numeric values</li>
    <li><code>AVG()</code> - average of values</li>
    <li><code>MAX()</code> - maximum value</li>
    <li><code>MIN()</code> - minimum value</li>
</ul>

<h3>Try It!</h3>
<p>Try counting classes by subject or finding the class with maximum capacity!</p>
""".strip(),
            "solution": "SELECT COUNT(*) as total_users FROM users;",
            "hint": "Use COUNT(*) to count all records in a table",
        },
        {
            "id": 8,
            "title": "Attendance Analytics",
            "content": """
<h2>📊 Analyzing Attendance Data</h2>
<p>Let's analyze student attendance patterns!</p>

<h3>Attendance Summary</h3>
<p><strong>Task:</strong> Count attendance by status:</p>
<pre><code>SELECT status, COUNT(*) as count
FROM class_attendance
GROUP BY status;</code></pre>

<h3>Class Attendance Rates</h3>
<p><strong>Next Task:</strong> See attendance for each class:</p>
<pre><code>SELECT c.name, COUNT(ca.id) as total_attendance
FROM classes c
LEFT JOIN class_attendance ca ON c.id = ca.class_id
GROUP BY c.id, c.name;</code></pre>

<h3>Try It!</h3>
<p>Explore different attendance patterns and find insights!</p>
""".strip(),
            "solution": "SELECT status, COUNT(*) as count FROM class_attendance GROUP BY status;",
            "hint": "Use GROUP BY status to group attendance records by their status",
        },
        {
            "id": 9,
            "title": "Advanced Queries",
            "content": """
<h2>🚀 Advanced SQL Techniques</h2>
<p>Let's combine everything you've learned for complex analysis!</p>

<h3>Complex JOIN with Multiple Tables</h3>
<p><strong>Task:</strong> Get detailed enrollment information:</p>
<pre><code>SELECT c.name as class_name,
       ce.student_name,
       u.username as teacher
FROM class_enrollments ce
JOIN classes c ON ce.class_id = c.id
JOIN users u ON c.teacher_id = u.id
WHERE ce.status = 'active';</code></pre>

<h3>Subqueries</h3>
<p><strong>Next Task:</strong> Find classes with above-average capacity:</p>
<pre><code>SELECT name, capacity
FROM classes
WHERE capacity &gt; (SELECT AVG(capacity) FROM classes);</code></pre>

<h3>Try It!</h3>
<p>Create your own complex queries to explore the data!</p>
""".strip(),
            "solution": "SELECT c.name as class_name, ce.student_name, u.username as teacher FROM class_enrollments ce JOIN classes c ON ce.class_id = c.id JOIN users u ON c.teacher_id = u.id WHERE ce.status = 'active';",
            "hint": "Use multiple JOINs to connect class_enrollments, classes, and users tables",
        },
        {
            "id": 10,
            "title": "Views and Reports",
            "content": """
<h2>📋 Creating Views and Reports</h2>
<p>Congratulations! Let's finish with some practical reporting queries.</p>

<h3>Class Summary Report</h3>
<p><strong>Task:</strong> Create a comprehensive class report:</p>
<pre><code>SELECT c.name,
       c.subject,
       c.capacity,
       COUNT(ce.id) as enrolled_students,
       u.username as teacher,
       c.schedule
FROM classes c
LEFT JOIN class_enrollments ce ON c.id = ce.class_id AND ce.status = 'active'
JOIN users u ON c.teacher_id = u.id
WHERE c.status = 'active'
GROUP BY c.id, c.name, c.subject, c.capacity, u.username, c.schedule;</code></pre>

<h3>Attendance Analysis</h3>
<p><strong>Final Task:</strong> Monthly attendance summary:</p>
<pre><code>SELECT strftime('%Y-%m', attendance_date) as month,
       COUNT(*) as total_attendances,
       COUNT(CASE WHEN status = 'present' THEN 1 END) as present_count
FROM class_attendance
GROUP BY strftime('%Y-%m', attendance_date);</code></pre>

<h3>🎉 Congratulations!</h3>
<p>You've completed the Community Center SQL Tutorial! You now know how to:</p>
<ul>
    <li>Query single and multiple tables</li>
    <li>Filter and sort data</li>
    <li>Use aggregate functions</li>
    <li>Create complex JOINs</li>
    <li>Build analytical reports</li>
</ul>
""".strip(),
            "solution": "SELECT c.name, c.subject, c.capacity, COUNT(ce.id) as enrolled_students, u.username as teacher, c.schedule FROM classes c LEFT JOIN class_enrollments ce ON c.id = ce.class_id AND ce.status = 'active' JOIN users u ON c.teacher_id = u.id WHERE c.status = 'active' GROUP BY c.id, c.name, c.subject, c.capacity, u.username, c.schedule;",
            "hint": "Use LEFT JOIN to include classes even if they have no enrollments, and GROUP BY to aggregate enrollment counts",
        },
    ]
    return lessons


def load_lesson_catalog() -> LessonCatalog:
    """同梱のレッスン定義からカタログを構築する.

    Returns:
        LessonCatalog: id順のレッスン一覧
    """
    lessons = [
        Lesson(
            id=int(raw["id"]),
            title=str(raw["title"]),
            content=str(raw["content"]),
            solution=str(raw.get("solution", "")),
            hint=str(raw.get("hint", "")),
            starter_query=str(raw.get("starter_query", "")),
        )
        for raw in _lessons()
    ]
    catalog = LessonCatalog(lessons, overview=_overview_html())
    logger.info(f"Loaded {len(catalog)} lessons")
    return catalog
