"""
Entity classes, mappings and schema shared by the persistence tests.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, List, Optional

from ledgerorm import ConnectionConfig, IdGeneration, MetadataRegistry, Session, SQLiteAdapter
from ledgerorm.hooks import HookDispatcher


class Category:
    def __init__(self, name: str) -> None:
        self.id = None
        self.name = name
        self.tasks: List["Task"] = []


class User:
    def __init__(self, email: str) -> None:
        self.id = None
        self.email = email


class Tag:
    def __init__(self, label: str) -> None:
        self.id = None
        self.label = label


class Task:
    def __init__(self, title: str, category: Optional[Category] = None, assignee: Optional[User] = None) -> None:
        self.id = None
        self.title = title
        self.done = False
        self.category = category
        self.assignee = assignee
        self.tags: List[Tag] = []


class Invoice:
    def __init__(self, number: str, total: Decimal, issued_at: Any = None, payload: Any = None) -> None:
        self.number = number
        self.total = total
        self.issued_at = issued_at
        self.payload = payload


class Employee:
    def __init__(self, name: str, manager: Optional["Employee"] = None) -> None:
        self.id = None
        self.name = name
        self.manager = manager


class Gear:
    def __init__(self, name: str, partner: Optional["Gear"] = None) -> None:
        self.id = None
        self.name = name
        self.partner = partner


class Unmapped:
    pass


def build_registry() -> MetadataRegistry:
    registry = MetadataRegistry()
    registry.entity(Category, table="categories").identifier("id").field("name", "string").one_to_many(
        "tasks", "Task", mapped_by="category"
    )
    registry.entity(User, table="users").identifier("id").field("email", "string")
    registry.entity(Tag, table="tags").identifier("id", generation=IdGeneration.UUID).field("label", "string")
    registry.entity(Task, table="tasks").identifier("id").field("title", "string").field(
        "done", "boolean"
    ).many_to_one("category", "Category", inversed_by="tasks").many_to_one("assignee", "User").many_to_many(
        "tags", "Tag", join_table="task_tags", join_column="task_id", inverse_join_column="tag_id"
    )
    registry.entity(Invoice, table="invoices").identifier(
        "number", "string", generation=IdGeneration.ASSIGNED
    ).field("total", "decimal").field("issued_at", "datetime").field("payload", "json")
    registry.entity(Employee, table="employees").identifier("id").field("name", "string").many_to_one(
        "manager", "Employee"
    )
    registry.entity(Gear, table="gears").identifier("id").field("name", "string").many_to_one(
        "partner", "Gear", nullable=False
    )
    return registry


SCHEMA = (
    "CREATE TABLE categories (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL)",
    "CREATE TABLE users (id INTEGER PRIMARY KEY AUTOINCREMENT, email TEXT NOT NULL)",
    "CREATE TABLE tags (id TEXT PRIMARY KEY, label TEXT NOT NULL)",
    "CREATE TABLE tasks ("
    " id INTEGER PRIMARY KEY AUTOINCREMENT,"
    " title TEXT NOT NULL,"
    " done INTEGER,"
    " category_id INTEGER REFERENCES categories (id),"
    " assignee_id INTEGER REFERENCES users (id))",
    "CREATE TABLE task_tags ("
    " task_id INTEGER NOT NULL REFERENCES tasks (id) ON DELETE CASCADE,"
    " tag_id TEXT NOT NULL REFERENCES tags (id) ON DELETE CASCADE,"
    " PRIMARY KEY (task_id, tag_id))",
    "CREATE TABLE invoices (number TEXT PRIMARY KEY, total TEXT, issued_at TEXT, payload TEXT)",
    "CREATE TABLE employees ("
    " id INTEGER PRIMARY KEY AUTOINCREMENT,"
    " name TEXT NOT NULL,"
    " manager_id INTEGER REFERENCES employees (id))",
    "CREATE TABLE gears ("
    " id INTEGER PRIMARY KEY AUTOINCREMENT,"
    " name TEXT NOT NULL,"
    " partner_id INTEGER NOT NULL REFERENCES gears (id))",
)


def make_session(tmp_path, *, name: str = "ledger.db", hooks: Optional[HookDispatcher] = None) -> Session:
    config = ConnectionConfig(url=f"sqlite:///{tmp_path / name}")
    session = Session(SQLiteAdapter(), build_registry(), connection_config=config, hooks=hooks or HookDispatcher())
    for statement in SCHEMA:
        session.execute(statement)
    return session


def count_rows(session: Session, table: str) -> int:
    return session.execute(f'SELECT COUNT(*) FROM "{table}"').fetchone()[0]


def record_statements(session: Session, monkeypatch) -> List[str]:
    """
    Capture every SQL statement the session's adapter executes from now on.
    """
    statements: List[str] = []
    original = session.adapter.execute

    def recording(sql, params=None):
        statements.append(sql)
        return original(sql, params)

    monkeypatch.setattr(session.adapter, "execute", recording)
    return statements
