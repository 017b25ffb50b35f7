"""
Plain classes and their mappings for the LedgerORM todo example.
"""

from __future__ import annotations

from typing import List, Optional

from ledgerorm import IdGeneration, MetadataRegistry


class Category:
    def __init__(self, name: str) -> None:
        self.id = None
        self.name = name
        self.tasks: List["Task"] = []


class User:
    def __init__(self, email: str, display_name: str) -> None:
        self.id = None
        self.email = email
        self.display_name = display_name


class Tag:
    def __init__(self, label: str) -> None:
        self.id = None
        self.label = label


class Task:
    def __init__(
        self,
        title: str,
        category: Optional[Category] = None,
        assignee: Optional[User] = None,
        done: bool = False,
    ) -> None:
        self.id = None
        self.title = title
        self.done = done
        self.category = category
        self.assignee = assignee
        self.tags: List[Tag] = []
        if category is not None:
            category.tasks.append(self)


def build_registry() -> MetadataRegistry:
    registry = MetadataRegistry()
    registry.entity(Category, table="categories").identifier(
        "id", "uuid", generation=IdGeneration.UUID
    ).field("name", "string", nullable=False).one_to_many("tasks", "Task", mapped_by="category")
    registry.entity(User, table="users").identifier("id").field("email", "string", nullable=False).field(
        "display_name", "string", column="display_name"
    )
    registry.entity(Tag, table="tags").identifier("id").field("label", "string", nullable=False)
    registry.entity(Task, table="tasks").identifier("id").field("title", "string", nullable=False).field(
        "done", "boolean"
    ).many_to_one("category", Category, nullable=False, inversed_by="tasks").many_to_one(
        "assignee", User, join_column="assignee_id"
    ).many_to_many(
        "tags", Tag, join_table="task_tags", join_column="task_id", inverse_join_column="tag_id"
    )
    return registry


SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS categories (
        id TEXT PRIMARY KEY,
        name VARCHAR(255) NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        email VARCHAR(255) NOT NULL UNIQUE,
        display_name VARCHAR(255)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tags (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        label VARCHAR(255) NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tasks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title VARCHAR(255) NOT NULL,
        done INTEGER NOT NULL DEFAULT 0,
        category_id TEXT NOT NULL REFERENCES categories (id),
        assignee_id INTEGER REFERENCES users (id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS task_tags (
        task_id INTEGER NOT NULL REFERENCES tasks (id) ON DELETE CASCADE,
        tag_id INTEGER NOT NULL REFERENCES tags (id) ON DELETE CASCADE,
        PRIMARY KEY (task_id, tag_id)
    )
    """,
)
