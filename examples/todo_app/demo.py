"""
Todo example showing cascading persist, dirty checking and many-to-many links.
"""

from __future__ import annotations

from typing import Any, Dict, List

from ledgerorm import ConnectionConfig, Session, SQLiteAdapter

from .models import SCHEMA, Category, Tag, Task, User, build_registry


def bootstrap_session(dsn: str = "sqlite:///:memory:") -> Session:
    session = Session(SQLiteAdapter(), build_registry(), connection_config=ConnectionConfig.from_dsn(dsn))
    for statement in SCHEMA:
        session.execute(statement)
    return session


def seed_sample_data(session: Session) -> Dict[str, List[Any]]:
    work = Category("Work")
    home = Category("Home")
    ada = User("ada@example.com", "Ada")
    urgent = Tag("urgent")
    later = Tag("later")

    report = Task("Write report", work, assignee=ada)
    report.tags.append(urgent)
    Task("Review pull requests", work, assignee=ada)
    laundry = Task("Laundry", home)
    laundry.tags.extend([urgent, later])

    with session.transaction():
        # Tasks, the user and the tags are reached through the categories.
        session.persist(work)
        session.persist(home)

    return {
        "categories": [work, home],
        "tasks": work.tasks + home.tasks,
        "users": [ada],
        "tags": [urgent, later],
    }


def complete_task(session: Session, task_id: int) -> Task:
    with session.transaction():
        task = session.find(Task, task_id)
        if task is None:
            raise LookupError(f"Task {task_id} does not exist")
        task.done = True
    return task


def list_open_tasks(session: Session) -> List[Dict[str, Any]]:
    rows = session.adapter.fetch_all("SELECT id FROM tasks WHERE done = ? ORDER BY id", (0,))
    feed: List[Dict[str, Any]] = []
    for row in rows:
        task = session.find(Task, row["id"])
        labels = session.adapter.fetch_all(
            "SELECT tags.label FROM tags JOIN task_tags ON task_tags.tag_id = tags.id "
            "WHERE task_tags.task_id = ? ORDER BY tags.label",
            (task.id,),
        )
        feed.append(
            {
                "title": task.title,
                "category": task.category.name,
                "assignee": task.assignee.display_name if task.assignee else None,
                "tags": [label["label"] for label in labels],
            }
        )
    return feed


def run_demo(dsn: str = "sqlite:///:memory:") -> List[Dict[str, Any]]:
    session = bootstrap_session(dsn)
    try:
        seeded = seed_sample_data(session)
        complete_task(session, seeded["tasks"][1].id)
        return list_open_tasks(session)
    finally:
        session.close()


if __name__ == "__main__":
    for entry in run_demo("sqlite:///todo_demo.db"):
        print(f"{entry['title']} [{entry['category']}] -> {entry['assignee']} {entry['tags']}")
