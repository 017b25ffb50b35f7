from .demo import (  # noqa: F401
    bootstrap_session,
    complete_task,
    list_open_tasks,
    run_demo,
    seed_sample_data,
)

__all__ = [
    "bootstrap_session",
    "seed_sample_data",
    "complete_task",
    "list_open_tasks",
    "run_demo",
]
