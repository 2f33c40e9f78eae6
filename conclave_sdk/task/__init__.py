from .builder import BuiltTask, TaskBuilder, derive_task_id  # noqa: F401

__all__ = ["BuiltTask", "TaskBuilder", "derive_task_id"]
