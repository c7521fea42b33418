"""Editorial layer — Article repository and workflow engine."""

from newsdesk.editorial.repository import (
    ArticleChange,
    ArticleRepository,
    ChangeKind,
    InMemoryArticleRepository,
    SQLiteArticleRepository,
)
from newsdesk.editorial.workflow import (
    TRANSITIONS,
    TransitionResult,
    WorkflowAction,
    WorkflowEngine,
)

__all__ = [
    "ArticleChange",
    "ArticleRepository",
    "ChangeKind",
    "InMemoryArticleRepository",
    "SQLiteArticleRepository",
    "TRANSITIONS",
    "TransitionResult",
    "WorkflowAction",
    "WorkflowEngine",
]
