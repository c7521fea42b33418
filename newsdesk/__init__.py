"""Newsdesk — Editorial core for a newsroom content-publishing system.

Decides who may do what to which article, keeps sign-in secure, and leaves an
accountable trail of every privileged action.

Architecture layers (bottom to top):
    1. Models    — Users, articles and audit entries (pydantic)
    2. Security  — Permission model, login rate limiter, sessions, audit log,
                   user administration
    3. Editorial — Article repository and the workflow state machine
    4. App / CLI — Newsdesk facade wiring everything from Settings, typer CLI
"""

__version__ = "0.1.0"
__author__ = "Newsdesk Contributors"

from newsdesk.models import Article, ArticleStatus, Role, User, UserStatus

__all__ = [
    "__version__",
    "Article",
    "ArticleStatus",
    "Role",
    "User",
    "UserStatus",
]
