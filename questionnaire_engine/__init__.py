"""Questionnaire draft engine.

Keeps the answers of a multi-step plant questionnaire consistent across
in-session edits, a durable local draft, a remote draft service and late
auto-source (classification) data, then gates the final submission.

`QuestionnaireSession` is the entry point for one (workflow, material, plant)
identity. `create_app` builds the FastAPI reference backend implementing the
remote contract.
"""

from __future__ import annotations

from questionnaire_engine.main import create_app
from questionnaire_engine.session import QuestionnaireSession, open_session

__all__ = ["create_app", "QuestionnaireSession", "open_session"]
