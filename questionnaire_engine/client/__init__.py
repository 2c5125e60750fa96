"""Backend client package: HTTP implementation of the questionnaire contract."""

from questionnaire_engine.client.backend import HttpBackendClient, QuestionnaireBackend

__all__ = ["HttpBackendClient", "QuestionnaireBackend"]
