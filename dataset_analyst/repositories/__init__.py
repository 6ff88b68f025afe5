"""Repository layer for dataset-analyst."""
from .analysis_repository import AnalysisRepository, DatasetVersion, SessionMessage, apply_migrations, open_connection

__all__ = ["AnalysisRepository", "DatasetVersion", "SessionMessage", "apply_migrations", "open_connection"]
