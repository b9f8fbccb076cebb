"""FastAPI dependencies for route handlers.

Long-lived collaborators (vault, job manager) are built once in the app
lifespan and stored on app.state.
"""

from fastapi import Request

from coursevault.db.session import get_db
from coursevault.services.analysis import AnalysisJobManager
from coursevault.services.crypto import CredentialVault

__all__ = ["get_db", "get_vault", "get_job_manager"]


def get_vault(request: Request) -> CredentialVault:
    """Get the process-wide credential vault from app state."""
    return request.app.state.vault


def get_job_manager(request: Request) -> AnalysisJobManager:
    """Get the video analysis job manager from app state."""
    return request.app.state.job_manager
