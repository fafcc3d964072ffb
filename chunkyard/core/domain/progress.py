"""
Progress projection for upload sessions.

Pure read-side mapping from session state to the client-facing descriptor.
Authorization is the orchestrator's job and happens before projection.
"""

from .sessions import SessionDescriptor, UploadSession


def project(session: UploadSession) -> SessionDescriptor:
    """Build a SessionDescriptor from the current state of ``session``."""
    uploaded = session.uploaded_chunks
    progress = uploaded / session.total_chunks if session.total_chunks > 0 else 0.0

    return SessionDescriptor(
        session_id=session.session_id,
        file_name=session.file_name,
        total_size=session.total_size,
        total_chunks=session.total_chunks,
        uploaded_chunks=uploaded,
        progress=progress,
        created_at=session.created_at,
        completed_at=session.completed_at,
    )
