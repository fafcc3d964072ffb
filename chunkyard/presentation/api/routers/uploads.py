"""
Chunked upload API endpoints.

A thin adapter over the upload orchestrator: requests are parsed here,
caller identity comes from the configured header, and every protocol
error propagates to the application's error handler.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Path, Request, Response, status
from loguru import logger
from pydantic import BaseModel, Field

from ....core.domain.errors import SessionNotFoundError, SizeExceededError
from ....core.interfaces.upload import IUploadOrchestrator
from ....infrastructure.config.models import ApplicationConfig
from ..dependencies import get_caller_identity, get_config, get_orchestrator

router = APIRouter()


class InitiateUploadRequest(BaseModel):
    """Upload session initiation request model."""
    owner_studio_id: str = Field(..., min_length=1, description="Studio that will own the asset")
    file_name: str = Field(..., min_length=1, description="Original file name")
    content_type: str = Field(default="application/octet-stream", description="MIME type of the file")
    total_size: int = Field(..., gt=0, description="Declared file size in bytes")
    total_chunks: int = Field(..., gt=0, description="Number of chunks the file is split into")
    description: Optional[str] = Field(None, description="Free-text description")


class SessionResponse(BaseModel):
    """Upload progress response model."""
    session_id: str
    file_name: str
    total_size: int
    total_chunks: int
    uploaded_chunks: int
    progress: float
    progress_percentage: float
    created_at: str
    completed_at: Optional[str] = None


class AssetResponse(BaseModel):
    """Stored asset response model."""
    asset_id: str
    file_name: str
    content_type: str
    size: int
    checksum: str
    location: str
    created_at: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


async def _read_chunk_body(request: Request, limit: int) -> bytes:
    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > limit:
        raise SizeExceededError(int(declared), limit, f"Chunk body exceeds {limit} bytes")

    body = bytearray()
    async for part in request.stream():
        body.extend(part)
        if len(body) > limit:
            raise SizeExceededError(len(body), limit, f"Chunk body exceeds {limit} bytes")

    return bytes(body)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=SessionResponse)
async def initiate_upload(
    payload: InitiateUploadRequest,
    caller: Optional[str] = Depends(get_caller_identity),
    orchestrator: IUploadOrchestrator = Depends(get_orchestrator)
) -> Dict[str, Any]:
    """Start a new chunked upload session."""
    descriptor = await orchestrator.initiate(
        owner_studio_id=payload.owner_studio_id,
        uploader_identity=caller,  # type: ignore[arg-type]
        file_name=payload.file_name,
        content_type=payload.content_type,
        total_size=payload.total_size,
        total_chunks=payload.total_chunks,
        description=payload.description,
    )
    return descriptor.to_dict()


@router.put("/{session_id}/chunks/{chunk_index}", response_model=SessionResponse)
async def upload_chunk(
    request: Request,
    session_id: str,
    chunk_index: int = Path(..., ge=0),
    caller: Optional[str] = Depends(get_caller_identity),
    config: ApplicationConfig = Depends(get_config),
    orchestrator: IUploadOrchestrator = Depends(get_orchestrator)
) -> Dict[str, Any]:
    """Upload one chunk as the raw request body. Re-sending a chunk is harmless."""
    data = await _read_chunk_body(request, config.upload.max_chunk_bytes)
    descriptor = await orchestrator.upload_chunk(session_id, chunk_index, data, caller)  # type: ignore[arg-type]
    return descriptor.to_dict()


@router.post("/{session_id}/complete", response_model=AssetResponse)
async def complete_upload(
    session_id: str,
    caller: Optional[str] = Depends(get_caller_identity),
    orchestrator: IUploadOrchestrator = Depends(get_orchestrator)
) -> Dict[str, Any]:
    """Merge all chunks and store the resulting asset."""
    asset = await orchestrator.complete(session_id, caller)  # type: ignore[arg-type]
    logger.info(f"Upload {session_id} stored as asset {asset.asset_id}")
    return asset.to_dict()


@router.get("/{session_id}", response_model=SessionResponse)
async def get_upload_status(
    session_id: str,
    caller: Optional[str] = Depends(get_caller_identity),
    orchestrator: IUploadOrchestrator = Depends(get_orchestrator)
) -> Dict[str, Any]:
    descriptor = await orchestrator.get_status(session_id, caller)  # type: ignore[arg-type]
    if descriptor is None:
        raise SessionNotFoundError(session_id)
    return descriptor.to_dict()


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_upload(
    session_id: str,
    caller: Optional[str] = Depends(get_caller_identity),
    orchestrator: IUploadOrchestrator = Depends(get_orchestrator)
) -> Response:
    """Abandon an upload and discard its chunks."""
    await orchestrator.cancel(session_id, caller)  # type: ignore[arg-type]
    return Response(status_code=status.HTTP_204_NO_CONTENT)
