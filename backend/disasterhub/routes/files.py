"""
DisasterHub Backend — Stored Image Route
==========================================

What:  GET /api/files/{path} — serves images attached to disaster reports.
How:   The path is resolved inside storage_root by FileService; anything
       that escapes it, or does not exist, is a 404.

Unauthenticated: image URLs are embedded in <img> tags, which cannot send
a bearer header. File names are random UUIDs.
"""

from fastapi import APIRouter
from fastapi.responses import FileResponse

from disasterhub.schemas.common import ErrorResponse
from disasterhub.services.file_service import file_service

router = APIRouter(prefix="/files", tags=["Files"])


@router.get(
    "/{file_path:path}",
    response_class=FileResponse,
    responses={404: {"description": "File not found", "model": ErrorResponse}},
    summary="Download a stored report image",
)
async def get_file(file_path: str) -> FileResponse:
    path = file_service.resolve_path(file_path)
    return FileResponse(path, headers={"Cache-Control": "public, max-age=86400"})
