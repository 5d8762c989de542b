"""
PenguinWatch Backend - Uploaded Image Route
=============================================

What:  Serves stored observation photos at /uploads/{filename}.
How:   Resolves the name inside the upload directory (traversal rejected),
       returns the raw bytes with a type guessed from the extension.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from penguinwatch.dependencies import get_image_service
from penguinwatch.exceptions import NotFoundError
from penguinwatch.schemas.observation import ErrorResponse
from penguinwatch.services.image_service import ImageService

router = APIRouter(tags=["Uploads"])


@router.get(
    "/uploads/{filename}",
    summary="Serve an uploaded observation photo",
    responses={
        200: {"description": "Image file"},
        404: {"description": "File not found", "model": ErrorResponse},
    },
)
async def serve_upload(
    filename: str,
    images: ImageService = Depends(get_image_service),
) -> FileResponse:
    path = images.resolve(filename)
    if not path.is_file():
        raise NotFoundError(resource="file", resource_id=filename)

    return FileResponse(
        path=str(path),
        headers={"Cache-Control": "public, max-age=86400"},
    )
