"""
File upload endpoint for property images and profile pictures.
"""

from fastapi import APIRouter, Depends, File, Path, UploadFile, status
from pydantic import BaseModel

from estate_feed.schemas.auth import AuthSession
from estate_feed.services.error_handler import ERROR_RESPONSES
from estate_feed.services.storage import FileValidator, ObjectStorage
from estate_feed.utils.dependencies import get_required_session, get_storage
from estate_feed.utils.exceptions import FileSizeExceededError


router = APIRouter(prefix="/storage", tags=["Storage"])


class UploadResponse(BaseModel):
    bucket: str
    path: str
    public_url: str
    content_type: str
    size: int


@router.post(
    "/{bucket}",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload an image",
    description="Upload a JPEG, PNG or WebP image (up to 5MB) to the property-images or "
                "profile-pictures bucket and get its public URL.",
    responses={401: ERROR_RESPONSES[401], 404: ERROR_RESPONSES[404], 422: ERROR_RESPONSES[422]}
)
async def upload_file(
    bucket: str = Path(..., description="Bucket name"),
    file: UploadFile = File(..., description="Image file"),
    session: AuthSession = Depends(get_required_session),
    storage: ObjectStorage = Depends(get_storage)
) -> UploadResponse:
    # Reject oversized uploads before reading the whole body
    if file.size is not None and file.size > storage.max_size:
        raise FileSizeExceededError(file.size, storage.max_size)

    data = await file.read()
    extension = FileValidator.validate_file_extension(file.filename or "")
    path = ObjectStorage.generate_path(session.user_id, extension)

    stored = await storage.upload(
        bucket,
        path,
        data,
        file.content_type or "",
        filename=file.filename
    )
    return UploadResponse(
        bucket=stored.bucket,
        path=stored.path,
        public_url=stored.public_url,
        content_type=stored.content_type,
        size=stored.size
    )
