"""Uploads API router — presigned MinIO URLs."""

from fastapi import APIRouter, Depends, Query

from taskhub.core.security import get_current_user
from taskhub.models.user import User
from taskhub.schemas.schemas import ApiResponse, UploadUrlOut, UploadUrlRequest, ok
from taskhub.services.file_service import FileService, get_file_service

router = APIRouter(prefix="/uploads", tags=["uploads"])


@router.post("/presigned-url", response_model=ApiResponse[UploadUrlOut])
async def create_upload_url(
    body: UploadUrlRequest,
    user: User = Depends(get_current_user),
    files: FileService = Depends(get_file_service),
):
    """Presigned PUT URL for an image or PDF."""
    result = files.create_upload_url(user.id, body.folder, body.file_name, body.content_type)
    return ok(UploadUrlOut(**result))


@router.get("/download-url", response_model=ApiResponse[dict])
async def create_download_url(
    key: str = Query(..., min_length=3, max_length=500),
    user: User = Depends(get_current_user),
    files: FileService = Depends(get_file_service),
):
    return ok({"url": files.get_presigned_url(key)})
