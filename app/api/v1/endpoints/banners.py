"""
Home page banner endpoints.

Images are stored in the storage bucket under
``<BANNER_FOLDER_PREFIX><banner_name>/``; the record keeps the public URL.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from sqlalchemy import select, delete

from app.api.deps import DB, AdminAccess, Storage
from app.config import settings
from app.core.responses import created, ok
from app.core.storage import StorageClient, StorageError
from app.models.banner import Banner

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/banners", tags=["Banners"])


def _banner_dict(banner: Banner) -> dict:
    return {
        "id": str(banner.id),
        "banner_name": banner.banner_name,
        "image_url": banner.image_url,
        "created_at": banner.created_at,
        "updated_at": banner.updated_at,
    }


async def _upload(storage: StorageClient, banner_name: str, image: UploadFile) -> str:
    content = await image.read()
    path = storage.generate_unique_filename(
        image.filename or "banner",
        prefix=f"{settings.BANNER_FOLDER_PREFIX}{banner_name}",
    )
    try:
        return storage.upload(content, path, image.content_type or "application/octet-stream")
    except StorageError as e:
        logger.error(f"Banner upload failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to upload banner image")


async def _get_banner(db, banner_id: UUID) -> Banner:
    banner = await db.get(Banner, banner_id)
    if not banner:
        raise HTTPException(status_code=404, detail="Banner not found")
    return banner


@router.post("/", status_code=201)
async def create_banner(
    _: AdminAccess,
    db: DB,
    storage: Storage,
    banner_name: Optional[str] = Form(None),
    banner_image: Optional[UploadFile] = File(None),
):
    if not banner_name or not banner_name.strip():
        raise HTTPException(status_code=400, detail="Banner name is required")
    if banner_image is None:
        raise HTTPException(status_code=400, detail="Banner image is required")

    banner_name = banner_name.strip()
    image_url = await _upload(storage, banner_name, banner_image)

    banner = Banner(banner_name=banner_name, image_url=image_url)
    db.add(banner)
    await db.flush()
    await db.refresh(banner)
    return created("Banner created successfully", _banner_dict(banner))


@router.get("/")
async def list_banners(db: DB):
    result = await db.execute(select(Banner).order_by(Banner.created_at.desc()))
    return ok("Banners fetched successfully", [_banner_dict(b) for b in result.scalars().all()])


@router.get("/{banner_id}")
async def get_banner(banner_id: UUID, db: DB):
    return ok("Banner fetched successfully", _banner_dict(await _get_banner(db, banner_id)))


@router.put("/{banner_id}")
async def update_banner(
    banner_id: UUID,
    _: AdminAccess,
    db: DB,
    storage: Storage,
    banner_name: Optional[str] = Form(None),
    banner_image: Optional[UploadFile] = File(None),
):
    """Rename and/or replace the image; the replaced image is removed from storage."""
    banner = await _get_banner(db, banner_id)

    if banner_name and banner_name.strip():
        banner.banner_name = banner_name.strip()

    if banner_image is not None:
        old_url = banner.image_url
        banner.image_url = await _upload(storage, banner.banner_name, banner_image)
        try:
            storage.delete(old_url)
        except StorageError as e:
            logger.warning(f"Could not remove old banner image {old_url}: {e}")

    await db.flush()
    await db.refresh(banner)
    return ok("Banner updated successfully", _banner_dict(banner))


@router.delete("/{banner_id}")
async def delete_banner(banner_id: UUID, _: AdminAccess, db: DB, storage: Storage):
    banner = await _get_banner(db, banner_id)
    try:
        storage.delete(banner.image_url)
    except StorageError as e:
        logger.error(f"Banner image delete failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete banner image")

    await db.execute(delete(Banner).where(Banner.id == banner_id))
    return ok("Banner deleted successfully")
