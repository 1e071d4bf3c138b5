"""
FastAPI dependencies shared by the routers.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from letterbox.core.config import settings
from letterbox.db.session import get_db
from letterbox.services.letter_service import LetterService
from letterbox.storage.base import BlobStore, BlobStoreFactory


async def get_principal(request: Request) -> str:
    """
    Acting principal, as asserted by the identity layer in front of this service.
    """
    principal: Optional[str] = request.headers.get(settings.principal_header)
    if not principal or not principal.strip():
        raise HTTPException(status_code=401, detail="Missing principal")
    return principal.strip()


def get_blob_store() -> BlobStore:
    return BlobStoreFactory.get_store()


async def get_letter_service(
    db: AsyncSession = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
) -> LetterService:
    return LetterService(db, blob_store)
