"""
Deposit evidence proxy.

GET /api/deposit/{token}/image            - guest access via capability token
GET /api/admin/deposit/{booking_id}/image - admin access via domain-restricted session
"""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from ..database import get_db
from ..services.blob_client import BlobClient
from ..services.deposit_gateway import (
    deposit_image_headers,
    get_deposit_image_by_token,
    get_deposit_image_for_admin,
)
from ..utils.dependencies import get_current_admin
from ..utils.rate_limiter import limiter, get_rate_limit
from ..utils.security import AdminIdentity

router = APIRouter(tags=["Deposit Evidence"])


def get_blob_client() -> BlobClient:
    return BlobClient()


@router.get("/api/deposit/{token}/image")
@limiter.limit(get_rate_limit("deposit_image_token"))
async def deposit_image_by_token(
    request: Request,
    token: str,
    db: Session = Depends(get_db),
    blob_client: BlobClient = Depends(get_blob_client),
):
    content = await get_deposit_image_by_token(db, token, blob_client)
    return Response(content=content.data, media_type=content.content_type, headers=deposit_image_headers())


@router.get("/api/admin/deposit/{booking_id}/image")
@limiter.limit(get_rate_limit("deposit_image_admin"))
async def admin_deposit_image(
    request: Request,
    booking_id: str,
    db: Session = Depends(get_db),
    blob_client: BlobClient = Depends(get_blob_client),
    admin: AdminIdentity = Depends(get_current_admin),
):
    content = await get_deposit_image_for_admin(db, booking_id, blob_client)
    return Response(content=content.data, media_type=content.content_type, headers=deposit_image_headers())
