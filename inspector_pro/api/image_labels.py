from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from inspector_pro.db import crud
from inspector_pro.db.engine import get_db
from inspector_pro.dependencies import get_current_user, require_role
from inspector_pro.models import User
from inspector_pro.models.user import ADMIN_ROLES
from inspector_pro.schemas import ImageLabelCreate, ImageLabelRead

router = APIRouter(prefix="/api/image-labels", tags=["image-labels"])


@router.post("", response_model=ImageLabelRead, status_code=201)
async def create_image_label(
    body: ImageLabelCreate,
    actor: User = Depends(require_role(*ADMIN_ROLES)),
    db: AsyncSession = Depends(get_db),
):
    return await crud.create_image_label(db, body.label, actor.id)


@router.get("", response_model=list[ImageLabelRead])
async def list_image_labels(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await crud.list_image_labels(db)
