"""Central router that includes all sub-routers."""

from fastapi import APIRouter

from inspector_pro.api.users import router as users_router
from inspector_pro.api.jobs import router as jobs_router
from inspector_pro.api.image_labels import router as image_labels_router
from inspector_pro.api.reports import router as reports_router
from inspector_pro.api.notifications import router as notifications_router
from inspector_pro.api.devices import router as devices_router

api_router = APIRouter()
api_router.include_router(users_router)
api_router.include_router(jobs_router)
api_router.include_router(image_labels_router)
api_router.include_router(reports_router)
api_router.include_router(notifications_router)
api_router.include_router(devices_router)
