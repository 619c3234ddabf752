from fastapi import APIRouter

from evently.api.v1.events import router as events_router

router = APIRouter()
router.include_router(events_router)
