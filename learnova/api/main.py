from fastapi import APIRouter

from .routes.api import health, upload_video, video_token

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(upload_video.router)
api_router.include_router(video_token.router)
