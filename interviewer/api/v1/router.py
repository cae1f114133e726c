from fastapi import APIRouter
from interviewer.api.v1.endpoints import credits, health, interviews, webhooks

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(credits.router)
api_router.include_router(interviews.router)
api_router.include_router(webhooks.router)
