from fastapi import APIRouter

from commit_relay.api.v1 import proxy, webhook

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(proxy.router)
api_router.include_router(webhook.router)
