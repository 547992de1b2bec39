from fastapi import APIRouter

from listing_sync.api.v1 import audits, publishing, syncs, webhooks


api_router = APIRouter()
api_router.include_router(syncs.router)
api_router.include_router(publishing.router)
api_router.include_router(audits.router)
api_router.include_router(webhooks.router)
