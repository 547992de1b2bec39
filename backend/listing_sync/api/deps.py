from collections.abc import Callable
from typing import Any

from fastapi import Depends
from sqlalchemy.orm import Session

from listing_sync.db.session import get_db
from listing_sync.providers.google_business import GoogleBusinessClient, build_google_business_client
from listing_sync.services.narrative_service import AnthropicTextGenerator, TextGenerator
from listing_sync.tasks.tasks import enqueue_sync


def get_google_client(db: Session = Depends(get_db)) -> GoogleBusinessClient:
    return build_google_business_client(db)


def get_google_client_factory() -> Callable[[Session], GoogleBusinessClient]:
    return build_google_business_client


def get_text_generator() -> TextGenerator:
    return AnthropicTextGenerator()


def get_sync_enqueuer() -> Callable[[str, str], Any]:
    return enqueue_sync
