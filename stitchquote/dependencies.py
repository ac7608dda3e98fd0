# stitchquote/dependencies.py
"""
Service handles, built once per process by the app lifespan and handed to
each request through `get_services`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from fastapi import Request

from stitchquote.config import Settings
from stitchquote.db import init_db, make_engine, make_session_factory
from stitchquote.infra.locks import KeyedLocks
from stitchquote.repositories.quotes import QuoteRepository
from stitchquote.services.assessor import OpenAIAssessor
from stitchquote.services.image_generation import OpenAIImageGenerator
from stitchquote.services.notifications import Mailer
from stitchquote.services.storage import Storage, get_storage

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    quotes: QuoteRepository
    assessor: Any  # .classify(category=, notes=, photo_urls=) -> dict
    image_generator: Any  # .generate(prompt, reference_urls) -> base64 | None
    storage: Storage
    mailer: Mailer
    render_locks: KeyedLocks = field(default_factory=KeyedLocks)


def build_services(settings: Settings) -> Services:
    engine = make_engine(settings.DATABASE_URL)
    init_db(engine)
    logger.info("database ready (%s)", engine.url.get_backend_name())

    return Services(
        settings=settings,
        quotes=QuoteRepository(make_session_factory(engine)),
        assessor=OpenAIAssessor(
            api_key=settings.OPENAI_API_KEY,
            model=settings.ASSESSMENT_MODEL,
            attempts=settings.UPSTREAM_RETRY_ATTEMPTS,
        ),
        image_generator=OpenAIImageGenerator(
            api_key=settings.OPENAI_API_KEY,
            model=settings.RENDER_MODEL,
            size=settings.RENDER_IMAGE_SIZE,
            quality=settings.RENDER_IMAGE_QUALITY,
            attempts=settings.UPSTREAM_RETRY_ATTEMPTS,
        ),
        storage=get_storage(settings),
        mailer=Mailer(settings),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
