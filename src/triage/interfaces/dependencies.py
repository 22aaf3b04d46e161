"""FastAPI dependency providers for the triage pipeline."""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.infrastructure.database import get_session
from src.triage.application import EmbeddingCache, EmbeddingService, TriagePipeline
from src.triage.infrastructure import SQLAlchemyIncidentCorpus, SQLAlchemyResponderDirectory


def get_embedding_cache(request: Request) -> EmbeddingCache:
    """Process-wide cache created in the app lifespan."""
    cache = getattr(request.app.state, "embedding_cache", None)
    if cache is None:
        cache = EmbeddingCache(max_size=settings.embedding_cache_size)
        request.app.state.embedding_cache = cache
    return cache


def get_triage_pipeline(
    request: Request,
    db: AsyncSession = Depends(get_session),
    cache: EmbeddingCache = Depends(get_embedding_cache),
) -> TriagePipeline:
    """Pipeline bound to this request's session. A None client means heuristic mode."""
    client = getattr(request.app.state, "inference_client", None)
    return TriagePipeline(
        client=client,
        embeddings=EmbeddingService(client, cache, settings.embedding_dimension),
        corpus=SQLAlchemyIncidentCorpus(db),
        directory=SQLAlchemyResponderDirectory(db),
        config=settings
    )
