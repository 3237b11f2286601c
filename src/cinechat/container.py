"""Composition root: wire stores, caches and services from a CinechatConfig."""

from __future__ import annotations

from dataclasses import dataclass

from cinechat.cache import TTLCache
from cinechat.config import CinechatConfig
from cinechat.db.connection import Database
from cinechat.db.fingerprints import FingerprintStore
from cinechat.db.repository import DocumentRepository
from cinechat.ingest.pipeline import DocumentService
from cinechat.rag.answerer import QuestionAnswerer
from cinechat.rag.credentials import CredentialRotator
from cinechat.rag.embedder import Embedder
from cinechat.rag.retriever import RetrievalEngine


@dataclass
class App:
    """Every long-lived component, sharing one Database, cache and rotator."""

    config: CinechatConfig
    db: Database
    cache: TTLCache
    rotator: CredentialRotator
    fingerprints: FingerprintStore
    documents: DocumentRepository
    embedder: Embedder
    engine: RetrievalEngine
    document_service: DocumentService
    answerer: QuestionAnswerer


def build_app(config: CinechatConfig, db: Database) -> App:
    """Build the component graph. *db* must already be initialised."""
    cache = TTLCache(config.cache.ttl_bands, sweep_interval=config.cache.sweep_interval)
    rotator = CredentialRotator(config.llm.credentials)
    fingerprints = FingerprintStore(db)
    documents = DocumentRepository(db)
    embedder = Embedder(rotator, cache, config.llm, band=config.cache.embedding_band)
    engine = RetrievalEngine(
        fingerprints,
        documents,
        cache,
        config.retrieval,
        chunk_band=config.cache.chunk_candidates_band,
    )
    document_service = DocumentService(
        documents,
        embedder,
        engine,
        ingest=config.ingest,
        chunk=config.chunk,
        pagination=config.pagination,
    )
    answerer = QuestionAnswerer(engine, embedder, fingerprints, rotator, config.llm)
    return App(
        config=config,
        db=db,
        cache=cache,
        rotator=rotator,
        fingerprints=fingerprints,
        documents=documents,
        embedder=embedder,
        engine=engine,
        document_service=document_service,
        answerer=answerer,
    )
