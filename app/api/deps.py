"""
Process-wide collaborators for the verification endpoint.
Built once from settings; tests replace them through app.dependency_overrides.
"""
import logging
from functools import lru_cache

from app.core.config import Settings, settings
from app.services.chain.reader import ChainReader
from app.services.payments.facilitator import FacilitatorClient
from app.services.replay.store import InMemoryReplayStore, RedisReplayStore, ReplayStore
from app.services.verification.service import VerificationService

logger = logging.getLogger(__name__)


def get_settings() -> Settings:
    return settings


@lru_cache
def get_replay_store() -> ReplayStore:
    if settings.redis_url:
        return RedisReplayStore.from_url(settings.redis_url, ttl_seconds=settings.replay_ttl_seconds)
    logger.warning("replay_store_in_memory")
    return InMemoryReplayStore()


@lru_cache
def get_chain_reader() -> ChainReader:
    return ChainReader.from_settings(settings)


@lru_cache
def get_verification_service() -> VerificationService:
    return VerificationService(
        replay_store=get_replay_store(),
        payment_verifier=FacilitatorClient.from_settings(settings),
        chain_reader=get_chain_reader(),
    )
