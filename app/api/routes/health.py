from fastapi import APIRouter, Depends, Response

from app.api.deps import get_chain_reader, get_replay_store
from app.services.chain.reader import ChainReader
from app.services.replay.store import ReplayStore


router = APIRouter()


@router.get("/")
def root() -> dict:
    return {"ok": True}


@router.get("/health")
def health() -> dict:
    """Liveness check - always returns 200 if app is running."""
    return {"status": "ok"}


@router.get("/ready")
def readiness(
    response: Response,
    replay_store: ReplayStore = Depends(get_replay_store),
    chain_reader: ChainReader = Depends(get_chain_reader),
) -> dict:
    """Readiness check - returns 503 if the replay store or the RPC node is unavailable."""
    checks = {
        "replay_store": replay_store.ping(),
        "rpc": chain_reader.is_connected(),
    }
    if not all(checks.values()):
        response.status_code = 503
        return {"status": "not_ready", "checks": checks}
    return {"status": "ready", "checks": checks}
