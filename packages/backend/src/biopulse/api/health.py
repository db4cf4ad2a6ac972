"""Health check endpoint.

Learn: Reports the API version plus live-update load (topics with a
running timer, open sockets). The AI service has its own check at
/api/mcp/health because it is slow and optional.
"""

from fastapi import APIRouter, Depends

from biopulse import __version__
from biopulse.api.deps import get_broadcaster, get_gateway
from biopulse.realtime.broadcaster import LiveUpdateBroadcaster
from biopulse.realtime.gateway import ConnectionGateway

router = APIRouter()


@router.get("/health")
async def health_check(
    gateway: ConnectionGateway = Depends(get_gateway),
    broadcaster: LiveUpdateBroadcaster = Depends(get_broadcaster),
):
    return {
        "status": "healthy",
        "server": "ok",
        "version": __version__,
        "connections": gateway.connection_count(),
        **broadcaster.stats(),
    }
