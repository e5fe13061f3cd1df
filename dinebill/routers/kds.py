from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from dinebill.config import settings
from dinebill.deps import ALL_STAFF, AuthContext, require_role
from dinebill.realtime.kds import KdsBus, get_bus
from dinebill.realtime.stream import KitchenStream

router = APIRouter(prefix="/kds", tags=["kds"])

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.get(
    "/stream",
    response_class=StreamingResponse,
    responses={200: {"content": {"text/event-stream": {}}}},
)
async def stream(
    bus: KdsBus = Depends(get_bus),
    ctx: AuthContext = Depends(require_role(*ALL_STAFF)),
):
    """Kitchen display feed: HELLO, ORDER_CREATED / ORDER_UPDATED / TABLE_SETTLED, PING."""
    kitchen = KitchenStream(bus, ctx.restaurant_id, ping_interval=settings.KDS_PING_SECONDS)
    return StreamingResponse(kitchen.frames(), media_type="text/event-stream", headers=SSE_HEADERS)
