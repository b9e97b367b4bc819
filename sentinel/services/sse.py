import json
from typing import Optional, Union

from sentinel.schemas import CycleError, Snapshot

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

KEEPALIVE_FRAME = ": keep-alive\n\n"

def sse_frame(data: str, event: Optional[str] = None) -> str:
    lines = []
    if event:
        lines.append(f"event: {event}")
    # cada línea del payload necesita su propio prefijo data:
    lines.extend(f"data: {line}" for line in data.splitlines() or [""])
    return "\n".join(lines) + "\n\n"

def encode_message(message: Union[Snapshot, CycleError]) -> str:
    if isinstance(message, CycleError):
        return sse_frame(json.dumps({"detail": message.detail}), event="error")
    return sse_frame(message.model_dump_json())
