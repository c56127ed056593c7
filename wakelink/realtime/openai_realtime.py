from __future__ import annotations

from typing import Optional

from openai import AsyncOpenAI

from wakelink.realtime.link import Connector, RealtimeConnection


def openai_connector(api_key: str, model: str, open_timeout_s: Optional[float] = None) -> Connector:
    """Connector opening one OpenAI Realtime websocket per call."""
    client = AsyncOpenAI(api_key=api_key)
    # the websocket handshake does not use the HTTP client's timeout
    options = {} if open_timeout_s is None else {"open_timeout": open_timeout_s}

    async def connect() -> RealtimeConnection:
        manager = client.beta.realtime.connect(model=model, websocket_connection_options=options)
        return await manager.enter()

    return connect
