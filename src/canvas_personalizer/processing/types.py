from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Protocol

NowFunc = Callable[[], float]
TelemetrySink = Callable[[dict[str, Any]], None]


class GenerateTextFunc(Protocol):
    def __call__(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        timeout_sec: float,
        cancel_event: asyncio.Event | None = None,
    ) -> Awaitable[str]: ...
