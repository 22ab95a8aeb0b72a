from __future__ import annotations
from dataclasses import dataclass
from typing import Protocol, Any


@dataclass(frozen=True)
class SinkDeliveryResult:
    ok: bool
    error: str | None = None


class IngestionSink(Protocol):
    async def send(self, payload: dict[str, Any]) -> SinkDeliveryResult:
        ...

    async def close(self) -> None:
        ...
