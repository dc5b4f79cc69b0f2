from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncIterator, Optional, Protocol, Union


class PeerConnection(Protocol):
    """What the host and client need from a transport; a websockets connection fits."""

    async def send(self, message: str) -> None: ...

    async def recv(self) -> Union[str, bytes]: ...

    async def close(self) -> None: ...

    def __aiter__(self) -> AsyncIterator[Union[str, bytes]]: ...


@dataclass
class HostConfig:
    host: str = "0.0.0.0"
    port: int = 8765
    host_name: Optional[str] = None
    host_id: str = "host"
    auto_start: bool = False
    join_timeout_s: float = 5.0
    seed: Optional[int] = None


@dataclass
class ReconnectPolicy:
    interval_s: float = 1.0
    window_s: float = 3600.0


@dataclass
class ClientSession:
    player_id: str
    websocket: PeerConnection
