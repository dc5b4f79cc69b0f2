"""Networked play: the authoritative host, the peer client and the wire protocol."""

from .client import ClientMirror, PeerClient, PeerIdUnavailable
from .models import HostConfig, ReconnectPolicy
from .server import HostServer

__all__ = ["ClientMirror", "PeerClient", "PeerIdUnavailable", "HostConfig", "ReconnectPolicy", "HostServer"]
