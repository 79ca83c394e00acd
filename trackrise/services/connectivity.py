"""
Connectivity Probe

The sync reconciler asks two questions before a pass: is the device
online, and is it on Wi-Fi. ``SystemConnectivityProbe`` answers them on
Linux by opening a TCP connection to a well-known host and by inspecting
the interface that carries the default route.
"""

import asyncio
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Optional

import structlog

from trackrise.config import SyncSettings, get_settings

logger = structlog.get_logger(__name__)

ROUTE_TABLE = Path("/proc/net/route")
SYS_NET = Path("/sys/class/net")
CELLULAR_PREFIXES = ("wwan", "rmnet", "ppp", "ccmni", "usb")


class ConnectionKind(str, Enum):
    WIFI = "wifi"
    CELLULAR = "cellular"
    NONE = "none"
    UNKNOWN = "unknown"


class ConnectivityProbe(ABC):
    """Reports whether (and how) the device can reach the network."""

    @abstractmethod
    async def is_connected(self) -> bool:
        pass

    @abstractmethod
    async def connection_kind(self) -> ConnectionKind:
        pass


class SystemConnectivityProbe(ConnectivityProbe):
    """Connectivity probe for Linux hosts."""

    def __init__(
        self,
        settings: Optional[SyncSettings] = None,
        route_table: Path = ROUTE_TABLE,
        sys_net: Path = SYS_NET,
    ):
        self._settings = settings or get_settings().sync
        self._route_table = route_table
        self._sys_net = sys_net

    async def is_connected(self) -> bool:
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(self._settings.probe_host, self._settings.probe_port),
                timeout=self._settings.probe_timeout_seconds,
            )
        except (OSError, asyncio.TimeoutError) as e:
            logger.debug("connectivity_probe_failed", host=self._settings.probe_host, error=str(e))
            return False

        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return True

    def default_interface(self) -> Optional[str]:
        """Name of the interface carrying the default route, if any."""
        try:
            lines = self._route_table.read_text().splitlines()[1:]
        except OSError:
            return None

        for line in lines:
            fields = line.split()
            # Destination 00000000 is the default route
            if len(fields) > 1 and fields[1] == "00000000":
                return fields[0]
        return None

    async def connection_kind(self) -> ConnectionKind:
        if not await self.is_connected():
            return ConnectionKind.NONE

        interface = await asyncio.to_thread(self.default_interface)
        if interface is None:
            return ConnectionKind.UNKNOWN
        if (self._sys_net / interface / "wireless").exists():
            return ConnectionKind.WIFI
        if interface.startswith(CELLULAR_PREFIXES):
            return ConnectionKind.CELLULAR
        return ConnectionKind.UNKNOWN
