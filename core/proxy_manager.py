"""Outbound proxy handling for the LayerEdge node bot.

Parses proxy URIs into a small tagged variant (:class:`Proxy` with a
:class:`ProxyKind`), loads the proxy list file and hands proxies out
round-robin by wallet index.

Proxy lifecycle::

    proxy.txt -> parse (http / socks4 / socks5, else direct + warning)
    -> select proxies[i % len(proxies)] for wallet i -> transport config
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional
from urllib.parse import urlparse

from aiohttp_socks import ProxyConnector

from core.utils import read_lines

logger = logging.getLogger(__name__)

SOCKS_SCHEMES = ("socks4://", "socks5://")
HTTP_SCHEMES = ("http://",)


class ProxyKind(Enum):
    """How a request leaves the machine."""

    NONE = "none"
    HTTP = "http"
    SOCKS = "socks"


@dataclass(frozen=True)
class Proxy:
    """A proxy selection threaded into the request transport.

    Attributes:
        kind: :class:`ProxyKind` tag.
        uri: Full proxy URI (``None`` for a direct connection).
    """

    kind: ProxyKind = ProxyKind.NONE
    uri: Optional[str] = None

    @property
    def is_direct(self) -> bool:
        return self.kind is ProxyKind.NONE

    def request_proxy(self) -> Optional[str]:
        """URI for aiohttp's per-request ``proxy=`` argument (HTTP only)."""
        return self.uri if self.kind is ProxyKind.HTTP else None

    def connector(self) -> Optional[ProxyConnector]:
        """Build a SOCKS connector, or ``None`` for HTTP/direct.

        Must be called inside a running event loop; the connector is
        owned by the session that receives it.
        """
        if self.kind is ProxyKind.SOCKS:
            return ProxyConnector.from_url(self.uri)
        return None

    def masked(self) -> str:
        """Display form with credentials hidden."""
        if self.is_direct:
            return "none"
        parsed = urlparse(self.uri)
        if "@" not in parsed.netloc:
            return self.uri
        # host[:port] as written; .port would raise on a malformed port
        host = parsed.netloc.rsplit("@", 1)[-1]
        return f"{parsed.scheme}://***@{host}"

    def __str__(self) -> str:
        return self.masked()


NO_PROXY = Proxy()


def parse_proxy(proxy_str: Optional[str]) -> Proxy:
    """Turn a proxy string into a :class:`Proxy`.

    Unsupported schemes are logged and mapped to a direct connection.

    Args:
        proxy_str: Raw line from the proxy file, or ``None``.

    Returns:
        ``Proxy(HTTP, uri)``, ``Proxy(SOCKS, uri)`` or :data:`NO_PROXY`.
    """
    if not proxy_str:
        return NO_PROXY
    proxy_str = proxy_str.strip()
    if proxy_str.startswith(HTTP_SCHEMES):
        return Proxy(ProxyKind.HTTP, proxy_str)
    if proxy_str.startswith(SOCKS_SCHEMES):
        return Proxy(ProxyKind.SOCKS, proxy_str)
    logger.warning("Unsupported proxy type: %s", proxy_str)
    return NO_PROXY


class ProxyManager:
    """Hold the configured proxy list and pick one per wallet.

    Lines are kept as raw strings; each selection is parsed on demand
    so a bad line only degrades its own wallet slot to a direct
    connection.
    """

    def __init__(self, proxies: Optional[List[str]] = None) -> None:
        self.proxies: List[str] = list(proxies or [])

    @classmethod
    def from_file(cls, filepath: str) -> "ProxyManager":
        """Load proxies from a line-oriented text file."""
        manager = cls(read_lines(filepath))
        if manager.proxies:
            logger.info("Loaded %d proxies from %s", len(manager.proxies), filepath)
        return manager

    def __len__(self) -> int:
        return len(self.proxies)

    def raw_for(self, index: int) -> Optional[str]:
        """The raw proxy line for wallet *index*, round-robin."""
        if not self.proxies:
            return None
        return self.proxies[index % len(self.proxies)]

    def proxy_for(self, index: int) -> Proxy:
        """The parsed proxy for wallet *index* (direct if none loaded)."""
        return parse_proxy(self.raw_for(index))
