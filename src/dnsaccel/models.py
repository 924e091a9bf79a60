# ./src/dnsaccel/models.py
"""Shared data models and exception taxonomy for dnsaccel.

Run path: imported by the cache, snapshot, pool, hosts, and accelerator modules.
Inputs: none (declarations only).
Outputs: ``CacheEntry``/``HostMapping`` dataclasses and the ``DNSAccelError`` family.
Side effects: none.
Operational notes: decode errors are recovered inside the cache and never reach callers.
"""

from __future__ import annotations

from dataclasses import dataclass
from ipaddress import IPv4Address, IPv6Address
from typing import Optional, Tuple, Union

IPAddress = Union[IPv4Address, IPv6Address]


@dataclass
class CacheEntry:
    """Encoded payload plus its absolute expiry (epoch seconds)."""

    payload: str
    expires_at: float


@dataclass(frozen=True)
class HostMapping:
    host: str
    address: Optional[IPAddress] = None
    resolvers: Tuple[str, ...] = ()

    @property
    def is_suffix(self) -> bool:
        return self.host.startswith(".")


class DNSAccelError(Exception):
    """Base error for dnsaccel."""


class PoolConstructionError(DNSAccelError, ValueError):
    """Raised when a network prefix has no usable host addresses."""


class PayloadDecodeError(DNSAccelError, ValueError):
    """Raised by payload codecs when stored text cannot be decoded."""


class UpstreamError(DNSAccelError):
    """Raised when every upstream nameserver failed to answer."""
