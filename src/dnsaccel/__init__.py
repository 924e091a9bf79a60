# ./src/dnsaccel/__init__.py
"""dnsaccel: TTL answer cache, snapshot persistence, and fake-ip pool for DNS proxies."""

from __future__ import annotations

from .accel import DNSAccelerator, build_accelerator, cache_key
from .models import (
    CacheEntry,
    DNSAccelError,
    HostMapping,
    PayloadDecodeError,
    PoolConstructionError,
    UpstreamError,
)
from .utils.cache import Cache, Janitor
from .utils.config import Config, load_config
from .utils.encoding import HexCodec, PayloadCodec
from .utils.fakeip import Pool
from .utils.hosts import HostsTable
from .utils.snapshot import Snapshot

__all__ = [
    "Cache",
    "CacheEntry",
    "Config",
    "DNSAccelError",
    "DNSAccelerator",
    "HexCodec",
    "HostMapping",
    "HostsTable",
    "Janitor",
    "PayloadCodec",
    "PayloadDecodeError",
    "Pool",
    "PoolConstructionError",
    "Snapshot",
    "UpstreamError",
    "build_accelerator",
    "cache_key",
    "load_config",
]

__version__ = "0.1.0"
