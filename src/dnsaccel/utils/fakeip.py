# ./src/dnsaccel/utils/fakeip.py
"""Fake-IP address pool drawing synthetic addresses from a network prefix.

Run path: imported by ``dnsaccel.accel`` when fake-ip mode is enabled, and by the CLI.
Inputs: a CIDR prefix (host bits allowed, e.g. ``198.18.0.1/16``).
Outputs: pseudo-random usable host addresses inside the prefix.
Side effects: none; no allocation state survives between draws.
Operational notes: concurrent callers may receive the same address.
"""

from __future__ import annotations

import ipaddress
import random
import threading
from typing import Optional, Union

from ..models import IPAddress, PoolConstructionError

Network = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]


class Pool:
    """Memoryless allocator over the usable hosts of a network."""

    def __init__(self, prefix: Union[str, Network], rng: Optional[random.Random] = None):
        try:
            network = (
                prefix
                if isinstance(prefix, (ipaddress.IPv4Network, ipaddress.IPv6Network))
                else ipaddress.ip_network(str(prefix).strip(), strict=False)
            )
        except ValueError as err:
            raise PoolConstructionError(f"Invalid network prefix: {prefix!r}") from err

        # network and broadcast addresses are never handed out
        total = network.num_addresses - 2
        if total <= 0:
            raise PoolConstructionError(f"{network} has no usable host addresses")

        self._network = network
        self._min = int(network.network_address) + 1
        self._total = total
        self._rng = rng or random.Random()
        self._mux = threading.Lock()

    def __repr__(self) -> str:
        return f"Pool({str(self._network)!r})"

    def __contains__(self, address: object) -> bool:
        try:
            value = ipaddress.ip_address(address)  # type: ignore[arg-type]
        except ValueError:
            return False
        if value.version != self._network.version:
            return False
        return self._min <= int(value) < self._min + self._total

    @property
    def network(self) -> Network:
        return self._network

    @property
    def size(self) -> int:
        return self._total

    @property
    def lower_bound(self) -> IPAddress:
        return self._address(self._min)

    @property
    def upper_bound(self) -> IPAddress:
        return self._address(self._min + self._total - 1)

    def get(self) -> IPAddress:
        with self._mux:
            offset = self._rng.randrange(self._total)
            return self._address(self._min + offset)

    def _address(self, value: int) -> IPAddress:
        if self._network.version == 4:
            return ipaddress.IPv4Address(value)
        return ipaddress.IPv6Address(value)
