# ./src/dnsaccel/utils/hosts.py
"""Static host-mapping table consulted before any cache or upstream work.

Run path: built by ``dnsaccel.accel`` from ``Config.hosts``; used by the ``hosts`` CLI command.
Inputs: ``{host: address}`` mappings; a leading dot means "domain and subdomains".
Outputs: the first matching ``HostMapping`` or ``None``.
"""

from __future__ import annotations

import ipaddress
from typing import Iterable, List, Mapping, Optional

import idna

from ..models import HostMapping


def normalize_domain(domain: str) -> str:
    """Lower-case, strip the root dot, and convert to IDNA A-labels."""
    cleaned = (domain or "").strip().rstrip(".").lower()
    if not cleaned:
        return ""
    try:
        return idna.encode(cleaned, uts46=True).decode("ascii")
    except idna.IDNAError:
        return cleaned


class HostsTable:
    """Linear list of host mappings, first match wins."""

    def __init__(self, mappings: Iterable[HostMapping] = ()):
        self._mapping: List[HostMapping] = []
        for item in mappings:
            prefix = "." if item.is_suffix else ""
            host = prefix + normalize_domain(item.host.lstrip("."))
            self._mapping.append(
                HostMapping(host=host, address=item.address, resolvers=item.resolvers)
            )

    @classmethod
    def from_mapping(cls, data: Mapping[str, str]) -> "HostsTable":
        """Build a table from ``{host: target}``.

        A target that parses as an IP address becomes a static answer; anything
        else is read as a comma-separated list of nameservers for that host.
        """
        mappings = []
        for host, target in data.items():
            text = str(target).strip()
            try:
                address = ipaddress.ip_address(text)
                mappings.append(HostMapping(host=str(host), address=address))
            except ValueError:
                servers = tuple(part.strip() for part in text.split(",") if part.strip())
                if servers:
                    mappings.append(HostMapping(host=str(host), resolvers=servers))
        return cls(mappings)

    def __len__(self) -> int:
        return len(self._mapping)

    def get(self, domain: str) -> Optional[HostMapping]:
        name = normalize_domain(domain)
        if not name:
            return None

        for elm in self._mapping:
            if elm.is_suffix:
                if name.endswith(elm.host) or name == elm.host[1:]:
                    return elm
            elif name == elm.host:
                return elm
        return None
