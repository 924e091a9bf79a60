# ./src/dnsaccel/utils/upstream.py
"""Upstream nameserver exchange used when the accelerator has no answer.

Imported by ``dnsaccel.accel.DNSAccelerator`` as its default upstream callable.
Run path: internal module import only (no direct CLI entrypoint).
Inputs: ``dns.message.Message`` queries plus server list and timeout from config.
Outputs: the first upstream response, or ``UpstreamError`` when every server failed.
Side effects: UDP (and TCP fallback) DNS traffic.
Operational notes: truncated UDP answers are retried over TCP against the same server.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import dns.exception
import dns.flags
import dns.message
import dns.query

from ..models import UpstreamError


class UpstreamExchanger:
    """Try each nameserver in order until one answers."""

    def __init__(
        self,
        servers: Sequence[str],
        timeout: float,
        logger: Optional[logging.Logger] = None,
    ):
        self.servers = tuple(server for server in servers if server)
        self.timeout = timeout
        self.log = logger or logging.getLogger("dnsaccel.upstream")

    def __call__(self, request: dns.message.Message) -> dns.message.Message:
        return self.exchange(request)

    def exchange(self, request: dns.message.Message) -> dns.message.Message:
        if not self.servers:
            raise UpstreamError("No upstream nameservers configured")

        last_err: Optional[Exception] = None
        for server in self.servers:
            try:
                response = dns.query.udp(request, server, timeout=self.timeout)
                if response.flags & dns.flags.TC:
                    response = dns.query.tcp(request, server, timeout=self.timeout)
                return response
            except (dns.exception.DNSException, OSError) as err:
                self.log.debug("Upstream %s failed: %s", server, err)
                last_err = err

        raise UpstreamError("All upstream nameservers failed") from last_err
