# ./src/dnsaccel/accel.py
"""dnsaccel orchestration: hosts table, fake-ip pool, TTL cache, and upstream.

Used by both the public Python API and the CLI entrypoint.
Run via imports (e.g., ``from dnsaccel import build_accelerator``) or ``python -m dnsaccel.main``.
Inputs: ``dns.message.Message`` queries or ``(qname, qtype)`` pairs, config via ``Config``/JSON/env.
Outputs: ``dns.message.Message`` responses (answers, cached answers, or SERVFAIL).
Side effects: reloads the snapshot on start, runs the cache janitor, and queries upstreams on miss.
Operational notes: stale cache entries are refreshed first and only served when upstream fails.
"""

from __future__ import annotations

import time
from typing import Callable, Dict, Optional

import dns.exception
import dns.flags
import dns.message
import dns.rcode
import dns.rdataclass
import dns.rdatatype
import dns.rrset

from .models import HostMapping, PoolConstructionError, UpstreamError
from .utils.cache import Cache
from .utils.config import Config, load_config
from .utils.fakeip import Pool
from .utils.hosts import HostsTable, normalize_domain
from .utils.logger import build_logger
from .utils.snapshot import Snapshot
from .utils.upstream import UpstreamExchanger

Exchange = Callable[[dns.message.Message], dns.message.Message]

HOSTS_TTL = 10
FAKE_IP_TTL = 1
STALE_TTL = 1

_ADDRESS_TYPES = {4: dns.rdatatype.A, 6: dns.rdatatype.AAAA}


def cache_key(qname: str, qtype: str) -> str:
    return f"{normalize_domain(qname)}:{qtype.upper()}"


class DNSAccelerator:
    """Answer DNS queries from hosts, fake-ip, cache, then upstream."""

    def __init__(
        self,
        cfg: Optional[Config] = None,
        config_path: Optional[str] = None,
        cache: Optional[Cache] = None,
        pool: Optional[Pool] = None,
        hosts: Optional[HostsTable] = None,
        upstream: Optional[Exchange] = None,
    ):
        self.cfg = cfg or load_config(config_path)
        self.log = build_logger(
            self.cfg.logger_name,
            self.cfg.log_level,
            redact_domains=self.cfg.redact_domains,
            redact_style=self.cfg.redact_style,
        )

        self._owns_cache = cache is None
        if cache is None:
            snapshot = None
            if self.cfg.persist_enabled:
                snapshot = Snapshot(
                    self.cfg.home_dir,
                    self.cfg.snapshot_filename,
                    logger=self.log.getChild("snapshot"),
                )
            cache = Cache(
                interval=self.cfg.janitor_interval_seconds,
                snapshot=snapshot,
                stale_after=self.cfg.stale_after_seconds,
                logger=self.log.getChild("cache"),
            )
            restored = cache.reload()
            if restored:
                self.log.info("Restored %d cached answers", restored)
        self.cache = cache

        if pool is None and self.cfg.fake_ip_enabled:
            try:
                pool = Pool(self.cfg.fake_ip_range)
            except PoolConstructionError:
                self.close()
                raise
        self.pool = pool

        if hosts is None:
            hosts = HostsTable.from_mapping(self.cfg.hosts)
        self.hosts = hosts
        self._upstream: Exchange = upstream or UpstreamExchanger(
            self.cfg.upstream_servers,
            self.cfg.upstream_timeout_seconds,
            logger=self.log.getChild("upstream"),
        )
        self._host_upstreams: Dict[HostMapping, Exchange] = {}

    def __enter__(self) -> "DNSAccelerator":
        return self

    def __exit__(self, *_exc) -> None:
        self.close()

    def close(self) -> None:
        """Persist and stop the cache when this accelerator created it."""
        if not self._owns_cache or self.cache.closed:
            return
        try:
            self.cache.save()
        except OSError as err:
            self.log.warning("Final cache save failed: %s", err)
        self.cache.close()

    def resolve(self, qname: str, qtype: str = "A") -> dns.message.Message:
        """Build a recursive query for ``qname`` and answer it."""
        return self.handle(dns.message.make_query(qname, qtype))

    def handle(self, request: dns.message.Message) -> dns.message.Message:
        """Answer a single-question query message."""
        if not request.question:
            response = dns.message.make_response(request)
            response.set_rcode(dns.rcode.FORMERR)
            return response

        question = request.question[0]
        qname = question.name.to_text(omit_final_dot=True)
        qtype = dns.rdatatype.to_text(question.rdtype)

        mapping = self.hosts.get(qname)
        if mapping is not None and mapping.address is not None:
            if _ADDRESS_TYPES[mapping.address.version] == question.rdtype:
                self.log.debug("Hosts answer for %s %s", qname, qtype)
                return self._address_response(request, str(mapping.address), HOSTS_TTL)

        pool_type = None
        if self.pool is not None:
            pool_type = _ADDRESS_TYPES[self.pool.network.version]
        if question.rdtype == pool_type:
            return self._address_response(request, str(self.pool.get()), FAKE_IP_TTL)

        upstream = self._upstream
        if mapping is not None and mapping.resolvers:
            upstream = self._host_upstream(mapping)

        key = cache_key(qname, qtype)
        cached = self._cached_response(key, request)
        if cached is not None:
            response, expires_at = cached
            remaining = int(expires_at - time.time())
            if remaining > 0:
                self.log.debug("Cache hit for %s", key)
                _set_ttl(response, remaining)
                return response
            if self.cfg.serve_stale:
                try:
                    return self._exchange(key, request, upstream)
                except UpstreamError:
                    self.log.info("Serving stale answer for %s", key)
                    _set_ttl(response, STALE_TTL)
                    return response

        try:
            return self._exchange(key, request, upstream)
        except UpstreamError as err:
            self.log.warning("Upstream failed for %s: %s", key, err)
            response = dns.message.make_response(request)
            response.set_rcode(dns.rcode.SERVFAIL)
            return response

    def _exchange(
        self, key: str, request: dns.message.Message, upstream: Exchange
    ) -> dns.message.Message:
        response = upstream(request)
        if response.rcode() == dns.rcode.NOERROR and response.answer:
            ttl = min(rrset.ttl for rrset in response.answer)
            ttl = min(max(ttl, self.cfg.min_ttl), self.cfg.max_ttl)
            self.cache.put(key, self.cache.codec.encode(response.to_wire()), ttl)
        response.id = request.id
        return response

    def _cached_response(self, key: str, request: dns.message.Message):
        found = self.cache.get_with_expiry(key)
        if found is None:
            return None
        wire, expires_at = found
        try:
            response = dns.message.from_wire(wire)
        except dns.exception.DNSException:
            self.cache.delete(key)
            return None
        response.id = request.id
        return response, expires_at

    def _address_response(
        self, request: dns.message.Message, address: str, ttl: int
    ) -> dns.message.Message:
        question = request.question[0]
        response = dns.message.make_response(request)
        response.flags |= dns.flags.RA
        response.answer.append(
            dns.rrset.from_text(
                question.name, ttl, dns.rdataclass.IN, question.rdtype, address
            )
        )
        return response

    def _host_upstream(self, mapping: HostMapping) -> Exchange:
        upstream = self._host_upstreams.get(mapping)
        if upstream is None:
            upstream = UpstreamExchanger(
                mapping.resolvers,
                self.cfg.upstream_timeout_seconds,
                logger=self.log.getChild("upstream"),
            )
            self._host_upstreams[mapping] = upstream
        return upstream


def _set_ttl(response: dns.message.Message, ttl: int) -> None:
    for section in (response.answer, response.authority, response.additional):
        for rrset in section:
            rrset.ttl = ttl


def build_accelerator(overrides_path: Optional[str] = None) -> DNSAccelerator:
    if overrides_path:
        return DNSAccelerator(config_path=overrides_path)
    return DNSAccelerator()
