# ./src/dnsaccel/utils/snapshot.py
"""Snapshot codec persisting cache entries across process restarts.

Run path: constructed by ``dnsaccel.accel`` (or callers) and handed to ``Cache``.
Inputs: a home directory, a file name, and ``CacheEntry`` mappings to write.
Outputs: one JSON object file of ``key -> "<payload>,<unix expiry seconds>"``.
Side effects: creates the home directory and replaces the snapshot file on save.
Operational notes: every load failure degrades to an empty result, never an exception.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
import time
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple, Union

from ..models import CacheEntry

DEFAULT_FILENAME = "dnscache"

_EXPIRY_RX = re.compile(r"[+-]?[0-9]+")


def _format_value(entry: CacheEntry) -> str:
    return f"{entry.payload},{int(entry.expires_at)}"


def _parse_value(value: str, now: float) -> Optional[Tuple[str, float]]:
    payload, sep, expiry = value.partition(",")
    if not sep:
        return payload, now
    if not _EXPIRY_RX.fullmatch(expiry):
        return None
    return payload, float(int(expiry))


class Snapshot:
    """Read and write the on-disk cache snapshot."""

    def __init__(
        self,
        home_dir: Union[str, Path],
        filename: str = DEFAULT_FILENAME,
        logger: Optional[logging.Logger] = None,
    ):
        self.home_dir = Path(home_dir).expanduser()
        self.path = self.home_dir / filename
        self.log = logger or logging.getLogger("dnsaccel.snapshot")

    def save(self, entries: Mapping[str, CacheEntry]) -> None:
        """Write every entry, replacing any previous snapshot.

        Raises ``OSError`` when the directory or file cannot be written.
        """
        data = {str(key): _format_value(entry) for key, entry in entries.items()}
        self.home_dir.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", dir=str(self.home_dir)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, separators=(",", ":"))
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

        self.log.debug("Saved %d cache entries to %s", len(data), self.path)

    def load(self) -> Dict[str, Tuple[str, float]]:
        """Return ``key -> (payload, absolute expiry)`` for every readable entry."""
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            self.log.debug("No snapshot at %s", self.path)
            return {}
        except OSError as err:
            self.log.warning("Cannot read snapshot %s: %s", self.path, err)
            return {}

        try:
            payload = json.loads(raw)
        except ValueError:
            self.log.warning("Ignoring undecodable snapshot %s", self.path)
            return {}
        if not isinstance(payload, dict):
            self.log.warning("Ignoring snapshot %s with unexpected layout", self.path)
            return {}

        now = time.time()
        items: Dict[str, Tuple[str, float]] = {}
        skipped = 0
        for key, value in payload.items():
            if not isinstance(value, str):
                skipped += 1
                continue
            parsed = _parse_value(value, now)
            if parsed is None:
                skipped += 1
                continue
            items[key] = parsed

        if skipped:
            self.log.debug("Skipped %d malformed snapshot entries", skipped)
        return items
