# ./src/dnsaccel/utils/logger.py
"""Logger builder with optional domain-name redaction for dnsaccel.

Run path: imported by ``dnsaccel.accel``.
Inputs: logger name/level and redaction controls.
Outputs: configured ``logging.Logger`` instance.
Side effects: attaches a stream handler when one is not already present.
Operational notes: masking keeps the registrable tail (last two labels) readable.
"""

from __future__ import annotations

import logging
import re

_DOMAIN_RX = re.compile(
    r"\b(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63}\b",
    re.I,
)


class RedactingFormatter(logging.Formatter):
    """Formatter that can mask queried domain names in log messages."""

    def __init__(self, fmt: str, redact: bool, redact_style: str):
        super().__init__(fmt)
        self._redact = redact
        self._redact_style = redact_style

    def format(self, record: logging.LogRecord) -> str:
        rendered = super().format(record)
        if not self._redact or self._redact_style == "none":
            return rendered
        return _DOMAIN_RX.sub(lambda match: mask_domain(match.group(0)), rendered)


def mask_domain(domain: str) -> str:
    labels = domain.split(".")
    if len(labels) <= 2:
        return domain
    return ".".join(["*"] * (len(labels) - 2) + labels[-2:])


def build_logger(
    name: str,
    level: int,
    redact_domains: bool = False,
    redact_style: str = "mask",
) -> logging.Logger:
    """Create or reuse a configured logger instance."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = RedactingFormatter(
            "%(asctime)s [%(levelname)s] %(name)s :: %(message)s",
            redact_domains,
            redact_style,
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(level)
    logger.propagate = False
    return logger
