# ./src/dnsaccel/utils/encoding.py
"""Payload codecs used to store opaque bytes as cache text.

Run path: imported by ``dnsaccel.utils.cache`` (decode) and ``dnsaccel.accel`` (encode).
Inputs: raw bytes (encode) or stored text (decode).
Outputs: encoded text, or decoded bytes / ``PayloadDecodeError``.
Side effects: none.
Operational notes: the cache depends on the ``PayloadCodec`` protocol only, never on hex.
"""

from __future__ import annotations

import binascii
from typing import Protocol

from ..models import PayloadDecodeError


class PayloadCodec(Protocol):
    def encode(self, data: bytes) -> str:
        ...

    def decode(self, text: str) -> bytes:
        ...


class HexCodec:
    """Lowercase hexadecimal text codec."""

    def encode(self, data: bytes) -> str:
        return binascii.hexlify(data).decode("ascii")

    def decode(self, text: str) -> bytes:
        if not isinstance(text, str):
            raise PayloadDecodeError("Payload is not text")
        try:
            return binascii.unhexlify(text)
        except (binascii.Error, ValueError) as err:
            raise PayloadDecodeError("Payload is not valid hex") from err


DEFAULT_CODEC = HexCodec()
