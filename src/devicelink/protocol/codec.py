"""Device protocol encoder/decoder.

Frame layout on the wire::

    <decimal payload length>;<payload>

With a pre-shared key the payload is ``base64(IV || AES-256-CTR(json))`` where
IV is 16 random bytes drawn per frame. Without a key the payload is the JSON
text itself. The length prefix counts payload bytes.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
from collections.abc import Mapping
from typing import Any

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from devicelink.const import FRAME_LENGTH_SEPARATOR, IV_LENGTH, KEY_LENGTH
from devicelink.protocol.exceptions import DecodeError, InvalidKeyError
from devicelink.protocol.packet_types import OutboundPacket

logger = logging.getLogger(__name__)


class DeviceCodec:
    """Device protocol encoder/decoder.

    Provides static methods for encoding and decoding frames.
    All methods are stateless - no instance state maintained.
    """

    @staticmethod
    def parse_key(secret: str | None) -> bytes | None:
        """Decode a base64 pre-shared key.

        Args:
            secret: Base64 text from configuration, or None/empty for plaintext mode

        Returns:
            32 raw key bytes, or None when no key is configured

        Raises:
            InvalidKeyError: If the text is not base64 or does not decode to 32 bytes

        """
        if not secret:
            return None
        try:
            key = base64.b64decode(secret, validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidKeyError("invalid_base64") from e
        if len(key) != KEY_LENGTH:
            reason = f"wrong_length ({len(key)} bytes, expected {KEY_LENGTH})"
            raise InvalidKeyError(reason)
        return key

    @staticmethod
    def encrypt(plaintext: bytes, key: bytes) -> bytes:
        """Encrypt with AES-256-CTR under a fresh random IV.

        Returns:
            ASCII base64 of IV || ciphertext

        """
        iv = os.urandom(IV_LENGTH)
        encryptor = Cipher(algorithms.AES(key), modes.CTR(iv)).encryptor()
        ciphertext = encryptor.update(plaintext) + encryptor.finalize()
        return base64.b64encode(iv + ciphertext)

    @staticmethod
    def decrypt(payload: bytes, key: bytes) -> bytes:
        """Reverse ``encrypt``.

        Raises:
            DecodeError: If the payload is not base64 or is shorter than the IV

        """
        try:
            blob = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecodeError("invalid_base64", payload) from e
        if len(blob) < IV_LENGTH:
            raise DecodeError("truncated_ciphertext", payload)

        iv, ciphertext = blob[:IV_LENGTH], blob[IV_LENGTH:]
        decryptor = Cipher(algorithms.AES(key), modes.CTR(iv)).decryptor()
        return decryptor.update(ciphertext) + decryptor.finalize()

    @staticmethod
    def encode_payload(packet: OutboundPacket | Mapping[str, Any], key: bytes | None = None) -> bytes:
        """Serialize a packet to its (optionally encrypted) payload bytes."""
        wire = packet.to_dict() if isinstance(packet, OutboundPacket) else dict(packet)
        raw = json.dumps(wire, separators=(",", ":")).encode("utf-8")
        if key is None:
            return raw
        return DeviceCodec.encrypt(raw, key)

    @staticmethod
    def encode(packet: OutboundPacket | Mapping[str, Any], key: bytes | None = None) -> bytes:
        """Encode a packet into a complete ``<length>;<payload>`` frame.

        Example:
            >>> DeviceCodec.encode({"type": "PING"})
            b'15;{"type":"PING"}'

        """
        payload = DeviceCodec.encode_payload(packet, key)
        return str(len(payload)).encode("ascii") + FRAME_LENGTH_SEPARATOR + payload

    @staticmethod
    def decode(payload: bytes, key: bytes | None = None) -> dict[str, Any]:
        """Decode one reassembled payload into its JSON object.

        Args:
            payload: Frame payload with the length prefix already stripped
            key: 32-byte key, or None for plaintext mode

        Returns:
            Decoded JSON object

        Raises:
            DecodeError: On bad base64, truncated ciphertext, bad UTF-8, bad JSON
                or a JSON value that is not an object

        """
        raw = DeviceCodec.decrypt(payload, key) if key is not None else payload

        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError("invalid_utf8", payload) from e

        try:
            decoded = json.loads(text)
        except json.JSONDecodeError as e:
            raise DecodeError("invalid_json", payload) from e

        if not isinstance(decoded, dict):
            raise DecodeError("not_an_object", payload)

        logger.debug("Decoded packet type=%s", decoded.get("type"))
        return decoded
