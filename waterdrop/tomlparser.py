"""TOML parser for configuration data."""

from __future__ import annotations

import tomllib
from typing import Any, Mapping

import tomli_w


class TomlParser:
    """Converts between TOML documents and dictionaries."""

    def marshal(self, mapping: Mapping[str, Any]) -> bytes:
        """Serialise a mapping to TOML bytes."""
        return tomli_w.dumps(dict(mapping)).encode("utf-8")

    def unmarshal(self, data: bytes | bytearray | str) -> dict[str, Any]:
        """Parse TOML bytes or text into a dictionary."""
        text = bytes(data).decode("utf-8") if isinstance(data, (bytes, bytearray)) else data
        return tomllib.loads(text)