"""Network packets: header plus '#'-separated fields terminated by '#%'."""

from __future__ import annotations

from dataclasses import dataclass, field

_ESCAPES = (
    ("#", "<num>"),
    ("%", "<percent>"),
    ("$", "<dollar>"),
    ("&", "<and>"),
)


def encode(data: str) -> str:
    """Escape the characters that delimit packets."""
    for raw, escaped in _ESCAPES:
        data = data.replace(raw, escaped)
    return data


def decode(data: str) -> str:
    """Undo :func:`encode`."""
    for raw, escaped in _ESCAPES:
        data = data.replace(escaped, raw)
    return data


@dataclass
class Packet:
    """A single protocol message."""

    header: str = ""
    content: list[str] = field(default_factory=list)

    def to_string(self, ensure_encoded: bool = False) -> str:
        """Serialise the packet, escaping fields if requested."""
        fields = (encode(item) if ensure_encoded else item for item in self.content)
        return "".join([self.header, *("#" + item for item in fields), "#%"])