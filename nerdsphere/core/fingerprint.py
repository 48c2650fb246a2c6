"""
Client class tokens used as rate-limit keys.

A token is derived from the client's user agent and screen resolution. It is
low entropy and shared by every client with the same configuration; it is a
heuristic for throttling, never an identity or a security boundary. The
server-side rate limiter is the only binding control.
"""
from dataclasses import dataclass

BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    value = abs(value)
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(BASE36_DIGITS[remainder])
    return sign + "".join(reversed(digits))


def rolling_hash(text: str) -> int:
    """31-multiplier rolling hash over UTF-16 code units, kept to signed 32 bits."""
    encoded = text.encode("utf-16-le")
    hash_value = 0
    for i in range(0, len(encoded), 2):
        code_unit = encoded[i] | (encoded[i + 1] << 8)
        hash_value = _to_int32((hash_value << 5) - hash_value + code_unit)
    return hash_value


def generate_fingerprint(user_agent: str, screen_resolution: str) -> str:
    """Short base-36 token for a user agent / resolution pair such as ``"1920x1080"``."""
    return _to_base36(rolling_hash(f"{user_agent}-{screen_resolution}"))


@dataclass(frozen=True)
class ClientClassToken:
    """A non-authenticating token naming a class of similar clients."""

    value: str

    @classmethod
    def from_environment(cls, user_agent: str, width: int, height: int) -> "ClientClassToken":
        return cls(generate_fingerprint(user_agent, f"{width}x{height}"))

    def __str__(self) -> str:
        return self.value
