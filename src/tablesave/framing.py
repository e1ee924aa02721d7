"""Splitting a symbol stream into tagged, checksummed text frames.

Frame layout::

    <tag><marker><payload>\\n

``marker`` is ``-`` for the first frame and ``n % 10`` for the n-th frame after
it, so a receiver can spot gaps and repeats. A frame consisting of a bare line
terminator ends the transfer. The last frame carries a 7-symbol checksum trailer
computed over every preceding symbol.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional, Sequence

from .errors import IntegrityError, TransportError
from .values import ALPHABET_SIZE

logger = logging.getLogger(__name__)

DEFAULT_TAG = "ESk"
DEFAULT_MAX_FRAME_SYMBOLS = 60000
FIRST_FRAME_MARKER = "-"
END_OF_TRANSFER = "\n"

# largest prime below 94**7
CHECKSUM_MODULUS = 64847759419249
CHECKSUM_SYMBOLS = 7
_LOW_BITS = 36
_LOW_MASK = (1 << _LOW_BITS) - 1

# symbol 5 is sent as "~" because "%" is reserved by the host channel
_RESERVED_SYMBOL = 5
_SYMBOL_TO_CHAR: List[str] = [chr(0x20 + symbol) for symbol in range(ALPHABET_SIZE)]
_SYMBOL_TO_CHAR[_RESERVED_SYMBOL] = "~"
_CHAR_TO_SYMBOL: Dict[str, int] = {char: symbol for symbol, char in enumerate(_SYMBOL_TO_CHAR)}


def checksum_step(accumulator: int, symbol: int) -> int:
    """Mix one symbol into the accumulator.

    The accumulator is split at bit 36 so every intermediate stays below 2**53,
    which keeps the recurrence exact on hosts that only have doubles.
    """
    low = accumulator & _LOW_MASK
    high = accumulator >> _LOW_BITS
    return low * 126611 + high * 505231 + symbol * 3083


def checksum(symbols: Sequence[int]) -> int:
    accumulator = 0
    for symbol in symbols:
        accumulator = checksum_step(accumulator, symbol)
    return accumulator % CHECKSUM_MODULUS


def checksum_trailer(value: int) -> List[int]:
    """Base-94 digits of ``value``, least significant first."""
    digits = []
    for _ in range(CHECKSUM_SYMBOLS):
        value, digit = divmod(value, ALPHABET_SIZE)
        digits.append(digit)
    return digits


def trailer_value(digits: Sequence[int]) -> int:
    value = 0
    for digit in reversed(digits):
        value = value * ALPHABET_SIZE + digit
    return value


def frame_marker(number: int) -> str:
    """Marker for the ``number``-th frame (1-based)."""
    return FIRST_FRAME_MARKER if number == 1 else str(number % 10)


def encode_symbols(symbols: Sequence[int]) -> str:
    return "".join(_SYMBOL_TO_CHAR[symbol] for symbol in symbols)


class FrameWriter:
    """Turns a symbol sequence into frame strings ready for the channel."""

    def __init__(self, tag: str = DEFAULT_TAG, max_symbols: int = DEFAULT_MAX_FRAME_SYMBOLS) -> None:
        if max_symbols < 1:
            raise ValueError("max_symbols must be positive")
        self.tag = tag
        self.max_symbols = max_symbols

    def frames(self, symbols: Sequence[int]) -> Iterator[str]:
        """Yield every frame of the transfer, ending with the end-of-transfer frame."""
        payload = list(symbols)
        payload.extend(checksum_trailer(checksum(payload)))
        number = 0
        for start in range(0, len(payload), self.max_symbols):
            number += 1
            chunk = payload[start:start + self.max_symbols]
            yield f"{self.tag}{frame_marker(number)}{encode_symbols(chunk)}\n"
        logger.debug("Framed %d symbols into %d frames", len(payload), number)
        yield END_OF_TRANSFER


class FrameReader:
    """Incremental receiver for frames produced by :class:`FrameWriter`.

    Feed messages one at a time with :meth:`feed`; once the end-of-transfer frame
    has arrived, :meth:`finalize` returns the verified payload symbols. Any
    rejected message poisons the whole transfer.
    """

    def __init__(self, tag: str = DEFAULT_TAG) -> None:
        self.tag = tag
        self.finished = False
        self._expected = 1
        self._symbols: List[int] = []
        self._failure: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self._failure is not None

    @property
    def frame_count(self) -> int:
        return self._expected - 1

    def _reject(self, reason: str) -> bool:
        logger.warning("Discarding transfer: %s", reason)
        self._failure = reason
        self._symbols = []
        return False

    def feed(self, message: str) -> bool:
        """Consume one message. Returns True if it was accepted."""
        if self._failure is not None or self.finished:
            logger.debug("Ignoring message after transfer %s", "failure" if self._failure else "end")
            return False
        body = message[:-1] if message.endswith("\n") else message
        if body == "":
            self.finished = True
            return True
        header = self.tag + frame_marker(self._expected)
        if not body.startswith(header):
            return self._reject(f"expected frame header {header!r}, got {body[:len(header)]!r}")
        symbols = []
        for char in body[len(header):]:
            symbol = _CHAR_TO_SYMBOL.get(char)
            if symbol is None:
                return self._reject(f"byte {char!r} outside the alphabet in frame {self._expected}")
            symbols.append(symbol)
        self._symbols.extend(symbols)
        self._expected += 1
        return True

    def finalize(self) -> List[int]:
        """Return the payload symbols with the checksum trailer verified and removed."""
        if self._failure is not None:
            raise TransportError(self._failure)
        if not self.finished:
            raise TransportError("transfer ended without an end-of-transfer frame")
        if len(self._symbols) < CHECKSUM_SYMBOLS:
            raise IntegrityError("transfer too short to hold a checksum")
        payload = self._symbols[:-CHECKSUM_SYMBOLS]
        expected = trailer_value(self._symbols[-CHECKSUM_SYMBOLS:])
        actual = checksum(payload)
        if expected != actual:
            raise IntegrityError(f"checksum mismatch: trailer {expected}, computed {actual}")
        logger.debug("Received %d frames, %d payload symbols", self.frame_count, len(payload))
        return payload
