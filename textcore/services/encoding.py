"""
Encoding detection for raw text bytes.

Detection looks at no more than the first 4 KB:
- Byte-order marks win outright
- A high ratio of null bytes means UTF-16, byte order from their parity
- Otherwise UTF-8 and GB18030 decodes are compared, UTF-8 is validated
  structurally, and Windows-1252 is the last resort

Detection never raises; it always returns a Python codec name.
"""

from __future__ import annotations

import codecs
import logging
from typing import BinaryIO, NamedTuple, Optional


# Maximum number of bytes examined.
SAMPLE_SIZE = 4096

DEFAULT_ENCODING = 'utf-8'
FALLBACK_ENCODING = 'cp1252'

# Longer signatures first: the UTF-32 LE mark starts with the UTF-16 LE one.
BOM_SIGNATURES = (
    (b'\xff\xfe\x00\x00', 'utf-32-le'),
    (b'\x00\x00\xfe\xff', 'utf-32-be'),
    (b'\xef\xbb\xbf', 'utf-8-sig'),
    (b'\xff\xfe', 'utf-16-le'),
    (b'\xfe\xff', 'utf-16-be'),
)

# BOM bytes a byte-order specific codec may find at the start of a file.
_CODEC_BOMS = {
    'utf-8': b'\xef\xbb\xbf',
    'utf-16-le': b'\xff\xfe',
    'utf-16-be': b'\xfe\xff',
    'utf-32-le': b'\xff\xfe\x00\x00',
    'utf-32-be': b'\x00\x00\xfe\xff',
}

_REPLACEMENT_CHAR = '\ufffd'


class BomMatch(NamedTuple):
    """A byte-order mark found at the start of some data."""
    codec: str
    length: int


def detect_bom(data: bytes) -> Optional[BomMatch]:
    """Return the codec announced by a leading BOM, if any."""
    for signature, codec in BOM_SIGNATURES:
        if data.startswith(signature):
            return BomMatch(codec, len(signature))
    return None


def detect_encoding(data: bytes) -> str:
    """
    Detect the encoding of ``data``.

    Args:
        data: Raw bytes; only the first ``SAMPLE_SIZE`` bytes are examined

    Returns:
        A Python codec name
    """
    if not data:
        return DEFAULT_ENCODING

    sample = bytes(data[:SAMPLE_SIZE])
    truncated = len(data) > SAMPLE_SIZE

    bom = detect_bom(sample)
    if bom is not None:
        return bom.codec

    return _detect_by_heuristic(sample, truncated)


def detect_stream_encoding(stream: BinaryIO) -> str:
    """
    Detect the encoding of a binary stream from its next 4 KB.

    The stream position is restored afterwards when the stream is seekable.
    """
    seekable = stream.seekable()
    position = stream.tell() if seekable else 0

    # One extra byte tells whether the sample was cut short.
    data = stream.read(SAMPLE_SIZE + 1)

    if seekable:
        stream.seek(position)

    return detect_encoding(data)


def resolve_codec(encoding: str, head: bytes) -> tuple[str, int]:
    """
    Map an encoding to a stateless codec and the BOM length to skip.

    Text decoded chunk by chunk must not depend on where decoding started,
    so BOM-consuming codecs are replaced by their byte-order specific form
    and the BOM itself is skipped.

    Args:
        encoding: Detected or user supplied encoding name
        head: The first bytes of the data

    Returns:
        Tuple of (codec_name, bom_length)
    """
    name = codecs.lookup(encoding).name

    if name == 'utf-8-sig':
        name = 'utf-8'
    elif name in ('utf-16', 'utf-32'):
        bom = detect_bom(head)
        if bom is not None and bom.codec.startswith(name):
            return bom.codec, bom.length
        return f"{name}-le", 0

    signature = _CODEC_BOMS.get(name)
    if signature is not None and head.startswith(signature):
        return name, len(signature)
    return name, 0


def is_valid_utf8(data: bytes, partial: bool = False) -> bool:
    """
    Check whether ``data`` is well-formed UTF-8.

    Lead bytes, continuation counts and continuation ranges are checked
    by hand, rejecting overlong forms, surrogates and code points above
    U+10FFFF. With ``partial`` a sequence cut off by the end of the data
    is accepted if its available bytes are valid.
    """
    i = 0
    n = len(data)

    while i < n:
        lead = data[i]

        if lead <= 0x7F:
            i += 1
            continue

        if 0xC2 <= lead <= 0xDF:
            needed, low, high = 1, 0x80, 0xBF
        elif 0xE0 <= lead <= 0xEF:
            needed = 2
            low = 0xA0 if lead == 0xE0 else 0x80
            high = 0x9F if lead == 0xED else 0xBF
        elif 0xF0 <= lead <= 0xF4:
            needed = 3
            low = 0x90 if lead == 0xF0 else 0x80
            high = 0x8F if lead == 0xF4 else 0xBF
        else:
            return False

        available = min(needed, n - i - 1)
        if available < needed and not partial:
            return False

        for k in range(1, available + 1):
            byte = data[i + k]
            if k == 1:
                if not low <= byte <= high:
                    return False
            elif not 0x80 <= byte <= 0xBF:
                return False

        i += 1 + needed

    return True


def _detect_by_heuristic(sample: bytes, truncated: bool) -> str:
    """Heuristic detection for data without a BOM."""
    null_count = sample.count(0)
    even_nulls = sample[0::2].count(0)
    odd_nulls = null_count - even_nulls

    # ASCII text in UTF-16 has a zero byte in every code unit.
    if null_count / len(sample) > 0.2:
        if odd_nulls > even_nulls:
            return 'utf-16-le'
        return 'utf-16-be'

    utf8_replacements = _count_replacements(sample, 'utf-8', truncated)
    gb_replacements = _count_replacements(sample, 'gb18030', truncated)

    if utf8_replacements > gb_replacements:
        logging.debug(
            f"EncodingDetector - GB18030 preferred ({gb_replacements} vs "
            f"{utf8_replacements} replacements)"
        )
        return 'gb18030'

    if is_valid_utf8(sample, partial=truncated):
        return DEFAULT_ENCODING

    if gb_replacements == 0:
        return 'gb18030'

    logging.debug("EncodingDetector - falling back to Windows-1252")
    return FALLBACK_ENCODING


def _count_replacements(data: bytes, codec: str, truncated: bool) -> int:
    """Count U+FFFD characters produced by decoding ``data``."""
    decoder = codecs.getincrementaldecoder(codec)(errors='replace')
    return decoder.decode(data, final=not truncated).count(_REPLACEMENT_CHAR)


class EncodingDetector:
    """Object form of the detection functions, for callers that inject one."""

    def detect(self, data: bytes) -> str:
        return detect_encoding(data)

    def detect_stream(self, stream: BinaryIO) -> str:
        return detect_stream_encoding(stream)
