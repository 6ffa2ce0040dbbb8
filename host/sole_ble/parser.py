# parser.py
"""
Frame decoding for the sole pressure board.

Accepted encodings, tried in order:
  1. tagged text    "PRESSURE_LEFT:v1,...,v8" / "PRESSURE_RIGHT:v1,...,v8"
  2. untagged CSV   "v1,v2,..."  (needs MIN_CSV_VALUES numeric entries)
  3. raw bytes      exactly CHANNELS bytes, one per channel

Values are clamped to [SAMPLE_MIN, SAMPLE_MAX], never judged: a 255 is a real
reading. Short lists are right-padded with 0, long ones truncated.
"""
import re
from typing import List, Optional, Tuple

from .config import (
    CHANNELS, SAMPLE_MIN, SAMPLE_MAX, MIN_CSV_VALUES, TAG_LEFT, TAG_RIGHT,
)
from .errors import ParseFailure
from .models import PressureSample

_TAGGED = re.compile(r"PRESSURE_(LEFT|RIGHT):(.+)")
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def parse_int(token: str) -> Optional[int]:
    """Leading-integer parse ("12abc" -> 12); None when there is no leading digit."""
    m = _LEADING_INT.match(token)
    return int(m.group(1)) if m else None


def clamp(value: int) -> int:
    return max(SAMPLE_MIN, min(SAMPLE_MAX, value))


def normalize(tokens: List[str]) -> Tuple[List[int], int]:
    """
    Clamp/zero the first CHANNELS tokens and pad to CHANNELS.
    Returns (values, number_of_numeric_entries_kept).
    """
    values, numeric = [], 0
    for tok in tokens[:CHANNELS]:
        n = parse_int(tok.strip())
        if n is None:
            values.append(0)
        else:
            values.append(clamp(n))
            numeric += 1
    values.extend([0] * (CHANNELS - len(values)))
    return values, numeric


def _decode_text(raw: bytes) -> Optional[str]:
    try:
        return bytes(raw).decode("utf-8")
    except UnicodeDecodeError:
        return None


def parse_frame(raw: bytes, timestamp: Optional[float] = None) -> PressureSample:
    """
    Decode one notification payload. Raises ParseFailure when no encoding matches.
    """
    kw = {} if timestamp is None else {"timestamp": timestamp}
    text = _decode_text(raw)

    if text is not None:
        m = _TAGGED.search(text)
        if m:
            values, _ = normalize(m.group(2).strip().split(","))
            side = "left" if m.group(1) == "LEFT" else "right"
            return PressureSample(tuple(values), side=side, **kw)

        if "," in text and TAG_LEFT not in text and TAG_RIGHT not in text:
            values, numeric = normalize(text.strip().split(","))
            if numeric >= MIN_CSV_VALUES:
                return PressureSample(tuple(values), **kw)

    # an 8-byte payload whose bytes happen to read as short CSV is still a raw frame
    if len(raw) == CHANNELS:
        return PressureSample(tuple(raw), **kw)

    raise ParseFailure(text if text is not None else bytes(raw).decode("utf-8", "replace"))


def encode_frame(values, side: str = "left") -> bytes:
    """Tagged-text wire encoding, the inverse of the first parse_frame branch."""
    tag = TAG_RIGHT if side == "right" else TAG_LEFT
    return (tag + ",".join(str(int(v)) for v in values)).encode("utf-8")
