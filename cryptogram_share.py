"""
Shareable Cryptogram Links
==========================

Lets a puzzle that was never stored be solved by anyone holding the link.
The whole puzzle travels in one query parameter:

    /shared?code=<base64url(JSON payload)>

Payload (compact JSON, sorted keys):
    {"difficulty": 3, "puzzle": "...", "solution": "...",
     "source": "USER_SUBMITTED", "v": 1, "explanation": "..."}

"v" is the token format version. Links made before the tag existed carry no
"v" and decode as version 1. The token is not signed: anyone can build one
by hand, so decode re-validates everything it reads.

Decoded puzzles get a synthetic negative id derived from their content
(see generate_shared_puzzle_id) so progress can be keyed on it across reloads.
"""

import base64
import binascii
import json
import math
import struct
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlencode

from cryptic_config import (
    DEFAULT_DIFFICULTY,
    MAX_DIFFICULTY,
    MIN_DIFFICULTY,
    SHARE_FORMAT_VERSION,
    SHARE_PARAM,
)
from cryptogram_types import Cryptogram, Source

DEFAULT_SOURCE = Source.USER_SUBMITTED

# Fingerprint algorithm used by generate_shared_puzzle_id. Changing the seed
# layout or hash changes every shared puzzle's id, and with it saved progress.
FINGERPRINT_VERSION = 1
_SEED_DELIMITER = '|'


class ShareValidationError(ValueError):
    """Raised by encode when the payload is missing required content."""


@dataclass(frozen=True)
class SharePayload:
    """Normalized subset of a Cryptogram that a share link carries."""
    puzzle: str
    solution: str
    source: Source
    difficulty: int
    explanation: Optional[str] = None

    def to_json_dict(self) -> Dict[str, Any]:
        data = {
            'v': SHARE_FORMAT_VERSION,
            'puzzle': self.puzzle,
            'solution': self.solution,
            'source': self.source.value,
            'difficulty': self.difficulty,
        }
        if self.explanation:
            data['explanation'] = self.explanation
        return data


@dataclass(frozen=True)
class PayloadResult:
    """Outcome of validate_payload: payload when ok, error message otherwise."""
    ok: bool
    payload: Optional[SharePayload] = None
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _trimmed(value):
    if not isinstance(value, str):
        return ''
    return value.strip()


def _round_half_up(value):
    return int(math.floor(value + 0.5))


def normalize_difficulty(value):
    """
    Coerce to an int in [1, 5].

    Numbers and numeric strings are rounded half-up and clamped. Anything
    that is not a finite number (missing, None, junk text, NaN, inf) falls
    back to the default difficulty.
    """
    if value is None:
        return DEFAULT_DIFFICULTY
    if not isinstance(value, (int, float, str)):
        return DEFAULT_DIFFICULTY
    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except (OverflowError, ValueError):
        return DEFAULT_DIFFICULTY

    if not math.isfinite(number):
        return DEFAULT_DIFFICULTY
    return min(max(_round_half_up(number), MIN_DIFFICULTY), MAX_DIFFICULTY)


def normalize_source(value):
    if isinstance(value, Source):
        return value
    if value in Source.values():
        return Source(value)
    return DEFAULT_SOURCE


def validate_payload(data) -> PayloadResult:
    """Check and normalize an untrusted share payload."""
    if not isinstance(data, Mapping):
        return PayloadResult(ok=False, error='Payload must be an object')

    puzzle = _trimmed(data.get('puzzle'))
    solution = _trimmed(data.get('solution'))
    if not puzzle or not solution:
        return PayloadResult(ok=False, error='Puzzle and solution are required')

    payload = SharePayload(
        puzzle=puzzle,
        solution=solution,
        source=normalize_source(data.get('source')),
        difficulty=normalize_difficulty(data.get('difficulty')),
        explanation=_trimmed(data.get('explanation')) or None,
    )
    return PayloadResult(ok=True, payload=payload)


# ---------------------------------------------------------------------------
# base64url
# ---------------------------------------------------------------------------

def to_base64url(text):
    encoded = base64.urlsafe_b64encode(text.encode('utf-8')).decode('ascii')
    return encoded.rstrip('=')


def from_base64url(token):
    """Decode an unpadded base64url token. Raises ValueError on bad input."""
    padded = token + '=' * (-len(token) % 4)
    try:
        raw = base64.b64decode(padded.encode('ascii'), altchars=b'-_', validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValueError(f"Invalid base64url token: {e}") from e
    return raw.decode('utf-8')


# ---------------------------------------------------------------------------
# Shared puzzle id
# ---------------------------------------------------------------------------

def _utf16_units(text):
    data = text.encode('utf-16-le')
    return struct.unpack(f'<{len(data) // 2}H', data)


def generate_shared_puzzle_id(payload: SharePayload) -> int:
    """
    Content fingerprint (version 1) used as the id of a shared puzzle.

    Java-style rolling hash (h * 31 + unit) over the UTF-16 code units of
    puzzle|solution|explanation|source|difficulty, folded to a signed 32-bit
    int. Zero maps to 1, then the absolute value is negated, so the result is
    always < 0 and never collides with a stored puzzle id.
    """
    seed = _SEED_DELIMITER.join([
        payload.puzzle,
        payload.solution,
        payload.explanation or '',
        payload.source.value,
        str(payload.difficulty),
    ])

    h = 0
    for unit in _utf16_units(seed):
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000

    if h == 0:
        h = 1
    return -abs(h)


# ---------------------------------------------------------------------------
# Encode / decode
# ---------------------------------------------------------------------------

def encode_cryptogram_to_params(data) -> Dict[str, str]:
    """
    Build the query parameters for a share link.

    Raises ShareValidationError if puzzle or solution is missing.
    """
    result = validate_payload(data)
    if not result.ok:
        raise ShareValidationError(result.error)

    serialized = json.dumps(result.payload.to_json_dict(),
                            separators=(',', ':'), sort_keys=True,
                            ensure_ascii=False)
    return {SHARE_PARAM: to_base64url(serialized)}


def build_share_query(data):
    """Query string (without '?') for a share link."""
    return urlencode(encode_cryptogram_to_params(data))


def decode_cryptogram_from_params(params) -> Optional[Cryptogram]:
    """
    Rebuild a Cryptogram from share-link query parameters.

    Returns None when there is no code parameter or the token is unusable.
    Never raises for malformed input.
    """
    if not isinstance(params, Mapping):
        return None
    token = params.get(SHARE_PARAM)
    if not token or not isinstance(token, str):
        return None

    try:
        parsed = json.loads(from_base64url(token))
    except (ValueError, RecursionError) as e:
        print(f"[Share] Failed to decode shared cryptogram: {e}")
        return None

    if not isinstance(parsed, dict):
        print("[Share] Shared cryptogram payload is not an object")
        return None

    version = parsed.get('v', SHARE_FORMAT_VERSION)
    if version != SHARE_FORMAT_VERSION or isinstance(version, bool):
        print(f"[Share] Unsupported share format version: {version!r}")
        return None

    result = validate_payload(parsed)
    if not result.ok:
        print(f"[Share] Invalid shared cryptogram: {result.error}")
        return None

    payload = result.payload
    return Cryptogram(
        id=generate_shared_puzzle_id(payload),
        puzzle=payload.puzzle,
        solution=payload.solution,
        explanation=payload.explanation,
        source=payload.source,
        difficulty=payload.difficulty,
        date_added=datetime.now(timezone.utc),
    )
