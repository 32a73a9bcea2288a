# ncryptor.py
# N-Cryptor: Base Library (seed-derived substitution + noise layer)
#
# A protocol ID is the only state worth keeping. Everything else is
# re-derived from it on demand:
#   1) cyrb53(id)                  -> seed of the substitution shuffle
#   2) cyrb53(id + "_noise_layer") -> seed of the noise schedule
#   3) mulberry32(seed)            -> reproducible float stream
#
# Wire format: <C0><noise...><C1><noise...>...
#   Ci    = substituted plaintext char
#   noise = floor(r*3 + level) filler chars drawn from the alphabet,
#           offset by a small rotating "polyshift" derived from the id.
# Decoding recomputes the counts from the seed; filler is never inspected.
#
# Not a cipher in the cryptographic sense: the table is a fixed
# substitution and the noise schedule is public given the id.

from __future__ import annotations

import math
import re
from itertools import islice
from typing import Dict, Iterator, List


# ============================================================
# Alphabet (order is part of the contract)
# ============================================================

UPPERCASE = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
LOWERCASE = "abcdefghijklmnopqrstuvwxyz"
NUMBERS = "0123456789"
SYMBOLS = "!@#$%^&*()_+-=[]{}|;:,.<>?/~" + "\"'\\`"

ALPHABET = UPPERCASE + LOWERCASE + NUMBERS + SYMBOLS
if len(ALPHABET) != 94 or len(set(ALPHABET)) != 94:
    raise RuntimeError(f"ALPHABET must be 94 distinct chars (got {len(ALPHABET)})")

# Glyph set of the original web build (minus its duplicated '∆').
EXTENDED_SYMBOLS = "±§¶∆ø∑√∞≈≠≤≥πµΩ∫∂€£¥¢¿¡"
EXTENDED_ALPHABET = ALPHABET + EXTENDED_SYMBOLS

NOISE_DOMAIN = "_noise_layer"
POLYSHIFT_MOD = 17
POLYSHIFT_DEFAULT = (7,)

CipherMap = Dict[str, str]

# JS `\s` class, so stealth stripping matches browser clients.
_WS_RE = re.compile(
    "[\t\n\v\f\r \u00a0\u1680\u2000-\u200a\u2028\u2029\u202f\u205f\u3000\ufeff]+"
)


# ============================================================
# 32-bit helpers
# ============================================================

MASK32 = 0xFFFFFFFF
TWO_POW_32 = 4294967296


def imul(a: int, b: int) -> int:
    """Wrapping 32-bit multiply (unsigned result)."""
    return (a * b) & MASK32


def utf16_units(s: str) -> List[int]:
    # IDs are hashed per UTF-16 code unit so astral chars match JS clients.
    raw = s.encode("utf-16-le", "surrogatepass")
    return [raw[i] | (raw[i + 1] << 8) for i in range(0, len(raw), 2)]


# ============================================================
# Identifier hash (cyrb53)
# ============================================================

def cyrb53(text: str, seed: int = 0) -> int:
    """
    53-bit string hash.
    Two 32-bit lanes, multiplied per code unit, then avalanched and combined
    as 2**32 * (h2 & 0x1FFFFF) + h1.
    """
    seed &= MASK32
    h1 = 0xDEADBEEF ^ seed
    h2 = 0x41C6CE57 ^ seed

    for ch in utf16_units(text):
        h1 = imul(h1 ^ ch, 2654435761)
        h2 = imul(h2 ^ ch, 1597334677)

    h1 = imul(h1 ^ (h1 >> 16), 2246822507) ^ imul(h2 ^ (h2 >> 13), 3266489909)
    h2 = imul(h2 ^ (h2 >> 16), 2246822507) ^ imul(h1 ^ (h1 >> 13), 3266489909)

    return TWO_POW_32 * (h2 & 0x1FFFFF) + h1


def mapping_seed(protocol_id: str) -> int:
    return cyrb53(protocol_id)


def noise_seed(protocol_id: str) -> int:
    return cyrb53(protocol_id + NOISE_DOMAIN)


# ============================================================
# Deterministic PRNG (mulberry32)
# ============================================================

class Mulberry32:
    """
    mulberry32 float stream in [0, 1).

    The accumulator is an IEEE double, as in the reference JS closure: the
    53-bit cyrb53 seeds are added to directly and only the low 32 bits of
    the running sum reach the mixer. For 32-bit seeds this is the usual
    "state += 0x6D2B79F5 (mod 2**32)".
    """

    INCREMENT = 0x6D2B79F5

    def __init__(self, seed: int):
        if seed < 0:
            raise ValueError(f"seed must be non-negative (got {seed})")
        self._acc = float(seed)

    def next_u32(self) -> int:
        self._acc += self.INCREMENT
        t = int(self._acc) & MASK32
        t = imul(t ^ (t >> 15), t | 1)
        t ^= (t + imul(t ^ (t >> 7), t | 61)) & MASK32
        return (t ^ (t >> 14)) & MASK32

    def next(self) -> float:
        return self.next_u32() / TWO_POW_32

    def __iter__(self) -> Iterator[float]:
        while True:
            yield self.next()


# ============================================================
# Substitution table
# ============================================================

def derive_mapping(protocol_id: str, alphabet: str = ALPHABET) -> CipherMap:
    """Seeded Fisher-Yates over `alphabet`; a pure function of the id."""
    rng = Mulberry32(mapping_seed(protocol_id))

    shuffled = list(alphabet)
    for i in range(len(shuffled) - 1, 0, -1):
        j = math.floor(rng.next() * (i + 1))
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]

    return {ch: shuffled[k] for k, ch in enumerate(alphabet)}


def reverse_mapping(mapping: CipherMap) -> CipherMap:
    # First key wins on collisions (legacy table: '6' and '9' share a glyph).
    rev: CipherMap = {}
    for key, val in mapping.items():
        if val not in rev:
            rev[val] = key
    return rev


def substitute(text: str, mapping: CipherMap) -> str:
    return "".join(mapping.get(c, c) for c in text)


def strip_whitespace(text: str) -> str:
    return _WS_RE.sub("", text)


# ============================================================
# Noise layer
# ============================================================

def derive_polyshift_key(protocol_id: str) -> List[int]:
    key = [u % POLYSHIFT_MOD for u in utf16_units(protocol_id)]
    return key if key else list(POLYSHIFT_DEFAULT)


def _check_noise_level(noise_level: int) -> None:
    if noise_level < 0:
        raise ValueError(f"noise_level must be >= 0 (got {noise_level})")


def _noise_count(rng: Mulberry32, noise_level: int) -> int:
    return math.floor(rng.next() * 3 + noise_level)


def iter_noise_counts(protocol_id: str, noise_level: int) -> Iterator[int]:
    """
    Endless filler counts, one per real char. The draws that encode spends on
    filler glyphs are consumed here too, so the stream stays in step.
    """
    rng = Mulberry32(noise_seed(protocol_id))
    while True:
        n = _noise_count(rng, noise_level)
        for _ in range(n):
            rng.next()
        yield n


def noise_schedule(protocol_id: str, length: int, noise_level: int) -> List[int]:
    """Filler counts after each of the first `length` real chars."""
    _check_noise_level(noise_level)
    if noise_level == 0:
        return [0] * max(0, length)
    return list(islice(iter_noise_counts(protocol_id, noise_level), max(0, length)))


# ============================================================
# Encode / decode
# ============================================================

def encode(
    text: str,
    mapping: CipherMap,
    strip_spaces: bool,
    noise_level: int,
    protocol_id: str,
    alphabet: str = ALPHABET,
) -> str:
    _check_noise_level(noise_level)

    if strip_spaces:
        # Lossy: decode never puts whitespace back.
        text = strip_whitespace(text)

    substituted = substitute(text, mapping)
    if noise_level == 0:
        return substituted

    rng = Mulberry32(noise_seed(protocol_id))
    poly_key = derive_polyshift_key(protocol_id)
    n = len(alphabet)
    poly_counter = 0

    out: List[str] = []
    # Per code point: JS clients walk UTF-16 units, so astral chars differ there.
    for c in substituted:
        out.append(c)
        for _ in range(_noise_count(rng, noise_level)):
            base_idx = math.floor(rng.next() * n)
            shift = poly_key[poly_counter % len(poly_key)]
            out.append(alphabet[(base_idx + shift) % n])
            poly_counter += 1

    return "".join(out)


def decode(
    text: str,
    mapping: CipherMap,
    noise_level: int,
    protocol_id: str,
) -> str:
    _check_noise_level(noise_level)
    rev = reverse_mapping(mapping)

    if noise_level == 0:
        return substitute(text, rev)

    counts = iter_noise_counts(protocol_id, noise_level)
    kept: List[str] = []

    i = 0
    while i < len(text):
        kept.append(text[i])
        # Filler is skipped unread.
        i += 1 + next(counts)

    return substitute("".join(kept), rev)


def round_trips(
    text: str,
    mapping: CipherMap,
    noise_level: int,
    protocol_id: str,
    strip_spaces: bool = False,
) -> bool:
    """Self-check: does `text` (whitespace-stripped in stealth mode) survive encode -> decode?"""
    enc = encode(text, mapping, strip_spaces, noise_level, protocol_id)
    expected = strip_whitespace(text) if strip_spaces else text
    return decode(enc, mapping, noise_level, protocol_id) == expected
