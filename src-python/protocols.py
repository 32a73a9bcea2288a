# protocols.py
# N-Cryptor: protocol registry (legacy table, ID spawning/lookup, JSON store)
#
# A protocol is (id, display name, mapping). The mapping of every derived
# protocol is ncryptor.derive_mapping(id), so the store only keeps ids,
# names and timestamps; mappings are rebuilt on load.

from __future__ import annotations

import json
import logging
import os
import re
import secrets
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, Optional, Union

import ncryptor as nc

logger = logging.getLogger(__name__)


# ============================================================
# Defaults
# ============================================================

LEGACY_ID = "Legacy-00"
LEGACY_NAME = "Legacy Symbol Matrix"

ALPHANUMERIC_CHARS = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"
DEFAULT_ID_LENGTH = 12
MIN_ID_LENGTH = 3

DEFAULT_NOISE_LEVEL = 1
DEFAULT_STEALTH = True

STORE_ENV_VAR = "NCRYPTOR_STORE"
DEFAULT_STORE_PATH = Path.home() / ".ncryptor" / "protocols.json"


class ProtocolIdError(ValueError):
    pass


class ProtocolStoreError(ValueError):
    pass


# ============================================================
# Legacy table (fixed, not derivable from its id)
# ============================================================

ENCRYPTION_MAP: nc.CipherMap = {
    # A-Z
    "A": "@", "B": "#", "C": "%", "D": "^", "E": "&",
    "F": "(", "G": ")", "H": ":", "I": '"', "J": "}",
    "K": "{", "L": "|", "M": "\\", "N": "3", "O": "5",
    "P": "7", "Q": "Q", "R": "K", "S": "L", "T": ".",
    "U": ",", "V": "=", "W": "+", "X": "-", "Y": "±", "Z": "~",

    # 0-9 ('6' and '9' share a glyph; decoding yields '6')
    "0": "ظ", "1": "ذ", "2": "٠", "3": "؛", "4": "?",
    "5": "م", "6": "ض", "7": "ه", "8": "ر", "9": "ض",
}

DECRYPTION_MAP: nc.CipherMap = nc.reverse_mapping(ENCRYPTION_MAP)


# ============================================================
# Protocol record
# ============================================================

@dataclass(frozen=True)
class Protocol:
    id: str
    name: str
    mapping: nc.CipherMap = field(compare=False, repr=False)
    is_built_in: bool = False
    created_at: float = 0.0


LEGACY_PROTOCOL = Protocol(
    id=LEGACY_ID,
    name=LEGACY_NAME,
    mapping=ENCRYPTION_MAP,
    is_built_in=True,
)


def generate_protocol_id(length: int = DEFAULT_ID_LENGTH) -> str:
    if length < MIN_ID_LENGTH:
        raise ProtocolIdError(f"Protocol id length must be >= {MIN_ID_LENGTH} (got {length})")
    return "".join(secrets.choice(ALPHANUMERIC_CHARS) for _ in range(length))


def normalize_protocol_id(raw: str) -> str:
    """Trims user input and drops the first '#' (ids are displayed as #ID)."""
    tidied = raw.strip().replace("#", "", 1)
    if len(tidied) < MIN_ID_LENGTH:
        raise ProtocolIdError(f"ID too short. Minimum {MIN_ID_LENGTH} characters required.")
    return tidied


def new_protocol(
    protocol_id: str,
    name: Optional[str] = None,
    created_at: Optional[float] = None,
    name_prefix: str = "Protocol",
) -> Protocol:
    return Protocol(
        id=protocol_id,
        name=name or f"{name_prefix}-{protocol_id}",
        mapping=nc.derive_mapping(protocol_id),
        is_built_in=False,
        created_at=time.time() if created_at is None else created_at,
    )


# ============================================================
# Request/response entry point
# ============================================================

class Mode(str, Enum):
    ENCRYPT = "ENCRYPT"
    DECRYPT = "DECRYPT"


def process_text(
    text: str,
    protocol: Protocol,
    mode: Mode,
    stealth: bool = DEFAULT_STEALTH,
    noise_level: int = DEFAULT_NOISE_LEVEL,
) -> str:
    if not text.strip():
        return ""

    if Mode(mode) is Mode.ENCRYPT:
        return nc.encode(text, protocol.mapping, stealth, noise_level, protocol.id)
    return nc.decode(text, protocol.mapping, noise_level, protocol.id)


# ============================================================
# UI heuristics (labels only, not a security measure)
# ============================================================

class SecurityTier(str, Enum):
    UNSECURE = "UNSECURE"
    GHOST = "GHOST"
    PHANTOM = "PHANTOM"
    SPECTRE = "SPECTRE"


def security_tier(protocol_id: str, stealth: bool, noise_level: int) -> SecurityTier:
    score = 0
    if len(protocol_id) >= 10 and re.search(r"[a-zA-Z]", protocol_id):
        score += 3
    elif protocol_id != LEGACY_ID:
        score += 1

    if stealth:
        score += 1
    if noise_level == 2:
        score += 2
    elif noise_level == 1:
        score += 1

    if score >= 6:
        return SecurityTier.SPECTRE
    if score >= 4:
        return SecurityTier.PHANTOM
    if score >= 2:
        return SecurityTier.GHOST
    return SecurityTier.UNSECURE


def crack_time_estimate(protocol_id: str) -> str:
    if protocol_id == LEGACY_ID:
        return "1.2 Seconds"

    n = len(protocol_id)
    if n > 10:
        return "> 100k Years"
    if n > 8:
        return "120 Days"
    if n > 6:
        return "4 Hours"
    if n > 4:
        return "12 Minutes"
    return "Instant"


# ============================================================
# Protocol store (JSON file, legacy protocol always present)
# ============================================================

def default_store_path() -> Path:
    env = os.environ.get(STORE_ENV_VAR)
    return Path(env).expanduser() if env else DEFAULT_STORE_PATH


class ProtocolStore:
    """
    Keyed protocol cache.

    With `path=None` the store lives in memory only. Otherwise it is loaded
    from `path` (a missing file is an empty store) and rewritten after every
    add/remove. Only {id: {name, created_at}} is written; mappings are
    always re-derived.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path is not None else None
        self._protocols: Dict[str, Protocol] = {LEGACY_ID: LEGACY_PROTOCOL}
        if self.path is not None:
            self._load()

    @classmethod
    def open_default(cls) -> "ProtocolStore":
        return cls(default_store_path())

    def _load(self) -> None:
        assert self.path is not None
        if not self.path.exists():
            logger.debug("No protocol store at %s; starting empty", self.path)
            return

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ProtocolStoreError(f"Cannot read protocol store {self.path}: {e}") from e
        if not isinstance(raw, dict):
            raise ProtocolStoreError(f"Protocol store {self.path} must hold a JSON object.")

        for pid, meta in raw.items():
            if pid == LEGACY_ID:
                continue
            meta = meta if isinstance(meta, dict) else {}
            try:
                name = meta.get("name")
                if name is not None and not isinstance(name, str):
                    raise TypeError(f"name must be a string (got {name!r})")
                self._protocols[pid] = new_protocol(
                    pid,
                    name=name,
                    created_at=float(meta.get("created_at", 0.0)),
                )
            except (TypeError, ValueError) as e:
                raise ProtocolStoreError(f"Bad entry {pid!r} in protocol store {self.path}: {e}") from e
        logger.info("Loaded %d protocol(s) from %s", len(self._protocols) - 1, self.path)

    def save(self) -> None:
        self._write(self._protocols)

    def _write(self, protocols: Dict[str, Protocol]) -> None:
        if self.path is None:
            return
        data = {
            p.id: {"name": p.name, "created_at": p.created_at}
            for p in protocols.values()
            if not p.is_built_in
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        except OSError as e:
            raise ProtocolStoreError(f"Cannot write protocol store {self.path}: {e}") from e
        logger.debug("Saved %d protocol(s) to %s", len(data), self.path)

    def __contains__(self, protocol_id: object) -> bool:
        return protocol_id in self._protocols

    def __iter__(self) -> Iterator[Protocol]:
        return iter(self._protocols.values())

    def __len__(self) -> int:
        return len(self._protocols)

    def get(self, protocol_id: str) -> Protocol:
        try:
            return self._protocols[protocol_id]
        except KeyError:
            raise KeyError(f"Unknown protocol: {protocol_id!r}") from None

    def add(self, protocol: Protocol) -> Protocol:
        if protocol.id == LEGACY_ID:
            raise ValueError(f"{LEGACY_ID} is built in and cannot be replaced.")
        # Commit only once the file write succeeded.
        updated = dict(self._protocols)
        updated[protocol.id] = protocol
        self._write(updated)
        self._protocols = updated
        return protocol

    def remove(self, protocol_id: str) -> None:
        if protocol_id == LEGACY_ID:
            raise ValueError(f"{LEGACY_ID} is built in and cannot be removed.")
        self.get(protocol_id)
        updated = dict(self._protocols)
        del updated[protocol_id]
        self._write(updated)
        self._protocols = updated

    def lookup(self, raw_id: str) -> Protocol:
        """Returns the protocol for a user-typed id, reconstructing it if unknown."""
        pid = normalize_protocol_id(raw_id)
        if pid in self._protocols:
            return self._protocols[pid]

        logger.info("Reconstructing protocol %s from its id", pid)
        return self.add(new_protocol(pid, name_prefix="Reconstructed"))

    def spawn(self, length: int = DEFAULT_ID_LENGTH) -> Protocol:
        pid = generate_protocol_id(length)
        while pid in self._protocols:
            pid = generate_protocol_id(length)
        logger.info("Spawned protocol %s", pid)
        return self.add(new_protocol(pid))
