"""Unit tests for protocols: legacy table, protocol ids, store and process_text."""
from __future__ import annotations

import json
from pathlib import Path

import pytest

import ncryptor as nc
import protocols as pr


# ---------------------------------------------------------------------------
# Legacy table
# ---------------------------------------------------------------------------


class TestLegacyTable:
    def test_a_maps_to_at_sign(self) -> None:
        assert pr.ENCRYPTION_MAP["A"] == "@"
        assert nc.decode("@", pr.ENCRYPTION_MAP, 0, pr.LEGACY_ID) == "A"

    def test_six_and_nine_collide_and_decode_to_six(self) -> None:
        assert pr.ENCRYPTION_MAP["6"] == pr.ENCRYPTION_MAP["9"]
        assert pr.DECRYPTION_MAP["ض"] == "6"
        assert nc.decode("ض", pr.ENCRYPTION_MAP, 0, pr.LEGACY_ID) == "6"

    def test_hello_is_plain_substitution(self) -> None:
        enc = nc.encode("HELLO", pr.ENCRYPTION_MAP, True, 0, pr.LEGACY_ID)
        assert enc == ":&||5"

    def test_lowercase_passes_through(self) -> None:
        assert nc.encode("hi", pr.ENCRYPTION_MAP, False, 0, pr.LEGACY_ID) == "hi"

    def test_legacy_protocol_record(self) -> None:
        assert pr.LEGACY_PROTOCOL.id == "Legacy-00"
        assert pr.LEGACY_PROTOCOL.is_built_in
        assert pr.LEGACY_PROTOCOL.mapping is pr.ENCRYPTION_MAP

    def test_legacy_round_trip_with_noise(self) -> None:
        text = "AGENT 47 REPORTING"
        enc = nc.encode(text, pr.ENCRYPTION_MAP, True, 2, pr.LEGACY_ID)
        assert nc.decode(enc, pr.ENCRYPTION_MAP, 2, pr.LEGACY_ID) == "AGENT47REPORTING"


# ---------------------------------------------------------------------------
# Protocol ids
# ---------------------------------------------------------------------------


class TestProtocolIds:
    def test_generated_id_is_alphanumeric(self) -> None:
        pid = pr.generate_protocol_id()
        assert len(pid) == 12
        assert all(c in pr.ALPHANUMERIC_CHARS for c in pid)

    def test_generated_id_custom_length(self) -> None:
        assert len(pr.generate_protocol_id(20)) == 20

    def test_generated_id_too_short(self) -> None:
        with pytest.raises(pr.ProtocolIdError):
            pr.generate_protocol_id(2)

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("abc", "abc"),
            ("  #k3Yx9QpL0aZm  ", "k3Yx9QpL0aZm"),
            ("#abc", "abc"),
            ("ab#cd", "abcd"),
        ],
    )
    def test_normalize(self, raw: str, expected: str) -> None:
        assert pr.normalize_protocol_id(raw) == expected

    @pytest.mark.parametrize("raw", ["", "  ", "ab", "#ab"])
    def test_normalize_rejects_short_ids(self, raw: str) -> None:
        with pytest.raises(pr.ProtocolIdError):
            pr.normalize_protocol_id(raw)

    def test_protocol_id_error_is_value_error(self) -> None:
        assert issubclass(pr.ProtocolIdError, ValueError)

    def test_new_protocol_derives_mapping(self) -> None:
        p = pr.new_protocol("abc", created_at=1.0)
        assert p.name == "Protocol-abc"
        assert p.mapping == nc.derive_mapping("abc")
        assert not p.is_built_in
        assert p.created_at == 1.0

    def test_protocol_equality_ignores_mapping(self) -> None:
        a = pr.new_protocol("abc", created_at=1.0)
        b = pr.Protocol(id="abc", name="Protocol-abc", mapping={}, created_at=1.0)
        assert a == b
        assert hash(a) == hash(b)


# ---------------------------------------------------------------------------
# process_text
# ---------------------------------------------------------------------------


class TestProcessText:
    def test_blank_input_gives_empty_output(self) -> None:
        assert pr.process_text("   \n", pr.LEGACY_PROTOCOL, pr.Mode.ENCRYPT) == ""

    @pytest.mark.parametrize("level", [0, 1, 2])
    def test_encrypt_then_decrypt(self, level: int) -> None:
        p = pr.new_protocol("k3Yx9QpL0aZm")
        enc = pr.process_text("Proceed to sector 7", p, pr.Mode.ENCRYPT, stealth=True, noise_level=level)
        dec = pr.process_text(enc, p, pr.Mode.DECRYPT, noise_level=level)
        assert dec == "Proceedtosector7"

    def test_mode_accepts_plain_string(self) -> None:
        enc = pr.process_text("HELLO", pr.LEGACY_PROTOCOL, "ENCRYPT", noise_level=0)
        assert enc == ":&||5"

    def test_without_stealth_keeps_spaces(self) -> None:
        p = pr.new_protocol("abc")
        enc = pr.process_text("a b", p, pr.Mode.ENCRYPT, stealth=False, noise_level=0)
        assert enc[1] == " "


# ---------------------------------------------------------------------------
# Heuristics
# ---------------------------------------------------------------------------


class TestHeuristics:
    @pytest.mark.parametrize(
        "pid, stealth, level, expected",
        [
            (pr.LEGACY_ID, False, 0, pr.SecurityTier.UNSECURE),
            (pr.LEGACY_ID, True, 1, pr.SecurityTier.GHOST),
            ("abc", True, 2, pr.SecurityTier.PHANTOM),
            ("k3Yx9QpL0aZm", False, 1, pr.SecurityTier.PHANTOM),
            ("k3Yx9QpL0aZm", True, 2, pr.SecurityTier.SPECTRE),
            ("1234567890", True, 2, pr.SecurityTier.PHANTOM),
        ],
    )
    def test_security_tier(self, pid: str, stealth: bool, level: int, expected: pr.SecurityTier) -> None:
        assert pr.security_tier(pid, stealth, level) is expected

    @pytest.mark.parametrize(
        "pid, expected",
        [
            (pr.LEGACY_ID, "1.2 Seconds"),
            ("abc", "Instant"),
            ("abcde", "12 Minutes"),
            ("abcdefg", "4 Hours"),
            ("abcdefghi", "120 Days"),
            ("k3Yx9QpL0aZm", "> 100k Years"),
        ],
    )
    def test_crack_time_estimate(self, pid: str, expected: str) -> None:
        assert pr.crack_time_estimate(pid) == expected


# ---------------------------------------------------------------------------
# Protocol store
# ---------------------------------------------------------------------------


class TestProtocolStore:
    def test_starts_with_legacy_only(self) -> None:
        store = pr.ProtocolStore()
        assert len(store) == 1
        assert pr.LEGACY_ID in store
        assert store.get(pr.LEGACY_ID) is pr.LEGACY_PROTOCOL

    def test_get_unknown_raises_key_error(self) -> None:
        with pytest.raises(KeyError):
            pr.ProtocolStore().get("nope")

    def test_lookup_reconstructs_unknown_id(self) -> None:
        store = pr.ProtocolStore()
        p = store.lookup("#abc")
        assert p.id == "abc"
        assert p.name == "Reconstructed-abc"
        assert p.mapping == nc.derive_mapping("abc")
        assert "abc" in store

    def test_lookup_returns_existing(self) -> None:
        store = pr.ProtocolStore()
        first = store.lookup("abc")
        assert store.lookup("  abc ") is first

    def test_lookup_short_id(self) -> None:
        with pytest.raises(pr.ProtocolIdError):
            pr.ProtocolStore().lookup("ab")

    def test_spawn_adds_new_protocol(self) -> None:
        store = pr.ProtocolStore()
        p = store.spawn()
        assert p.id in store
        assert p.name == f"Protocol-{p.id}"
        assert len(p.id) == pr.DEFAULT_ID_LENGTH

    def test_legacy_cannot_be_removed_or_replaced(self) -> None:
        store = pr.ProtocolStore()
        with pytest.raises(ValueError):
            store.remove(pr.LEGACY_ID)
        with pytest.raises(ValueError):
            store.add(pr.Protocol(id=pr.LEGACY_ID, name="x", mapping={}))

    def test_remove(self) -> None:
        store = pr.ProtocolStore()
        store.lookup("abc")
        store.remove("abc")
        assert "abc" not in store
        with pytest.raises(KeyError):
            store.remove("abc")

    def test_iterates_protocols(self) -> None:
        store = pr.ProtocolStore()
        store.lookup("abc")
        assert [p.id for p in store] == [pr.LEGACY_ID, "abc"]

    def test_persists_ids_not_mappings(self, tmp_path: Path) -> None:
        path = tmp_path / "store" / "protocols.json"
        store = pr.ProtocolStore(path)
        store.lookup("abc")

        data = json.loads(path.read_text(encoding="utf-8"))
        assert list(data) == ["abc"]
        assert data["abc"]["name"] == "Reconstructed-abc"
        assert "mapping" not in data["abc"]

    def test_reload_rebuilds_mappings(self, tmp_path: Path) -> None:
        path = tmp_path / "protocols.json"
        pid = pr.ProtocolStore(path).spawn().id

        reloaded = pr.ProtocolStore(path)
        assert pid in reloaded
        assert reloaded.get(pid).mapping == nc.derive_mapping(pid)
        assert reloaded.get(pr.LEGACY_ID) is pr.LEGACY_PROTOCOL

    def test_missing_file_is_empty_store(self, tmp_path: Path) -> None:
        store = pr.ProtocolStore(tmp_path / "absent.json")
        assert len(store) == 1

    def test_stored_legacy_entry_is_ignored(self, tmp_path: Path) -> None:
        path = tmp_path / "protocols.json"
        path.write_text(json.dumps({pr.LEGACY_ID: {"name": "fake"}}), encoding="utf-8")
        assert pr.ProtocolStore(path).get(pr.LEGACY_ID) is pr.LEGACY_PROTOCOL

    @pytest.mark.parametrize(
        "content",
        [
            "{not json",
            "[1, 2]",
            '{"abc": {"created_at": null}}',
            '{"abc": {"created_at": "yesterday"}}',
            '{"abc": {"name": 5}}',
        ],
    )
    def test_corrupt_file_raises(self, tmp_path: Path, content: str) -> None:
        path = tmp_path / "protocols.json"
        path.write_text(content, encoding="utf-8")
        with pytest.raises(pr.ProtocolStoreError):
            pr.ProtocolStore(path)

    def test_corrupt_entry_error_names_path(self, tmp_path: Path) -> None:
        path = tmp_path / "protocols.json"
        path.write_text('{"abc": {"created_at": "yesterday"}}', encoding="utf-8")
        with pytest.raises(pr.ProtocolStoreError, match="abc"):
            pr.ProtocolStore(path)

    def test_failed_write_leaves_store_unchanged_on_add(self, tmp_path: Path) -> None:
        # A regular file where the parent directory should be.
        blocker = tmp_path / "blocker"
        blocker.write_text("x", encoding="utf-8")
        store = pr.ProtocolStore(blocker / "protocols.json")

        with pytest.raises(pr.ProtocolStoreError):
            store.lookup("abc")
        assert "abc" not in store
        assert len(store) == 1

    def test_failed_write_leaves_store_unchanged_on_remove(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        store = pr.ProtocolStore(tmp_path / "protocols.json")
        store.lookup("abc")
        blocker = tmp_path / "blocker"
        blocker.write_text("x", encoding="utf-8")
        monkeypatch.setattr(store, "path", blocker / "protocols.json")

        with pytest.raises(pr.ProtocolStoreError):
            store.remove("abc")
        assert "abc" in store

    def test_default_path_from_environment(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        target = tmp_path / "env.json"
        monkeypatch.setenv(pr.STORE_ENV_VAR, str(target))
        assert pr.default_store_path() == target
        assert pr.ProtocolStore.open_default().path == target

    def test_default_path_without_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv(pr.STORE_ENV_VAR, raising=False)
        assert pr.default_store_path() == pr.DEFAULT_STORE_PATH
