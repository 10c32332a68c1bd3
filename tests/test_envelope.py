"""
Tests for the envelope encryption scheme.
"""

from __future__ import annotations

import dataclasses
import json
import re

import pytest

from secure_records import (
    AesGcmCipher,
    ConfigurationError,
    DecryptionFailedError,
    MalformedFieldError,
    SecureKey,
    SecureRecord,
    SerializationError,
    UnsupportedFormatError,
    ValidationError,
    decrypt_payload,
    encrypt_payload,
    resolve_master_key,
)

PAYLOAD = {"hello": "world", "amount": 42}


def flip_hex_char(value: str) -> str:
    first = value[0]
    replacement = "b" if first == "a" else "a"
    return f"{replacement}{value[1:]}"


@pytest.fixture
def record() -> SecureRecord:
    return encrypt_payload("party-1", {"value": "secure"})


def test_roundtrip_scenario() -> None:
    record = encrypt_payload("party-1", PAYLOAD)

    assert record.algorithm == "AES-256-GCM"
    assert record.master_key_version == 1
    assert len(record.payload_nonce) == 24
    assert len(record.payload_tag) == 32
    assert decrypt_payload(record) == PAYLOAD


def test_tampered_ciphertext_scenario() -> None:
    record = encrypt_payload("party-1", PAYLOAD)
    tampered = dataclasses.replace(
        record, payload_ciphertext=flip_hex_char(record.payload_ciphertext)
    )

    with pytest.raises(DecryptionFailedError, match="^Decryption failed$"):
        decrypt_payload(tampered)


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"nested": {"list": [1, 2.5, None, True], "text": "Zoë ✓"}},
        {"amount": -0.001, "big": 2**60},
        [1, "two", {"three": 3}],
        "plain string",
        None,
    ],
)
def test_roundtrip_values(payload: object) -> None:
    assert decrypt_payload(encrypt_payload("party-1", payload)) == payload


def test_record_shape(record: SecureRecord) -> None:
    assert record.owner_tag == "party-1"
    assert re.fullmatch(r"\d{4}-\d\d-\d\dT\d\d:\d\d:\d\d\.\d{3}Z", record.created_at)
    assert len(record.dek_wrap_nonce) == 24
    assert len(record.wrapped_dek) == 64
    assert len(record.dek_wrap_tag) == 32
    for value in (
        record.payload_nonce,
        record.payload_ciphertext,
        record.payload_tag,
        record.dek_wrap_nonce,
        record.wrapped_dek,
        record.dek_wrap_tag,
    ):
        assert re.fullmatch(r"[0-9a-f]+", value)


def test_ciphertext_length_matches_plaintext() -> None:
    payload = {"memo": "x" * 100}
    record = encrypt_payload("party-1", payload)
    plaintext = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    assert len(record.payload_ciphertext) == 2 * len(plaintext)


def test_owner_tag_is_trimmed() -> None:
    assert encrypt_payload("  party-1\n", PAYLOAD).owner_tag == "party-1"


@pytest.mark.parametrize("owner_tag", ["", "   ", None, 42])
def test_blank_owner_tag_rejected(owner_tag: object) -> None:
    with pytest.raises(ValidationError):
        encrypt_payload(owner_tag, PAYLOAD)  # type: ignore[arg-type]


def test_uniqueness() -> None:
    first = encrypt_payload("party-1", PAYLOAD)
    second = encrypt_payload("party-1", PAYLOAD)

    assert first.id != second.id
    assert first.payload_nonce != second.payload_nonce
    assert first.dek_wrap_nonce != second.dek_wrap_nonce
    assert first.payload_ciphertext != second.payload_ciphertext
    assert first.wrapped_dek != second.wrapped_dek


def test_nonce_pair_is_independent(record: SecureRecord) -> None:
    assert record.payload_nonce != record.dek_wrap_nonce


@pytest.mark.parametrize(
    "field",
    [
        "payload_ciphertext",
        "payload_tag",
        "payload_nonce",
        "wrapped_dek",
        "dek_wrap_tag",
        "dek_wrap_nonce",
    ],
)
def test_tamper_sensitivity(record: SecureRecord, field: str) -> None:
    tampered = dataclasses.replace(record, **{field: flip_hex_char(getattr(record, field))})

    with pytest.raises(DecryptionFailedError):
        decrypt_payload(tampered)


def test_tampering_last_character_detected(record: SecureRecord) -> None:
    ct = record.payload_ciphertext
    last = "0" if ct[-1] != "0" else "1"
    tampered = dataclasses.replace(record, payload_ciphertext=ct[:-1] + last)

    with pytest.raises(DecryptionFailedError):
        decrypt_payload(tampered)


def test_key_sensitivity(record: SecureRecord, other_key_provider) -> None:
    with pytest.raises(DecryptionFailedError):
        decrypt_payload(record, key_provider=other_key_provider)


def test_key_sensitivity_via_environment(
    record: SecureRecord, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("MASTER_KEY", "ab" * 31 + "ac")

    with pytest.raises(DecryptionFailedError):
        decrypt_payload(record)


def test_explicit_key_provider_roundtrip(other_key_provider) -> None:
    record = encrypt_payload("party-1", PAYLOAD, key_provider=other_key_provider)

    assert decrypt_payload(record, key_provider=other_key_provider) == PAYLOAD
    with pytest.raises(DecryptionFailedError):
        decrypt_payload(record)


@pytest.mark.parametrize(
    "field, wire, value",
    [
        ("payload_nonce", "payload_nonce", "00"),
        ("payload_nonce", "payload_nonce", "00" * 13),
        ("payload_tag", "payload_tag", "00" * 15),
        ("dek_wrap_nonce", "dek_wrap_nonce", "00" * 11),
        ("dek_wrap_tag", "dek_wrap_tag", "00" * 17),
        ("wrapped_dek", "dek_wrapped", "00" * 31),
        ("wrapped_dek", "dek_wrapped", "00" * 48),
    ],
)
def test_field_length_enforcement(
    record: SecureRecord, field: str, wire: str, value: str
) -> None:
    invalid = dataclasses.replace(record, **{field: value})

    with pytest.raises(MalformedFieldError) as exc_info:
        decrypt_payload(invalid)

    assert exc_info.value.field == wire
    assert "bytes" in str(exc_info.value)


def test_wrong_nonce_length_message(record: SecureRecord) -> None:
    invalid = dataclasses.replace(record, payload_nonce="00")

    with pytest.raises(MalformedFieldError, match="payload_nonce must be 12 bytes"):
        decrypt_payload(invalid)


@pytest.mark.parametrize(
    "field, wire",
    [
        ("payload_nonce", "payload_nonce"),
        ("payload_ciphertext", "payload_ct"),
        ("payload_tag", "payload_tag"),
        ("dek_wrap_nonce", "dek_wrap_nonce"),
        ("wrapped_dek", "dek_wrapped"),
        ("dek_wrap_tag", "dek_wrap_tag"),
    ],
)
@pytest.mark.parametrize("bad", ["zz", "abc", ""])
def test_hex_validity_enforced_before_crypto(
    record: SecureRecord,
    monkeypatch: pytest.MonkeyPatch,
    field: str,
    wire: str,
    bad: str,
) -> None:
    def fail_if_called(*args, **kwargs):
        raise AssertionError("AEAD decrypt attempted on a malformed record")

    monkeypatch.setattr(AesGcmCipher, "decrypt", staticmethod(fail_if_called))
    invalid = dataclasses.replace(record, **{field: bad})

    with pytest.raises(MalformedFieldError) as exc_info:
        decrypt_payload(invalid)

    assert exc_info.value.field == wire


def test_invalid_hex_message(record: SecureRecord) -> None:
    invalid = dataclasses.replace(record, payload_ciphertext="zz")

    with pytest.raises(MalformedFieldError, match="payload_ct must be valid hex"):
        decrypt_payload(invalid)


def test_uppercase_hex_accepted(record: SecureRecord) -> None:
    upper = dataclasses.replace(
        record,
        payload_ciphertext=record.payload_ciphertext.upper(),
        wrapped_dek=record.wrapped_dek.upper(),
    )
    assert decrypt_payload(upper) == {"value": "secure"}


@pytest.mark.parametrize(
    "changes",
    [
        {"algorithm": "AES-128-GCM"},
        {"algorithm": "aes-256-gcm"},
        {"master_key_version": 2},
        {"master_key_version": 0},
    ],
)
def test_unsupported_format(record: SecureRecord, changes: dict) -> None:
    with pytest.raises(UnsupportedFormatError):
        decrypt_payload(dataclasses.replace(record, **changes))


def test_unsupported_format_checked_before_master_key(
    record: SecureRecord, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("MASTER_KEY")

    with pytest.raises(UnsupportedFormatError, match="Unsupported algorithm"):
        decrypt_payload(dataclasses.replace(record, algorithm="ChaCha20-Poly1305"))


def test_encrypt_requires_master_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MASTER_KEY")

    with pytest.raises(ConfigurationError):
        encrypt_payload("party-1", PAYLOAD)


def test_decrypt_requires_master_key(
    record: SecureRecord, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("MASTER_KEY", "not-a-key")

    with pytest.raises(ConfigurationError):
        decrypt_payload(record)


@pytest.mark.parametrize("payload", [{"when": {1, 2}}, {"x": float("nan")}, object()])
def test_unserializable_payload(payload: object) -> None:
    with pytest.raises(SerializationError):
        encrypt_payload("party-1", payload)


def test_non_json_plaintext_fails_as_decryption_error() -> None:
    master_key = resolve_master_key()
    dek = SecureKey.generate()
    sealed = AesGcmCipher.encrypt(dek, b"\xff not json")
    wrapped = AesGcmCipher.encrypt(master_key, dek.as_bytes())
    record = SecureRecord(
        id="forged",
        owner_tag="party-1",
        created_at="2026-01-01T00:00:00.000Z",
        payload_nonce=sealed.nonce.hex(),
        payload_ciphertext=sealed.ciphertext.hex(),
        payload_tag=sealed.tag.hex(),
        dek_wrap_nonce=wrapped.nonce.hex(),
        wrapped_dek=wrapped.ciphertext.hex(),
        dek_wrap_tag=wrapped.tag.hex(),
    )

    with pytest.raises(DecryptionFailedError, match="^Decryption failed$"):
        decrypt_payload(record)


class TestWireFormat:
    def test_to_dict_keys(self, record: SecureRecord) -> None:
        data = record.to_dict()

        assert set(data) == {
            "id",
            "clientId",
            "createdAt",
            "payload_nonce",
            "payload_ct",
            "payload_tag",
            "dek_wrap_nonce",
            "dek_wrapped",
            "dek_wrap_tag",
            "alg",
            "mk_version",
        }
        assert data["clientId"] == "party-1"
        assert data["alg"] == "AES-256-GCM"
        assert data["mk_version"] == 1

    def test_from_dict_rebuilds_record(self, record: SecureRecord) -> None:
        data = json.loads(json.dumps(record.to_dict()))
        assert SecureRecord.from_dict(data) == record

    def test_decrypt_accepts_wire_dict(self, record: SecureRecord) -> None:
        assert decrypt_payload(record.to_dict()) == {"value": "secure"}

    def test_missing_key(self, record: SecureRecord) -> None:
        data = record.to_dict()
        del data["dek_wrap_tag"]

        with pytest.raises(MalformedFieldError) as exc_info:
            SecureRecord.from_dict(data)

        assert exc_info.value.field == "dek_wrap_tag"

    @pytest.mark.parametrize(
        "key, value",
        [("payload_ct", 1234), ("dek_wrapped", None), ("clientId", None)],
    )
    def test_wrong_type(self, record: SecureRecord, key: str, value: object) -> None:
        data = record.to_dict()
        data[key] = value

        with pytest.raises(MalformedFieldError) as exc_info:
            decrypt_payload(data)

        assert exc_info.value.field == key

    @pytest.mark.parametrize(
        "key, value",
        [
            ("mk_version", "1"),
            ("mk_version", 1.0),
            ("mk_version", True),
            ("mk_version", None),
            ("alg", None),
            ("alg", 256),
        ],
    )
    def test_unrecognized_format_tags(
        self, record: SecureRecord, key: str, value: object
    ) -> None:
        data = record.to_dict()
        data[key] = value

        with pytest.raises(UnsupportedFormatError):
            decrypt_payload(data)

    @pytest.mark.parametrize("key", ["alg", "mk_version"])
    def test_missing_format_tag(self, record: SecureRecord, key: str) -> None:
        data = record.to_dict()
        del data[key]

        with pytest.raises(UnsupportedFormatError):
            decrypt_payload(data)
