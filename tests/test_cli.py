"""Tests for the geolock command line interface."""

import json
import pytest
from geolock.cli import main
from geolock.kdf import LocationBinding
from geolock.wire import binding_to_dict, encode_bytes


def run_json(capsys, argv):
    assert main(argv) == 0
    return json.loads(capsys.readouterr().out)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in ("GEOLOCK_REQUIRE_PRESENCE", "GEOLOCK_MAX_ATTESTATION_AGE_MS", "GEOLOCK_COORDINATE_DECIMALS"):
        monkeypatch.delenv(name, raising=False)


class TestKeygen:
    """Test key generation."""

    def test_exchange(self, capsys):
        keys = run_json(capsys, ["keygen"])
        assert keys["type"] == "exchange"
        assert len(keys["publicKey"]) == 44

    def test_signing(self, capsys):
        assert run_json(capsys, ["keygen", "--type", "signing"])["type"] == "signing"


class TestDeriveKey:
    """Test derive-key."""

    def test_reference_vector(self, capsys, tmp_path):
        binding_file = tmp_path / "binding.json"
        binding = LocationBinding(18.5204, 73.8567, 100, 1000, 2000, b"test-nonce")
        binding_file.write_text(json.dumps(binding_to_dict(binding)))
        assert main(["derive-key", "--secret", encode_bytes(bytes(32)), "--binding", str(binding_file)]) == 0
        assert capsys.readouterr().out.strip() == (
            "710e925ecf4b01925ea423409460e0e4e3870e8b75d1480649fa1eee24c41190"
        )

    def test_bad_secret(self, capsys, tmp_path):
        binding_file = tmp_path / "binding.json"
        binding_file.write_text(json.dumps(binding_to_dict(LocationBinding.create(0.0, 0.0, 1, 0, 1))))
        assert main(["derive-key", "--secret", encode_bytes(b"short"), "--binding", str(binding_file)]) == 1
        assert "Error" in capsys.readouterr().err


class TestEndToEnd:
    """Seal, attest, verify and unseal through the CLI."""

    def test_full_flow(self, capsys, tmp_path):
        sender = run_json(capsys, ["keygen"])
        recipient = run_json(capsys, ["keygen"])
        device = run_json(capsys, ["keygen", "--type", "signing"])

        note = tmp_path / "note.txt"
        note.write_bytes(b"under the oak tree")
        sealed = tmp_path / "note.sealed.json"
        assert main([
            "seal", str(note),
            "--sender-private", sender["privateKey"],
            "--recipient-public", recipient["publicKey"],
            "--lat", "18.5204", "--lon", "73.8567", "--radius", "100",
            "--start", "1000000", "--end", "2000000",
            "--title", "Oak", "-o", str(sealed),
        ]) == 0
        assert json.loads(sealed.read_text())["metadata"]["title"] == "Oak"

        att = tmp_path / "att.json"
        assert main([
            "attest", "--device-id", "phone", "--signing-key", device["privateKey"],
            "--lat", "18.5204", "--lon", "73.8567", "--timestamp", "1500000", "-o", str(att),
        ]) == 0

        assert main(["verify", str(att), "--sealed", str(sealed), "--now", "1500100"]) == 0
        assert json.loads(capsys.readouterr().out)["valid"] is True

        opened = tmp_path / "opened.txt"
        assert main([
            "unseal", str(sealed), "--recipient-private", recipient["privateKey"], "-o", str(opened),
        ]) == 0
        assert opened.read_bytes() == b"under the oak tree"

    def test_verify_rejected(self, capsys, tmp_path):
        sender = run_json(capsys, ["keygen"])
        recipient = run_json(capsys, ["keygen"])
        device = run_json(capsys, ["keygen", "--type", "signing"])

        note = tmp_path / "note.txt"
        note.write_bytes(b"x")
        sealed = tmp_path / "sealed.json"
        main([
            "seal", str(note), "--sender-private", sender["privateKey"],
            "--recipient-public", recipient["publicKey"],
            "--lat", "18.5204", "--lon", "73.8567",
            "--start", "1000000", "--end", "2000000", "-o", str(sealed),
        ])
        att = tmp_path / "att.json"
        main([
            "attest", "--device-id", "phone", "--signing-key", device["privateKey"],
            "--lat", "19.0760", "--lon", "72.8777", "--timestamp", "1500000", "-o", str(att),
        ])
        assert main(["verify", str(att), "--sealed", str(sealed), "--now", "1500100"]) == 2
        assert json.loads(capsys.readouterr().out)["reason"] == "OutsideGeofence"

    def test_wrong_recipient(self, capsys, tmp_path):
        sender = run_json(capsys, ["keygen"])
        recipient = run_json(capsys, ["keygen"])
        eve = run_json(capsys, ["keygen"])

        note = tmp_path / "note.txt"
        note.write_bytes(b"x")
        sealed = tmp_path / "sealed.json"
        main([
            "seal", str(note), "--sender-private", sender["privateKey"],
            "--recipient-public", recipient["publicKey"],
            "--lat", "0", "--lon", "0", "-o", str(sealed),
        ])
        assert main(["unseal", str(sealed), "--recipient-private", eve["privateKey"]]) == 1
        assert "Unable to decrypt message" in capsys.readouterr().err


def seal_and_attest(capsys, tmp_path, attest_extra=()):
    sender = run_json(capsys, ["keygen"])
    recipient = run_json(capsys, ["keygen"])
    device = run_json(capsys, ["keygen", "--type", "signing"])

    note = tmp_path / "note.txt"
    note.write_bytes(b"x")
    sealed = tmp_path / "sealed.json"
    assert main([
        "seal", str(note), "--sender-private", sender["privateKey"],
        "--recipient-public", recipient["publicKey"],
        "--lat", "18.5204", "--lon", "73.8567",
        "--start", "1000000", "--end", "2000000", "-o", str(sealed),
    ]) == 0
    att = tmp_path / "att.json"
    assert main([
        "attest", "--device-id", "phone", "--signing-key", device["privateKey"],
        "--lat", "18.5204", "--lon", "73.8567", "--timestamp", "1500000", "-o", str(att),
        *attest_extra,
    ]) == 0
    return str(att), str(sealed)


class TestVerifyOptions:
    """Test verify flags and input errors."""

    def test_malformed_json(self, capsys, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{not json")
        assert main(["verify", str(bad), "--sealed", str(bad)]) == 1
        assert "Error" in capsys.readouterr().err

    def test_explicit_zero_max_age(self, capsys, tmp_path):
        """--max-age-ms 0 is honored, not replaced by the default."""
        att, sealed = seal_and_attest(capsys, tmp_path)
        assert main(["verify", att, "--sealed", sealed, "--now", "1500100", "--max-age-ms", "0"]) == 2
        assert json.loads(capsys.readouterr().out)["reason"] == "StaleAttestation"

    def test_decimals_must_match_attestation(self, capsys, tmp_path):
        """An attestation signed at 4 decimals verifies with --decimals 4."""
        att, sealed = seal_and_attest(capsys, tmp_path, ["--decimals", "4"])
        assert main(["verify", att, "--sealed", sealed, "--now", "1500100", "--decimals", "4"]) == 0
        assert json.loads(capsys.readouterr().out)["valid"] is True
        assert main(["verify", att, "--sealed", sealed, "--now", "1500100"]) == 2
        assert json.loads(capsys.readouterr().out)["reason"] == "InvalidSignature"


class TestMain:
    """Test entry point behavior."""

    def test_no_command(self, capsys):
        assert main([]) == 0
        assert "geolock" in capsys.readouterr().out

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["--version"])
        assert exc.value.code == 0
        assert "0.1.0" in capsys.readouterr().out
