#!/usr/bin/env python3
"""
Geolock CLI - Location-bound messages from the command line.

Usage:
    geolock keygen [--type exchange|signing]
    geolock derive-key --secret SECRET --binding FILE
    geolock seal <file> --sender-private KEY --recipient-public KEY --lat LAT --lon LON [...]
    geolock unseal <sealed> --recipient-private KEY [-o OUTPUT]
    geolock attest --device-id ID --signing-key KEY --lat LAT --lon LON [...]
    geolock verify <attestation> --sealed FILE [...]
    geolock serve [--host HOST] [--port PORT]

Examples:
    # Generate key pairs (base64 JSON)
    geolock keygen --type exchange
    geolock keygen --type signing

    # Seal a note to a 100 m circle for the next 24 hours
    geolock seal note.txt --sender-private S --recipient-public R \\
        --lat 18.5204 --lon 73.8567 --radius 100 -o note.sealed.json

    # Recipient: attest position, check it, then open the message
    geolock attest --device-id phone --signing-key K --lat 18.5204 --lon 73.8567 -o att.json
    geolock verify att.json --sealed note.sealed.json
    geolock unseal note.sealed.json --recipient-private R
"""

import argparse
import json
import sys
import time
from typing import Optional

from geolock.attestation import MovementPoint, create_attestation
from geolock.config import Settings, configure_logging
from geolock.kdf import LocationBinding, RoundingPolicy, derive_location_key
from geolock.primitives import generate_exchange_keypair, generate_signing_keypair
from geolock.sealing import DecryptionError, MessageMetadata, seal_for_recipient, unseal_from_sender
from geolock.verification import VerificationConfig, verify_attestation
from geolock.wire import (
    WireFormatError,
    attestation_from_dict,
    attestation_to_dict,
    binding_from_dict,
    decode_bytes,
    encode_bytes,
    sealed_from_dict,
    sealed_to_dict,
)

DAY_MS = 24 * 60 * 60 * 1000


def _read_json(path: str) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _write_output(text: str, output: Optional[str]) -> None:
    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(text + "\n")
    else:
        print(text)


def cmd_keygen(args: argparse.Namespace) -> int:
    """Generate an X25519 or Ed25519 key pair."""
    if args.type == "signing":
        public, private = generate_signing_keypair()
    else:
        public, private = generate_exchange_keypair()
    print(json.dumps({
        "type": args.type,
        "publicKey": encode_bytes(public),
        "privateKey": encode_bytes(private),
    }, indent=2))
    return 0


def cmd_derive_key(args: argparse.Namespace) -> int:
    """Print the location-bound key (hex) for a secret and binding."""
    try:
        secret = decode_bytes(args.secret)
        binding = binding_from_dict(_read_json(args.binding))
        key = derive_location_key(secret, binding, RoundingPolicy(args.decimals))
    except (WireFormatError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(key.hex())
    return 0


def cmd_seal(args: argparse.Namespace) -> int:
    """Seal a file to a location and time window."""
    start = args.start if args.start is not None else int(time.time() * 1000)
    end = args.end if args.end is not None else start + DAY_MS

    try:
        with open(args.file, "rb") as f:
            plaintext = f.read()
        binding = LocationBinding.create(args.lat, args.lon, args.radius, start, end)
        sealed = seal_for_recipient(
            plaintext,
            decode_bytes(args.sender_private),
            decode_bytes(args.recipient_public),
            binding,
            metadata=MessageMetadata(title=args.title, expires_at=end),
            policy=RoundingPolicy(args.decimals),
        )
    except (WireFormatError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    _write_output(json.dumps(sealed_to_dict(sealed), indent=2), args.output)
    return 0


def cmd_unseal(args: argparse.Namespace) -> int:
    """Open a sealed message."""
    try:
        sealed = sealed_from_dict(_read_json(args.sealed))
        plaintext = unseal_from_sender(
            sealed, decode_bytes(args.recipient_private), RoundingPolicy(args.decimals)
        )
    except DecryptionError:
        print("Error: Unable to decrypt message", file=sys.stderr)
        return 1
    except (WireFormatError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.output:
        with open(args.output, "wb") as f:
            f.write(plaintext)
    else:
        sys.stdout.buffer.write(plaintext)
    return 0


def cmd_attest(args: argparse.Namespace) -> int:
    """Sign the current position."""
    try:
        history = []
        if args.history:
            history = [
                MovementPoint(p["lat"], p["lon"], int(p["timestamp"]))
                for p in _read_json(args.history)
            ]
        attestation = create_attestation(
            args.device_id,
            decode_bytes(args.signing_key),
            args.lat,
            args.lon,
            args.accuracy,
            movement_history=history,
            timestamp=args.timestamp,
            policy=RoundingPolicy(args.decimals),
        )
    except (WireFormatError, ValueError, KeyError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    _write_output(json.dumps(attestation_to_dict(attestation), indent=2), args.output)
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    """Run the verification pipeline; exit 0 if valid, 2 if rejected."""
    settings = Settings.from_env()
    try:
        attestation = attestation_from_dict(_read_json(args.attestation))
        sealed = sealed_from_dict(_read_json(args.sealed))
        rounding = (
            RoundingPolicy(args.decimals) if args.decimals is not None else settings.rounding
        )
    except (WireFormatError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    def pick(value, default):
        return value if value is not None else default

    config = VerificationConfig.for_binding(
        sealed.binding,
        max_age_ms=pick(args.max_age_ms, settings.max_attestation_age_ms),
        max_speed_mps=pick(args.max_speed, settings.max_speed_mps),
        require_continuous_presence=args.require_presence or settings.require_continuous_presence,
        min_presence_ms=pick(args.min_presence_ms, settings.min_presence_ms),
        rounding=rounding,
    )
    result = verify_attestation(attestation, config, now_ms=args.now)
    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.valid else 2


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the HTTP service."""
    import uvicorn

    from geolock.devices import DeviceRegistry
    from geolock.integrations.fastapi import create_app
    from geolock.service import MessageService
    from geolock.storage import InMemoryMessageStore

    settings = Settings.from_env()
    configure_logging(settings.log_level)

    registry = None
    if args.registry or settings.trust_on_first_use:
        registry = DeviceRegistry(trust_on_first_use=settings.trust_on_first_use)
    service = MessageService(InMemoryMessageStore(), settings=settings, registry=registry)

    uvicorn.run(
        create_app(service),
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level=settings.log_level.lower(),
    )
    return 0


def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="geolock",
        description="Geolock - Location-bound messaging",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version="geolock 0.1.0")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # keygen command
    keygen_parser = subparsers.add_parser("keygen", help="Generate a key pair")
    keygen_parser.add_argument(
        "--type", choices=["exchange", "signing"], default="exchange",
        help="exchange = X25519, signing = Ed25519",
    )

    # derive-key command
    derive_parser = subparsers.add_parser("derive-key", help="Derive a location-bound key")
    derive_parser.add_argument("--secret", required=True, help="Base64 shared secret")
    derive_parser.add_argument("--binding", required=True, help="Location binding JSON file")
    derive_parser.add_argument("--decimals", type=int, default=6, help="Coordinate decimals")

    # seal command
    seal_parser = subparsers.add_parser("seal", help="Seal a file to a location")
    seal_parser.add_argument("file", help="File to seal")
    seal_parser.add_argument("--sender-private", required=True, help="Base64 X25519 private key")
    seal_parser.add_argument("--recipient-public", required=True, help="Base64 X25519 public key")
    seal_parser.add_argument("--lat", type=float, required=True, help="Latitude")
    seal_parser.add_argument("--lon", type=float, required=True, help="Longitude")
    seal_parser.add_argument("--radius", type=float, default=100.0, help="Radius in meters")
    seal_parser.add_argument("--start", type=int, help="Window start, epoch ms (default: now)")
    seal_parser.add_argument("--end", type=int, help="Window end, epoch ms (default: start + 24h)")
    seal_parser.add_argument("--title", help="Message title")
    seal_parser.add_argument("--decimals", type=int, default=6, help="Coordinate decimals")
    seal_parser.add_argument("-o", "--output", help="Output file")

    # unseal command
    unseal_parser = subparsers.add_parser("unseal", help="Open a sealed message")
    unseal_parser.add_argument("sealed", help="Sealed message JSON file")
    unseal_parser.add_argument("--recipient-private", required=True, help="Base64 X25519 private key")
    unseal_parser.add_argument("--decimals", type=int, default=6, help="Coordinate decimals")
    unseal_parser.add_argument("-o", "--output", help="Output file")

    # attest command
    attest_parser = subparsers.add_parser("attest", help="Create a location attestation")
    attest_parser.add_argument("--device-id", required=True, help="Device identifier")
    attest_parser.add_argument("--signing-key", required=True, help="Base64 Ed25519 private key")
    attest_parser.add_argument("--lat", type=float, required=True, help="Latitude")
    attest_parser.add_argument("--lon", type=float, required=True, help="Longitude")
    attest_parser.add_argument("--accuracy", type=float, default=10.0, help="Accuracy in meters")
    attest_parser.add_argument("--timestamp", type=int, help="Epoch ms (default: now)")
    attest_parser.add_argument("--history", help="Movement history JSON file")
    attest_parser.add_argument("--decimals", type=int, default=6, help="Coordinate decimals")
    attest_parser.add_argument("-o", "--output", help="Output file")

    # verify command
    verify_parser = subparsers.add_parser("verify", help="Verify an attestation")
    verify_parser.add_argument("attestation", help="Attestation JSON file")
    verify_parser.add_argument("--sealed", required=True, help="Sealed message JSON file")
    verify_parser.add_argument("--max-age-ms", type=int, help="Maximum attestation age")
    verify_parser.add_argument("--max-speed", type=float, help="Maximum speed in m/s")
    verify_parser.add_argument("--require-presence", action="store_true", help="Require continuous presence")
    verify_parser.add_argument("--min-presence-ms", type=int, help="Required presence duration")
    verify_parser.add_argument("--now", type=int, help="Override current time (epoch ms)")
    verify_parser.add_argument(
        "--decimals", type=int, help="Coordinate decimals (default: GEOLOCK_COORDINATE_DECIMALS)"
    )

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP service")
    serve_parser.add_argument("--host", help="Bind address")
    serve_parser.add_argument("--port", type=int, help="Port")
    serve_parser.add_argument("--registry", action="store_true", help="Require registered devices")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    commands = {
        "keygen": cmd_keygen,
        "derive-key": cmd_derive_key,
        "seal": cmd_seal,
        "unseal": cmd_unseal,
        "attest": cmd_attest,
        "verify": cmd_verify,
        "serve": cmd_serve,
    }

    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
