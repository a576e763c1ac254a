"""Keypair loading and counter address derivation."""

from __future__ import annotations

import json
from pathlib import Path

from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .constants import MAX_SEED_LEN
from .errors import ConfigError


def load_keypair(path: str | Path) -> Keypair:
    """Load a keypair written by ``solana-keygen`` (a JSON array of 64 bytes)."""
    path = Path(path).expanduser()
    try:
        raw = json.loads(path.read_text())
    except OSError as exc:
        raise ConfigError(f"Unable to read keypair file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Keypair file {path} is not valid JSON: {exc}") from exc
    if not isinstance(raw, list) or len(raw) != 64:
        raise ConfigError(f"Keypair file {path} must contain a JSON array of 64 bytes")
    try:
        return Keypair.from_bytes(bytes(raw))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Keypair file {path} does not hold a valid keypair: {exc}") from exc


def parse_pubkey(value: str, name: str) -> Pubkey:
    try:
        return Pubkey.from_string(value)
    except ValueError as exc:
        raise ConfigError(f"{name} is not a valid base58 public key: {value}") from exc


def check_seed(seed: str) -> str:
    if not seed:
        raise ConfigError("seed must not be empty")
    if len(seed.encode("utf-8")) > MAX_SEED_LEN:
        raise ConfigError(f"seed must be at most {MAX_SEED_LEN} bytes: {seed!r}")
    return seed


def derive_counter_address(base: Pubkey, seed: str, program_id: Pubkey) -> Pubkey:
    return Pubkey.create_with_seed(base, check_seed(seed), program_id)
