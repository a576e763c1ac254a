"""Configuration resolution for the transference client.

Values are resolved once at startup, highest precedence first: command-line
overrides, ``TRANSFERENCE_*`` environment variables, the project file
(``transference.toml``), the Solana CLI config, then built-in defaults.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlparse

import tomli_w

from .constants import (
    CLUSTER_URLS,
    COUNTER_SEED,
    DEFAULT_PAYER_KEYPAIR,
    DEFAULT_PROGRAM_KEYPAIR,
    DEFAULT_PROGRAM_SO,
    DEFAULT_RPC_URL,
    DEFAULT_SOLANA_CONFIG,
    PROJECT_CONFIG_NAME,
)
from .errors import ConfigError
from .keys import check_seed, parse_pubkey

ENV_RPC_URL = "TRANSFERENCE_RPC_URL"
ENV_PAYER = "TRANSFERENCE_PAYER_KEYPAIR"
ENV_PROGRAM_ID = "TRANSFERENCE_PROGRAM_ID"


@dataclass(frozen=True)
class ClientConfig:
    """Resolved values used by every workflow stage."""

    rpc_url: str
    payer: str
    program_keypair: str
    program_so: str
    seed: str = COUNTER_SEED
    program_id: Optional[str] = None
    recipient: Optional[str] = None


def _load_toml(path: Path) -> Dict[str, Any]:
    try:
        import tomllib  # Python 3.11+
    except ImportError:  # pragma: no cover
        import tomli as tomllib  # type: ignore
    try:
        return tomllib.loads(path.read_text())
    except OSError as exc:
        raise ConfigError(f"Unable to read config file {path}: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Malformed config file {path}: {exc}") from exc


def load_solana_cli_config(path: Optional[Path] = None) -> Dict[str, str]:
    """Read the flat ``key: value`` pairs of the Solana CLI ``config.yml``.

    A missing file yields an empty mapping.
    """
    if path is None:
        env_path = os.environ.get("SOLANA_CONFIG") or os.environ.get("SOLANA_CONFIG_FILE")
        path = Path(env_path) if env_path else DEFAULT_SOLANA_CONFIG
    try:
        text = path.read_text()
    except OSError:
        return {}
    cfg: Dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if ":" not in line:
            continue
        key, value = line.split(":", 1)
        key = key.strip()
        value = value.strip().strip("\"'")
        if key:
            cfg[key] = value
    return cfg


def load_project_config(path: Path) -> Dict[str, Dict[str, Any]]:
    data = _load_toml(path)
    out: Dict[str, Dict[str, Any]] = {}
    for table in ("cluster", "program"):
        raw = data.get(table, {})
        if not isinstance(raw, dict):
            raise ConfigError(f"[{table}] in {path} must be a table")
        out[table] = raw
    return out


def resolve_relative(base_file: Path, raw_path: str) -> str:
    expanded = Path(raw_path).expanduser()
    if expanded.is_absolute():
        return str(expanded)
    return str((base_file.parent / expanded).resolve())


def check_rpc_url(url: str) -> str:
    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ConfigError(f"RPC endpoint must be an http(s) URL: {url!r}")
    return url


def _clean(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped if stripped else None


def resolve_config(
    *,
    config_path: Optional[str] = None,
    cluster: Optional[str] = None,
    rpc_url: Optional[str] = None,
    payer: Optional[str] = None,
    program_keypair: Optional[str] = None,
    program_id: Optional[str] = None,
    program_so: Optional[str] = None,
    seed: Optional[str] = None,
    recipient: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    solana_config: Optional[Dict[str, str]] = None,
) -> ClientConfig:
    if env is None:
        env = os.environ
    if solana_config is None:
        solana_config = load_solana_cli_config()

    if config_path:
        project_path: Optional[Path] = Path(config_path).expanduser()
        if not project_path.exists():
            raise ConfigError(f"Config file not found: {project_path}")
    else:
        project_path = Path(PROJECT_CONFIG_NAME)
        if not project_path.exists():
            project_path = None

    cluster_table: Dict[str, Any] = {}
    program_table: Dict[str, Any] = {}
    if project_path is not None:
        project = load_project_config(project_path)
        cluster_table = project["cluster"]
        program_table = project["program"]

    def project_file(table: Dict[str, Any], key: str) -> Optional[str]:
        value = _clean(table.get(key))
        if value and project_path is not None:
            return resolve_relative(project_path, value)
        return value

    cluster_url = None
    if cluster:
        cluster_url = CLUSTER_URLS.get(cluster)
        if cluster_url is None:
            known = ", ".join(sorted(CLUSTER_URLS))
            raise ConfigError(f"Unknown cluster {cluster!r} (expected one of: {known})")

    resolved_rpc = (
        _clean(rpc_url)
        or cluster_url
        or _clean(env.get(ENV_RPC_URL))
        or _clean(cluster_table.get("rpc_url"))
        or _clean(solana_config.get("json_rpc_url"))
        or DEFAULT_RPC_URL
    )
    resolved_payer = (
        _clean(payer)
        or _clean(env.get(ENV_PAYER))
        or project_file(cluster_table, "payer")
        or _clean(solana_config.get("keypair_path"))
        or DEFAULT_PAYER_KEYPAIR
    )
    resolved_program_id = (
        _clean(program_id)
        or _clean(env.get(ENV_PROGRAM_ID))
        or _clean(program_table.get("program_id"))
    )
    resolved_recipient = _clean(recipient) or _clean(program_table.get("recipient"))
    if resolved_program_id:
        parse_pubkey(resolved_program_id, "program_id")
    if resolved_recipient:
        parse_pubkey(resolved_recipient, "recipient")

    return ClientConfig(
        rpc_url=check_rpc_url(resolved_rpc),
        payer=str(Path(resolved_payer).expanduser()),
        program_keypair=_clean(program_keypair)
        or project_file(program_table, "keypair")
        or DEFAULT_PROGRAM_KEYPAIR,
        program_so=_clean(program_so) or project_file(program_table, "so_path") or DEFAULT_PROGRAM_SO,
        seed=check_seed(_clean(seed) or _clean(program_table.get("seed")) or COUNTER_SEED),
        program_id=resolved_program_id,
        recipient=resolved_recipient,
    )


def config_to_dict(config: ClientConfig) -> Dict[str, Dict[str, str]]:
    values = asdict(config)
    cluster = {"rpc_url": values["rpc_url"], "payer": values["payer"]}
    program = {
        "keypair": values["program_keypair"],
        "so_path": values["program_so"],
        "seed": values["seed"],
    }
    for key in ("program_id", "recipient"):
        if values[key]:
            program[key] = values[key]
    return {"cluster": cluster, "program": program}


def write_config(path: Path, config: ClientConfig) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(tomli_w.dumps(config_to_dict(config)).encode())
