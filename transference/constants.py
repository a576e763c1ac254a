"""Transference client constants."""

from pathlib import Path

LAMPORTS_PER_SOL = 1_000_000_000

# Budget of signatures the payer is funded for on top of the rent-exempt deposit.
FEE_MULTIPLIER = 100

COUNTER_SEED = "transference"
MAX_SEED_LEN = 32

DEFAULT_RPC_URL = "http://127.0.0.1:8899"
DEFAULT_PAYER_KEYPAIR = str(Path.home() / ".config" / "solana" / "id.json")
DEFAULT_SOLANA_CONFIG = Path.home() / ".config" / "solana" / "cli" / "config.yml"

# Written by `solana program deploy dist/program/transference.so`.
PROGRAM_DIR = Path("dist") / "program"
DEFAULT_PROGRAM_SO = str(PROGRAM_DIR / "transference.so")
DEFAULT_PROGRAM_KEYPAIR = str(PROGRAM_DIR / "transference-keypair.json")

PROJECT_CONFIG_NAME = "transference.toml"

CLUSTER_URLS = {
    "localnet": "http://127.0.0.1:8899",
    "devnet": "https://api.devnet.solana.com",
    "testnet": "https://api.testnet.solana.com",
    "mainnet": "https://api.mainnet-beta.solana.com",
}
