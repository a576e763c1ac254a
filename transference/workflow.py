"""The four-stage client workflow.

Each stage takes the :class:`Session` built by :func:`establish_connection`,
talks to the cluster with blocking RPC calls, and records what it resolved on
the session for the next stage. Any failure raises a
:class:`~transference.errors.TransferenceError` subclass and the remaining
stages never run.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from solana.exceptions import SolanaRpcException
from solana.rpc.api import Client
from solana.rpc.commitment import Confirmed
from solana.rpc.core import RPCException, UnconfirmedTxError
from solana.rpc.types import TxOpts
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.system_program import CreateAccountWithSeedParams, create_account_with_seed
from solders.transaction import Transaction

from .config import ClientConfig
from .constants import FEE_MULTIPLIER, LAMPORTS_PER_SOL
from .errors import (
    AccountNotFoundError,
    ConfigError,
    DeploymentError,
    FundingError,
    RpcUnavailableError,
    SubmissionError,
)
from .keys import derive_counter_address, load_keypair, parse_pubkey
from .record import RECORD_SIZE, CounterRecord, decode

_RPC_ERRORS = (SolanaRpcException, RPCException, UnconfirmedTxError)


def _describe(exc: Exception) -> str:
    # SolanaRpcException keeps its text in error_msg rather than args.
    return getattr(exc, "error_msg", None) or str(exc) or type(exc).__name__


@dataclass
class Session:
    """Handles shared by the workflow stages for one process run."""

    config: ClientConfig
    client: Client
    payer: Optional[Keypair] = None
    program_id: Optional[Pubkey] = None
    counter_pubkey: Optional[Pubkey] = None

    def require_payer(self) -> Keypair:
        if self.payer is None:
            raise RuntimeError("payer not established; run establish_payer first")
        return self.payer

    def require_program(self) -> Pubkey:
        if self.program_id is None:
            raise RuntimeError("program not resolved; run check_program first")
        return self.program_id

    def require_counter(self) -> Pubkey:
        if self.counter_pubkey is None:
            raise RuntimeError("counter account not derived; run check_program first")
        return self.counter_pubkey


def establish_connection(config: ClientConfig) -> Session:
    client = Client(config.rpc_url, commitment=Confirmed)
    try:
        version = client.get_version().value
    except _RPC_ERRORS as exc:
        raise RpcUnavailableError(f"Unable to reach cluster at {config.rpc_url}: {_describe(exc)}") from exc
    print("Connection to cluster established:", config.rpc_url, version.solana_core)
    return Session(config=config, client=client)


def rent_exempt_minimum(client: Client) -> int:
    return client.get_minimum_balance_for_rent_exemption(RECORD_SIZE).value


def lamports_per_signature(client: Client, payer: Pubkey) -> int:
    """Fee charged for a message carrying a single signature."""
    blockhash = client.get_latest_blockhash().value.blockhash
    message = Message.new_with_blockhash([], payer, blockhash)
    fee = client.get_fee_for_message(message).value
    if fee is None:
        raise FundingError("Cluster did not quote a fee for the latest blockhash")
    return fee


def required_balance(client: Client, payer: Pubkey) -> int:
    return rent_exempt_minimum(client) + lamports_per_signature(client, payer) * FEE_MULTIPLIER


def establish_payer(session: Session) -> Session:
    """Load the fee payer and airdrop the shortfall if it cannot cover the fees."""
    payer = load_keypair(session.config.payer)
    client = session.client
    pubkey = payer.pubkey()
    try:
        fees = required_balance(client, pubkey)
        lamports = client.get_balance(pubkey).value
        if lamports < fees:
            sig = client.request_airdrop(pubkey, fees - lamports).value
            statuses = client.confirm_transaction(sig, commitment=Confirmed).value
            status = statuses[0] if statuses else None
            if status is not None and status.err is not None:
                raise FundingError(f"Airdrop {sig} to {pubkey} failed: {status.err}")
            lamports = client.get_balance(pubkey).value
    except _RPC_ERRORS as exc:
        raise FundingError(f"Unable to fund payer {pubkey}: {_describe(exc)}") from exc
    if lamports < fees:
        raise FundingError(
            f"Payer {pubkey} holds {lamports} lamports after airdrop, {fees} required"
        )
    session.payer = payer
    print("Using account", pubkey, "containing", lamports / LAMPORTS_PER_SOL, "SOL to pay for fees")
    return session


def resolve_program_id(config: ClientConfig) -> Pubkey:
    if config.program_id:
        return parse_pubkey(config.program_id, "program_id")
    try:
        return load_keypair(config.program_keypair).pubkey()
    except ConfigError as exc:
        raise ConfigError(
            f"Failed to read program keypair at '{config.program_keypair}' due to error: {exc}. "
            f"Program may need to be deployed with `solana program deploy {config.program_so}`"
        ) from exc


def _get_account(session: Session, pubkey: Pubkey):
    try:
        return session.client.get_account_info(pubkey).value
    except _RPC_ERRORS as exc:
        raise RpcUnavailableError(f"Unable to fetch account {pubkey}: {_describe(exc)}") from exc


def derive_counter(session: Session) -> Pubkey:
    session.counter_pubkey = derive_counter_address(
        session.require_payer().pubkey(),
        session.config.seed,
        session.require_program(),
    )
    return session.counter_pubkey


def send_and_confirm(
    session: Session,
    instructions: List[Instruction],
    action: str,
) -> Signature:
    payer = session.require_payer()
    client = session.client
    try:
        blockhash = client.get_latest_blockhash().value.blockhash
        tx = Transaction.new_with_payer(instructions, payer.pubkey())
        tx.sign([payer], blockhash)
        sig = client.send_raw_transaction(
            bytes(tx),
            opts=TxOpts(skip_preflight=False, preflight_commitment=Confirmed),
        ).value
        statuses = client.confirm_transaction(sig, commitment=Confirmed).value
    except _RPC_ERRORS as exc:
        raise SubmissionError(f"{action} failed: {_describe(exc)}") from exc
    status = statuses[0] if statuses else None
    if status is not None and status.err is not None:
        raise SubmissionError(f"{action} failed: transaction {sig} returned {status.err}")
    return sig


def check_program(session: Session) -> Session:
    """Verify the program is deployed and make sure the counter account exists."""
    config = session.config
    program_id = resolve_program_id(config)
    program_info = _get_account(session, program_id)
    if program_info is None:
        if Path(config.program_so).exists():
            raise DeploymentError(
                f"Program needs to be deployed with `solana program deploy {config.program_so}`"
            )
        raise DeploymentError("Program needs to be built and deployed")
    if not program_info.executable:
        raise DeploymentError(f"Program {program_id} is not executable")
    session.program_id = program_id
    print(f"Using program {program_id}")

    counter = derive_counter(session)
    if _get_account(session, counter) is not None:
        return session

    print("Creating counter account", counter)
    payer = session.require_payer().pubkey()
    try:
        lamports = rent_exempt_minimum(session.client)
    except _RPC_ERRORS as exc:
        raise SubmissionError(f"Unable to price counter account {counter}: {_describe(exc)}") from exc
    ix = create_account_with_seed(
        CreateAccountWithSeedParams(
            from_pubkey=payer,
            to_pubkey=counter,
            base=payer,
            seed=config.seed,
            lamports=lamports,
            space=RECORD_SIZE,
            owner=program_id,
        )
    )
    send_and_confirm(session, [ix], f"Creating account {counter}")
    return session


def build_dispatch_instruction(session: Session) -> Instruction:
    """Empty-payload instruction: payer, writable target, system program."""
    recipient = session.config.recipient
    target = parse_pubkey(recipient, "recipient") if recipient else session.require_counter()
    accounts = [
        AccountMeta(session.require_payer().pubkey(), True, True),
        AccountMeta(target, False, True),
        AccountMeta(SYSTEM_PROGRAM_ID, False, False),
    ]
    return Instruction(session.require_program(), b"", accounts)


def dispatch(session: Session) -> Signature:
    ix = build_dispatch_instruction(session)
    print("Saying hello to", ix.accounts[1].pubkey)
    return send_and_confirm(session, [ix], "Instruction dispatch")


def fetch_counter(session: Session) -> CounterRecord:
    counter = session.require_counter()
    info = _get_account(session, counter)
    if info is None:
        raise AccountNotFoundError(f"Error: cannot find the greeted account {counter}")
    return decode(bytes(info.data))


def report_counter(session: Session) -> CounterRecord:
    record = fetch_counter(session)
    print(session.require_counter(), "has been greeted", record.counter, "time(s)")
    return record


def run(config: ClientConfig, count: int = 1) -> CounterRecord:
    if count < 1:
        raise ValueError("count must be at least 1")
    session = establish_connection(config)
    establish_payer(session)
    check_program(session)
    for _ in range(count):
        dispatch(session)
    return report_counter(session)


def load_identities(session: Session) -> Session:
    """Resolve payer, program and counter address without touching the chain."""
    session.payer = load_keypair(session.config.payer)
    session.program_id = resolve_program_id(session.config)
    derive_counter(session)
    return session


def payer_balance(session: Session) -> int:
    pubkey = session.require_payer().pubkey()
    try:
        return session.client.get_balance(pubkey).value
    except _RPC_ERRORS as exc:
        raise FundingError(f"Unable to read balance of {pubkey}: {_describe(exc)}") from exc
