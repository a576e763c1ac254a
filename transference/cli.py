"""CLI entrypoint for the transference client."""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from .config import ClientConfig, config_to_dict, resolve_config, write_config
from .constants import CLUSTER_URLS, LAMPORTS_PER_SOL, PROJECT_CONFIG_NAME
from .errors import TransferenceError
from .keys import derive_counter_address, load_keypair
from .workflow import (
    establish_connection,
    load_identities,
    payer_balance,
    report_counter,
    resolve_program_id,
    run,
)


def _config_from_args(args: argparse.Namespace) -> ClientConfig:
    return resolve_config(
        config_path=args.config,
        cluster=args.cluster,
        rpc_url=args.rpc_url,
        payer=args.keypair,
        program_keypair=args.program_keypair,
        program_id=args.program_id,
        program_so=args.program_so,
        seed=args.seed,
        recipient=args.recipient,
    )


def _cmd_run(args: argparse.Namespace) -> int:
    run(_config_from_args(args), count=args.count)
    return 0


def _cmd_address(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    payer = load_keypair(config.payer).pubkey()
    program_id = resolve_program_id(config)
    print(derive_counter_address(payer, config.seed, program_id))
    return 0


def _cmd_report(args: argparse.Namespace) -> int:
    session = establish_connection(_config_from_args(args))
    load_identities(session)
    report_counter(session)
    return 0


def _cmd_balance(args: argparse.Namespace) -> int:
    session = establish_connection(_config_from_args(args))
    session.payer = load_keypair(session.config.payer)
    lamports = payer_balance(session)
    print("Account", session.payer.pubkey(), "contains", lamports / LAMPORTS_PER_SOL, "SOL")
    return 0


def _cmd_config_show(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    for table, values in config_to_dict(config).items():
        print(f"{table}:")
        for key, value in values.items():
            print(f"  {key}: {value}")
    return 0


def _cmd_config_init(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    out_path = Path(args.out) if args.out else Path(PROJECT_CONFIG_NAME)
    if out_path.exists() and not args.force:
        raise ValueError(f"{out_path} already exists (use --force to overwrite)")
    write_config(out_path, config)
    print(f"Wrote config file: {out_path}")
    return 0


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", help=f"Project config file (default: ./{PROJECT_CONFIG_NAME})")
    parser.add_argument("--cluster", choices=sorted(CLUSTER_URLS), help="Named cluster")
    parser.add_argument("--rpc-url", help="RPC URL override")
    parser.add_argument("--keypair", help="Payer keypair path")
    parser.add_argument("--program-keypair", help="Program keypair path")
    parser.add_argument("--program-id", help="Program id (skips the program keypair)")
    parser.add_argument("--program-so", help="Program binary path, used in deploy hints")
    parser.add_argument("--seed", help="Seed for the counter account address")
    parser.add_argument("--recipient", help="Writable account passed to the program instead of the counter")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog=os.path.basename(sys.argv[0]))
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_run = sub.add_parser("run", help="Fund payer, verify program, send instruction, report counter")
    _add_common_args(p_run)
    p_run.add_argument("--count", type=int, default=1, help="Instructions to send before reporting")
    p_run.set_defaults(func=_cmd_run)

    p_address = sub.add_parser("address", help="Print the derived counter account address")
    _add_common_args(p_address)
    p_address.set_defaults(func=_cmd_address)

    p_report = sub.add_parser("report", help="Read and print the counter")
    _add_common_args(p_report)
    p_report.set_defaults(func=_cmd_report)

    p_balance = sub.add_parser("balance", help="Print the payer balance")
    _add_common_args(p_balance)
    p_balance.set_defaults(func=_cmd_balance)

    p_config = sub.add_parser("config", help="Configuration helpers")
    p_config_sub = p_config.add_subparsers(dest="config_cmd", required=True)

    p_config_show = p_config_sub.add_parser("show", help="Print the resolved configuration")
    _add_common_args(p_config_show)
    p_config_show.set_defaults(func=_cmd_config_show)

    p_config_init = p_config_sub.add_parser("init", help="Write the resolved configuration as TOML")
    _add_common_args(p_config_init)
    p_config_init.add_argument("--out", help=f"Output path (default: ./{PROJECT_CONFIG_NAME})")
    p_config_init.add_argument("--force", action="store_true", help="Overwrite an existing file")
    p_config_init.set_defaults(func=_cmd_config_init)

    args = parser.parse_args(argv)
    try:
        return args.func(args)
    except (TransferenceError, FileNotFoundError, ValueError) as exc:
        print(str(exc), file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
