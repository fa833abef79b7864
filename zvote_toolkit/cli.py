#!/usr/bin/env python3
"""
Unified CLI for the zvote toolkit.

Examples:
  - Elections
    zvote create-election --template template.json
    zvote election-id --election election.json

  - Wallet
    zvote init --wallet vote.json --urls https://vote.example/e1 --key <key>
    zvote download --wallet vote.json
    zvote sync --wallet vote.json
    zvote balance --wallet vote.json
    zvote vote --wallet vote.json --address <candidate> --amount 100000000

  - Audit
    zvote audit --url https://vote.example/e1 --seed "<seed phrase>"
"""

import argparse
import asyncio
from typing import List, Optional

from rich.progress import Progress

from zvote_toolkit.audit.service import AuditService
from zvote_toolkit.ballots.models import Ballot
from zvote_toolkit.commands.validation import (
    validate_amount,
    validate_urls,
    validate_vote_address,
)
from zvote_toolkit.crypto.backend import load_crypto_backend
from zvote_toolkit.election.builder import ElectionTemplate, create_election
from zvote_toolkit.election.models import Election
from zvote_toolkit.reference.source import HttpBlockSource
from zvote_toolkit.shared.logging import set_log_level
from zvote_toolkit.shared.retry import HTTP_RETRY_CONFIG, SYNC_RETRY_CONFIG
from zvote_toolkit.shared.services.bulletin_board import BulletinBoardClient
from zvote_toolkit.utils.file_utils import load_json
from zvote_toolkit.utils.formatters import (
    console,
    create_counts_table,
    create_votes_table,
    format_amount,
    format_hash,
    generate_timestamped_filename,
    save_json_output,
)
from zvote_toolkit.wallet.session import VoteSession


def _block_progress(progress: Progress, start: int, end: int):
    task = progress.add_task("Downloading blocks", total=end - start + 1)

    def update(height: int) -> None:
        progress.update(task, completed=height - start + 1)

    return update


def cmd_create_election(args: argparse.Namespace) -> None:
    async def run():
        template = ElectionTemplate.from_dict(load_json(args.template))
        backend = load_crypto_backend()
        async with HttpBlockSource(args.lwd_url) as source:
            with Progress(console=console) as progress:
                data = await create_election(
                    template,
                    backend,
                    source,
                    _block_progress(progress, template.start, template.end),
                )

        filename = args.output or generate_timestamped_filename("election")
        save_json_output(data.to_dict(), filename)
        console.print(f"Election id: [bold]{data.election.id}[/bold]")
        console.print("[yellow]Keep the seed: it is required to audit the election[/yellow]")

    asyncio.run(run())


def cmd_election_id(args: argparse.Namespace) -> None:
    data = load_json(args.election)
    # Accept both a bare election and creation output
    election = Election.from_dict(data.get("election", data))
    console.print(election.id)


def cmd_init(args: argparse.Namespace) -> None:
    async def run():
        urls = validate_urls(args.urls)
        if args.election:
            data = load_json(args.election)
            election = Election.from_dict(data.get("election", data))
        else:
            async with BulletinBoardClient(urls[0]) as board:
                election = await HTTP_RETRY_CONFIG.run(board.fetch_election)

        session = VoteSession.create(
            args.wallet, urls, election, args.key, internal=args.internal
        )
        async with session:
            console.print(f"Wallet created for [bold]{election.name}[/bold]")
            console.print(f"Question: {election.question}")
            console.print(f"Address: {session.address()}")

    asyncio.run(run())


def cmd_download(args: argparse.Namespace) -> None:
    async def run():
        async with VoteSession.open(args.wallet) as session:
            election = session.election
            source = HttpBlockSource(args.lwd_url, client=session.client)
            with Progress(console=console) as progress:
                state = await session.download_reference_data(
                    source,
                    _block_progress(progress, election.start_height, election.end_height),
                )
            console.print(f"Reference data up to height {state.height}")
            console.print(f"Balance: {format_amount(session.balance())}")

    asyncio.run(run())


def cmd_sync(args: argparse.Namespace) -> None:
    async def run():
        async with VoteSession.open(args.wallet) as session:
            if not session.has_reference_data():
                console.print("[yellow]Download reference data first[/yellow]")
                return
            summary = await SYNC_RETRY_CONFIG.run(session.sync)
            if args.json:
                save_json_output(
                    summary.to_dict(),
                    args.output or generate_timestamped_filename("sync"),
                )
                return
            console.print(
                f"Synced {summary.applied} ballots from {summary.mirror} "
                f"(height {summary.end_height}/{summary.server_count})"
            )

    asyncio.run(run())


def cmd_balance(args: argparse.Namespace) -> None:
    async def run():
        async with VoteSession.open(args.wallet) as session:
            console.print(f"Height: {session.sync_height()}")
            console.print(f"Balance: {format_amount(session.balance())}")

    asyncio.run(run())


def cmd_address(args: argparse.Namespace) -> None:
    async def run():
        async with VoteSession.open(args.wallet) as session:
            console.print(session.address())

    asyncio.run(run())


def cmd_votes(args: argparse.Namespace) -> None:
    async def run():
        async with VoteSession.open(args.wallet) as session:
            votes = session.votes()
        if args.json:
            save_json_output(
                {"votes": [v.to_dict() for v in votes]},
                args.output or generate_timestamped_filename("votes"),
            )
            return
        if not votes:
            console.print("No votes cast")
            return
        console.print(create_votes_table(votes))

    asyncio.run(run())


def cmd_roots(args: argparse.Namespace) -> None:
    async def run():
        async with VoteSession.open(args.wallet) as session:
            roots = session.compute_roots()
            election = session.election
        if roots is None:
            console.print("[yellow]Download reference data first[/yellow]")
            return
        nf_root, cmx_root = roots
        console.print(f"nf root:  {nf_root}")
        console.print(f"cmx root: {cmx_root}")
        if nf_root != election.nullifier_root:
            console.print("[red]Nullifier root differs from the election's[/red]")

    asyncio.run(run())


def cmd_vote(args: argparse.Namespace) -> None:
    async def run():
        amount = validate_amount(args.amount)
        async with VoteSession.open(args.wallet) as session:
            address = validate_vote_address(session.election, args.address, args.delegate)
            ballot_hash = await session.vote(address, amount, delegate=args.delegate)
        console.print(f"[green]Vote cast[/green] ballot {format_hash(ballot_hash)}")

    asyncio.run(run())


def cmd_validate_ballot(args: argparse.Namespace) -> None:
    async def run():
        ballot = Ballot.from_dict(load_json(args.ballot))
        async with VoteSession.open(args.wallet) as session:
            session.validate_ballot(ballot)
        console.print(f"[green]Ballot {format_hash(ballot.sighash_hex())} is valid[/green]")

    asyncio.run(run())


def cmd_validate_key(args: argparse.Namespace) -> None:
    backend = load_crypto_backend()
    if backend.keys.is_valid_key(args.key):
        console.print("[green]Valid key[/green]")
    else:
        console.print("[red]Invalid key[/red]")
        raise SystemExit(1)


def cmd_audit(args: argparse.Namespace) -> None:
    async def run():
        service = AuditService(load_crypto_backend())
        with Progress(console=console) as progress:
            task = progress.add_task("Auditing ballots", total=None)

            def update(height: int, total: int) -> None:
                progress.update(task, completed=height, total=total)

            report = await service.audit(args.url, seed=args.seed, progress=update)

        if args.json:
            save_json_output(
                report.to_dict(),
                args.output or generate_timestamped_filename("audit"),
            )
            return
        console.print(f"[bold]Election {format_hash(report.election_id)}[/bold]")
        console.print(f"Ballots: {report.ballots}")
        console.print(f"Final cmx root: {report.commitment_root}")
        console.print(create_counts_table(report.counts))

    asyncio.run(run())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zvote",
        description="Unified CLI for the zvote toolkit",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override ZV_LOG_LEVEL",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # create-election
    p_ce = sub.add_parser("create-election", help="Create an election from a template")
    p_ce.add_argument("--template", type=str, required=True, help="Template JSON file")
    p_ce.add_argument("--lwd-url", type=str, help="Light-wallet gateway URL")
    p_ce.add_argument("--output", type=str, help="Output filename")
    p_ce.set_defaults(func=cmd_create_election)

    # election-id
    p_id = sub.add_parser("election-id", help="Print the id of an election file")
    p_id.add_argument("--election", type=str, required=True)
    p_id.set_defaults(func=cmd_election_id)

    # init
    p_init = sub.add_parser("init", help="Create a wallet for an election")
    p_init.add_argument("--wallet", type=str, required=True, help="Wallet file")
    p_init.add_argument("--urls", type=str, required=True, help="Comma separated mirrors")
    p_init.add_argument("--key", type=str, required=True, help="Seed phrase or viewing key")
    p_init.add_argument("--election", type=str, help="Election JSON (default: fetch)")
    p_init.add_argument("--internal", action="store_true", help="Use the internal scope")
    p_init.set_defaults(func=cmd_init)

    # download
    p_dl = sub.add_parser("download", help="Download the election reference data")
    p_dl.add_argument("--wallet", type=str, required=True)
    p_dl.add_argument("--lwd-url", type=str, help="Light-wallet gateway URL")
    p_dl.set_defaults(func=cmd_download)

    # sync
    p_sync = sub.add_parser("sync", help="Apply new ballots from a mirror")
    p_sync.add_argument("--wallet", type=str, required=True)
    p_sync.add_argument("--json", action="store_true", help="Output JSON")
    p_sync.add_argument("--output", type=str, help="Output filename")
    p_sync.set_defaults(func=cmd_sync)

    # balance / address / votes / roots
    for name, func, text in (
        ("balance", cmd_balance, "Show the unspent voting balance"),
        ("address", cmd_address, "Show the wallet vote address"),
        ("roots", cmd_roots, "Recompute the nullifier and commitment roots"),
    ):
        p = sub.add_parser(name, help=text)
        p.add_argument("--wallet", type=str, required=True)
        p.set_defaults(func=func)

    p_votes = sub.add_parser("votes", help="List votes cast from this wallet")
    p_votes.add_argument("--wallet", type=str, required=True)
    p_votes.add_argument("--json", action="store_true", help="Output JSON")
    p_votes.add_argument("--output", type=str, help="Output filename")
    p_votes.set_defaults(func=cmd_votes)

    # vote
    p_vote = sub.add_parser("vote", help="Cast a vote")
    p_vote.add_argument("--wallet", type=str, required=True)
    p_vote.add_argument("--address", type=str, required=True, help="Candidate address")
    p_vote.add_argument("--amount", type=int, required=True, help="Amount in zatoshis")
    p_vote.add_argument(
        "--delegate",
        action="store_true",
        help="Allow a non-candidate destination (delegation)",
    )
    p_vote.set_defaults(func=cmd_vote)

    # validate-ballot
    p_vb = sub.add_parser("validate-ballot", help="Check a ballot's proof")
    p_vb.add_argument("--wallet", type=str, required=True)
    p_vb.add_argument("--ballot", type=str, required=True, help="Ballot JSON file")
    p_vb.set_defaults(func=cmd_validate_ballot)

    # validate-key
    p_vk = sub.add_parser("validate-key", help="Check a wallet key")
    p_vk.add_argument("--key", type=str, required=True)
    p_vk.set_defaults(func=cmd_validate_key)

    # audit
    p_audit = sub.add_parser("audit", help="Re-verify and tally an election")
    p_audit.add_argument("--url", type=str, required=True, help="Election URL")
    p_audit.add_argument("--seed", type=str, required=True, help="Election seed")
    p_audit.add_argument("--json", action="store_true", help="Output JSON")
    p_audit.add_argument("--output", type=str, help="Output filename")
    p_audit.set_defaults(func=cmd_audit)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.log_level:
        set_log_level(args.log_level)
    try:
        args.func(args)
    except Exception as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        raise


if __name__ == "__main__":
    main()
