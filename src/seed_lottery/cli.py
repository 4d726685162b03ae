from __future__ import annotations

import argparse
import asyncio
import logging

from .balances import BalanceOracle
from .config import Settings
from .derive import derive_addresses, explorer_url, generate_mnemonic
from .errors import SeedLotteryError
from .game import GameRound, play_round
from .lnurl import Invoice, LnurlPayClient
from .project_constants import GAME_NAME
from .scan import ScanOutcome, ScanProgress, scan, sweep
from .verify import PaymentState, PaymentVerifier


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _settings(args: argparse.Namespace) -> Settings:
    return Settings.from_env(
        ln_address_override=args.ln_address,
        amount_override=args.amount,
        timeout_override=args.timeout,
    )


def _print_progress(progress: ScanProgress) -> None:
    print(f"[{progress.percent:3d}%] {progress.message}")


def _print_invoice(invoice: Invoice) -> None:
    print("========================================")
    print("⚡ LIGHTNING INVOICE")
    print("========================================")
    print(f"lightning:{invoice.payment_request}")
    if invoice.verify_url:
        print(f"Verify URL    : {invoice.verify_url}")
    else:
        print("Verify URL    : (none, confirm the payment manually)")
    print("----------------------------------------")


def _print_outcome(outcome: ScanOutcome, mnemonic: str) -> None:
    print("========================================")
    if outcome.found and outcome.winning_address is not None:
        winner = outcome.winning_address
        print("🏆 LEGENDARY SEED")
        print(f"Address       : {winner.address}")
        print(f"Path          : {winner.path}")
        print(f"Balance       : {outcome.winning_balance} sats")
        print(f"Explorer      : {explorer_url(winner.address)}")
    else:
        print("No balance found in any derived address.")
    print("----------------------------------------")
    print(f"Checked       : {len(outcome.checked_addresses)} addresses")
    if outcome.unresolved_addresses:
        print(f"Unconfirmed   : {len(outcome.unresolved_addresses)} (providers unreachable)")
    print(f"Seed          : {mnemonic}")


async def _confirm_manually(invoice: Invoice) -> bool:
    answer = await asyncio.to_thread(input, "Paid? [y/N] ")
    return answer.strip().lower() in ("y", "yes")


def cmd_play(args: argparse.Namespace) -> int:
    settings = _settings(args)
    log = logging.getLogger("play")
    log.info("Merchant address : %s", settings.ln_address)
    log.info("Price            : %d sats", settings.amount_sats)

    round_: GameRound = asyncio.run(
        play_round(
            settings,
            on_invoice=_print_invoice,
            confirm_payment=_confirm_manually,
            on_progress=_print_progress,
        )
    )
    if round_.error:
        print(f"❌ {round_.error}")
        return 1
    if round_.outcome is not None and round_.mnemonic is not None:
        _print_outcome(round_.outcome, round_.mnemonic)
    return 0


def cmd_invoice(args: argparse.Namespace) -> int:
    settings = _settings(args)

    async def run() -> Invoice:
        async with LnurlPayClient(timeout_s=settings.http_timeout_s) as client:
            return await client.fetch_invoice(
                settings.ln_address, settings.amount_sats, args.comment or settings.comment
            )

    invoice = asyncio.run(run())
    _print_invoice(invoice)
    return 0


def cmd_verify_payment(args: argparse.Namespace) -> int:
    settings = _settings(args)

    async def run() -> PaymentVerifier:
        verifier = PaymentVerifier(
            args.url,
            timeout_s=settings.verify_timeout_s,
            http_timeout_s=settings.http_timeout_s,
        )
        try:
            await verifier.wait()
        finally:
            verifier.cancel()
            await verifier.close()
        return verifier

    verifier = asyncio.run(run())
    if verifier.state is PaymentState.SETTLED:
        print("✅ PAYMENT SETTLED")
        return 0
    print(f"❌ {verifier.error}")
    return 1


def cmd_scan(args: argparse.Namespace) -> int:
    settings = _settings(args)
    mnemonic = args.mnemonic or generate_mnemonic()
    count = args.count or settings.address_count

    async def run() -> ScanOutcome:
        async with BalanceOracle(timeout_s=settings.http_timeout_s) as oracle:
            return await scan(mnemonic, count, oracle, on_progress=_print_progress)

    outcome = asyncio.run(run())
    _print_outcome(outcome, mnemonic)
    return 0


def cmd_addresses(args: argparse.Namespace) -> int:
    settings = _settings(args)
    count = args.count or settings.address_count

    if not args.balances:
        for derived in derive_addresses(args.mnemonic, count):
            print(f"{derived.index:3d}  {derived.path:<22} {derived.address}")
        return 0

    async def run():
        async with BalanceOracle(timeout_s=settings.http_timeout_s) as oracle:
            return await sweep(args.mnemonic, count, oracle)

    result = asyncio.run(run())
    print(f"Active addresses: {len(result.funded)} of {result.checked}")
    for funded in result.funded:
        print(f"{funded.address.index:3d}  {funded.address.address}  {funded.balance} sats")
        print(f"     {explorer_url(funded.address.address)}")
    if result.unresolved_addresses:
        print(f"⚠️  {len(result.unresolved_addresses)} balance(s) could not be confirmed.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="seed-lottery",
        description=f"{GAME_NAME}: pay, roll a seed, check its first addresses.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument(
        "--ln-address", default=None, help="Override merchant Lightning address (else env)."
    )
    p.add_argument("--amount", type=int, default=None, help="Override price in sats.")
    p.add_argument("--timeout", type=float, default=None, help="HTTP timeout seconds.")

    sub = p.add_subparsers(dest="cmd", required=True)

    play = sub.add_parser("play", help="Pay an invoice, then scan a fresh seed.")
    play.set_defaults(func=cmd_play)

    inv = sub.add_parser("invoice", help="Request an invoice from the merchant address.")
    inv.add_argument("--comment", default=None, help="Comment sent with the request.")
    inv.set_defaults(func=cmd_invoice)

    ver = sub.add_parser("verify-payment", help="Poll a LUD-21 verify URL until settled.")
    ver.add_argument("--url", required=True, help="Verify URL from the invoice.")
    ver.set_defaults(func=cmd_verify_payment)

    sc = sub.add_parser("scan", help="Scan a seed for the first funded address.")
    sc.add_argument(
        "--mnemonic", default=None, help="Seed to scan (default: generate a new one)."
    )
    sc.add_argument("--count", type=int, default=None, help="Addresses to check.")
    sc.set_defaults(func=cmd_scan)

    ad = sub.add_parser("addresses", help="List the BIP84 addresses of a seed.")
    ad.add_argument("--mnemonic", required=True, help="Seed to derive from.")
    ad.add_argument("--count", type=int, default=None, help="Addresses to derive.")
    ad.add_argument(
        "--balances", action="store_true", help="Check every address and list funded ones."
    )
    ad.set_defaults(func=cmd_addresses)

    return p


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    setup_logging(args.verbose)
    try:
        code = args.func(args)
    except SeedLotteryError as e:
        print(f"❌ {e}")
        code = 1
    raise SystemExit(code)
