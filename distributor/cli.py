"""
distributor.cli — build, check and dry-run Merkle distributions.

Commands:
  - distributor build CLAIMS_FILE         Build a distribution file (root + proofs)
  - distributor verify DISTRIBUTION_FILE  Re-verify every proof against the root
  - distributor leaf --index --account --amount
  - distributor proof DISTRIBUTION_FILE INDEX
  - distributor simulate DISTRIBUTION_FILE
                                          Fund an in-memory ledger and redeem every claim

Claims files are JSON, either a list of {"index"?, "account", "amount"} or an
{account: amount} map (indices then follow sorted account order). Amounts may
be integers or decimal/0x strings.

Examples:
  distributor build claims.json --out dist.json
  distributor verify dist.json --json
  distributor --log-level INFO simulate dist.json --fund 1000
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from . import logging as dlog
from .config import DistributorConfig, load_config
from .errors import DistributorError, ValidationError
from .ledger import DistributionLedger
from .merkle import Claim, ClaimTree, PairOrdering, read_encoding, verify as verify_proof
from .token import InMemoryToken
from .utils.bytes import to_bytes, to_hex
from .utils.hash import get_hasher, keccak256
from .version import __version__

app = typer.Typer(
    name="distributor",
    help="Epoch-based Merkle distribution tooling",
    no_args_is_help=True,
    add_completion=False,
)

console = Console()
log = dlog.get_logger(__name__)


# -------------------- helpers --------------------


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ValidationError("cannot read file", path=str(path), error=str(e)) from e
    except ValueError as e:
        raise ValidationError("file is not valid JSON", path=str(path), error=str(e)) from e


def _emit_json(obj: Any) -> None:
    typer.echo(json.dumps(obj, indent=2))


def _fail(err: DistributorError) -> NoReturn:
    typer.echo(f"Error: {err}", err=True)
    raise typer.Exit(1)


def _claims_from_json(obj: Any) -> List[Claim]:
    if isinstance(obj, dict) and "claims" in obj:
        obj = obj["claims"]
    if isinstance(obj, dict):
        accounts = sorted((to_bytes(a, name="account"), amt) for a, amt in obj.items())
        return [Claim.from_dict({"index": i, "account": a, "amount": amt}) for i, (a, amt) in enumerate(accounts)]
    if isinstance(obj, list):
        out = []
        for pos, entry in enumerate(obj):
            if not isinstance(entry, dict):
                raise ValidationError("claim entry must be an object", position=pos)
            out.append(Claim.from_dict({"index": pos, **entry}))
        return out
    raise ValidationError("claims file must hold a list or an {account: amount} map")


def _config_for(doc: Any) -> DistributorConfig:
    """Config matching the encoding recorded in a distribution file."""
    ordering, hash_name, address_bytes = read_encoding(doc)
    return load_config().with_overrides(
        hash_name=hash_name,
        pair_ordering=ordering,
        address_bytes=address_bytes,
    )


def _sim_address(label: str, width: int) -> bytes:
    digest = keccak256(label.encode("utf-8"))
    return (digest * (width // len(digest) + 1))[:width]


# -------------------- global options --------------------


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main_callback(
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Log level (default: DISTRIBUTOR_LOG_LEVEL or WARNING)",
    ),
    log_json: Optional[bool] = typer.Option(
        None,
        "--log-json/--log-text",
        help="Structured JSON logs on stderr (default: DISTRIBUTOR_LOG_FORMAT)",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Print the version and exit",
    ),
) -> None:
    """Build, verify and simulate Merkle distributions."""
    overrides: Dict[str, Any] = {}
    if log_level is not None:
        overrides["level"] = log_level
    if log_json is not None:
        overrides["json"] = log_json
    try:
        dlog.configure_from_config(**overrides)
    except DistributorError as e:
        _fail(e)


# -------------------- commands --------------------


@app.command()
def build(
    claims_file: Path = typer.Argument(..., help="Claims JSON (list or {account: amount} map)"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write the distribution here (default: stdout)"),
    ordering: Optional[PairOrdering] = typer.Option(None, "--ordering", help="Pair ordering (default: config)"),
    hash_name: Optional[str] = typer.Option(None, "--hash", help="keccak256 | sha3_256 (default: config)"),
    json_output: bool = typer.Option(False, "--json", help="Machine-readable summary when --out is given"),
) -> None:
    """
    Build a distribution (root, leaves and proofs) from a claims file.
    """
    cfg = load_config()
    try:
        claims = _claims_from_json(_read_json(claims_file))
        tree = ClaimTree(
            claims,
            ordering=ordering or cfg.pair_ordering,
            hasher=get_hasher(hash_name or cfg.hash_name),
            address_bytes=cfg.address_bytes,
        )
    except DistributorError as e:
        _fail(e)

    doc = tree.to_dict()
    log.info("distribution built", extra={"root": to_hex(tree.root), "claims": len(tree)})

    if out is None:
        _emit_json(doc)
        return

    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(json.dumps(doc, indent=2) + "\n", encoding="utf-8")

    summary = {
        "merkleRoot": doc["merkleRoot"],
        "claims": len(tree),
        "tokenTotal": doc["tokenTotal"],
        "ordering": doc["ordering"],
        "hash": doc["hash"],
        "out": str(out),
    }
    if json_output:
        _emit_json(summary)
        return

    table = Table(title="Distribution", box=box.SIMPLE)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for k, v in summary.items():
        table.add_row(k, str(v))
    console.print(table)


@app.command()
def verify(
    distribution_file: Path = typer.Argument(..., help="Distribution JSON produced by `build`"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    """
    Check every recorded proof against the recorded root. Exit code 1 if any fails.
    """
    try:
        doc = _read_json(distribution_file)
        cfg = _config_for(doc)
        root = to_bytes(doc["merkleRoot"], name="merkleRoot")
        entries = doc.get("claims", [])
        if not isinstance(entries, list):
            raise ValidationError("claims must be a list", py_type=type(entries).__name__)
    except KeyError:
        _fail(ValidationError("distribution file has no merkleRoot"))
    except DistributorError as e:
        _fail(e)

    results = []
    for entry in entries:
        try:
            claim = Claim.from_dict(entry)
            leaf = claim.leaf(address_bytes=cfg.address_bytes, hasher=cfg.hasher)
            proof = [to_bytes(p, name="proof") for p in entry.get("proof", [])]
            ok = verify_proof(proof, root, leaf, index=claim.index, ordering=cfg.pair_ordering, hasher=cfg.hasher)
            if "leaf" in entry and to_bytes(entry["leaf"], name="leaf") != leaf:
                ok = False
            results.append({"index": claim.index, "account": to_hex(claim.recipient), "amount": str(claim.amount), "ok": ok})
        except DistributorError as e:
            index = entry.get("index") if isinstance(entry, dict) else None
            results.append({"index": index, "ok": False, "error": e.to_dict()})

    valid = all(r["ok"] for r in results)
    log.info("distribution verified", extra={"root": to_hex(root), "claims": len(results), "valid": valid})

    if json_output:
        _emit_json({"merkleRoot": to_hex(root), "valid": valid, "results": results})
    else:
        table = Table(title=f"Proofs against {to_hex(root)}", box=box.SIMPLE)
        table.add_column("Index", justify="right")
        table.add_column("Account", style="cyan")
        table.add_column("Amount", justify="right")
        table.add_column("OK")
        for r in results:
            table.add_row(
                str(r["index"]),
                r.get("account", "-"),
                r.get("amount", "-"),
                "[green]yes[/green]" if r["ok"] else "[red]no[/red]",
            )
        console.print(table)

    if not valid:
        raise typer.Exit(1)


@app.command()
def leaf(
    index: int = typer.Option(..., "--index", min=0, help="Claim index"),
    account: str = typer.Option(..., "--account", help="Recipient address (hex)"),
    amount: str = typer.Option(..., "--amount", help="Amount (decimal or 0x hex)"),
    hash_name: Optional[str] = typer.Option(None, "--hash", help="keccak256 | sha3_256 (default: config)"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    """Print the leaf hash of one claim."""
    cfg = load_config()
    try:
        claim = Claim.from_dict({"index": index, "account": account, "amount": amount})
        digest = claim.leaf(address_bytes=cfg.address_bytes, hasher=get_hasher(hash_name or cfg.hash_name))
    except DistributorError as e:
        _fail(e)

    if json_output:
        _emit_json({**claim.to_dict(), "leaf": to_hex(digest)})
    else:
        typer.echo(to_hex(digest))


@app.command()
def proof(
    distribution_file: Path = typer.Argument(..., help="Distribution JSON produced by `build`"),
    index: int = typer.Argument(..., min=0, help="Claim index"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    """Print the inclusion proof for one claim, one sibling per line."""
    try:
        tree = ClaimTree.from_dict(_read_json(distribution_file))
        claim = tree.claim(index)
        siblings = [to_hex(p) for p in tree.proof(index)]
    except DistributorError as e:
        _fail(e)

    if json_output:
        _emit_json({**claim.to_dict(), "leaf": to_hex(tree.leaf(index)), "proof": siblings})
    else:
        for s in siblings:
            typer.echo(s)


@app.command()
def simulate(
    distribution_file: Path = typer.Argument(..., help="Distribution JSON produced by `build`"),
    fund: Optional[int] = typer.Option(None, "--fund", min=0, help="Amount to fund the epoch with (default: tokenTotal)"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    """
    Dry-run a distribution: fund a fresh ledger backed by an in-memory token,
    redeem every claim once, then replay the first claim (expect ALREADY_CLAIMED).
    Exit code 1 if any claim fails.
    """
    try:
        doc = _read_json(distribution_file)
        tree = ClaimTree.from_dict(doc)
        cfg = _config_for(doc)
    except DistributorError as e:
        _fail(e)

    width = cfg.address_bytes
    admin = _sim_address("admin", width)
    funder = _sim_address("funder", width)
    ledger_addr = _sim_address("ledger", width)
    amount = tree.total if fund is None else fund

    with dlog.trace_scope():
        dlog.bind(component="simulate", ledger=ledger_addr)

        token = InMemoryToken(_sim_address("token", width), symbol="SIM")
        token.mint(funder, amount)
        token.approve(funder, ledger_addr, amount)
        ledger = DistributionLedger(token.bind(ledger_addr), b"\x00" * 32, admin=admin, address=ledger_addr, config=cfg)

        try:
            ledger.create_epoch(admin, funder, admin, amount, tree.root)
        except DistributorError as e:
            _fail(e)
        dlog.bind(epoch_id=ledger.epoch_id)

        failures = []
        paid = 0
        for c in tree.claims:
            try:
                ledger.claim(c.index, c.recipient, c.amount, tree.proof(c.index))
                paid += c.amount
            except DistributorError as e:
                log.info("claim rejected", extra={"index": c.index, "code": e.to_dict()["code"]})
                failures.append({"index": c.index, **e.to_dict()})

        first = tree.claims[0]
        replay = "accepted"
        try:
            ledger.claim(first.index, first.recipient, first.amount, tree.proof(first.index))
        except DistributorError as e:
            replay = e.to_dict()["code"]

    summary = {
        "epoch_id": ledger.epoch_id,
        "merkleRoot": to_hex(tree.root),
        "funded": str(amount),
        "claims": len(tree),
        "claimed": ledger.bitmap(ledger.epoch_id).count(),
        "paid": str(paid),
        "remaining": str(token.balance_of(ledger_addr)),
        "replay": replay,
        "events": len(ledger.events),
        "failures": failures,
    }

    if json_output:
        _emit_json(summary)
    else:
        table = Table(title="Simulation", box=box.SIMPLE)
        table.add_column("Field", style="cyan")
        table.add_column("Value")
        for k, v in summary.items():
            if k != "failures":
                table.add_row(k, str(v))
        console.print(table)
        for f in failures:
            console.print(f"[red]index {f['index']}[/red]: {f['code']} {f['message']}")

    if failures:
        raise typer.Exit(1)


def main() -> None:
    app()


__all__ = ["app", "main"]
