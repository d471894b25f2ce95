"""CLI entry point for did-anchor.

Invoked as::

    did-anchor [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m did_anchor.cli.main

Commands
--------
did create     Build, upload and anchor a DID document
did owner      Show the address owning a DID
did hash       Show the content hash anchored for a DID
did show       Print the anchored DID document
claim sign     Issue a signed verifiable credential
claim verify   Verify a credential file against its issuer's DID document

Environment
-----------
``WEB3_RPC_URL``, ``WEB3_DID_REGISTRY``, ``WEB3_IPFS_URL`` and
``WEB3_PRIVATE_KEY`` provide defaults for the matching options.
"""
from __future__ import annotations

import contextlib
import json
import logging
import os
import signal
import sys
import threading
from collections.abc import Iterator
from typing import Any, NoReturn

import click
from rich.console import Console
from rich.markup import escape

from did_anchor import __version__
from did_anchor.cancellation import CancellationToken
from did_anchor.config import DIDConfig
from did_anchor.did.canonical import format_timestamp
from did_anchor.did.signer import Secp256k1Signer
from did_anchor.errors import DIDAnchorError, VerificationFailure
from did_anchor.service import DIDService

console = Console(highlight=False, soft_wrap=True, emoji=False)


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _fail(exc: BaseException | str) -> NoReturn:
    console.print(f"[red]Error:[/red] {escape(str(exc))}")
    sys.exit(1)


def _emit_json(data: Any) -> None:
    click.echo(json.dumps(data, indent="\t", ensure_ascii=False))


@contextlib.contextmanager
def _interruptible() -> Iterator[CancellationToken]:
    """Yield a token that Ctrl-C cancels instead of killing the process."""
    token = CancellationToken()
    if threading.current_thread() is not threading.main_thread():
        yield token
        return

    def _on_sigint(signum: int, frame: object) -> None:
        token.cancel()

    previous = signal.signal(signal.SIGINT, _on_sigint)
    try:
        yield token
    finally:
        signal.signal(signal.SIGINT, previous)


def _service(ctx: click.Context, registry: str | None = None) -> DIDService:
    config: DIDConfig = ctx.obj
    return DIDService.from_config(config.with_registry(registry))


def _signer(private_key: str | None) -> Secp256k1Signer:
    if not private_key:
        _fail("Private key required (--private-key or WEB3_PRIVATE_KEY).")
    try:
        return Secp256k1Signer(private_key)
    except DIDAnchorError as exc:
        _fail(exc)


def _output_format(ctx: click.Context) -> str:
    config: DIDConfig = ctx.obj
    return config.output_format


_registry_option = click.option(
    "--registry",
    envvar="WEB3_DID_REGISTRY",
    default=None,
    help="DID registry contract address.",
)

_private_key_option = click.option(
    "--private-key",
    "-pk",
    "private_key",
    envvar="WEB3_PRIVATE_KEY",
    default=None,
    help="Hex secp256k1 private key.",
)


# ------------------------------------------------------------------
# Root group
# ------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="did-anchor")
@click.option("--verbose", is_flag=True, default=False, help="Enable debug logging.")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    show_default=True,
    help="Output format.",
)
@click.option("--rpc-url", envvar="WEB3_RPC_URL", default=None, help="Chain JSON-RPC URL.")
@click.option("--ipfs-url", envvar="WEB3_IPFS_URL", default=None, help="IPFS HTTP API base URL.")
@click.option(
    "--timeout",
    type=float,
    default=None,
    help="Seconds to wait for transaction confirmation (10-60).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    output_format: str,
    rpc_url: str | None,
    ipfs_url: str | None,
    timeout: float | None,
) -> None:
    """Anchor DID documents on-chain and sign or verify credentials."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    try:
        ctx.obj = DIDConfig.from_env(
            os.environ,
            rpc_url=rpc_url,
            ipfs_api_url=ipfs_url,
            confirmation_timeout=timeout,
            output_format=output_format,
            verbose=verbose,
        )
    except DIDAnchorError as exc:
        _fail(exc)


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    console.print(f"[bold]did-anchor[/bold] v{__version__}")


# ------------------------------------------------------------------
# did command group
# ------------------------------------------------------------------


@cli.group(name="did")
def did_group() -> None:
    """Create and inspect anchored DIDs."""


@did_group.command(name="create")
@click.argument("identifier")
@_registry_option
@_private_key_option
@click.pass_context
def create_command(
    ctx: click.Context,
    identifier: str,
    registry: str | None,
    private_key: str | None,
) -> None:
    """Create the DID document for IDENTIFIER and anchor it.

    IDENTIFIER must be a did:go DID whose id is at most 32 bytes.
    """
    signer = _signer(private_key)
    with signer, _interruptible() as cancel:
        try:
            result = _service(ctx, registry).create(identifier, signer, cancel=cancel)
        except DIDAnchorError as exc:
            _fail(exc)

    if _output_format(ctx) == "json":
        _emit_json(
            {
                "did": result.did,
                "hash": result.content_hash,
                "transaction": result.transaction_hash,
            }
        )
        return
    console.print(f"Successfully registered DID: {result.did}")
    console.print(f"DID Document IPFS Hash: {result.content_hash}")
    console.print(f"Transaction address: {result.transaction_hash}")


@did_group.command(name="owner")
@click.argument("identifier")
@_registry_option
@click.pass_context
def owner_command(ctx: click.Context, identifier: str, registry: str | None) -> None:
    """Print the address that owns IDENTIFIER."""
    with _interruptible() as cancel:
        try:
            address = _service(ctx, registry).owner(identifier, cancel=cancel)
        except DIDAnchorError as exc:
            _fail(exc)
    if _output_format(ctx) == "json":
        _emit_json({"did": identifier, "owner": address})
    else:
        console.print(address)


@did_group.command(name="hash")
@click.argument("identifier")
@_registry_option
@click.pass_context
def hash_command(ctx: click.Context, identifier: str, registry: str | None) -> None:
    """Print the content hash anchored for IDENTIFIER."""
    with _interruptible() as cancel:
        try:
            content_hash = _service(ctx, registry).content_hash(identifier, cancel=cancel)
        except DIDAnchorError as exc:
            _fail(exc)
    if _output_format(ctx) == "json":
        _emit_json({"did": identifier, "hash": content_hash})
    else:
        console.print(content_hash)


@did_group.command(name="show")
@click.argument("identifier")
@_registry_option
@click.pass_context
def show_command(ctx: click.Context, identifier: str, registry: str | None) -> None:
    """Print the DID document anchored for IDENTIFIER."""
    with _interruptible() as cancel:
        try:
            document = _service(ctx, registry).show(identifier, cancel=cancel)
        except DIDAnchorError as exc:
            _fail(exc)
    click.echo(document.to_json())


# ------------------------------------------------------------------
# claim command group
# ------------------------------------------------------------------


@cli.group(name="claim")
def claim_group() -> None:
    """Sign and verify verifiable credentials."""


@claim_group.command(name="sign")
@click.option("--id", "credential_id", default="", help="Credential ID, e.g. urn:1.")
@click.option("--type", "credential_type", default="", help="Credential type, e.g. ProofOfAge.")
@click.option("--issuer", default="", help="Issuer DID.")
@click.option("--subject", default="", help="Subject DID.")
@click.option("--data", default="", help="Subject claims as a JSON object.")
@click.option(
    "--output",
    type=click.Path(dir_okay=False, writable=True),
    default=None,
    help="Write the credential JSON to this file path.",
)
@_private_key_option
@click.pass_context
def sign_command(
    ctx: click.Context,
    credential_id: str,
    credential_type: str,
    issuer: str,
    subject: str,
    data: str,
    output: str | None,
    private_key: str | None,
) -> None:
    """Issue a credential signed with the issuer's private key."""
    signer = _signer(private_key)
    with signer:
        try:
            credential = _service(ctx).sign(
                credential_id, credential_type, issuer, subject, data, signer
            )
        except DIDAnchorError as exc:
            _fail(exc)

    text = credential.to_json()
    if output:
        with open(output, "w", encoding="utf-8") as handle:
            handle.write(text + "\n")
        console.print(f"[green]Credential written to[/green] {escape(output)}")
    else:
        click.echo(text)


@claim_group.command(name="verify")
@click.argument("filename", type=click.Path(dir_okay=False))
@_registry_option
@click.pass_context
def verify_command(ctx: click.Context, filename: str, registry: str | None) -> None:
    """Verify the credential in FILENAME against its issuer's DID document."""
    json_output = _output_format(ctx) == "json"
    with _interruptible() as cancel:
        try:
            result = _service(ctx, registry).verify_file(filename, cancel=cancel)
        except VerificationFailure as exc:
            if json_output:
                _emit_json({"verified": False, "reason": str(exc)})
            else:
                console.print("Status: NOT VERIFIED")
                console.print(f"Reason: {escape(str(exc))}")
            sys.exit(1)
        except DIDAnchorError as exc:
            _fail(exc)

    if json_output:
        _emit_json(
            {
                "verified": True,
                "id": result.credential_id,
                "type": result.types,
                "issuer": result.issuer,
                "subject": result.subject_id,
                "issuanceDate": format_timestamp(result.issuance_date),
                "key": result.key_id,
                "claims": dict(result.sorted_claims()),
            }
        )
        return

    console.print(f"ID:      {escape(result.credential_id)}")
    console.print(f"Type:    {escape(', '.join(result.types))}")
    console.print("Status:  VERIFIED")
    console.print("")
    console.print(f"Subject:   {escape(result.subject_id)}")
    console.print(f"Issuer:    {escape(result.issuer)}")
    console.print(f"Issued On: {format_timestamp(result.issuance_date)}")
    console.print("")
    claims = result.sorted_claims()
    if claims:
        console.print("CLAIMS:")
        for key, value in claims:
            shown = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)
            console.print(f"{escape(key)}: {escape(shown)}")
        console.print("")


if __name__ == "__main__":
    cli()
