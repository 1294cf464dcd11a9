"""
CLI interface for the image vault.

Usage:
    imgvault init
    imgvault unlock
    imgvault add photo.png -k cat -k pet
    imgvault find pet cat
    imgvault rm <id>
    imgvault lock
"""

import base64
import binascii
import json
import mimetypes
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from .api import Vault, open_gate, open_vault
from .config import VaultConfig, get_store_path, load_or_create_config, save_config
from .errors import AccessDenied, EmptyKeywordSet, StorageFailure, VaultError, log_exception
from .gate import Gate
from .logging_config import configure_ops_log, configure_quiet_mode, enable_debug_mode
from .types import ImageRecord


# Configure quiet mode by default
# Set IMGVAULT_VERBOSE=1 to enable debug mode via environment
if os.environ.get("IMGVAULT_VERBOSE") == "1":
    enable_debug_mode()
else:
    configure_quiet_mode(quiet=True)


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        print(f"imgvault {version('imgvault')}")
        raise typer.Exit()


def _verbose_callback(value: bool):
    if value:
        enable_debug_mode()


@dataclass
class CliState:
    """Options given before the subcommand, shared through ctx.obj."""
    json_output: bool = False
    store: Optional[Path] = None


def _state(ctx: typer.Context) -> CliState:
    state = ctx.find_object(CliState)
    return state if state is not None else CliState()


app = typer.Typer(
    name="imgvault",
    help="Password-gated image vault with keyword search.",
    no_args_is_help=False,
    invoke_without_command=True,
    rich_markup_mode=None,
)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[bool, typer.Option(
        "--verbose", "-v",
        help="Enable debug-level logging to stderr",
        callback=_verbose_callback,
        is_eager=True,
    )] = False,
    output_json: Annotated[bool, typer.Option(
        "--json", "-j",
        help="Output as JSON",
    )] = False,
    version: Annotated[Optional[bool], typer.Option(
        "--version",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    )] = None,
    store: Annotated[Optional[Path], typer.Option(
        "--store", "-s",
        envvar="IMGVAULT_STORE_PATH",
        help="Path to the store directory",
    )] = None,
):
    """Password-gated image vault with keyword search."""
    ctx.obj = CliState(json_output=output_json, store=store)
    # If no subcommand provided, show whether the vault is unlocked
    if ctx.invoked_subcommand is None:
        status(ctx)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def _fail(message: str) -> None:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(1)


def _load_config(ctx: typer.Context) -> VaultConfig:
    """Load (or create) the config and attach the ops log for this command."""
    store = _state(ctx).store or get_store_path()
    try:
        config = load_or_create_config(Path(store))
    except (OSError, ValueError) as e:
        _fail(str(e))
    handler = configure_ops_log(config.path)

    def _detach():
        import logging
        logging.getLogger("imgvault").removeHandler(handler)
        handler.close()

    ctx.call_on_close(_detach)
    return config


def _get_gate(ctx: typer.Context, config: VaultConfig) -> Gate:
    """Open the gate; its session store is closed with the command."""
    try:
        gate = open_gate(config)
    except StorageFailure as e:
        _fail(str(e))
    ctx.call_on_close(gate.close)
    return gate


def _get_vault(
    ctx: typer.Context,
    config: Optional[VaultConfig] = None,
    gate: Optional[Gate] = None,
    writable: bool = False,
) -> Vault:
    """Open the vault for a command that needs an unlocked session.

    If the stored images cannot be read, read-only commands carry on with
    an empty vault; commands that would write fail instead.
    """
    if config is None:
        config = _load_config(ctx)
    if gate is None:
        gate = _get_gate(ctx, config)
    if not gate.is_authenticated():
        _fail("Vault is locked. Run 'imgvault unlock' first.")
    try:
        vault = open_vault(config)
    except StorageFailure as e:
        _fail(str(e))
    ctx.call_on_close(vault.close)
    try:
        vault.load()
    except StorageFailure as e:
        if writable:
            _fail(f"could not read stored images, nothing was changed: {e}")
        typer.echo(f"Warning: could not read stored images, starting empty: {e}", err=True)
    return vault


def _warn_unsaved(e: StorageFailure) -> None:
    typer.echo(f"Warning: {e}", err=True)


def _record_to_display(record: ImageRecord) -> dict:
    """Record fields worth showing; the image payload is left out."""
    return {
        "id": record.id,
        "name": record.display_name,
        "keywords": list(record.keywords),
        "uploadedAt": record.created_at,
    }


def _format_records(records: list[ImageRecord], as_json: bool = False) -> str:
    if as_json:
        return json.dumps([_record_to_display(r) for r in records], indent=2, ensure_ascii=False)
    if not records:
        return "No images."
    lines = []
    for r in records:
        name = r.display_name or "(unnamed)"
        lines.append(f"{r.id}  {r.created_at[:10]}  {name}  [{', '.join(r.keywords)}]")
    return "\n".join(lines)


def image_to_data_uri(path: Path) -> str:
    """Read an image file into a data: URI.

    Raises ValueError if the file does not look like an image.
    """
    mime, _ = mimetypes.guess_type(path.name)
    if not mime or not mime.startswith("image/"):
        raise ValueError(f"Not an image file: {path}")
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{mime};base64,{encoded}"


def data_uri_to_bytes(uri: str) -> bytes:
    """Decode a base64 data: URI. Raises ValueError for anything else."""
    if not uri.startswith("data:") or ";base64," not in uri:
        raise ValueError("Content is not a base64 data URI")
    try:
        return base64.b64decode(uri.split(";base64,", 1)[1], validate=True)
    except binascii.Error as e:
        raise ValueError(f"Content is not valid base64: {e}") from e


# -----------------------------------------------------------------------------
# Session Commands
# -----------------------------------------------------------------------------

@app.command()
def init(
    ctx: typer.Context,
    secret: Annotated[Optional[str], typer.Option(
        "--secret",
        help="Shared secret for the gate (prompted if omitted)",
    )] = None,
):
    """
    Create the store and set the shared secret.

    The secret is a soft deterrent, not protection: it is kept in plain
    text in imgvault.toml and images are stored unencrypted.
    """
    config = _load_config(ctx)
    if secret is None:
        secret = typer.prompt("New secret", hide_input=True, confirmation_prompt=True)
    if not secret:
        _fail("Secret cannot be empty")
    config.secret = secret
    save_config(config)
    typer.echo(f"Vault ready at {config.path}")


@app.command()
def unlock(
    ctx: typer.Context,
    password: Annotated[Optional[str], typer.Option(
        "--password", "-p",
        help="Password (prompted if omitted)",
    )] = None,
):
    """Unlock the vault for this session."""
    config = _load_config(ctx)
    gate = _get_gate(ctx, config)
    if password is None:
        password = typer.prompt("Password", hide_input=True)
    try:
        gate.authenticate(password)
    except AccessDenied as e:
        _fail(str(e))
    except StorageFailure as e:
        _fail(f"Could not record session: {e}")
    typer.echo("Vault unlocked.")


@app.command()
def lock(ctx: typer.Context):
    """End the session. Stored images are kept."""
    config = _load_config(ctx)
    gate = _get_gate(ctx, config)
    gate.logout()
    typer.echo("Vault locked.")


@app.command()
def status(ctx: typer.Context):
    """Show whether the vault is unlocked and how many images it holds."""
    config = _load_config(ctx)
    gate = _get_gate(ctx, config)
    unlocked = gate.is_authenticated()
    count = None
    if unlocked:
        count = _get_vault(ctx, config, gate).count()
    if _state(ctx).json_output:
        typer.echo(json.dumps({"store": str(config.path), "unlocked": unlocked, "images": count}))
    elif unlocked:
        typer.echo(f"Unlocked: {count} images in {config.path}")
    else:
        typer.echo(f"Locked: {config.path}")


# -----------------------------------------------------------------------------
# Vault Commands
# -----------------------------------------------------------------------------

@app.command()
def add(
    ctx: typer.Context,
    file: Annotated[Path, typer.Argument(help="Image file to store")],
    keyword: Annotated[Optional[list[str]], typer.Option(
        "--keyword", "-k",
        help="Keyword for this image (repeatable, at least one)",
    )] = None,
    name: Annotated[Optional[str], typer.Option(
        "--name", "-n",
        help="Display name (default: file name)",
    )] = None,
):
    """
    Store an image with keywords.

    \b
    Examples:
        imgvault add cat.png -k cat -k pet
        imgvault add scan.jpg -k receipt --name "March receipt"
    """
    vault = _get_vault(ctx, writable=True)
    try:
        content = image_to_data_uri(file)
    except (OSError, ValueError) as e:
        _fail(str(e))

    try:
        record = vault.insert(content, name if name is not None else file.name, keyword or [])
    except EmptyKeywordSet:
        _fail("At least one keyword is required (use -k)")
    except StorageFailure as e:
        _warn_unsaved(e)
        record = e.record
    typer.echo(_format_records([record], as_json=_state(ctx).json_output))


@app.command("list")
def list_images(ctx: typer.Context):
    """List all images, most recent first."""
    vault = _get_vault(ctx)
    records = vault.all()
    typer.echo(_format_records(records, as_json=_state(ctx).json_output))
    if not _state(ctx).json_output and records:
        typer.echo(f"{len(records)} images", err=True)


@app.command()
def find(
    ctx: typer.Context,
    keywords: Annotated[Optional[list[str]], typer.Argument(
        help="Keywords; an image must match all of them",
    )] = None,
):
    """
    Find images matching ALL keywords.

    A keyword matches when it appears inside any of an image's keywords,
    so "art" finds images tagged "party". No keywords lists everything.
    """
    vault = _get_vault(ctx)
    results = vault.search(keywords or [])
    typer.echo(_format_records(results, as_json=_state(ctx).json_output))


@app.command()
def get(
    ctx: typer.Context,
    id: Annotated[str, typer.Argument(help="ID of the image")],
    output: Annotated[Optional[Path], typer.Option(
        "--output", "-o",
        help="Write the image bytes to this file",
    )] = None,
):
    """Show one image's details, or save the image to a file."""
    vault = _get_vault(ctx)
    record = vault.get(id)
    if record is None:
        _fail(f"Image not found: {id}")
    if output is not None:
        try:
            output.write_bytes(data_uri_to_bytes(record.content))
        except (OSError, ValueError) as e:
            _fail(str(e))
        typer.echo(f"Wrote {output}", err=True)
        return
    typer.echo(_format_records([record], as_json=_state(ctx).json_output))


@app.command("rm")
def remove(
    ctx: typer.Context,
    id: Annotated[list[str], typer.Argument(help="ID(s) of image(s) to remove")],
):
    """Remove image(s). Unknown IDs are ignored."""
    vault = _get_vault(ctx, writable=True)
    for doc_id in id:
        try:
            removed = vault.remove(doc_id)
        except StorageFailure as e:
            _warn_unsaved(e)
            removed = True
        if removed:
            typer.echo(f"Removed {doc_id}")
        else:
            typer.echo(f"Not found: {doc_id}", err=True)


# -----------------------------------------------------------------------------
# Data Management
# -----------------------------------------------------------------------------

@app.command("export")
def export_cmd(
    ctx: typer.Context,
    output: Annotated[str, typer.Argument(
        help="Output file path (use '-' for stdout)"
    )] = "-",
):
    """Export the vault to JSON for backup or migration."""
    vault = _get_vault(ctx)
    data = vault.export_data()
    text = json.dumps(data, indent=2, ensure_ascii=False)
    if output == "-":
        typer.echo(text)
        return
    try:
        Path(output).write_text(text + "\n", encoding="utf-8")
    except OSError as e:
        _fail(str(e))
    typer.echo(f"Exported {data['info']['count']} images to {output}", err=True)


@app.command("import")
def import_cmd(
    ctx: typer.Context,
    file: Annotated[str, typer.Argument(help="JSON export file to import")],
    mode: Annotated[str, typer.Option(
        "--mode", "-m", help="Import mode: merge (skip existing) or replace (clear first)"
    )] = "merge",
    yes: Annotated[bool, typer.Option(
        "--yes", "-y", help="Do not ask before replacing"
    )] = False,
):
    """Import images from a JSON export file."""
    if mode not in ("merge", "replace"):
        _fail(f"--mode must be 'merge' or 'replace', got '{mode}'")

    try:
        if file == "-":
            data = json.loads(sys.stdin.read())
        else:
            path = Path(file)
            if not path.exists():
                _fail(f"file not found: {file}")
            data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        _fail(f"{file} is not valid JSON: {e}")
    if not isinstance(data, dict):
        _fail(f"{file} is not an imgvault export")

    vault = _get_vault(ctx, writable=True)
    if mode == "replace" and not yes:
        count = len(data.get("records", []))
        if not typer.confirm(
            f"This will delete all {vault.count()} existing images and import {count} from {file}. Continue?"
        ):
            raise typer.Exit(0)

    try:
        stats = vault.import_data(data, mode=mode)
    except ValueError as e:
        _fail(str(e))
    except StorageFailure as e:
        _warn_unsaved(e)
        return
    typer.echo(f"Imported {stats['imported']} images, skipped {stats['skipped']}.", err=True)


# -----------------------------------------------------------------------------
# Entry point
# -----------------------------------------------------------------------------

def _command_name(argv: list[str]) -> str:
    """First non-option argument, used to label error log entries."""
    return next((a for a in argv if not a.startswith("-")), "")


def main():
    """Console entry point: one-line errors on stderr, tracebacks in the error log."""
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        raise SystemExit(130)
    except Exception as e:
        context = f"imgvault {_command_name(sys.argv[1:])}".rstrip()
        log_path = log_exception(e, context=context, store_path=get_store_path())
        if isinstance(e, StorageFailure):
            typer.echo(f"Error: vault storage unavailable: {e}", err=True)
        elif isinstance(e, VaultError):
            typer.echo(f"Error: {e}", err=True)
        else:
            typer.echo(f"Unexpected error: {type(e).__name__}: {e}", err=True)
        typer.echo(f"Details logged to {log_path}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
