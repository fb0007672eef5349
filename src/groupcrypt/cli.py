"""Typer-based command line interface for groupcrypt."""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer

from .config import AppConfig, load_config
from .core.exceptions import GroupCryptError, KeyExportError
from .logging import configure_logging
from .models import LocalUser, Recipient, RecipientSet
from .services.decryptor import EnvelopeDecryptor
from .services.encryptor import EnvelopeEncryptor
from .services.key_manager import KeyManager, KeyProvider
from .storage.contacts import ContactBook
from .storage.file_io import is_envelope_path
from .storage.keystore import KeyStore
from .version import __version__

app = typer.Typer(help="Encrypt files for a group of named recipients")

PASSPHRASE_ENV = "GROUPCRYPT_PASSPHRASE"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"groupcrypt {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", metavar="PATH", help="Configuration file"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="debug|info|warning|error"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show the version and exit"
    ),
) -> None:
    try:
        app_config = load_config(config)
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2)
    if log_level:
        app_config.logging.level = log_level
    configure_logging(app_config.logging.normalized_level(), json_output=app_config.logging.json_output)
    ctx.obj = app_config


def _fail(exc: GroupCryptError) -> None:
    typer.echo(f"Error: {exc.description}", err=True)
    detail = str(exc)
    if detail != exc.description:
        typer.echo(f"  {detail}", err=True)
    if exc.recovery_suggestion:
        typer.echo(exc.recovery_suggestion, err=True)
    raise typer.Exit(code=1)


def _key_manager(config: AppConfig, passphrase: str = "") -> KeyManager:
    store = KeyStore(config.store_dir, kdf=config.kdf)
    return KeyManager(passphrase.encode("utf-8"), store=store, config=config)


def _local_user(config: AppConfig, passphrase: str) -> LocalUser:
    manager = _key_manager(config, passphrase)
    return LocalUser(name=manager.identity_name(), provider=manager)


def _contacts(config: AppConfig) -> ContactBook:
    return ContactBook(config.store_dir, min_key_bits=config.crypto.min_rsa_key_bits)


def _passphrase_option(confirm: bool = False):
    return typer.Option(
        ...,
        "--passphrase",
        envvar=PASSPHRASE_ENV,
        prompt=True,
        hide_input=True,
        confirmation_prompt=confirm,
        help=f"Passphrase protecting the private key (or set {PASSPHRASE_ENV})",
    )


# ----- Identity -----
@app.command()
def keygen(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name", help="Your recipient name, shared with everyone you exchange files with"),
    passphrase: str = _passphrase_option(confirm=True),
) -> None:
    """Create the local identity keypair (no-op when one already exists)"""
    config: AppConfig = ctx.obj
    try:
        manager = _key_manager(config, passphrase)
        manager.create_identity(name)
        typer.echo(f"Identity ready for {manager.identity_name()}")
    except GroupCryptError as exc:
        _fail(exc)


@app.command()
def whoami(ctx: typer.Context) -> None:
    """Show the local identity name and key fingerprint"""
    config: AppConfig = ctx.obj
    try:
        manager = _key_manager(config)
        recipient = Recipient(name=manager.identity_name(), public_key=manager.public_key)
    except GroupCryptError as exc:
        _fail(exc)
        return
    typer.echo(f"{recipient.name} {recipient.fingerprint}")


@app.command("export-key")
def export_key(
    ctx: typer.Context,
    output: Path = typer.Option(..., "-o", "--output", help="Where to write the public certificate"),
) -> None:
    """Write your public certificate so others can add you as a recipient"""
    config: AppConfig = ctx.obj
    try:
        pem = _key_manager(config).export_public_key()
        try:
            output.write_bytes(pem)
        except OSError as exc:
            raise KeyExportError(f"Could not write {output}: {exc.strerror or exc}") from exc
    except GroupCryptError as exc:
        _fail(exc)
    typer.echo(f"Exported -> {output}")


# ----- Recipients -----
@app.command("add-recipient")
def add_recipient(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Recipient name as chosen by its owner"),
    cert: Path = typer.Option(..., "--cert", exists=True, readable=True, help="PEM public key"),
) -> None:
    """Add a recipient certificate received out-of-band"""
    try:
        recipient = _contacts(ctx.obj).add(name, cert.read_bytes())
    except GroupCryptError as exc:
        _fail(exc)
        return
    typer.echo(f"Added {recipient.name} {recipient.fingerprint}")


@app.command("remove-recipient")
def remove_recipient(ctx: typer.Context, name: str = typer.Argument(...)) -> None:
    """Remove a recipient and drop it from every group"""
    try:
        _contacts(ctx.obj).remove(name)
    except GroupCryptError as exc:
        _fail(exc)
    typer.echo(f"Removed {name}")


@app.command("list-recipients")
def list_recipients(ctx: typer.Context) -> None:
    """List known recipients and groups"""
    book = _contacts(ctx.obj)
    try:
        contacts = book.list_contacts()
    except GroupCryptError as exc:
        _fail(exc)
        return
    if not contacts:
        typer.echo("No recipients found")
    for recipient in contacts:
        typer.echo(f"{recipient.name:<24} {recipient.fingerprint}")
    for group, members in sorted(book.groups().items()):
        typer.echo(f"group:{group} {' '.join(members)}")


@app.command("set-group")
def set_group(
    ctx: typer.Context,
    group: str = typer.Argument(..., help="Group name, used as group:NAME"),
    members: List[str] = typer.Argument(..., help="Recipient names"),
) -> None:
    """Create or replace a named group of recipients"""
    try:
        _contacts(ctx.obj).set_group(group, members)
    except GroupCryptError as exc:
        _fail(exc)
    typer.echo(f"group:{group} {' '.join(members)}")


# ----- Files -----
@app.command()
def encrypt(
    ctx: typer.Context,
    input_path: Path = typer.Option(..., "-i", "--input", exists=True, readable=True, help="File to encrypt"),
    destination: Path = typer.Option(..., "-d", "--destination", help="Existing output folder"),
    recipients: List[str] = typer.Option(..., "-r", "--recipient", help="Recipient name or group:NAME"),
    passphrase: str = _passphrase_option(),
) -> None:
    """Encrypt a file for the given recipients; you always keep access"""
    config: AppConfig = ctx.obj
    try:
        owner = _local_user(config, passphrase)
        members = RecipientSet([owner.as_recipient()])
        for recipient in _contacts(config).resolve(recipients):
            members.add(recipient)
        output = EnvelopeEncryptor(owner, config).encrypt_file(input_path, destination, members)
    except GroupCryptError as exc:
        _fail(exc)
        return
    typer.echo(f"Encrypted -> {output}")


def _owner(config: AppConfig, name: Optional[str], cert: Optional[Path]) -> Recipient:
    if cert is not None:
        return Recipient(name=name or "owner", public_key=KeyProvider.import_public_key(cert.read_bytes()))
    if name is None:
        raise typer.BadParameter("Either --owner or --owner-cert is required", param_hint="'--owner'")
    manager = _key_manager(config)
    if manager.store.has_identity() and manager.identity_name() == name:
        return Recipient(name=name, public_key=manager.public_key)
    return _contacts(config).get(name)


@app.command()
def decrypt(
    ctx: typer.Context,
    input_path: Path = typer.Option(..., "-i", "--input", exists=True, readable=True, help="Envelope to decrypt"),
    destination: Path = typer.Option(..., "-d", "--destination", help="Existing output folder"),
    owner: Optional[str] = typer.Option(None, "--owner", help="Name of the recipient who encrypted the file"),
    owner_cert: Optional[Path] = typer.Option(
        None, "--owner-cert", exists=True, readable=True, help="PEM public key of the file owner"
    ),
    passphrase: str = _passphrase_option(),
) -> None:
    """Verify and decrypt an envelope"""
    config: AppConfig = ctx.obj
    if not is_envelope_path(input_path, config.crypto.protocol_extension):
        typer.echo(f"Warning: {input_path.name} does not end in .{config.crypto.protocol_extension}", err=True)
    try:
        owner_recipient = _owner(config, owner, owner_cert)
        user = _local_user(config, passphrase)
        output = EnvelopeDecryptor(user, config).decrypt_file(input_path, destination, owner_recipient)
    except GroupCryptError as exc:
        _fail(exc)
        return
    typer.echo(f"Decrypted -> {output}")


if __name__ == "__main__":  # pragma: no cover
    app()
