"""Command-line interface for membership operators."""

import secrets
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from membership.auth.passwords import hash_password
from membership.banking.crypto import decrypt_payload
from membership.errors import MembershipError
from membership.logging_config import configure_logging, get_logger
from membership.referral.service import referral_service
from membership.referral.tree import ReferralNode
from membership.settings import settings
from membership.storage.db import db
from membership.storage.models import Profile, ProfileRole

# Configure logging
configure_logging()
logger = get_logger(__name__)

# Create Typer app
app = typer.Typer(
    name="membership",
    help="Membership backend - operator tools",
    no_args_is_help=True,
)

# Rich console for pretty output
console = Console()


@app.command("init")
def init_database() -> None:
    """Initialize the database and create tables."""
    console.print("[bold blue]Initializing database...[/bold blue]")
    db.create_tables()
    console.print("[bold green]✓[/bold green] Database initialized successfully")


@app.command("generate-key")
def generate_key() -> None:
    """Print a new random BANK_SECRET_KEY (32 bytes, hex)."""
    console.print(secrets.token_hex(32), highlight=False, soft_wrap=True)


@app.command("decrypt-iban")
def decrypt_iban(
    payload: Annotated[str, typer.Argument(help="Stored payload nonce:ciphertext:tag")],
    key: Annotated[str | None, typer.Option("--key", "-k", help="Hex key (defaults to BANK_SECRET_KEY)")] = None,
) -> None:
    """Decrypt a stored IBAN payload."""
    hex_key = key or settings.bank_secret_key
    if not hex_key:
        console.print("[bold red]✗[/bold red] BANK_SECRET_KEY is not set")
        raise typer.Exit(1)

    try:
        plaintext = decrypt_payload(payload.strip(), hex_key)
    except MembershipError as e:
        logger.error("cli_decrypt_failed", error=str(e))
        console.print("[bold red]✗[/bold red] Decryption failed (wrong key or corrupted payload)")
        raise typer.Exit(1)

    console.print(plaintext, highlight=False, soft_wrap=True)


@app.command("hash-password")
def hash_password_command(
    password: Annotated[str, typer.Option("--password", "-p", prompt=True, hide_input=True, help="Plain password")],
) -> None:
    """Print the stored-format hash of a password."""
    console.print(hash_password(password), highlight=False, soft_wrap=True)


@app.command("set-role")
def set_role(
    email: Annotated[str, typer.Argument(help="Profile email")],
    role: Annotated[str, typer.Argument(help="user, admin or superAdmin")],
) -> None:
    """Set a profile role directly. The only way to create a superAdmin."""
    valid = [r.value for r in ProfileRole]
    if role not in valid:
        console.print(f"[red]Unknown role: {role} (expected one of {', '.join(valid)})[/red]")
        raise typer.Exit(1)

    with db.session() as session:
        profile = session.query(Profile).filter(Profile.email == email.strip().lower()).first()
        if not profile:
            console.print(f"[red]Profile {email} not found[/red]")
            raise typer.Exit(1)

        profile.role = ProfileRole(role)
        session.commit()
        profile_id = profile.id

    logger.warning("cli_role_set", profile_id=profile_id, role=role)
    console.print(f"[bold green]✓[/bold green] {email} is now {role}")


def _add_branch(branch: Tree, nodes: list[ReferralNode]) -> None:
    for node in nodes:
        label = f"{node.email} [dim](id {node.id}, code {node.referral_code})[/dim]"
        _add_branch(branch.add(label), node.children)


@app.command("referral-tree")
def show_referral_tree(
    profile_id: Annotated[int, typer.Argument(help="Root profile ID")],
) -> None:
    """Show the referral tree below a profile."""
    try:
        tree = referral_service.get_referral_tree(profile_id)
    except MembershipError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1)

    root = Tree(f"[bold]{tree.profile.email}[/bold] (id {tree.profile.id})")
    _add_branch(root, tree.children)
    console.print(root)

    table = Table(show_header=False)
    table.add_row("Direct referrals", str(tree.profile.referrals_count))
    table.add_row("Total referrals", str(tree.total_referrals))
    console.print(table)


if __name__ == "__main__":
    app()
