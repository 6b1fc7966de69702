"""User management CLI commands."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table
from sqlmodel import delete, select

from fitquest.database import get_session_context
from fitquest.models import RefreshToken, User, UserRole, VerificationToken
from fitquest.services.auth import hash_password
from fitquest.services.events import UserVerified, create_event_bus

console = Console()
app = typer.Typer(help="User management commands")


async def _get_user(session, email: str) -> User:
    result = await session.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if not user:
        console.print(f"[red]Error:[/red] User {email} not found")
        raise typer.Exit(1)
    return user


async def _mark_verified(session, user: User) -> None:
    """Verify a user outside the email flow, firing the same event."""
    user.is_verified = True
    session.add(user)
    await session.execute(delete(VerificationToken).where(VerificationToken.user_id == user.id))
    await create_event_bus().publish(session, UserVerified(user_id=user.id, email=user.email))


@app.command("list")
def list_users():
    """List all users."""

    async def _list():
        async with get_session_context() as session:
            result = await session.execute(select(User).order_by(User.email))
            users = result.scalars().all()

            table = Table(title="Users")
            table.add_column("ID", style="cyan")
            table.add_column("Email", style="green")
            table.add_column("Role", style="magenta")
            table.add_column("Verified")
            table.add_column("Created", style="dim")

            for user in users:
                verified = "[green]Yes[/green]" if user.is_verified else "No"
                created = user.created_at.strftime("%Y-%m-%d") if user.created_at else "-"
                table.add_row(user.id, user.email, user.role, verified, created)

            console.print(table)

    asyncio.run(_list())


@app.command("create")
def create_user(
    email: str = typer.Argument(..., help="User email"),
    password: str = typer.Option(
        ..., "--password", "-p", prompt=True, hide_input=True, confirmation_prompt=True
    ),
    verified: bool = typer.Option(False, "--verified", help="Skip email verification"),
    admin: bool = typer.Option(False, "--admin", help="Make user an admin"),
):
    """Create a new user."""

    async def _create():
        async with get_session_context() as session:
            result = await session.execute(select(User).where(User.email == email))
            if result.scalar_one_or_none():
                console.print(f"[red]Error:[/red] User {email} already exists")
                raise typer.Exit(1)

            user = User(
                email=email,
                password_hash=hash_password(password),
                role=UserRole.ADMIN.value if admin else UserRole.USER.value,
            )
            session.add(user)
            await session.flush()
            if verified:
                await _mark_verified(session, user)
            await session.commit()

            console.print(
                f"[green]Created user:[/green] {email} (role={user.role}, verified={verified})"
            )

    asyncio.run(_create())


@app.command("verify")
def verify_user(email: str = typer.Argument(..., help="User email")):
    """Mark a user's email as verified."""

    async def _verify():
        async with get_session_context() as session:
            user = await _get_user(session, email)
            if user.is_verified:
                console.print(f"[yellow]Warning:[/yellow] User {email} is already verified")
                return

            await _mark_verified(session, user)
            await session.commit()
            console.print(f"[green]Verified:[/green] {email}")

    asyncio.run(_verify())


@app.command("set-role")
def set_role(
    email: str = typer.Argument(..., help="User email"),
    role: UserRole = typer.Argument(..., help="New role"),
):
    """Change a user's role. Takes effect on their next access token."""

    async def _set_role():
        async with get_session_context() as session:
            user = await _get_user(session, email)
            user.role = role.value
            session.add(user)
            await session.commit()
            console.print(f"[green]Set role for {email}:[/green] {role.value}")

    asyncio.run(_set_role())


@app.command("revoke-sessions")
def revoke_sessions(email: str = typer.Argument(..., help="User email")):
    """Delete every refresh token for a user, forcing re-login."""

    async def _revoke():
        async with get_session_context() as session:
            user = await _get_user(session, email)
            result = await session.execute(
                delete(RefreshToken).where(RefreshToken.user_id == user.id)
            )
            await session.commit()
            console.print(f"[green]Revoked {result.rowcount} session(s) for:[/green] {email}")

    asyncio.run(_revoke())
