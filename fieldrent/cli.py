import click
from flask.cli import AppGroup

from fieldrent.dependencies import get_store
from fieldrent.errors import AppError
from fieldrent.services import AuthService, LifecycleService
from fieldrent.services.availability_service import parse_timestamp

bookings_cli = AppGroup("bookings", help="Booking maintenance tasks.")
users_cli = AppGroup("users", help="Account administration.")


@bookings_cli.command("complete-past")
@click.option("--now", "now_raw", default=None, help="Reference time (ISO-8601, UTC if no offset).")
def complete_past(now_raw):
    """Mark confirmed bookings that have ended as completed. Meant for cron."""
    try:
        now = parse_timestamp(now_raw, "now") if now_raw else None
        count = LifecycleService(get_store()).complete_past_bookings(now)
    except AppError as exc:
        raise click.ClickException(exc.message) from exc
    click.echo(f"Completed {count} booking(s).")


@users_cli.command("set-role")
@click.argument("email")
@click.argument("role")
def set_role(email, role):
    """Grant ROLE (user, owner or admin) to the account registered with EMAIL."""
    try:
        user = AuthService(get_store()).set_role(email, role)
    except AppError as exc:
        raise click.ClickException(exc.message) from exc
    click.echo(f"{user.email} is now {user.role}.")


def register_cli(app):
    app.cli.add_command(bookings_cli)
    app.cli.add_command(users_cli)
