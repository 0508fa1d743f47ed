"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Optional, Tuple

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.credential_store import CredentialStore
from ..adapters.google_calendar import GoogleCalendarClient
from ..adapters.storage import JsonFileStore, StateRepository
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import SchedulerError
from ..domain.models import Consultant, OccupancyKind, Role, User
from ..domain.periods import Period, week_days
from ..services.scheduling import SchedulingService

app = typer.Typer(
    name="agendaguard",
    help="Book half-day training sessions without double-booking consultants",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")
]
UserOption = Annotated[str, typer.Option("--user", "-u", help="Email of the acting user")]

_CELL_STYLES = {
    OccupancyKind.FREE: "green",
    OccupancyKind.INTERNAL: "bold blue",
    OccupancyKind.EXTERNAL: "yellow",
}


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show log output")] = False,
):
    """
    agendaguard - half-day training scheduler.
    """
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _load(config_file: Optional[Path]) -> Tuple[AppConfig, SchedulingService]:
    """Load configuration and build the scheduling service around persisted state."""
    config_path = config_file or get_default_config_path()
    config = AppConfig.load_from_yaml(config_path)

    repository = StateRepository(JsonFileStore(config.storage.resolved_data_dir()))
    state = repository.load(config.roster())

    service = SchedulingService(
        state=state,
        repository=repository,
        provider=GoogleCalendarClient(
            timezone=config.timezone,
            http_timeout=config.sync.http_timeout_seconds,
            fetch_timeout=config.sync.fetch_timeout_seconds
        ),
        timezone=config.timezone,
        sync_config=config.sync,
        credentials=CredentialStore(
            fallback_file=config.storage.credential_file(),
            use_keyring=config.storage.use_keyring
        ),
    )
    return config, service


def _fail(message: object) -> None:
    console.print(f"[bold red]Error:[/bold red] {message}")
    raise typer.Exit(1)


def _parse_day(value: Optional[str], tz: str) -> pendulum.DateTime:
    if not value:
        return pendulum.today(tz)
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz)
    except ValueError as e:
        _fail(f"Could not parse date '{value}': {e}")


def _resolve_consultant(service: SchedulingService, identifier: str) -> Consultant:
    """Find a consultant by id, name or email."""
    needle = identifier.strip().lower()
    for consultant in service.consultants():
        if needle in (consultant.id.lower(), consultant.name.lower(), consultant.email.lower()):
            return consultant
    _fail(f"Unknown consultant '{identifier}'. Run 'agendaguard consultants' to list them.")


def _actor(service: SchedulingService, email: str) -> User:
    return service.find_user_by_email(email)


def _warn_plaintext_credentials(service: SchedulingService) -> None:
    if service.credential_warning:
        console.print(f"[yellow]⚠ {service.credential_warning}[/yellow]")


@app.command()
def consultants(config_file: ConfigOption = None):
    """
    List all configured consultants.
    """
    try:
        _, service = _load(config_file)
    except (FileNotFoundError, ValueError, SchedulerError) as e:
        _fail(e)

    if not service.consultants():
        console.print("[yellow]No consultants defined in the config file.[/yellow]")
        return

    table = Table(title="Consultants", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="bold yellow")
    table.add_column("E-Mail", style="dim")
    table.add_column("Hours")
    table.add_column("Days")

    day_names = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    for consultant in service.consultants():
        table.add_row(
            consultant.id,
            f"[{consultant.color}]■[/] {consultant.name}",
            consultant.email,
            f"{consultant.work_start:%H:%M} - {consultant.work_end:%H:%M}",
            ", ".join(day_names[d] for d in sorted(consultant.work_days)),
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def register(
    name: Annotated[str, typer.Option("--name", help="Display name")],
    email: Annotated[str, typer.Option("--email", help="Login email")],
    role: Annotated[Role, typer.Option("--role", help="Requested role")] = Role.SALES,
    config_file: ConfigOption = None,
):
    """
    Register a user. The first registered user becomes ADMIN.
    """
    try:
        _, service = _load(config_file)
        user = service.register_user(name, email, role)
    except (FileNotFoundError, ValueError, SchedulerError) as e:
        _fail(e)

    linked = f", linked to consultant {user.consultant_id}" if user.consultant_id else ""
    console.print(f"[green]✓ Registered {user.email} as {user.role.value}{linked}[/green]")


@app.command()
def dashboard(
    user: UserOption,
    config_file: ConfigOption = None,
):
    """
    Show booking totals and the next upcoming appointments.
    """
    try:
        _, service = _load(config_file)
        summary = service.dashboard(_actor(service, user))
    except (FileNotFoundError, ValueError, SchedulerError) as e:
        _fail(e)

    console.print(Panel.fit(
        f"[bold]Consultants:[/bold] {summary.consultant_count}\n"
        f"[bold]Scheduled appointments:[/bold] {summary.scheduled_count}\n"
        f"[bold]Hours booked:[/bold] {summary.booked_hours:g}h",
        title="Dashboard"
    ))

    if not summary.upcoming:
        console.print("[dim]No upcoming appointments.[/dim]")
        return

    names = {c.id: c.name for c in service.consultants()}
    table = Table(title="Upcoming", show_header=True, header_style="bold cyan")
    table.add_column("When")
    table.add_column("Period")
    table.add_column("Consultant", style="bold yellow")
    table.add_column("Client")

    for appointment in summary.upcoming:
        period = Period.MORNING if appointment.start.hour < 12 else Period.AFTERNOON
        table.add_row(
            appointment.start.format("DD.MM"),
            period.label,
            names.get(appointment.consultant_id, appointment.consultant_id),
            appointment.client_name,
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def week(
    user: UserOption,
    date: Annotated[Optional[str], typer.Option("--date", help="Any day of the week to show (YYYY-MM-DD)")] = None,
    next_week: Annotated[bool, typer.Option("--next-week", help="Show the coming week.")] = False,
    days: Annotated[int, typer.Option("--days", min=1, max=7, help="Number of days to show from Monday")] = 5,
    config_file: ConfigOption = None,
):
    """
    Show the weekly occupancy grid of all consultants.
    """
    try:
        config, service = _load(config_file)
        actor = _actor(service, user)
        anchor = _parse_day(date, config.timezone)
        if next_week:
            anchor = anchor.add(weeks=1)
        grid = {
            consultant.id: service.week(actor, consultant.id, anchor, days=days)
            for consultant in service.consultants()
        }
    except (FileNotFoundError, ValueError, SchedulerError) as e:
        _fail(e)

    shown_days = week_days(anchor, config.timezone, count=days)
    table = Table(
        title=f"Week of {shown_days[0].format('DD.MM.YYYY')}",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Consultant", style="bold")
    table.add_column("Period")
    for day in shown_days:
        table.add_column(day.format("ddd DD.MM"))

    for consultant in service.consultants():
        slots = grid[consultant.id]
        for period in Period:
            cells = []
            for slot in slots:
                if slot.period != period:
                    continue
                if slot.occupancy is None:
                    cells.append("[dim]-[/dim]")
                    continue
                style = _CELL_STYLES[slot.occupancy.kind]
                cells.append(f"[{style}]{slot.occupancy.describe()}[/{style}]")
            label = consultant.name if period is Period.MORNING else ""
            table.add_row(label, period.label, *cells)

    console.print()
    console.print(table)
    console.print("[dim]green = free, blue = booked here, yellow = external calendar, - = not offered[/dim]\n")


@app.command()
def book(
    consultant: Annotated[str, typer.Argument(help="Consultant id, name or email")],
    client: Annotated[str, typer.Argument(help="Client name")],
    date: Annotated[str, typer.Option("--date", help="Day of the training (YYYY-MM-DD)")],
    period: Annotated[str, typer.Option("--period", "-p", help="morning or afternoon")],
    user: UserOption,
    config_file: ConfigOption = None,
):
    """
    Book a consultant for a morning or afternoon.

    Examples:

        agendaguard book alex "Acme Corp" --date 2024-06-03 --period morning -u sales@example.com
    """
    try:
        config, service = _load(config_file)
        actor = _actor(service, user)
        target = _resolve_consultant(service, consultant)
        day = _parse_day(date, config.timezone)
        appointment = service.book(actor, target.id, client, day, Period.parse(period))
    except (FileNotFoundError, ValueError, SchedulerError) as e:
        _fail(e)

    console.print(Panel.fit(
        f"[bold green]✓ Booked![/bold green]\n\n"
        f"[bold]Consultant:[/bold] {target.name}\n"
        f"[bold]Client:[/bold] {appointment.client_name}\n"
        f"[bold]When:[/bold] {appointment.time_range}\n"
        f"[bold]ID:[/bold] {appointment.id}",
        title="Appointment"
    ))


@app.command()
def cancel(
    appointment_id: Annotated[str, typer.Argument(help="Appointment id")],
    user: UserOption,
    config_file: ConfigOption = None,
):
    """
    Delete an appointment (and its mirrored calendar entry).
    """
    try:
        _, service = _load(config_file)
        removed = service.cancel(_actor(service, user), appointment_id)
    except (FileNotFoundError, ValueError, SchedulerError) as e:
        _fail(e)

    console.print(f"[green]✓ Removed {removed.title} ({removed.time_range})[/green]")


@app.command()
def appointments(
    user: UserOption,
    consultant: Annotated[Optional[str], typer.Option("--consultant", help="Only this consultant")] = None,
    config_file: ConfigOption = None,
):
    """
    List booked appointments.
    """
    try:
        _, service = _load(config_file)
        actor = _actor(service, user)
        consultant_id = _resolve_consultant(service, consultant).id if consultant else None
        booked = service.list_appointments(actor, consultant_id)
    except (FileNotFoundError, ValueError, SchedulerError) as e:
        _fail(e)

    if not booked:
        console.print("[yellow]No appointments booked.[/yellow]")
        return

    names = {c.id: c.name for c in service.consultants()}
    table = Table(title="Appointments", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("When")
    table.add_column("Consultant", style="bold yellow")
    table.add_column("Client")
    table.add_column("Status")

    for appointment in booked:
        table.add_row(
            appointment.id,
            str(appointment.time_range),
            names.get(appointment.consultant_id, appointment.consultant_id),
            appointment.client_name,
            appointment.status.value,
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def sync(
    user: UserOption,
    token: Annotated[Optional[str], typer.Option("--token", help="Google Calendar access token (remembered)")] = None,
    config_file: ConfigOption = None,
):
    """
    Import busy blocks from the user's Google Calendar.

    Without a token the stored one is used; without any token synthetic
    busy blocks are installed unless the config demands strict sync.
    """
    try:
        _, service = _load(config_file)
        actor = _actor(service, user)
        result = asyncio.run(service.sync_calendar(actor, token))
    except (FileNotFoundError, ValueError, SchedulerError) as e:
        _fail(e)

    _warn_plaintext_credentials(service)

    if result is None:
        console.print("[yellow]⚠ No consultant is linked to this user; nothing was synced.[/yellow]")
        return

    console.print(
        f"[green]✓ {result.event_count} external event(s) installed for consultant "
        f"{result.consultant_id} ({result.source.value})[/green]"
    )


@app.command()
def disconnect(
    user: UserOption,
    config_file: ConfigOption = None,
):
    """
    Disconnect the user's Google Calendar and drop its imported events.
    """
    try:
        _, service = _load(config_file)
        consultant = service.disconnect_calendar(_actor(service, user))
    except (FileNotFoundError, ValueError, SchedulerError) as e:
        _fail(e)

    _warn_plaintext_credentials(service)

    suffix = f" for {consultant.name}" if consultant else ""
    console.print(f"[green]✓ Calendar disconnected{suffix}.[/green]")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]agendaguard[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
