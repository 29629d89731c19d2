"""CLI entry point for the fftt tool.

This module is the composition root of the application.  It is the only
place that resolves credentials and picks concrete storage
implementations; the library layers only receive them as arguments.
"""

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from enum import Enum

# Ensure UTF-8 output on Windows where stdout may default to cp1252.
# reconfigure() is a no-op when encoding is already utf-8.
if hasattr(sys.stdout, "reconfigure"):
    sys.stdout.reconfigure(encoding="utf-8", errors="replace")
if hasattr(sys.stderr, "reconfigure"):
    sys.stderr.reconfigure(encoding="utf-8", errors="replace")

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.syntax import Syntax

from fftt.auth import credentials as creds_store
from fftt.auth.storage import FileSessionStorage
from fftt.client import FFTTApiCaller
from fftt.core.exceptions import FFTTError
from fftt.core.models import (
    ClubParameterType,
    IndividualResultType,
    OrganismType,
    ResultByDivisionType,
    ResultInfo,
    SearchTeamByClubType,
    TrialType,
)

app = typer.Typer(help="Query the FFTT XML web service.")
auth_app = typer.Typer(help="Manage FFTT application credentials.")
session_app = typer.Typer(help="Manage the FFTT user session.")
club_app = typer.Typer(help="Clubs and their teams.")
competition_app = typer.Typer(help="Trials, divisions and criterium.")
results_app = typer.Typer(help="Team and individual results.")
player_app = typer.Typer(help="Players, licences and games.")

app.add_typer(auth_app, name="auth")
app.add_typer(session_app, name="session")
app.add_typer(club_app, name="club")
app.add_typer(competition_app, name="competition")
app.add_typer(results_app, name="results")
app.add_typer(player_app, name="player")

console = Console(legacy_windows=False)
log = logging.getLogger("fftt_cli")


# ---------------------------------------------------------------------------
# Output format
# ---------------------------------------------------------------------------


class OutputFormat(str, Enum):
    """Supported output formats for query commands."""

    raw = "raw"
    pretty = "pretty"


class DivisionView(str, Enum):
    """CLI names for :class:`~fftt.core.models.ResultByDivisionType`."""

    results = "results"
    ranking = "ranking"
    initial = "initial"


_DIVISION_VIEWS = {
    DivisionView.results: ResultByDivisionType.RESULTS,
    DivisionView.ranking: ResultByDivisionType.RANKING,
    DivisionView.initial: ResultByDivisionType.INITIAL,
}

_OUTPUT_OPTION = typer.Option(
    OutputFormat.raw, "--output", "-o", help="Output format."
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=Console(stderr=True),
                rich_tracebacks=True,
                show_time=True,
                show_level=True,
            )
        ],
    )


def _get_caller() -> FFTTApiCaller:
    """Build an :class:`FFTTApiCaller` from the configured credentials.

    The session identifier is kept in the session file so that successive
    invocations reuse it.

    Returns:
        A ready-to-use :class:`~fftt.client.FFTTApiCaller`.

    Raises:
        typer.Exit: If no credentials are configured.
    """
    app_id, password, _ = creds_store.resolve()
    if not app_id or not password:
        console.print("[red]No FFTT credentials configured.[/red]")
        console.print(
            "Run [bold]fftt auth setup[/bold] or set "
            f"{creds_store.ENV_APP_ID} and {creds_store.ENV_PASSWORD}."
        )
        raise typer.Exit(1)
    return FFTTApiCaller(
        password=password, app_id=app_id, storage=FileSessionStorage()
    )


def _run(
    call: Callable[[FFTTApiCaller], Awaitable[str]],
    output: OutputFormat = OutputFormat.raw,
) -> None:
    """Initialise the session, run *call* and print the XML it returns.

    Args:
        call: Receives the caller and returns the endpoint coroutine.
        output: How to print the XML.

    Raises:
        typer.Exit: On transport failure.
    """
    caller = _get_caller()

    async def _main() -> str:
        await caller.initialize_user()
        return await call(caller)

    try:
        xml = asyncio.run(_main())
    except FFTTError as e:
        log.debug("Request failed", exc_info=True)
        console.print(f"[red]FFTT request failed:[/red] {e}")
        raise typer.Exit(1)
    _emit(xml, output)


def _emit(xml: str, output: OutputFormat) -> None:
    if output == OutputFormat.pretty:
        console.print(Syntax(xml, "xml", word_wrap=True))
    else:
        print(xml)


@app.callback()
def _init(
    verbose: bool = typer.Option(False, "--verbose", help="Verbose logging"),
) -> None:
    _setup_logging(verbose)


# ---------------------------------------------------------------------------
# auth commands
# ---------------------------------------------------------------------------


@auth_app.command()
def setup(
    app_id: str = typer.Option(
        ..., "--app-id", prompt="Application id (delivered by the FFTT)"
    ),
    password: str = typer.Option(
        ..., "--password", prompt="Password", hide_input=True
    ),
):
    """Save FFTT application credentials locally."""
    creds_store.save(app_id, password)
    console.print(
        f"[green]✓ Credentials saved to:[/green] {creds_store.credentials_path()}"
    )


@auth_app.command()
def status():
    """Show where the active credentials come from."""
    app_id, password, source = creds_store.resolve()
    if not app_id or not password:
        console.print("[yellow]No credentials configured.[/yellow]")
        console.print(
            "Run [bold]fftt auth setup[/bold] or set "
            f"{creds_store.ENV_APP_ID} and {creds_store.ENV_PASSWORD}."
        )
        raise typer.Exit(1)
    console.print(f"[green]✓ Credentials[/green]  {source}")
    console.print(f"  Application id : {app_id}")


@auth_app.command()
def clear():
    """Remove locally saved credentials."""
    if creds_store.clear():
        console.print("[green]✓ Credentials removed.[/green]")
    else:
        console.print("[yellow]No saved credentials found.[/yellow]")


# ---------------------------------------------------------------------------
# session commands
# ---------------------------------------------------------------------------


@session_app.command(name="init")
def session_init():
    """Register a session with the FFTT backend (no-op if one exists)."""
    caller = _get_caller()
    try:
        answer = asyncio.run(caller.initialize_user())
    except FFTTError as e:
        log.debug("Session initialisation failed", exc_info=True)
        console.print(f"[red]Session initialisation failed:[/red] {e}")
        raise typer.Exit(1)
    if answer == FFTTApiCaller.ALREADY_AUTHENTICATED:
        console.print(
            f"[green]✓ Session already registered:[/green] {caller.serial}"
        )
    else:
        console.print(f"[green]✓ Session registered:[/green] {caller.serial}")
        print(answer)


@session_app.command(name="show")
def session_show():
    """Print the stored session identifier."""
    storage = FileSessionStorage()
    serial = storage.get(FFTTApiCaller.SERIAL_STORAGE_KEY)
    if not serial:
        console.print("[yellow]No session registered.[/yellow]")
        raise typer.Exit(1)
    console.print(serial)
    console.print(f"[dim]Stored in {storage.path}[/dim]")


@session_app.command(name="clear")
def session_clear():
    """Forget the stored session identifier."""
    storage = FileSessionStorage()
    if storage.clear():
        console.print(f"[green]✓ Session removed:[/green] {storage.path}")
    else:
        console.print("[yellow]No session registered.[/yellow]")


# ---------------------------------------------------------------------------
# top-level queries
# ---------------------------------------------------------------------------


@app.command()
def news(output: OutputFormat = _OUTPUT_OPTION):
    """Show the federation news feed."""
    _run(lambda c: c.get_news(), output)


@app.command()
def organisms(
    type: OrganismType = typer.Argument(..., help="F, Z, L or D."),
    parent: str | None = typer.Option(
        None, "--parent", help="Only children of this organism."
    ),
    output: OutputFormat = _OUTPUT_OPTION,
):
    """List federation organisms of one level."""
    _run(lambda c: c.get_organisms(type, parent_id=parent), output)


# ---------------------------------------------------------------------------
# club commands
# ---------------------------------------------------------------------------


@club_app.command(name="dep")
def club_dep(department: str, output: OutputFormat = _OUTPUT_OPTION):
    """List the clubs of a department."""
    _run(lambda c: c.get_clubs_by_department(department), output)


@club_app.command(name="search")
def club_search(
    value: str,
    by: ClubParameterType = typer.Option(
        ClubParameterType.CITY, "--by", help="Field to search on."
    ),
    output: OutputFormat = _OUTPUT_OPTION,
):
    """Search clubs by number, city, postcode or department."""
    _run(lambda c: c.get_clubs_by(value, by), output)


@club_app.command(name="detail")
def club_detail(
    club_no: str,
    team: str | None = typer.Option(
        None, "--team", help="Return this team's preferred venue."
    ),
    output: OutputFormat = _OUTPUT_OPTION,
):
    """Show the details of a club."""
    _run(lambda c: c.get_club_detail(club_no, team_id=team), output)


@club_app.command(name="teams")
def club_teams(
    club_no: str,
    type: SearchTeamByClubType = typer.Option(
        SearchTeamByClubType.ALL, "--type", help="M, F or A."
    ),
    output: OutputFormat = _OUTPUT_OPTION,
):
    """List the teams of a club."""
    _run(lambda c: c.get_team_by_club(club_no, type), output)


# ---------------------------------------------------------------------------
# competition commands
# ---------------------------------------------------------------------------


@competition_app.command(name="trials")
def competition_trials(
    organism_id: str,
    type: TrialType = typer.Option(..., "--type", help="E or I."),
    output: OutputFormat = _OUTPUT_OPTION,
):
    """List the trials run by an organism."""
    _run(lambda c: c.get_trials_by_organism(organism_id, type), output)


@competition_app.command(name="divisions")
def competition_divisions(
    organism_id: str,
    trial_id: str,
    type: TrialType = typer.Option(..., "--type", help="E or I."),
    output: OutputFormat = _OUTPUT_OPTION,
):
    """List the divisions of a trial."""
    _run(
        lambda c: c.get_division_by_trial(organism_id, trial_id, type),
        output,
    )


@competition_app.command(name="criterium")
def competition_criterium(
    division_id: str, output: OutputFormat = _OUTPUT_OPTION
):
    """Show the overall ranking of a criterium division."""
    _run(lambda c: c.get_criterium_ranking(division_id), output)


# ---------------------------------------------------------------------------
# results commands
# ---------------------------------------------------------------------------


@results_app.command(name="division")
def results_division(
    division_id: str,
    view: DivisionView = typer.Option(
        DivisionView.results, "--view", help="What to return."
    ),
    pool: str | None = typer.Option(None, "--pool", help="Pool identifier."),
    output: OutputFormat = _OUTPUT_OPTION,
):
    """Show the results, ranking or team list of a division."""
    _run(
        lambda c: c.get_results_by_division(
            division_id, _DIVISION_VIEWS[view], pool_id=pool
        ),
        output,
    )


@results_app.command(name="pool")
def results_pool(
    pool_ids: list[str] = typer.Argument(..., help="One or more pool ids."),
    output: OutputFormat = _OUTPUT_OPTION,
):
    """List the encounters of one or more pools."""
    _run(lambda c: c.get_result_by_pool(pool_ids), output)


@results_app.command(name="detail")
def results_detail(
    link: str = typer.Argument(
        ..., help="The 'lien' value of an encounter."
    ),
    output: OutputFormat = _OUTPUT_OPTION,
):
    """Show the sheet of one team encounter."""
    info = ResultInfo.from_link(link)
    _run(lambda c: c.get_result_detail(info), output)


@results_app.command(name="individual")
def results_individual(
    trial_id: str,
    division_id: str,
    action: IndividualResultType = typer.Option(
        IndividualResultType.RANKING, "--action", help="What to return."
    ),
    group: str | None = typer.Option(None, "--group", help="Group id."),
    output: OutputFormat = _OUTPUT_OPTION,
):
    """Show individual competition results."""
    _run(
        lambda c: c.get_individual_result(
            action, trial_id, division_id, group_id=group
        ),
        output,
    )


# ---------------------------------------------------------------------------
# player commands
# ---------------------------------------------------------------------------


@player_app.command(name="find")
def player_find(
    club: str | None = typer.Option(None, "--club"),
    lastname: str | None = typer.Option(None, "--lastname"),
    firstname: str | None = typer.Option(None, "--firstname"),
    spid: bool = typer.Option(
        False, "--spid", help="Search the SPID licence database."
    ),
    licence: str | None = typer.Option(
        None, "--licence", help="SPID only."
    ),
    valid: bool | None = typer.Option(
        None, "--valid/--not-valid", help="SPID only."
    ),
    output: OutputFormat = _OUTPUT_OPTION,
):
    """Search players by club and/or name."""
    if not (club or lastname or (spid and licence)):
        console.print(
            "[yellow]The FFTT expects at least --club or --lastname"
            f"{' or --licence' if spid else ''}.[/yellow]"
        )
    if spid:
        _run(
            lambda c: c.find_spid_players_by(
                club_no=club,
                licence=licence,
                lastname=lastname,
                firstname=firstname,
                valid=valid,
            ),
            output,
        )
    else:
        _run(
            lambda c: c.find_players_by(
                club_no=club, lastname=lastname, firstname=firstname
            ),
            output,
        )


@player_app.command(name="licence")
def player_licence(
    licence: str,
    spid: bool = typer.Option(False, "--spid", help="Use the SPID database."),
    output: OutputFormat = _OUTPUT_OPTION,
):
    """Show one player by licence number."""
    if spid:
        _run(lambda c: c.find_spid_player_by_licence(licence), output)
    else:
        _run(lambda c: c.find_player_by_licence(licence), output)


@player_app.command(name="details")
def player_details(
    licence_or_club: str,
    girpe: bool = typer.Option(
        False, "--girpe", help="Use the GIRPE-only endpoint."
    ),
    output: OutputFormat = _OUTPUT_OPTION,
):
    """Show SPID details of one licence or of every player of a club."""
    if girpe:
        _run(
            lambda c: c.find_detailed_spid_players_by_licence_for_girpe(
                licence_or_club
            ),
            output,
        )
    else:
        _run(
            lambda c: c.find_detailed_spid_players_by_licence(
                licence_or_club
            ),
            output,
        )


@player_app.command(name="games")
def player_games(
    licence: str,
    spid: bool = typer.Option(False, "--spid", help="Use the SPID database."),
    output: OutputFormat = _OUTPUT_OPTION,
):
    """List the games of a player."""
    if spid:
        _run(lambda c: c.get_spid_player_games_by_licence(licence), output)
    else:
        _run(lambda c: c.get_player_games_by_licence(licence), output)


@player_app.command(name="history")
def player_history(licence: str, output: OutputFormat = _OUTPUT_OPTION):
    """Show the ranking history of a player."""
    _run(lambda c: c.get_player_rank_history_by_licence(licence), output)


if __name__ == "__main__":
    app()
