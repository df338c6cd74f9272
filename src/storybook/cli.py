"""Command line interface for the illustration library."""

import json
import logging
import sys

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from storybook.db_config import create_indexes, get_mongo_database
from storybook.errors import InvalidRequest, StorageUnavailable
from storybook.services.backfill_service import BackfillService
from storybook.services.library_service import LibraryService
from storybook.services.match_scorer import MatchScorer

console = Console()


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
def cli(verbose: bool):
    """Storybook illustration library - search, backfill and serve reusable images."""
    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command('backfill-status')
def backfill_status():
    """Show how many generated pages are not yet in the library."""
    try:
        status = BackfillService(get_mongo_database()).backfill_status()
    except StorageUnavailable as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)

    if status.eligible_pages == 0:
        console.print("[green]✅ All existing story images are already in the library.[/green]")
        return

    console.print(Panel.fit(
        f"[cyan]Eligible pages: {status.eligible_pages}[/cyan]\n"
        f"[cyan]Eligible stories: {status.eligible_stories}[/cyan]",
        title="Library Backfill",
        border_style="cyan"
    ))


@cli.command()
def backfill():
    """Add every eligible historical page image to the library."""
    try:
        create_indexes()
        report = BackfillService(get_mongo_database()).run_backfill()
    except StorageUnavailable as e:
        console.print(f"[red]❌ Backfill failed: {e}[/red]")
        sys.exit(1)

    console.print(Panel.fit(
        f"[green]✅ Added: {report.added}[/green]\n"
        f"[yellow]⏭️  Skipped: {report.skipped}[/yellow]\n"
        f"[red]❌ Errors: {report.errors}[/red]\n"
        f"[cyan]Total eligible: {report.total_eligible}[/cyan]",
        title="Backfill Summary",
        border_style="green" if report.errors == 0 else "yellow"
    ))

    for failure in report.failures:
        console.print(f"[red]  {failure.page_id}: {failure.category} - {failure.message}[/red]")


@cli.command()
@click.option('--character', '-c', 'characters', multiple=True, help='Character name (repeatable)')
@click.option('--scene', default='', help='Scene description')
@click.option('--location', help='Location name')
@click.option('--landmark', help='Landmark name')
@click.option('--mood', required=True, help='Mood of the illustration')
@click.option('--time-of-day', help='Time of day')
@click.option('--art-style', required=True, help='Art style preset')
@click.option('--min-quality', type=float, default=0.5, show_default=True, help='Minimum quality score')
@click.option('--as-json', is_flag=True, help='Print matches as JSON')
def search(characters, scene, location, landmark, mood, time_of_day, art_style, min_quality, as_json):
    """Search the library for reusable images."""
    request = {
        "characters": list(characters),
        "scene": scene,
        "location": location,
        "landmark": landmark,
        "mood": mood,
        "timeOfDay": time_of_day,
        "artStyle": art_style,
        "minQuality": min_quality,
    }

    try:
        matches = MatchScorer(LibraryService(get_mongo_database())).find_matches(request)
    except InvalidRequest as e:
        raise click.BadParameter(str(e)) from e
    except StorageUnavailable as e:
        console.print(f"[red]❌ Search failed: {e}[/red]")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps([match.model_dump(by_alias=True) for match in matches], indent=2))
        return

    if not matches:
        console.print("[yellow]No reusable images found.[/yellow]")
        return

    table = Table(title="Library Matches")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Image", style="cyan")
    table.add_column("Page")
    table.add_column("Reuses", justify="right")
    table.add_column("Quality", justify="right")
    for match in matches:
        table.add_row(
            f"{match.score:.1f}",
            match.image_url,
            match.originating_page_id,
            str(match.reuse_count),
            f"{match.quality_score:.2f}",
        )
    console.print(table)


@cli.command('api-server')
@click.option('--host', default='127.0.0.1', help='Host to bind to')
@click.option('--port', default=8000, type=int, help='Port to bind to')
@click.option('--reload', is_flag=True, help='Enable auto-reload for development')
def api_server(host: str, port: int, reload: bool):
    """Start the library API server."""
    from storybook.web.app import run_server

    console.print(Panel.fit(
        f"[bold green]🚀 Starting Library API[/bold green]\n\n"
        f"[cyan]• Server: http://{host}:{port}[/cyan]\n"
        f"[yellow]Access API docs at: http://{host}:{port}/docs[/yellow]",
        title="API Server",
        border_style="green"
    ))
    try:
        run_server(host=host, port=port, reload=reload)
    except KeyboardInterrupt:
        console.print("\n[yellow]🛑 API server stopped.[/yellow]")


def main():
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
