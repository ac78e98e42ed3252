"""CLI tool for scraping pages and inspecting learned strategies."""
import asyncio
import time
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from ..models import ResultHandling, ScrapeRequest, ToolResult

app = typer.Typer(help="Adaptive web page retrieval.")
console = Console()


def create_result_display(result: ToolResult, elapsed: float) -> Table:
    """Create a rich table describing a scrape result."""
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Field", style="cyan bold", no_wrap=True)
    table.add_column("Value", style="white")

    status = "[red]FAILED[/red]" if result.isError else "[green]OK[/green]"
    table.add_row("Status", status)
    table.add_row("Elapsed Time", f"{elapsed:.1f}s")

    for item in result.content:
        if item.type == "resource" and item.resource is not None:
            table.add_row("Saved As", item.resource.uri)
        elif item.type == "resource_link":
            table.add_row("Saved As", item.uri or "")

    return table


async def run_scrape(request: ScrapeRequest) -> ToolResult:
    """Run a scrape in-process with a progress spinner."""
    # Imported here so `--help` works without touching storage or credentials
    from ..agents import scrape_tool

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task(f"[cyan]Scraping {request.url}...", total=None)
        return await scrape_tool.scrape(request)


@app.command()
def scrape(
    url: str = typer.Argument(..., help="URL to scrape"),
    extract: Optional[str] = typer.Option(None, help="Question to answer from the page content"),
    max_chars: Optional[int] = typer.Option(None, help="Maximum characters to print"),
    timeout: Optional[int] = typer.Option(None, help="Per-attempt timeout in milliseconds"),
    total_timeout: Optional[int] = typer.Option(None, help="Timeout in milliseconds for all attempts together"),
    force_rescrape: bool = typer.Option(False, help="Ignore saved results and learned strategies"),
    full_page: bool = typer.Option(False, help="Keep navigation, footers and other boilerplate"),
    save: bool = typer.Option(False, help="Save the full result as a resource"),
):
    """
    Scrape a single page and print it as markdown.

    Examples:

        pulse-fetch scrape https://example.com

        pulse-fetch scrape https://example.com/pricing --extract "List the plan prices"

        pulse-fetch scrape https://example.com --save --max-chars 2000
    """
    try:
        request = ScrapeRequest(
            url=url,
            extract=extract,
            max_chars=max_chars,
            timeout=timeout,
            total_timeout=total_timeout,
            force_rescrape=force_rescrape,
            only_main_content=not full_page,
            result_handling=ResultHandling.SAVE_AND_RETURN if save else ResultHandling.RETURN_ONLY,
        )
    except ValueError as e:
        console.print(f"[red]Invalid arguments: {e}[/red]")
        raise typer.Exit(2)

    console.print(f"\n[bold cyan]Scraping:[/bold cyan] {url}\n")

    start_time = time.time()
    result = asyncio.run(run_scrape(request))
    elapsed = time.time() - start_time

    if result.isError:
        console.print(Panel(result.text, title="[red]Scrape Failed", border_style="red"))
        raise typer.Exit(1)

    console.print(result.text, markup=False)
    console.print("\n")
    console.print(Panel(
        create_result_display(result, elapsed),
        title="[green]Scrape Complete",
        border_style="green"
    ))


@app.command()
def strategies():
    """Show the learned strategy for each URL prefix."""
    from ..agents import orchestrator

    entries = asyncio.run(orchestrator.store.load_all())
    if not entries:
        console.print("[yellow]No strategies learned yet[/yellow]")
        return

    table = Table(title="Learned Strategies")
    table.add_column("Prefix", style="cyan")
    table.add_column("Strategy", style="green")
    table.add_column("Notes", style="white")
    for entry in entries:
        table.add_row(entry.prefix, entry.default_strategy.value, entry.notes)
    console.print(table)


@app.command()
def forget(prefix: str = typer.Argument(..., help="Exact prefix to forget")):
    """Remove a learned strategy so it is rediscovered on the next scrape."""
    from ..agents import orchestrator

    if asyncio.run(orchestrator.store.delete(prefix)):
        console.print(f"[green]Forgot strategy for[/green] {prefix}")
    else:
        console.print(f"[yellow]No strategy remembered for[/yellow] {prefix}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
