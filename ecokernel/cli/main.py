"""ecokernel CLI — run the simulation headless and inspect what it produced.

`ecokernel run` ticks an ecosystem and prints its stats.
`ecokernel search` runs concept discovery through the circuit breaker.
"""

from __future__ import annotations

import asyncio
import logging

import typer
from rich.console import Console
from rich.table import Table

from ecokernel.config import EcoSettings, settings
from ecokernel.events.bus import Event

console = Console()

app = typer.Typer(
    name="ecokernel",
    help="ecokernel -- tick-driven simulation of cells, organisms and their activity metric.",
    no_args_is_help=True,
)


def _settings(**overrides) -> EcoSettings:
    values = {k: v for k, v in overrides.items() if v is not None}
    return settings.model_copy(update=values)


def _stats_table(title: str, stats: dict) -> Table:
    table = Table(title=title)
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    for key, value in stats.items():
        table.add_row(key, f"{value:.4f}" if isinstance(value, float) else str(value))
    return table


async def _print_event(event: Event) -> None:
    details = ", ".join(
        f"{k}={v:.2f}" if isinstance(v, float) else f"{k}={v}" for k, v in event.data.items()
    )
    console.print(f"[dim]{event.topic}[/dim] {details}")


@app.command("run")
def run(
    ticks: int = typer.Option(600, "--ticks", "-t", help="Number of ticks to run"),
    dt: float = typer.Option(1 / 60, "--dt", help="Seconds per tick"),
    pool_size: int = typer.Option(None, "--pool-size", help="Cells in the pool"),
    agents: int = typer.Option(None, "--agents", "-a", help="Initial agents"),
    seed: int = typer.Option(None, "--seed", "-s", help="Random seed"),
    evolve_every: int = typer.Option(0, "--evolve-every", help="Run selection every N ticks (0=never)"),
    stimulus: float = typer.Option(0.0, "--stimulus", help="Metric stimulus injected each tick"),
):
    """Run the ecosystem for a fixed number of ticks."""
    from ecokernel.kernel.ecosystem import Ecosystem

    cfg = _settings(pool_size=pool_size, initial_agents=agents, seed=seed)
    logging.basicConfig(level=cfg.log_level)
    eco = Ecosystem(cfg)
    try:
        with console.status("[cyan]Simulating...[/cyan]"):
            for i in range(1, ticks + 1):
                if stimulus > 0:
                    eco.inject_stimulus(stimulus)
                eco.tick(dt)
                if evolve_every and i % evolve_every == 0:
                    eco.evolve()
        console.print(_stats_table("Ecosystem", eco.get_stats().model_dump()))
        console.print(_stats_table("Metric", eco.metrics.snapshot().model_dump(mode="json")))
    finally:
        eco.close()


@app.command("search")
def search(
    query: str = typer.Argument(None, help="Search query (default: rotate base keywords)"),
    web: bool = typer.Option(False, "--web", help="Search the web instead of the offline vocabulary"),
):
    """Discover concepts through the circuit breaker."""
    from ecokernel.exceptions import EcoKernelError
    from ecokernel.kernel.ecosystem import Ecosystem

    cfg = _settings(
        pool_size=0, initial_agents=0, initial_patterns=0,
        concept_source="web" if web else None,
    )
    eco = Ecosystem(cfg)
    eco.event_bus.subscribe("concepts.*", _print_event)
    try:
        found = asyncio.run(eco.search_concepts(query))
    except EcoKernelError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    finally:
        eco.close()

    if not found:
        console.print("[dim]No new concepts.[/dim]")
        return

    table = Table(title="Concepts")
    table.add_column("Term", style="cyan")
    table.add_column("Importance", style="white")
    table.add_column("Source", style="blue", max_width=40)
    for c in sorted(found, key=lambda c: c.importance, reverse=True):
        table.add_row(c.term, f"{c.importance:.2f}", c.source_url or "-")
    console.print(table)


@app.command("version")
def version_cmd():
    """Show ecokernel version."""
    from ecokernel import __version__
    console.print(f"ecokernel v{__version__}")


def main() -> None:
    app()
