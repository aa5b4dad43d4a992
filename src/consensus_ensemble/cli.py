"""
Command-line interface for consensus clustering ensembles
"""
import logging

import typer
from pathlib import Path
from rich.console import Console
from rich.table import Table
from typing import List, Optional

app = typer.Typer(
    name="consensus-ensemble",
    help="Consensus clustering ensembles: generate, combine, evaluate",
    no_args_is_help=True,
    add_completion=False,
)
console = Console()


@app.command()
def run(
    data: Path = typer.Argument(..., help="Samples x features table (csv, tsv, parquet, feather)"),
    cfg: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path (defaults if omitted)"),
    output_dir: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory"),
    reference: Optional[Path] = typer.Option(
        None, "--reference", "-r",
        help="Reference labels (one column table indexed like the data)",
    ),
    overrides: Optional[List[str]] = typer.Option(
        None, "--set", "-s", help="Config override such as ensemble.reps=20 (repeatable)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Generate an ensemble, build consensus partitions and select k."""
    from .config import load_config
    from .pipeline import Pipeline
    from .utils.io import load_data, load_labels
    from .validation.ranking import consensus_rank

    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format="%(name)s: %(message)s")
    console.print("[bold cyan]→ Running consensus ensemble[/bold cyan]")
    console.print(f"Data: {data}")

    try:
        config = load_config(cfg, overrides=overrides)
        pipeline = Pipeline(config=config, output_dir=output_dir)

        table = load_data(data)
        ref_cl = None
        if reference is not None:
            ref_cl = load_labels(reference, index=table.index)

        result = pipeline.run(table, ref_cl=ref_cl)
        out = pipeline.save(result)

        summary = Table(title=f"Selected k = {result.k}")
        summary.add_column("member")
        summary.add_column("sum_rank", justify="right")
        ranks = consensus_rank(result.evaluation.internal)
        for member, value in ranks["sum_rank"].items():
            summary.add_row(str(member), f"{value:.1f}")
        console.print(summary)

        console.print(f"Final clustering from [bold]{result.final_member}[/bold]")
        console.print(f"[bold green]✓ Results written to {out}[/bold green]")
    except Exception as e:
        console.print(f"[bold red]✗ Run failed: {e}[/bold red]")
        raise typer.Exit(code=1)


@app.command()
def check_config(
    cfg: Path = typer.Argument(..., help="Config file path"),
    overrides: Optional[List[str]] = typer.Option(
        None, "--set", "-s", help="Config override such as ensemble.reps=20 (repeatable)",
    ),
):
    """Validate a configuration file."""
    from .config import load_config

    console.print("[bold cyan]→ Checking configuration[/bold cyan]")
    try:
        config = load_config(cfg, overrides=overrides)
    except Exception as e:
        console.print(f"[bold red]✗ Invalid configuration: {e}[/bold red]")
        raise typer.Exit(code=1)

    table = Table(title="Ensemble configuration")
    table.add_column("setting")
    table.add_column("value")
    table.add_row("nk", str(config.ensemble.nk))
    table.add_row("reps", str(config.ensemble.reps))
    table.add_row("algorithms", ", ".join(config.ensemble.algorithms))
    table.add_row("consensus", ", ".join(m.value for m in config.consensus.methods))
    table.add_row("indices", ", ".join(config.evaluate.indices))
    console.print(table)


@app.command()
def algorithms():
    """List registered base clustering algorithms."""
    from .ensemble.generate import available_algorithms

    for name in available_algorithms():
        console.print(name)


if __name__ == "__main__":
    app()
