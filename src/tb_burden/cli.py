"""
TB burden analysis command line.

Usage:
    tb-analysis run [OPTIONS]
    tb-analysis info [OPTIONS]
    tb-analysis clusters [OPTIONS]

Options:
    --data      Path to the TB burden CSV (default: $TB_DATA_PATH or TB_Burden_Country.csv)
    --seed      Random state for K-Means (default: $TB_RANDOM_SEED or 42)
"""

from pathlib import Path
from typing import Optional

import polars as pl
import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from tb_burden.analysis.clustering import evaluate_cluster_counts, prepare_features
from tb_burden.config import Settings, configure_logging
from tb_burden.exceptions import TBAnalysisError
from tb_burden.extraction.who_tb import describe_source, load_tb_data
from tb_burden.pipeline import AnalysisReport, run_analysis

console = Console()
app = typer.Typer(help="Analyse country-level TB burden indicators")


def _settings(data: Optional[Path], seed: Optional[int]) -> Settings:
    settings = Settings.from_env()
    if data is not None:
        settings.data_path = data
    if seed is not None:
        settings.seed = seed
    configure_logging(settings)
    return settings


def frame_table(df: pl.DataFrame, title: str, float_format: str = "{:.3f}") -> Table:
    """Render a polars frame as a rich table."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    for i, column in enumerate(df.columns):
        table.add_column(column, style="cyan" if i == 0 else None, justify="left" if i == 0 else "right")

    for row in df.iter_rows():
        table.add_row(
            *[
                float_format.format(value) if isinstance(value, float) else str(value)
                for value in row
            ]
        )
    return table


def print_report(report: AnalysisReport) -> None:
    """Print every table of an analysis run."""
    counts = report.stage_counts
    console.print(
        f"\n[bold]Year:[/bold] {report.year}   "
        f"[bold]Rows:[/bold] {counts.get('raw', 0):,} raw → "
        f"{counts.get('latest_year', 0):,} latest year → "
        f"{counts.get('complete', 0):,} complete\n"
    )

    correlation = report.correlation
    console.print(frame_table(correlation.matrix, "Correlation Matrix (Pearson)", "{:.2f}"))
    console.print(f"Cluster order: {', '.join(correlation.order)}\n")
    console.print(frame_table(correlation.pairs.head(5), "Strongest Correlations", "{:.2f}"))

    regression = report.regression
    console.print(
        f"\n[bold]Mortality model:[/bold] R² = {regression.r_squared:.3f} "
        f"(adjusted {regression.adj_r_squared:.3f}), "
        f"{regression.n_final} of {regression.n_initial} rows"
    )
    if regression.removed_countries:
        console.print(
            f"[yellow]Removed (Cook's distance > 1): {', '.join(regression.removed_countries)}[/yellow]"
        )
    console.print(frame_table(regression.coefficients, "Coefficients (95% CI)", "{:.4f}"))
    console.print(
        f"HIV model: slope {regression.hiv_model.params['hiv_percent']:.3f}, "
        f"R² = {regression.hiv_model.rsquared:.3f}\n"
    )

    console.print(
        frame_table(
            report.ranking.table.select("rank", "country", "incidence_per_100k", "mortality_per_100k"),
            "Top 10 TB Incidence per 100k",
            "{:.1f}",
        )
    )

    clustering = report.clustering
    console.print()
    console.print(frame_table(clustering.profiles, "Cluster Profiles", "{:.1f}"))
    if clustering.silhouette is not None:
        console.print(f"Silhouette score: {clustering.silhouette:.3f}")


@app.command()
def run(
    data: Optional[Path] = typer.Option(None, "--data", "-d", help="Path to the TB burden CSV"),
    seed: Optional[int] = typer.Option(None, "--seed", "-s", help="Random state for K-Means"),
    show: bool = typer.Option(False, "--show", help="Open the figures in a browser"),
) -> None:
    """
    Run the full analysis and print the summary tables.

    Steps: latest-year filter, cleaning, correlations, mortality regression
    with Cook's distance filtering, incidence ranking and K-Means clustering.
    """
    settings = _settings(data, seed)
    console.print("\n[bold blue]TB Burden Analysis[/bold blue]\n")
    console.print(f"[green]✓[/green] Data file: [bold]{settings.data_path}[/bold]")
    console.print(f"[green]✓[/green] Seed: [bold]{settings.seed}[/bold]")

    try:
        report = run_analysis(settings.data_path, seed=settings.seed)
    except TBAnalysisError as e:
        console.print(f"[red]❌ Analysis failed: {e}[/red]")
        logger.exception("Analysis failed")
        raise typer.Exit(1)

    print_report(report)

    if show:
        for figure in report.figures().values():
            figure.show()


@app.command()
def info(
    data: Optional[Path] = typer.Option(None, "--data", "-d", help="Path to the TB burden CSV"),
) -> None:
    """Check the source file and report row counts per cleaning stage."""
    settings = _settings(data, None)

    try:
        details = describe_source(settings.data_path)
    except TBAnalysisError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1)

    table = Table(show_header=True, header_style="bold green")
    table.add_column("Property", style="cyan")
    table.add_column("Value", justify="right")
    for key, value in details.items():
        table.add_row(key, str(value))

    console.print(table)


@app.command()
def clusters(
    data: Optional[Path] = typer.Option(None, "--data", "-d", help="Path to the TB burden CSV"),
    max_k: int = typer.Option(8, "--max-k", help="Largest cluster count to evaluate"),
    seed: Optional[int] = typer.Option(None, "--seed", "-s", help="Random state for K-Means"),
) -> None:
    """Compare inertia and silhouette score across cluster counts."""
    settings = _settings(data, seed)

    try:
        dataset = load_tb_data(settings.data_path)
        scores = evaluate_cluster_counts(prepare_features(dataset.data), max_k=max_k, seed=settings.seed)
    except TBAnalysisError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1)

    console.print(frame_table(scores, f"K-Means diagnostics ({dataset.year})", "{:.3f}"))


def main() -> None:
    """Entry point."""
    app()


if __name__ == "__main__":
    main()
