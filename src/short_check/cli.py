"""CLI for the Short Check scoring engine.

Provides a command-line interface for scoring extracted ticker data for
short-setup quality.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from .config import find_config_file, get_config, load_config, reset_config
from .engine import ShortCheckEngine, load_input, parse_override, validate_input
from .explainer import get_factor_explanation
from .factors import FACTOR_RANGES
from .schema import FACTOR_LABELS, Category, ShortCheckResult, parse_timestamp
from .summary import SUMMARY_FORMATS

console = Console()

CATEGORY_COLORS = {
    Category.HIGH_PRIORITY: "green",
    Category.MODERATE: "cyan",
    Category.SPECULATIVE: "yellow",
    Category.NO_TRADE: "red",
}


def configure_logging(verbose: bool) -> None:
    """Route library logging through rich; debug detail only when verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def prepare_config(config: Optional[str], verbose: bool) -> None:
    """Load config if specified, otherwise try to find one."""
    config_path = Path(config) if config else find_config_file()
    if config_path:
        try:
            load_config(config_path)
            if verbose:
                console.print(f"Loaded config from: {config_path}")
        except Exception as e:
            console.print(f"[yellow]Warning:[/yellow] Could not load config: {e}")
            reset_config()
    else:
        reset_config()


def parse_now(value: Optional[str]) -> Optional[datetime]:
    """Parse the --now option."""
    if value is None:
        return None
    parsed = parse_timestamp(value)
    if parsed is None:
        raise click.BadParameter(f"Cannot parse date: {value}", param_hint="--now")
    return parsed


def parse_fields(fields: tuple) -> dict:
    """Parse key=value overrides into a dict."""
    overrides = {}
    for field in fields:
        if "=" not in field:
            raise click.BadParameter(f"Expected key=value, got: {field}", param_hint="--field")
        key, value = field.split("=", 1)
        overrides[key.strip()] = parse_override(value.strip())
    return overrides


@click.group()
@click.version_option(version="1.0.0", prog_name="short-check")
def main():
    """Short Check Scoring Engine.

    Scores small-cap tickers for short-setup quality from extracted
    financial and structural data, with walk-away flags and explanations.
    """
    pass


@main.command("score")
@click.option(
    "--input", "-i",
    "input_file",
    required=True,
    type=click.Path(exists=True),
    help="Path to extracted data JSON file"
)
@click.option(
    "--field", "-f",
    multiple=True,
    help="Override an input field (format: key=value, e.g. cashRunway=3)"
)
@click.option(
    "--droppiness", "-d",
    type=float,
    help="Droppiness score (0-100) from spike history analysis"
)
@click.option(
    "--now",
    help="Reference time for news recency (ISO 8601, default: current time)"
)
@click.option(
    "--json-output", "-j",
    is_flag=True,
    help="Output raw JSON instead of formatted text"
)
@click.option(
    "--out", "-o",
    type=click.Path(),
    help="Output file for JSON results"
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Show detailed output and debug logging"
)
@click.option(
    "--config", "-c",
    type=click.Path(exists=True),
    help="Path to configuration YAML file"
)
def score_cmd(
    input_file: str,
    field: tuple,
    droppiness: Optional[float],
    now: Optional[str],
    json_output: bool,
    out: Optional[str],
    verbose: bool,
    config: Optional[str],
):
    """Score extracted ticker data.

    Examples:
        short-check score -i abcd.json
        short-check score -i abcd.json -d 72 -v
        short-check score -i abcd.json -f cashRunway=3 -f atmShelfStatus=DT:Red
    """
    configure_logging(verbose)
    try:
        prepare_config(config, verbose)
        overrides = parse_fields(field)
        engine = ShortCheckEngine(get_config())
        result = engine.score_file(
            input_file,
            droppiness=droppiness,
            now=parse_now(now),
            overrides=overrides,
        )

        if json_output:
            output_json(result, out)
        else:
            display_result(result, verbose)
            if out:
                output_json(result, out)
                console.print(f"\n[green]Results saved to {out}[/green]")

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@main.command("summary")
@click.option(
    "--input", "-i",
    "input_file",
    required=True,
    type=click.Path(exists=True),
    help="Path to extracted data JSON file"
)
@click.option(
    "--format", "fmt",
    type=click.Choice(SUMMARY_FORMATS),
    default="quick",
    help="Summary format"
)
@click.option(
    "--droppiness", "-d",
    type=float,
    help="Droppiness score (0-100) from spike history analysis"
)
@click.option(
    "--now",
    help="Reference time for news recency and the summary date (ISO 8601)"
)
@click.option(
    "--out", "-o",
    type=click.Path(),
    help="Write the summary to a file instead of stdout"
)
@click.option(
    "--config", "-c",
    type=click.Path(exists=True),
    help="Path to configuration YAML file"
)
def summary_cmd(
    input_file: str,
    fmt: str,
    droppiness: Optional[float],
    now: Optional[str],
    out: Optional[str],
    config: Optional[str],
):
    """Print a plain-text summary for clipboard or export.

    Examples:
        short-check summary -i abcd.json
        short-check summary -i abcd.json --format full -d 72
    """
    configure_logging(False)
    try:
        prepare_config(config, False)
        engine = ShortCheckEngine(get_config())
        text = engine.summarize(
            load_input(input_file),
            fmt=fmt,
            droppiness=droppiness,
            now=parse_now(now),
        )

        if out:
            with open(out, "w", encoding="utf-8") as f:
                f.write(text + "\n")
            console.print(f"[green]✓[/green] Summary saved to: {out}")
        else:
            click.echo(text)

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@main.command("validate")
@click.option(
    "--input", "-i",
    "input_file",
    required=True,
    type=click.Path(),
    help="Path to extracted data JSON file"
)
def validate_cmd(input_file: str):
    """Validate an extracted data file without scoring it.

    Example:
        short-check validate -i abcd.json
    """
    is_valid, issues = validate_input(input_file)
    if is_valid:
        console.print(f"[green]✓ Input valid: {input_file}[/green]")
        for issue in issues:
            console.print(f"  [dim]• {issue}[/dim]")
    else:
        console.print(f"[red]✗ Input invalid: {input_file}[/red]")
        for issue in issues:
            console.print(f"  - {issue}")

    sys.exit(0 if is_valid else 1)


@main.command("explain")
@click.argument("factor", required=False)
def explain_cmd(factor: Optional[str]):
    """Explain the scoring factors.

    Without FACTOR, lists every factor with its score range.

    Examples:
        short-check explain
        short-check explain offering_ability
        short-check explain "Cash Need"
    """
    if factor:
        explanation = get_factor_explanation(factor)
        key = next(
            (k for k, label in FACTOR_LABELS.items() if label == explanation.title),
            None,
        )
        if key is None:
            console.print(f"[red]Error: Unknown factor: {factor}[/red]")
            console.print(f"Known factors: {', '.join(FACTOR_LABELS)}")
            sys.exit(1)

        low, high = FACTOR_RANGES[key]
        console.print(Panel(
            f"{explanation.explanation}\n\n[dim]Range: {low:+d} to {high:+d}[/dim]",
            title=explanation.title,
        ))
        return

    table = Table(title="Scoring Factors")
    table.add_column("Factor", style="cyan")
    table.add_column("Key", style="dim")
    table.add_column("Range", justify="right")
    table.add_column("Why it matters")

    for key, label in FACTOR_LABELS.items():
        low, high = FACTOR_RANGES[key]
        table.add_row(label, key, f"{low:+d}..{high:+d}", get_factor_explanation(key).explanation)

    console.print(table)


def display_result(result: ShortCheckResult, verbose: bool):
    """Display a scoring result in formatted text."""
    color = CATEGORY_COLORS.get(result.category, "white")

    console.print(Panel(
        f"[bold]{result.ticker or 'N/A'}[/bold]\n\n"
        f"Rating: [bold]{result.rating:.1f}%[/bold] "
        f"({result.total_score} / {result.max_possible_score})\n"
        f"Category: [{color}]{result.category.value}[/{color}]",
        title="Short Check",
    ))

    if result.alert_labels:
        chips = "  ".join(
            f"[bold {alert.color.value}]{alert.label}[/bold {alert.color.value}]"
            for alert in result.alert_labels
        )
        console.print(f"\nAlerts: {chips}")

    table = Table(title="Score Breakdown")
    table.add_column("Factor", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Range", justify="right", style="dim")
    table.add_column("Value")

    actual = result.score_breakdown.actual_values
    for key, value in result.score_breakdown.contributions().items():
        low, high = FACTOR_RANGES[key]
        style = "green" if value > 0 else "red" if value < 0 else "dim"
        table.add_row(
            FACTOR_LABELS[key],
            f"[{style}]{value:+d}[/{style}]",
            f"{low:+d}..{high:+d}",
            actual.get(key, ""),
        )
    console.print(table)

    if result.walk_away_details:
        console.print("\n[bold]Walk-Away Flags:[/bold]")
        for flag in result.walk_away_details:
            marker = "[red]✗[/red]" if flag.counts_toward_category else "[yellow]•[/yellow]"
            console.print(f"  {marker} {flag.message}")

    if result.scalp_setup:
        console.print("\n[yellow]⚠ Parabolic scalp setup (informational only)[/yellow]")

    if verbose:
        console.print(Panel(result.alert_card, title="Alert Card"))
        console.print(
            f"[dim]Offering: {result.offering_severity.value} | "
            f"Overhead: {result.overhead_severity.value} | "
            f"As of: {result.as_of.isoformat()}[/dim]"
        )


def output_json(result: ShortCheckResult, out_path: Optional[str]):
    """Output result as JSON."""
    json_str = result.model_dump_json(indent=2)

    if out_path:
        with open(out_path, "w", encoding="utf-8") as f:
            f.write(json_str)
    else:
        print(json_str)


@main.command("init-config")
@click.option(
    "--out", "-o",
    type=click.Path(),
    default="short-check-config.yaml",
    help="Output path for the configuration file"
)
@click.option(
    "--force", "-f",
    is_flag=True,
    help="Overwrite existing config file"
)
def init_config_cmd(out: str, force: bool):
    """Generate a default configuration file.

    Creates a YAML configuration file with every calibration constant
    and keyword table used by the scoring engine.

    Example:
        short-check init-config --out my-config.yaml
    """
    from .config import save_default_config

    out_path = Path(out)
    if out_path.exists() and not force:
        console.print(f"[red]Error:[/red] Config file already exists: {out}")
        console.print("Use --force to overwrite")
        sys.exit(1)

    try:
        save_default_config(out_path)
        console.print(f"[green]✓[/green] Config file created: {out}")
        console.print("\nThis file configures:")
        console.print("  • score_scale - Maximum possible score used to normalize the rating")
        console.print("  • category_thresholds - Ratings for each verdict tier")
        console.print("  • walk_away - Hard disqualifier thresholds")
        console.print("  • alerts - Alert chip thresholds")
        console.print("  • news - News recency window")
        console.print("  • keywords - Keyword tables for news and status classification")
        console.print("\nShort check will look for config in this order:")
        console.print("  1. SHORT_CHECK_CONFIG environment variable")
        console.print("  2. ./short-check-config.yaml (current directory)")
        console.print("  3. ~/.config/short-check/config.yaml")
    except Exception as e:
        console.print(f"[red]Error creating config:[/red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
