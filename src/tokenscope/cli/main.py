"""
tokenscope CLI Main Entry Point

Command-line interface for analyzing captured token samples.
"""

import sys
from pathlib import Path
from typing import Optional, TextIO

import click

from .. import __version__
from ..collector.extraction import Found, extract_token
from ..core.config import get_config, reload_config
from ..core.exceptions import TokenscopeException
from ..core.logging import get_logger, setup_logging
from ..core.models import TokenCapture
from ..sequencer.analyzer import TokenAnalyzer
from ..sequencer.classifier import SecurityRating
from ..sequencer.reporting import ReportGenerator


logger = get_logger(__name__)


def _read_captures(source: TextIO) -> list:
    """One token per line; blank lines are skipped."""
    return [
        TokenCapture(token=line.strip(), extracted_from=f"line {lineno}")
        for lineno, line in enumerate(source, 1)
        if line.strip()
    ]


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="dotenv-style configuration file",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Override the configured log level",
)
def cli(config_file: Optional[Path], log_level: Optional[str]):
    """
    tokenscope - Session Token Randomness Analysis

    Estimates the entropy and predictability of captured session tokens.
    """
    if config_file is not None:
        reload_config(config_file)
    setup_logging(log_level=log_level)


@cli.command("analyze")
@click.argument("token_file", type=click.File("r"))
@click.option("--quick", is_flag=True, help="Skip decoding, entropy estimation and statistical tests")
@click.option(
    "--format", "-f", "output_format", type=click.Choice(["text", "json"]), default="text"
)
@click.option("--csv", "csv_path", type=click.Path(dir_okay=False, path_type=Path), help="Also export captures as CSV")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Output file path")
def analyze_tokens(
    token_file: TextIO,
    quick: bool,
    output_format: str,
    csv_path: Optional[Path],
    output: Optional[Path],
):
    """
    Analyze tokens read from TOKEN_FILE, one per line ("-" for stdin).

    Exits with status 2 when the rating is CRITICAL.

    Example:
        tokenscope analyze tokens.txt --format json -o report.json
    """
    captures = _read_captures(token_file)
    if not captures:
        click.echo("✗ No tokens found in input", err=True)
        sys.exit(1)

    analyzer = TokenAnalyzer(get_config().analysis)
    reporter = ReportGenerator(analyzer)
    result = analyzer.analyze(captures, security_analysis=not quick)
    logger.info("Analysis finished: %s", reporter.summary_line(result))

    if output_format == "json":
        output_str = reporter.export_json(captures, result)
    else:
        output_str = reporter.generate_text_report(result)

    try:
        if output:
            output.write_text(output_str)
            click.echo(f"✓ Wrote report for {len(captures)} token(s) to {output}")
        else:
            click.echo(output_str)

        if csv_path:
            csv_path.write_text(reporter.export_csv(captures))
            click.echo(f"✓ Exported {len(captures)} capture(s) to {csv_path}")
    except OSError as e:
        click.echo(f"✗ Failed to write output: {e}", err=True)
        sys.exit(1)

    if result.overall_rating == SecurityRating.CRITICAL:
        sys.exit(2)


@cli.command("extract")
@click.argument("response_file", type=click.File("r"))
@click.option("--param", "-p", "parameter_name", required=True, help="Token parameter name")
@click.option("--header", "-H", "headers", multiple=True, help="Response header as 'Name: value'")
def extract(response_file: TextIO, parameter_name: str, headers: tuple):
    """
    Extract a token parameter from a saved response body.

    Example:
        tokenscope extract response.html -p csrf_token
    """
    header_map = {}
    for header in headers:
        if ":" not in header:
            click.echo(f"✗ Invalid header: {header}", err=True)
            sys.exit(1)
        name, value = header.split(":", 1)
        header_map.setdefault(name.strip(), []).append(value.strip())

    flat = {k: v[0] if len(v) == 1 else v for k, v in header_map.items()}
    result = extract_token(response_file.read(), flat, parameter_name)
    if not isinstance(result, Found):
        click.echo(f"✗ Parameter not found: {parameter_name}", err=True)
        sys.exit(1)

    click.echo(result.value)
    click.echo(f"  Source: {result.source}", err=True)


def main():
    """Main entry point for CLI."""
    try:
        cli()
    except TokenscopeException as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
