"""Command-line interface for the soil order classifier."""

import json
from pathlib import Path
from typing import Any

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from sibcs_classifier import __version__
from sibcs_classifier.checklist import group_questions_by_section, unanswered_questions
from sibcs_classifier.config import get_settings
from sibcs_classifier.contract import classify_request
from sibcs_classifier.engine import classify
from sibcs_classifier.logging_config import get_logger, setup_logging
from sibcs_classifier.models import ClassificationResult, SoilProfile

console = Console()
logger = get_logger(__name__)


def _load_json(input_file: Path) -> Any:
    try:
        return json.loads(input_file.read_text())
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Invalid JSON in {input_file}: {e}") from e


def _print_ranking(name: str, result: ClassificationResult) -> None:
    table = Table(title=f"Soil orders: {name}")
    table.add_column("#", justify="right")
    table.add_column("Order", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Cap", justify="right")
    table.add_column("Mode")
    table.add_column("Missing", justify="right")

    for position, candidate in enumerate(result.ranked, start=1):
        table.add_row(
            str(position),
            candidate.order.value,
            str(candidate.score),
            str(candidate.effective_cap),
            candidate.mode.value,
            str(candidate.missing_count),
        )

    console.print(table)
    top = result.top
    for evidence in top.positives:
        console.print(f"  [green]+{evidence.score_delta}[/green] {evidence.detail}")
    for evidence in top.conflicts:
        console.print(f"  [red]{evidence.score_delta}[/red] {evidence.detail}")
    for detail in top.missing_critical:
        console.print(f"  [yellow]missing[/yellow] {detail}")


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Set logging level (default: from configuration)",
)
def main(log_level: str | None) -> None:
    """SiBCS Classifier: rank soil orders from lab and field data."""
    log_settings = get_settings().logging
    setup_logging(level=log_level or log_settings.level, log_file=log_settings.file)


@main.command(name="classify")
@click.argument("input_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
@click.option(
    "--contract",
    is_flag=True,
    help="Treat input as a contract request (output is always JSON)",
)
def classify_command(input_file: Path, output_format: str, contract: bool) -> None:
    """Classify one profile, or a list of profiles, from a JSON file.

    INPUT_FILE: JSON object (or array of objects) with lab layers and field data
    """
    data = _load_json(input_file)
    single = not isinstance(data, list)
    records = [data] if single else data

    try:
        if contract:
            outputs = []
            for record in records:
                validation, response = classify_request(record)
                outputs.append(
                    {
                        "validation": validation.model_dump(mode="json"),
                        "response": response.model_dump(mode="json"),
                    }
                )
            click.echo(json.dumps(outputs[0] if single else outputs, indent=2))
            return

        results = [classify(record) for record in records]
    except ValidationError as e:
        logger.error(f"Invalid input in {input_file}: {e}")
        raise click.ClickException(f"Invalid input: {e}") from e

    if output_format == "json":
        payload = [result.model_dump(mode="json") for result in results]
        click.echo(json.dumps(payload[0] if single else payload, indent=2))
    else:
        for index, result in enumerate(results, start=1):
            name = input_file.name if single else f"{input_file.name} #{index}"
            _print_ranking(name, result)


@main.command()
@click.option(
    "--pending",
    "profile_file",
    type=click.Path(exists=True, path_type=Path),
    help="Only list questions still unanswered for the profile in this JSON file",
)
def checklist(profile_file: Path | None) -> None:
    """List the field checklist questions by section."""
    groups = group_questions_by_section()
    if profile_file is not None:
        try:
            profile = SoilProfile.model_validate(_load_json(profile_file))
        except ValidationError as e:
            logger.error(f"Invalid profile in {profile_file}: {e}")
            raise click.ClickException(f"Invalid input: {e}") from e
        groups = group_questions_by_section(unanswered_questions(profile.field))
        if not groups:
            console.print("All checklist questions are answered.")
            return

    for section, questions in groups.items():
        console.print(f"\n[bold]{section}[/bold]")
        for question in questions:
            console.print(f"  {question.id}: {question.question}")
            console.print(f"    [dim]{question.how_to_observe}[/dim]")


if __name__ == "__main__":
    main()
