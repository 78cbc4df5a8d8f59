"""
Console entry point.

Commands:
  analyze  run the PR Agent analysis as a pipeline step
"""

import asyncio

import click
from dotenv import load_dotenv

from pr_agent import __version__
from pr_agent.config import load_settings
from pr_agent.errors import ConfigurationError
from pr_agent.models import ANALYSIS_TYPES, OUTPUT_FORMATS
from pr_agent.services.task import EXIT_FAILED, PipelineTask, task_complete_command


@click.group()
@click.version_option(version=__version__, prog_name="pr-agent")
def cli():
    """AI-powered pull request analysis for Azure DevOps pipelines."""


@cli.command("analyze")
@click.option(
    "--type",
    "analysis_type",
    type=click.Choice(list(ANALYSIS_TYPES)),
    default=None,
    help="Analysis to run. Overrides INPUT_ANALYSISTYPE.",
)
@click.option("--question", default=None, help="Question for the 'ask' analysis.")
@click.option("--source-dir", "source_directory", default=None, help="Directory to analyze.")
@click.option(
    "--output-format",
    type=click.Choice(list(OUTPUT_FORMATS)),
    default=None,
    help="Output file format. Overrides INPUT_OUTPUTFORMAT.",
)
@click.option("--output-file", default=None, help="Where to write the results.")
@click.option("--pr-url", default=None, help="Analyze this pull request instead of the pipeline's.")
@click.option("--quality-threshold", type=int, default=None, help="Minimum quality score (0-100).")
@click.option("--security-threshold", type=int, default=None, help="Minimum security score (0-100).")
@click.option("--log-level", default=None, help="Logging level (DEBUG, INFO, WARNING, ERROR).")
def analyze_cmd(**options):
    """Analyze the pull request or source tree and publish the results."""
    overrides = {name: value for name, value in options.items() if value is not None}
    try:
        settings = load_settings(**overrides)
    except ConfigurationError as e:
        click.echo(task_complete_command("Failed", str(e)))
        raise SystemExit(EXIT_FAILED)

    exit_code = asyncio.run(PipelineTask(settings).run())
    raise SystemExit(exit_code)


def main():
    load_dotenv()
    cli()


if __name__ == "__main__":
    main()
