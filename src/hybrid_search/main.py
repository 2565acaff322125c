"""Command-line interface for the hybrid search engine."""

import asyncio
import json
import sys
import traceback
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import aiofiles
import click
import yaml
from pydantic import ValidationError

from .__version__ import __version__
from .app import SearchApplication, create_application
from .config.logging import configure_logging
from .config.settings import Settings, load_settings
from .exceptions import ConfigurationError, SearchEngineError
from .search.models import (
    IndexDocumentRequest,
    SearchMode,
    SearchRequest,
    SortOrder,
    SuggestionRequest,
)


class CLIError(Exception):
    """CLI error with a user-friendly message."""

    def __init__(self, message: str, suggestion: Optional[str] = None):
        self.message = message
        self.suggestion = suggestion
        super().__init__(message)


class CLIContext:
    """Global CLI context: config file overrides and resolved settings."""

    def __init__(
        self,
        verbose: bool = False,
        json_logs: bool = False,
        config_file: Optional[str] = None,
    ):
        self.verbose = verbose
        self.json_logs = json_logs
        self.config_file = config_file
        self.overrides = self._load_config_file(config_file) if config_file else {}
        self._settings: Optional[Settings] = None

    @staticmethod
    def _load_config_file(config_path: str) -> Dict[str, Any]:
        """Load nested setting overrides from a YAML file."""
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise CLIError(
                f"Invalid configuration file: {e}", "Check YAML syntax and file format"
            )
        if not isinstance(data, dict):
            raise CLIError("Configuration file must contain a mapping")
        return data

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            try:
                self._settings = load_settings(self.overrides)
            except ConfigurationError as e:
                raise CLIError(str(e), "Fix the configuration file or environment")
        return self._settings


def handle_cli_error(error: Exception, verbose: bool = False) -> None:
    """Print an error and exit with status 1."""
    if isinstance(error, CLIError):
        click.echo(f"Error: {error.message}", err=True)
        if error.suggestion:
            click.echo(f"Suggestion: {error.suggestion}", err=True)
    elif isinstance(error, SearchEngineError):
        click.echo(f"Error [{error.code}]: {error.message}", err=True)
    else:
        click.echo(f"Unexpected error: {error}", err=True)
        if verbose:
            click.echo(traceback.format_exc(), err=True)
        else:
            click.echo("Run with --verbose for detailed error information", err=True)
    sys.exit(1)


def echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def run_with_app(
    ctx: click.Context, action: Callable[[SearchApplication], Awaitable[Any]]
) -> Any:
    """Build the application, run ``action`` against it and shut it down."""
    cli_context: CLIContext = ctx.obj["cli_context"]

    async def runner() -> Any:
        app = create_application(cli_context.settings)
        await app.initialize()
        try:
            return await action(app)
        finally:
            await app.close()

    try:
        return asyncio.run(runner())
    except Exception as e:
        handle_cli_error(e, cli_context.verbose)


async def read_documents(path: str) -> List[IndexDocumentRequest]:
    """Read a JSON or YAML list of documents (or ``{documents: [...]}``)."""
    async with aiofiles.open(path, "r", encoding="utf-8") as f:
        raw = await f.read()

    try:
        if Path(path).suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(raw)
        else:
            data = json.loads(raw)
    except (ValueError, yaml.YAMLError) as e:
        raise CLIError(f"Could not parse {path}: {e}")

    if isinstance(data, dict):
        data = data.get("documents")
    if not isinstance(data, list):
        raise CLIError(
            "Documents file must hold a list of documents",
            "Use a top-level list or a 'documents' key",
        )

    documents = []
    for position, item in enumerate(data):
        try:
            documents.append(IndexDocumentRequest.model_validate(item))
        except ValidationError as e:
            raise CLIError(f"Invalid document at position {position}: {e}")
    return documents


@click.group()
@click.version_option(version=__version__, prog_name="hybrid-search")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    help="Configuration file path (YAML format)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, json_logs: bool, config: Optional[str]):
    """Hybrid keyword + semantic search engine.

    \b
    Examples:
      hybrid-search index documents.json
      hybrid-search search "building microservices" --mode keyword
      hybrid-search suggest micro
      hybrid-search health
    """
    ctx.ensure_object(dict)
    try:
        cli_context = CLIContext(verbose=verbose, json_logs=json_logs, config_file=config)
        settings = cli_context.settings
    except CLIError as e:
        handle_cli_error(e, verbose)

    ctx.obj["cli_context"] = cli_context
    ctx.obj["verbose"] = verbose

    log_file = settings.get_log_file_path()
    configure_logging(
        level="DEBUG" if verbose else settings.logging.level,
        log_file=str(log_file) if log_file else None,
        json_logs=json_logs,
    )


@cli.command()
@click.argument("documents_file", type=click.Path(exists=True))
@click.option("--batch-size", type=click.IntRange(min=1), help="Documents per batch")
@click.pass_context
def index(ctx: click.Context, documents_file: str, batch_size: Optional[int]):
    """Index documents from a JSON or YAML file."""

    async def action(app: SearchApplication):
        documents = await read_documents(documents_file)
        return await app.pipeline.reindex(documents, batch_size)

    result = run_with_app(ctx, action)
    echo_json(result.to_dict())
    if result.failed:
        sys.exit(1)


@cli.command()
@click.argument("entity_type")
@click.argument("entity_id")
@click.pass_context
def remove(ctx: click.Context, entity_type: str, entity_id: str):
    """Remove a document from the indexes."""
    removed = run_with_app(
        ctx, lambda app: app.pipeline.remove_from_index(entity_type, entity_id)
    )
    if removed:
        click.echo(f"Removed {entity_type}/{entity_id}")
    else:
        click.echo(f"{entity_type}/{entity_id} was not indexed", err=True)
        sys.exit(1)


@cli.command()
@click.argument("query")
@click.option(
    "--mode",
    type=click.Choice([mode.value for mode in SearchMode]),
    default=SearchMode.HYBRID.value,
    show_default=True,
)
@click.option(
    "--sort",
    "sort_by",
    type=click.Choice([order.value for order in SortOrder]),
    default=SortOrder.RELEVANCE.value,
    show_default=True,
)
@click.option("--page", type=click.IntRange(min=1), default=1, show_default=True)
@click.option("--limit", type=click.IntRange(1, 100), default=20, show_default=True)
@click.option("--exact", is_flag=True, help="Disable prefix matching")
@click.option("--type", "entity_types", multiple=True, help="Restrict to entity type")
@click.option("--user", "user_id", help="User id for analytics attribution")
@click.pass_context
def search(
    ctx: click.Context,
    query: str,
    mode: str,
    sort_by: str,
    page: int,
    limit: int,
    exact: bool,
    entity_types: Tuple[str, ...],
    user_id: Optional[str],
):
    """Search indexed documents."""
    request = SearchRequest(
        query=query,
        entity_types=list(entity_types) or None,
        mode=SearchMode(mode),
        sort_by=SortOrder(sort_by),
        page=page,
        limit=limit,
        fuzzy=not exact,
        user_id=user_id,
    )
    response = run_with_app(ctx, lambda app: app.orchestrator.search(request))
    echo_json(response.to_dict())


@cli.command()
@click.argument("prefix")
@click.option("--type", "entity_type", help="Restrict to entity type")
@click.option("--limit", type=click.IntRange(1, 20), default=5, show_default=True)
@click.pass_context
def suggest(ctx: click.Context, prefix: str, entity_type: Optional[str], limit: int):
    """Show autocomplete suggestions for a prefix."""
    request = SuggestionRequest(query=prefix, entity_type=entity_type, limit=limit)
    response = run_with_app(ctx, lambda app: app.suggestions.get_suggestions(request))
    echo_json(response.to_dict())


@cli.command("cleanup-suggestions")
@click.option("--days", type=click.IntRange(min=1), help="Minimum age in days")
@click.option("--min-frequency", type=click.IntRange(min=1), help="Keep terms used this often")
@click.pass_context
def cleanup_suggestions(
    ctx: click.Context, days: Optional[int], min_frequency: Optional[int]
):
    """Delete old, rarely used suggestion terms."""
    removed = run_with_app(
        ctx, lambda app: app.suggestions.cleanup_old_suggestions(days, min_frequency)
    )
    click.echo(f"Removed {removed} suggestion terms")


@cli.command()
@click.option("--batch-size", type=click.IntRange(min=1), help="Documents per batch")
@click.pass_context
def reconcile(ctx: click.Context, batch_size: Optional[int]):
    """Re-embed documents that are missing a vector reference."""
    result = run_with_app(ctx, lambda app: app.pipeline.reconcile_vector_refs(batch_size))
    echo_json(result.to_dict())


@cli.command()
@click.pass_context
def health(ctx: click.Context):
    """Report backend health."""
    report = run_with_app(ctx, lambda app: app.health.get_health())
    echo_json(report)
    if report["status"] == "down":
        sys.exit(1)


if __name__ == "__main__":
    cli()
