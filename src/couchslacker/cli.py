"""
Command-line interface for couchslacker.
"""

import asyncio
import sys
from functools import wraps
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import (
    ClientConfig,
    CouchSlackerConfig,
    SchemaManagementConfig,
    configure_logging,
)
from .database.client import CouchDbClient
from .exceptions import ConfigurationError, CouchSlackerError
from .schema.operations import SchemaOperation
from .schema.reconciler import ReconciliationResult, SchemaReconciler


console = Console()


def handle_errors(func):
    """Decorator to handle errors gracefully in CLI commands."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except CouchSlackerError as e:
            console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted by user[/yellow]")
            sys.exit(0)
        except Exception as e:
            console.print(f"[red]Unexpected error:[/red] {e}")
            if "--debug" in sys.argv:
                import traceback
                traceback.print_exc()
            sys.exit(1)
    return wrapper


@click.group()
@click.version_option(__version__)
@click.option(
    "--debug", is_flag=True, help="Enable debug mode"
)
@click.pass_context
def main(ctx, debug):
    """couchslacker: typed CouchDB documents with schema reconciliation."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@main.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default="couchslacker.yaml",
    help="Output configuration file path",
)
@handle_errors
def init(output: str):
    """Initialize a new couchslacker configuration file."""
    if Path(output).exists():
        if not click.confirm(f"Configuration file {output} already exists. Overwrite?"):
            return

    config = _create_default_config()
    config.to_yaml(output)
    console.print(f"[green]✓[/green] Configuration file created: {output}")
    console.print("\n[yellow]Next steps:[/yellow]")
    console.print("1. Edit the configuration file with your CouchDB URL and credentials")
    console.print("2. List your document classes under schema_management.entities")
    console.print("3. Run: couchslacker validate-config -c your-config.yaml")
    console.print("4. Run: couchslacker schema-reconcile -c your-config.yaml")


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@handle_errors
def validate_config(config: str):
    """Validate configuration file."""
    console.print(f"Validating configuration: {config}")

    try:
        slacker_config = CouchSlackerConfig.from_yaml(config)
        slacker_config.validate_config()

        console.print("[green]✓[/green] Configuration is valid")

        _display_config_summary(slacker_config)

    except ConfigurationError as e:
        console.print(f"[red]✗[/red] Configuration error: {e}")
        sys.exit(1)


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@click.option(
    "--operation",
    type=click.Choice([op.value for op in SchemaOperation]),
    help="Schema operation (overrides config)",
)
@click.pass_context
@handle_errors
def schema_reconcile(ctx, config: str, operation: Optional[str]):
    """Reconcile CouchDB databases and design documents with entity declarations."""
    slacker_config = CouchSlackerConfig.from_yaml(config)
    configure_logging(slacker_config.logging, debug=ctx.obj.get("debug", False))

    schema_operation = (
        SchemaOperation(operation) if operation else slacker_config.schema_management.operation
    )
    entities = slacker_config.load_entities()

    console.print(f"[blue]Schema reconciliation[/blue] ({schema_operation.value})")
    console.print(f"Entities: {len(entities)}")

    if schema_operation == SchemaOperation.DROP:
        console.print("[yellow]Drop deletes and recreates every listed database[/yellow]")
    elif schema_operation.is_mutating:
        console.print("[yellow]Missing databases and design documents will be written[/yellow]")

    async def run_reconciliation() -> List[ReconciliationResult]:
        async with CouchDbClient.from_config(slacker_config) as client:
            reconciler = SchemaReconciler(client, schema_operation)
            return await reconciler.process(entities)

    results = asyncio.run(run_reconciliation())
    _display_reconciliation_results(results)
    console.print("[green]✓[/green] Schema is in line with entity declarations")


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@handle_errors
def test_connection(config: str):
    """Test the CouchDB connection."""
    console.print("[blue]Testing connection...[/blue]")

    slacker_config = CouchSlackerConfig.from_yaml(config)

    async def run_health_check():
        async with CouchDbClient.from_config(slacker_config) as client:
            return await client.health_check()

    health = asyncio.run(run_health_check())

    if health["status"] == "healthy":
        console.print(f"  ✅ [green]Connected[/green] to {health['url']}")
    else:
        console.print(f"  ❌ [red]Failed[/red] to reach {health['url']}: {health.get('error')}")
        sys.exit(1)


def _create_default_config() -> CouchSlackerConfig:
    """Create a default configuration."""
    return CouchSlackerConfig(
        client=ClientConfig(
            url="http://localhost:5984",
            username="${COUCHDB_USER}",
            password="${COUCHDB_PASSWORD}",
        ),
        schema_management=SchemaManagementConfig(
            operation=SchemaOperation.VALIDATE,
            entities=["myapp.documents:Widget"],
        ),
    )


def _display_config_summary(config: CouchSlackerConfig):
    """Display a summary of the configuration."""
    console.print("\n[blue]Configuration Summary[/blue]")

    client_table = Table(title="CouchDB")
    client_table.add_column("URL", style="cyan")
    client_table.add_column("User", style="magenta")
    client_table.add_column("Bulk Max Size", style="green")
    client_table.add_column("Timeout", style="yellow")
    client_table.add_row(
        config.client.url,
        config.client.username,
        str(config.client.bulk_max_size),
        f"{config.client.timeout}s",
    )
    console.print(client_table)

    schema = config.schema_management
    entity_table = Table(title=f"Entities (operation: {schema.operation.value})")
    entity_table.add_column("Entity", style="cyan")
    for path in schema.entities:
        entity_table.add_row(path)
    console.print(entity_table)


def _display_reconciliation_results(results: List[ReconciliationResult]):
    """Display reconciliation results as a table."""
    table = Table(title="Schema Reconciliation")
    table.add_column("Entity", style="cyan")
    table.add_column("Database", style="magenta")
    table.add_column("Design", style="green")
    table.add_column("Actions", style="yellow")
    table.add_column("Time", style="blue")

    for result in results:
        table.add_row(
            result.entity,
            result.database,
            result.design,
            ", ".join(result.actions) or "-",
            f"{result.execution_time_ms:.1f}ms",
        )

    console.print(table)


if __name__ == "__main__":
    main()
