"""
Flow Runtime CLI
"""
import click
import asyncio
import json
import sys

from .config import Settings, configure_logging
from .core import FlowEngine, FlowParser, export_flow, validate_flow
from .exceptions import FlowParseError, FlowValidationError
from .integrations import EventBus
from .models.execution import ExecutionStatus
from .storage.repository import InMemoryFlowRepository, InMemoryExecutionRepository


def _load(flow_file: str):
    try:
        return FlowParser().parse_file(flow_file)
    except FlowParseError as e:
        raise click.ClickException(str(e))


def _print_errors(errors):
    for error in errors:
        where = f" [{error.node_id}]" if error.node_id else ""
        click.echo(f"  - {error.message}{where}", err=True)


@click.group()
@click.option('--log-level', default=None, help='Log level (defaults to LOG_LEVEL or INFO)')
@click.pass_context
def cli(ctx, log_level):
    """Flow Runtime CLI"""
    settings = Settings.from_env()
    configure_logging(log_level or settings.log_level)
    ctx.obj = settings


@cli.command()
@click.argument('flow_file', type=click.Path(exists=True, dir_okay=False))
def validate(flow_file):
    """Validate a flow document"""
    graph = _load(flow_file)
    result = validate_flow(graph.nodes, graph.edges)

    if result.valid:
        click.echo(f"Flow \"{graph.flow.name}\" is valid")
        return

    click.echo(f"Flow \"{graph.flow.name}\" has {len(result.errors)} error(s):", err=True)
    _print_errors(result.errors)
    sys.exit(1)


@cli.command()
@click.argument('flow_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--payload', default=None, help='Trigger payload as JSON')
@click.pass_obj
def run(settings, flow_file, payload):
    """Run a flow document and print its steps"""
    graph = _load(flow_file)

    trigger_payload = None
    if payload is not None:
        try:
            trigger_payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise click.BadParameter(f"Invalid JSON: {e}", param_hint='--payload')

    async def _run():
        flow_repo = InMemoryFlowRepository()
        execution_repo = InMemoryExecutionRepository()
        engine = FlowEngine(
            flow_repository=flow_repo,
            execution_repository=execution_repo,
            event_bus=EventBus(),
            settings=settings
        )
        try:
            await flow_repo.save_graph(graph)
            execution_id = await engine.run(graph.flow.id, payload=trigger_payload, wait=True)
            execution = await engine.wait_for(execution_id)
            steps = await execution_repo.list_steps(execution_id)
        finally:
            await engine.shutdown()
            await engine.event_bus.close()
        return execution, steps

    try:
        execution, steps = asyncio.run(_run())
    except FlowValidationError as e:
        click.echo("Flow is invalid:", err=True)
        _print_errors(e.errors)
        sys.exit(1)

    labels = {node.id: node.display_name for node in graph.nodes}
    for step in steps:
        duration = f" ({step.duration_ms}ms)" if step.duration_ms is not None else ""
        click.echo(f"[{step.status.value:>7}] {labels.get(step.node_id, step.node_id)}{duration}")
        if step.output and step.status.value != "skipped":
            click.echo(f"          output: {step.output}")
        if step.error:
            click.echo(f"          error: {step.error}")

    click.echo(f"Execution {execution.id}: {execution.status.value}")
    if execution.error:
        click.echo(f"Error: {execution.error}", err=True)
    if execution.status != ExecutionStatus.SUCCESS:
        sys.exit(1)


@cli.command()
@click.argument('flow_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--output', '-o', type=click.Path(dir_okay=False, writable=True), help='Write to file')
def export(flow_file, output):
    """Convert a flow document to the portable export format"""
    document = export_flow(_load(flow_file))
    if output:
        with open(output, 'w', encoding='utf-8') as f:
            f.write(document + "\n")
        click.echo(f"Exported to {output}")
    else:
        click.echo(document)


@cli.command()
@click.option('--host', default=None, help='Host to bind to')
@click.option('--port', default=None, type=int, help='Port to bind to')
@click.option('--reload', is_flag=True, help='Enable auto-reload')
@click.pass_obj
def serve(settings, host, port, reload):
    """Start the API server"""
    import uvicorn

    host = host or settings.api_host
    port = port or settings.api_port
    click.echo(f"Starting API server on {host}:{port}")
    uvicorn.run(
        "flow_runtime.api.app:app",
        host=host,
        port=port,
        reload=reload or settings.api_reload,
        log_level=settings.log_level.lower()
    )


def main():
    """Main entry point"""
    cli()


if __name__ == '__main__':
    main()
