"""
CLI interface using Click.
"""

import asyncio
import sys
from typing import Optional

import click
import yaml
from rich.console import Console
from rich.table import Table

from featuredev_agent import __version__
from featuredev_agent import exceptions
from featuredev_agent.backend import ScriptedBackend, ScriptedOutcome
from featuredev_agent.config import AgentConfig, ConfigurationError, load_config, save_config
from featuredev_agent.controller import FeatureDevController
from featuredev_agent.logging import setup_logging, get_logger
from featuredev_agent.messenger import RecordedMessage, RecordingMessenger
from featuredev_agent.notifications import ConsoleNotifier
from featuredev_agent.state import DeletedFileInfo, NewFileZipInfo, SessionManager
from featuredev_agent.telemetry import TelemetryRecorder, aggregate_telemetry

console = Console()
logger = get_logger(__name__)

FAILURES = {
    "throttling": exceptions.ThrottlingException,
    "empty-patch": exceptions.EmptyPatchException,
    "guardrails": exceptions.GuardrailsException,
    "iteration-limit": exceptions.CodeIterationLimitException,
    "upload-expired": exceptions.UploadURLExpired,
    "unexpected": RuntimeError,
}


def _load(config_path: Optional[str]) -> AgentConfig:
    try:
        agent_config = load_config(config_path)
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    # --verbose wins over the configured level
    ctx = click.get_current_context(silent=True)
    verbose = bool(ctx and ctx.obj and ctx.obj.get("verbose"))
    setup_logging(
        level="DEBUG" if verbose else agent_config.logging.level,
        log_file=agent_config.log_file,
    )
    return agent_config


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version and exit")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.pass_context
def main(ctx: click.Context, version: bool, verbose: bool) -> None:
    """Feature development agent - code generation conversation controller."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    setup_logging(level="DEBUG" if verbose else "WARNING")

    if version:
        console.print(f"featuredev-agent v{__version__}")
        sys.exit(0)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


def _describe(msg: RecordedMessage) -> str:
    payload = msg.payload
    if msg.kind == "progress":
        state = "on" if payload["in_progress"] else "off"
        return f"{state} {payload.get('message') or ''}".strip()
    if msg.kind == "answer":
        return f"[{payload['message_type'].value}] {payload['message']}"
    if msg.kind == "system_prompt":
        return ", ".join(f.pill_text for f in payload["follow_ups"]) or "(none)"
    if msg.kind == "code_result":
        return (
            f"upload={payload['upload_id']} files={len(payload['file_paths'])} "
            f"deleted={len(payload['deleted_files'])} references={len(payload['references'])}"
        )
    if msg.kind == "placeholder":
        return payload["new_placeholder"]
    if msg.kind == "chat_input_enabled":
        return "enabled" if payload["enabled"] else "locked"
    return str(payload)


@main.command()
@click.option("--message", "-m", "user_message", default="Add a health check endpoint", help="User request")
@click.option("--files", "-f", default=1, type=click.IntRange(0), help="Generated files")
@click.option("--deleted", "-d", default=0, type=click.IntRange(0), help="Deleted files")
@click.option("--remaining", type=int, default=None, help="Remaining code generations reported by the backend")
@click.option("--total", type=int, default=None, help="Total code generations reported by the backend")
@click.option("--retry", is_flag=True, help="Simulate a retry (uses one retry)")
@click.option("--cancel", is_flag=True, help="Cancel while code is being generated")
@click.option("--fail", type=click.Choice(sorted(FAILURES)), default=None, help="Make the backend fail")
@click.option("--hidden", is_flag=True, help="Pretend the chat window is hidden")
@click.option("--config", "-c", type=click.Path(), help="Path to config file")
def simulate(
    user_message: str,
    files: int,
    deleted: int,
    remaining: Optional[int],
    total: Optional[int],
    retry: bool,
    cancel: bool,
    fail: Optional[str],
    hidden: bool,
    config: Optional[str],
) -> None:
    """Run one code-generation attempt against a scripted backend."""
    agent_config = _load(config)

    if fail:
        outcome = FAILURES[fail]()
    else:
        try:
            outcome = ScriptedOutcome(
                file_paths=[
                    NewFileZipInfo(zip_file_path=f"src/generated_{i}.py", file_content=f"# file {i}\n")
                    for i in range(files)
                ],
                deleted_files=[DeletedFileInfo(zip_file_path=f"src/old_{i}.py") for i in range(deleted)],
                remaining_iterations=remaining,
                total_iterations=total,
                cancel_during=cancel,
            )
            outcome.to_state()
        except ValueError as e:
            raise click.BadParameter(str(e))

    telemetry = TelemetryRecorder(
        output_path=agent_config.telemetry_path,
        lock_timeout=agent_config.telemetry.lock_timeout_seconds,
    )
    sessions = SessionManager(
        backend=ScriptedBackend([outcome]),
        telemetry=telemetry,
        retry_limit=agent_config.codegen.retry_limit,
    )
    messenger = RecordingMessenger()
    controller = FeatureDevController(
        messenger=messenger,
        sessions=sessions,
        config=agent_config,
        notifier=ConsoleNotifier(console),
        is_chat_visible=lambda: not hidden,
    )

    tab_id = "tab-1"
    session = sessions.get_or_create(tab_id)
    if retry:
        session.decrement_retries()

    error: Optional[BaseException] = None
    try:
        asyncio.run(controller.run_code_generation_attempt(session, user_message))
    except Exception as e:
        error = e

    table = Table(title="Chat transcript")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Update", style="cyan")
    table.add_column("Content")
    for i, msg in enumerate(messenger.messages, 1):
        table.add_row(str(i), msg.kind, _describe(msg))
    console.print(table)

    for event in telemetry.events:
        console.print(f"[dim]telemetry[/dim] {event.operation_name.value} -> {event.result.value}")

    if error is not None:
        console.print(f"[red]Attempt failed: {type(error).__name__}[/red]")
        sys.exit(1)


@main.command()
@click.option("--config", "-c", type=click.Path(), help="Path to config file")
def stats(config: Optional[str]) -> None:
    """Show code-generation outcome statistics."""
    agent_config = _load(config)
    path = agent_config.telemetry_path

    if path is None:
        console.print("[yellow]Telemetry is disabled.[/yellow]")
        return

    stats_data = aggregate_telemetry(path)
    if not stats_data:
        console.print(f"[yellow]No telemetry found at {path}[/yellow]")
        return

    console.print("\n[bold]Code Generation Statistics[/bold]")
    console.print(f"  File: {path}")
    console.print(f"  Conversations: {stats_data['conversations']}")
    console.print(f"  Attempts started: {stats_data['started']}")
    console.print()

    table = Table()
    table.add_column("Result", style="cyan")
    table.add_column("Count", justify="right")
    for result, count in sorted(stats_data["results"].items()):
        table.add_row(result, str(count))
    console.print(table)

    durations = stats_data["durations"]
    console.print(
        f"Success rate: {stats_data['success_rate']:.0%}  "
        f"avg duration: {durations['avg_ms']:.0f}ms  max: {durations['max_ms']}ms"
    )


@main.command("config")
@click.option("--show", "-s", is_flag=True, help="Print the effective configuration")
@click.option("--init", "init_", is_flag=True, help="Write a default config file")
@click.option("--config", "-c", type=click.Path(), help="Path to config file")
def config_cmd(show: bool, init_: bool, config: Optional[str]) -> None:
    """Show or initialise configuration."""
    if init_:
        path = save_config(AgentConfig(), config)
        console.print(f"[green]Wrote default config to {path}[/green]")
        config = str(path)

    if show or not init_:
        agent_config = _load(config)
        console.print(yaml.safe_dump(agent_config.model_dump(), default_flow_style=False))


if __name__ == "__main__":
    main()
