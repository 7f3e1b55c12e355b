"""CLI commands for blady."""

import asyncio
import json
from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from blady import __logo__, __title__, __version__

app = typer.Typer(
    name="Blady",
    help=f"{__logo__} {__title__} - personal WhatsApp automation agent",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} {__title__} v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """Blady - personal WhatsApp automation agent."""


# ============================================================================
# Onboard / Setup
# ============================================================================


SAMPLE_TASK = {
    "id": 0,
    "objective": "Book a table for two at 21:00 on Friday",
    "contact": "34600111222@s.whatsapp.net",
    "original_orders": "ask the restaurant for a table for two on friday at nine",
    "status": "unconfirmed",
}

SAMPLE_TEMPLATE = """When this contact writes, reply briefly that I am busy and will answer later.
Do not make any promise and do not share my agenda.
"""


@app.command()
def onboard():
    """Initialize blady configuration and workspace."""
    from blady.config.loader import get_config_path, save_config
    from blady.config.schema import Config
    from blady.utils.helpers import ensure_dir, get_workspace_path

    config_path = get_config_path()

    if config_path.exists():
        console.print(f"[yellow]Config already exists at {config_path}[/yellow]")
        if not typer.confirm("Overwrite?"):
            raise typer.Exit()

    config = Config()
    save_config(config)
    console.print(f"[green]✓[/green] Created config at {config_path}")

    workspace = get_workspace_path(config.agents.defaults.workspace)
    console.print(f"[green]✓[/green] Created workspace at {workspace}")

    for sub in ("tasks", "behaviors", "actions", "behavior_templates"):
        ensure_dir(workspace / sub)
    _write_if_missing(workspace / "memories.txt", "")
    _write_if_missing(workspace / "tasks" / "0_sample.json", json.dumps(SAMPLE_TASK, indent=2))
    _write_if_missing(workspace / "behavior_templates" / "busy_auto_reply.txt", SAMPLE_TEMPLATE)

    console.print(f"\n{__logo__} {__title__} is ready!")
    console.print("\nNext steps:")
    console.print("  1. Add your API key to [cyan]~/.blady/config.json[/cyan] (providers section)")
    console.print("  2. Start the WhatsApp bridge and scan the QR code")
    console.print("  3. Gateway: [cyan]blady gateway[/cyan]")


def _write_if_missing(path: Path, content: str) -> None:
    if not path.exists():
        path.write_text(content, encoding="utf-8")
        console.print(f"  [dim]Created {path.name}[/dim]")


def _make_provider(config, model: str | None = None):
    """Create LiteLLMProvider from config. Exits if no API key found."""
    from blady.providers.litellm_provider import LiteLLMProvider

    model = model or config.agents.defaults.model
    p = config.get_provider(model)
    if not (p and (p.api_key or "").strip()) and not model.startswith("ollama/"):
        console.print("[red]Error: No API key configured.[/red]")
        console.print("Set one in ~/.blady/config.json under providers section")
        raise typer.Exit(1)
    log_dir = config.agents.defaults.llm_log_dir
    return LiteLLMProvider(
        api_key=p.api_key if p else None,
        api_base=config.get_api_base(model),
        default_model=model,
        extra_headers=p.extra_headers if p else None,
        log_dir=Path(log_dir).expanduser() if log_dir else None,
    )


# ============================================================================
# Gateway
# ============================================================================


@app.command()
def gateway(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log prompts and raw LLM responses"),
):
    """Start the Blady gateway (WhatsApp bridge + agent + task ticker)."""
    from blady.agent.actions import build_registry
    from blady.agent.buttons import ButtonsRegistry
    from blady.agent.contacts import ContactDirectory
    from blady.agent.context import ContextBuilder
    from blady.agent.dispatcher import EventDispatcher
    from blady.agent.loop import AgentLoop
    from blady.agent.memory import MemoryStore
    from blady.agent.ticker import TaskTicker
    from blady.agent.watcher import SafetyGate
    from blady.behaviors.store import BehaviorStore
    from blady.bus.queue import MessageBus
    from blady.channels.whatsapp import WhatsAppChannel
    from blady.config.loader import load_config
    from blady.history.store import HistoryStore
    from blady.tasks.store import TaskStore
    from blady.utils.helpers import get_workspace_path
    from blady.utils.logging_config import configure_logging

    configure_logging(level="DEBUG" if verbose else None)
    console.print(f"{__logo__} Starting {__title__} gateway...")

    config = load_config()
    defaults = config.agents.defaults
    workspace = get_workspace_path(defaults.workspace)

    provider = _make_provider(config)
    watcher_provider = _make_provider(config, defaults.watcher_model) if defaults.watcher_model else provider

    bus = MessageBus()
    channel = WhatsAppChannel(config.channels.whatsapp, bus)
    tasks = TaskStore(workspace / "tasks")
    behaviors = BehaviorStore(workspace / "behaviors", workspace / "behavior_templates")
    history = HistoryStore(workspace / "history.db")
    memory = MemoryStore(workspace)
    directory = ContactDirectory()
    buttons = ButtonsRegistry()
    context_builder = ContextBuilder(memory, directory, behaviors, language=defaults.language)
    gate = SafetyGate(watcher_provider, model=defaults.watcher_model, system_prompt=context_builder.build_system_prompt)

    dispatcher = EventDispatcher(
        channel=channel,
        bus=bus,
        tasks=tasks,
        behaviors=behaviors,
        history=history,
        directory=directory,
        buttons=buttons,
        gate=gate,
        debounce_seconds=defaults.debounce_seconds,
        context_messages=defaults.context_messages,
    )
    registry = build_registry(
        memory=memory,
        tasks=tasks,
        directory=directory,
        buttons=buttons,
        send_to_operator=dispatcher.send_to_operator,
        send_media=dispatcher.send_media,
        send_button=dispatcher.send_button,
        gate=gate,
        on_task_started=dispatcher.start_task,
        on_task_resumed=dispatcher.resume_task,
        custom_actions_dir=workspace / "actions",
    )
    dispatcher.agent = AgentLoop(
        provider=provider,
        registry=registry,
        context_builder=context_builder,
        tasks=tasks,
        behaviors=behaviors,
        model=defaults.model,
        max_tokens=defaults.max_tokens,
        temperature=defaults.temperature,
        max_recursion=defaults.max_tool_recursion,
    )
    ticker = TaskTicker(tasks, dispatcher.start_task, tick_seconds=config.tasks.tick_seconds)

    console.print(f"[green]✓[/green] Workspace: {workspace}")
    console.print(f"[green]✓[/green] Actions: {', '.join(registry.names())}")
    console.print(f"[green]✓[/green] Active tasks: {len(tasks.list_active())}")
    console.print(f"[green]✓[/green] Task ticker: every {config.tasks.tick_seconds:g}s")
    if not config.channels.whatsapp.enabled:
        console.print("[yellow]Warning: WhatsApp channel disabled; nothing will be received[/yellow]")

    async def run():
        jobs = [dispatcher.run(), ticker.run()]
        if config.channels.whatsapp.enabled:
            jobs.append(channel.start())
        try:
            await asyncio.gather(*jobs)
        except (KeyboardInterrupt, asyncio.CancelledError):
            console.print("\nShutting down...")
        finally:
            ticker.stop()
            await dispatcher.shutdown()
            await channel.stop()
            history.close()
            logger.info("Gateway stopped")

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


# ============================================================================
# Tasks / Behaviors
# ============================================================================


tasks_app = typer.Typer(help="Inspect tasks")
app.add_typer(tasks_app, name="tasks")


def _task_store():
    from blady.config.loader import load_config
    from blady.tasks.store import TaskStore
    from blady.utils.helpers import get_workspace_path

    config = load_config()
    return TaskStore(get_workspace_path(config.agents.defaults.workspace) / "tasks")


@tasks_app.command("list")
def tasks_list():
    """List active tasks."""
    tasks = _task_store().list_active()
    if not tasks:
        console.print("No active tasks.")
        return

    table = Table(title="Tasks")
    table.add_column("ID", style="cyan")
    table.add_column("Status")
    table.add_column("Contact")
    table.add_column("Objective")
    table.add_column("Scheduled")
    for t in tasks:
        table.add_row(str(t.id), t.status, t.contact, t.objective[:60], t.schedule_datetime or "")
    console.print(table)


@tasks_app.command("show")
def tasks_show(task_id: int = typer.Argument(..., help="Task ID")):
    """Show one task as JSON."""
    from blady.errors import BladyError

    try:
        task = _task_store().load(task_id)
    except BladyError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    console.print_json(json.dumps(task.to_dict(), ensure_ascii=False))


behaviors_app = typer.Typer(help="Inspect behaviors")
app.add_typer(behaviors_app, name="behaviors")


@behaviors_app.command("list")
def behaviors_list():
    """List enabled behaviors and available templates."""
    from blady.behaviors.store import BehaviorStore
    from blady.config.loader import load_config
    from blady.utils.helpers import get_workspace_path

    workspace = get_workspace_path(load_config().agents.defaults.workspace)
    store = BehaviorStore(workspace / "behaviors", workspace / "behavior_templates")
    active = store.all_active()

    table = Table(title="Behaviors")
    table.add_column("ID", style="cyan")
    table.add_column("Contact")
    table.add_column("Template")
    table.add_column("Comments")
    for b in active:
        table.add_row(str(b.id), b.contact, b.name, b.comments[:60])
    console.print(table)
    console.print(f"Templates: {', '.join(store.available_templates()) or '[dim]none[/dim]'}")


# ============================================================================
# Status
# ============================================================================


@app.command()
def status():
    """Show Blady status."""
    from blady.config.loader import get_config_path, load_config

    config_path = get_config_path()
    config = load_config()
    workspace = config.workspace_path

    console.print(f"{__logo__} {__title__} Status\n")

    console.print(f"Config: {config_path} {'[green]✓[/green]' if config_path.exists() else '[red]✗[/red]'}")
    console.print(f"Workspace: {workspace} {'[green]✓[/green]' if workspace.exists() else '[red]✗[/red]'}")

    if config_path.exists():
        defaults = config.agents.defaults
        console.print(f"Model: {defaults.model}")
        console.print(f"Watcher model: {defaults.watcher_model or defaults.model}")
        console.print(f"Bridge: {config.channels.whatsapp.bridge_url}")
        for name in ("cerebras", "openai", "anthropic", "openrouter", "deepseek", "groq"):
            has_key = bool(getattr(config.providers, name).api_key)
            console.print(f"{name.capitalize()} API: {'[green]✓[/green]' if has_key else '[dim]not set[/dim]'}")
        console.print(f"Ollama: {config.providers.ollama.api_base or '[dim]not set[/dim]'}")

    if workspace.exists():
        console.print(f"Active tasks: {len(_task_store().list_active())}")


if __name__ == "__main__":
    app()
