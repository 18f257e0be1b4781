"""Command-line chat interface for Relay Agent."""

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path

import typer
from rich.console import Console
from rich.prompt import Prompt

from relay_agent.agent import Agent
from relay_agent.config import Config, set_config
from relay_agent.exceptions import RelayAgentError
from relay_agent.llm import create_provider
from relay_agent.logging import configure_logging, get_logger
from relay_agent.memory import ConversationMemory
from relay_agent.tools import build_default_registry

log = get_logger(__name__)

app = typer.Typer(
    help='Chat with a tool-using assistant. Type "exit" to stop.',
    add_completion=False,
)

EXIT_COMMAND = "exit"


def load_runtime_config(
    config: str = "",
    model: str = "",
    provider: str = "",
    max_turns: int | None = None,
) -> Config:
    """Load configuration and apply command-line overrides."""
    cfg = Config.from_yaml(Path(config)) if config else Config.load()
    if model:
        cfg.model.model = model
    if provider:
        cfg.model.provider = provider
    if max_turns is not None:
        cfg.agent.max_turns = max_turns
    return cfg


def build_agent(cfg: Config) -> Agent:
    """Compose provider, tools and memory into an agent."""
    provider = create_provider(
        provider=cfg.model.provider,
        model=cfg.model.model,
        api_key=cfg.model.api_key or None,
        base_url=cfg.model.base_url or None,
        temperature=cfg.model.temperature,
        parallel_tool_calls=cfg.model.parallel_tool_calls,
        system_prompt=cfg.agent.system_prompt,
        timeout=cfg.model.timeout,
    )
    return Agent(
        provider=provider,
        registry=build_default_registry(cfg),
        memory=ConversationMemory(),
        max_turns=cfg.agent.max_turns,
    )


async def _prompt_user() -> str:
    return await asyncio.to_thread(Prompt.ask, "[blue]>>[/blue]", default="", show_default=False)


async def chat_loop(
    agent: Agent,
    console: Console,
    read_input: Callable[[], Awaitable[str]] = _prompt_user,
) -> None:
    """Read user messages until "exit", running one agent turn per message."""
    console.print("[green]Hello! I'm your assistant. How can I help you today?[/green]")

    while True:
        try:
            user_message = await read_input()
        except (EOFError, KeyboardInterrupt):
            console.print("[yellow]Goodbye![/yellow]")
            return

        if user_message.strip().lower() == EXIT_COMMAND:
            console.print("[yellow]Goodbye![/yellow]")
            return

        if not user_message.strip():
            console.print("[red]Please provide a valid message.[/red]")
            continue

        try:
            with console.status("Thinking...") as status:
                agent.status_callback = status.update
                result = await agent.run(user_message)
        except RelayAgentError as e:
            console.print(f"[red]Error:[/red] {e}")
            continue
        except Exception as e:
            log.error("Unexpected error in chat loop", error=str(e))
            console.print(f"[red]An unexpected error occurred:[/red] {e}")
            continue
        finally:
            agent.status_callback = None

        console.print("\n[bright_green][ASSISTANT][/bright_green]")
        console.print(result.answer, markup=False)
        console.print()


@app.command()
def start(
    config: str = typer.Option("", "-c", "--config", help="Path to config file"),
    model: str = typer.Option("", "-m", "--model", help="Override model"),
    provider: str = typer.Option("", "-p", "--provider", help="Override provider (ollama, openai)"),
    max_turns: int | None = typer.Option(None, "--max-turns", min=1, help="Model calls allowed per turn"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Debug logging"),
) -> None:
    """Start the chatbot assistant."""
    cfg = load_runtime_config(config=config, model=model, provider=provider, max_turns=max_turns)
    set_config(cfg)
    configure_logging("DEBUG" if verbose else None)

    console = Console()
    agent = build_agent(cfg)
    try:
        asyncio.run(chat_loop(agent, console))
    except KeyboardInterrupt:
        console.print("[yellow]Goodbye![/yellow]")


@app.command()
def version() -> None:
    """Show version information."""
    from relay_agent import __version__
    typer.echo(f"Relay Agent v{__version__}")


@app.callback(invoke_without_command=True)
def _default(ctx: typer.Context) -> None:
    if ctx.invoked_subcommand is None:
        start(config="", model="", provider="", max_turns=None, verbose=False)


if __name__ == "__main__":
    app()
