"""CLI entry point for asyncagent."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import TYPE_CHECKING

import typer

from asyncagent.agent.parsing import parse_completed
from asyncagent.config import AgentConfig

if TYPE_CHECKING:
    from asyncagent.session.wire import Wire

app = typer.Typer(
    name="asyncagent",
    help="Run asynchronous, event-driven reason/act/observe agents.",
    no_args_is_help=True,
)


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


@app.command()
def run(
    goals: list[str] = typer.Option(
        ...,
        "--goal",
        "-g",
        help="Goal for one activity. Repeat to run several concurrently.",
    ),
    model: str | None = typer.Option(
        None,
        "--model",
        "-m",
        help="LLM model to use (default: from env/config).",
    ),
    sse_url: str | None = typer.Option(
        None, "--sse-url", help="SSE endpoint carrying tool notifications."
    ),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path."
    ),
    timeout: float = typer.Option(
        300.0, "--timeout", "-t", help="Give up waiting after this many seconds."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging."
    ),
) -> None:
    """Submit goals and run them until all complete or the timeout elapses."""
    setup_logging(verbose)

    config = AgentConfig.load(config_file)
    if model:
        config.llm.model = model
    if sse_url:
        config.transport.sse_url = sse_url

    typer.echo("asyncagent v0.1.0")
    typer.echo(f"Model: {config.llm.model}")
    typer.echo(f"Goals: {len(goals)}")
    _show_api_key_status(config)
    typer.echo("---")

    finished = asyncio.run(_run_goals(goals, config, timeout))
    if not finished:
        typer.echo(f"Timed out after {timeout:g}s with activities still running.", err=True)
        raise typer.Exit(1)


def _show_api_key_status(config: AgentConfig) -> None:
    """Print which API key is active so the user can verify the right one is loaded."""
    provider_prefix = config.llm.model.split("/")[0] if "/" in config.llm.model else ""
    key_env_map = {
        "anthropic": "ANTHROPIC_API_KEY",
        "gemini": "GEMINI_API_KEY",
        "openai": "OPENAI_API_KEY",
    }
    env_var = key_env_map.get(provider_prefix, "")
    if not env_var:
        typer.echo(f"Provider: {provider_prefix or 'unknown'} (check API key manually)")
    elif os.environ.get(env_var):
        key = os.environ[env_var]
        masked = f"{key[:8]}...{key[-4:]}" if len(key) > 12 else "***"
        typer.echo(f"API key: {env_var} = {masked}")
    else:
        typer.echo(
            f"WARNING: {env_var} is not set! Set it in .env or your shell.",
            err=True,
        )


async def _run_goals(goals: list[str], config: AgentConfig, timeout: float) -> bool:
    from asyncagent.agent import AsyncAgent
    from asyncagent.brain import LiteLLMCollaborator
    from asyncagent.llm import create_provider, litellm_embedder
    from asyncagent.memory import InMemoryMemoryStore
    from asyncagent.session.wire import Wire
    from asyncagent.tool import ToolRegistry
    from asyncagent.tool.builtin import TimerTool

    wire = Wire()
    provider = create_provider(
        model=config.llm.model,
        temperature=config.llm.temperature,
        max_tokens=config.llm.max_tokens,
    )
    tools = ToolRegistry()
    collaborator = LiteLLMCollaborator(provider, tools)
    memory = InMemoryMemoryStore(litellm_embedder(config.llm.embedding_model))
    agent = AsyncAgent(collaborator, config, memory=memory, wire=wire)

    timer = TimerTool(agent.router)
    tools.register(timer)

    consumer_task = asyncio.create_task(_print_wire(wire))

    await agent.start()
    ids = [agent.submit(goal) for goal in goals]
    try:
        finished = await agent.wait_idle(timeout=timeout)
    finally:
        timer.cancel_all()
        await agent.stop()
        wire.close()
        await consumer_task

    print("\n---")
    for activity_id in ids:
        activity = agent.get(activity_id)
        if activity is None:
            print(f"{activity_id}: (evicted)")
            continue
        outcome = activity.outcome or activity.status.name
        print(f"{activity_id}: {outcome} after {activity.cycles} cycles - {activity.goal}")
    return finished


async def _print_wire(wire: Wire) -> None:
    from asyncagent.session.wire import EventType

    queue = wire.subscribe()
    while True:
        event = await queue.get()
        if event is None:
            break

        d = event.data
        prefix = f"[{str(d.get('activity_id', '-'))[:8]}]"

        if event.type == EventType.SUBMITTED:
            print(f"{prefix} submitted: {d.get('goal', '')}", flush=True)
        elif event.type == EventType.PHASE:
            print(f"{prefix} {d.get('phase', '?')}", flush=True)
        elif event.type == EventType.STEP:
            result = str(d.get("result", ""))
            first_line = result.split("\n")[0][:100] if result else "(empty)"
            print(f"{prefix}   {d.get('phase', '?')}: {first_line}", flush=True)
        elif event.type == EventType.PARKED:
            print(f"{prefix} waiting for {d.get('tool', 'event')}", flush=True)
        elif event.type == EventType.WOKEN:
            print(f"{prefix} woken ({d.get('reason', 'event')})", flush=True)
        elif event.type == EventType.COMPLETED:
            print(f"{prefix} completed: {d.get('outcome', '')}", flush=True)
        elif event.type == EventType.DROPPED:
            print(f"  [dropped] {d.get('reason', '')}", flush=True)
        elif event.type == EventType.ERROR:
            print(f"\n{prefix} ERROR: {d.get('error', 'Unknown error')}", flush=True)

    wire.unsubscribe(queue)


@app.command("check-completion")
def check_completion(
    text: str = typer.Argument(help="Collaborator output to test for completion."),
) -> None:
    """Print whether TEXT would be read as a completion signal."""
    typer.echo("true" if parse_completed(text) else "false")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
