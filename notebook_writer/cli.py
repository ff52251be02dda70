import click
from pathlib import Path

from rich.console import Console
from rich.table import Table

from .config import Config
from .engine import PhaseEngine
from .models.request import GenerationResult
from .providers.fallback import AllProvidersFailedError, FallbackGenerator, StreamReset, StreamSummary, StreamToken
from .store import NotebookFile
from .streaming import CompleteEvent, ErrorEvent, StreamAdapter, sse_frames
from .utils.logger import setup_logger
from .utils.progress import create_progress, update_task_progress

@click.group()
@click.option('--config', '-c', type=click.Path(dir_okay=False), default='config.yaml',
              help='Path to configuration file')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--log-file', type=click.Path(dir_okay=False), default=None,
              help='Also write DEBUG logs, including every provider attempt, to this file')
@click.pass_context
def cli(ctx: click.Context, config: str, verbose: bool, log_file: str):
    """Notebook Writer - plan, write, review and polish documents with LLMs."""
    ctx.ensure_object(dict)

    config_path = Path(config)
    if config_path.exists():
        ctx.obj['config'] = Config.from_yaml(config_path)
    else:
        ctx.obj['config'] = Config()

    log_level = "DEBUG" if verbose else ctx.obj['config'].log_level
    log_file = log_file or ctx.obj['config'].log_file
    logger = setup_logger(log_level, Path(log_file) if log_file else None)
    ctx.obj['logger'] = logger

    if config_path.exists():
        logger.info(f"Config loaded from: {config_path}")

def _engine(ctx: click.Context) -> PhaseEngine:
    if ctx.obj.get('engine') is None:
        ctx.obj['engine'] = PhaseEngine.from_config(ctx.obj['config'])
    return ctx.obj['engine']

def _echo_result(result: GenerationResult, changed: int):
    click.echo(f"[{result.phase.value}] {result.message}")
    if result.progress_message:
        click.echo(f"  {result.progress_message}")
    click.echo(
        f"  edits applied: {changed} | confidence: {result.confidence.value} | "
        f"continue: {result.should_continue} | complete: {result.is_complete}"
    )

@cli.command()
@click.argument('notebook', type=click.Path(dir_okay=False))
@click.option('--instruction', '-i', required=True, help='Instruction, or the answer to a pending question')
@click.pass_context
def advance(ctx: click.Context, notebook: str, instruction: str):
    """Advance a notebook by one generation step."""
    logger = ctx.obj['logger']
    book = NotebookFile.load(Path(notebook))

    try:
        result = _engine(ctx).advance(book.build_request(instruction))
    except AllProvidersFailedError as e:
        logger.error(f"Generation failed: {e}")
        raise click.ClickException(str(e))

    changed = book.apply_result(result)
    book.save()
    _echo_result(result, changed)

@cli.command()
@click.argument('notebook', type=click.Path(dir_okay=False))
@click.option('--instruction', '-i', required=True, help='What to write')
@click.option('--max-steps', type=click.IntRange(min=1), default=50, help='Stop after this many calls')
@click.pass_context
def run(ctx: click.Context, notebook: str, instruction: str, max_steps: int):
    """Keep advancing until the document is complete, asking questions as needed."""
    logger = ctx.obj['logger']
    engine = _engine(ctx)
    book = NotebookFile.load(Path(notebook))

    with create_progress() as progress:
        task_id = progress.add_task("Generating...", total=None)
        for step in range(1, max_steps + 1):
            try:
                result = engine.advance(book.build_request(instruction))
            except AllProvidersFailedError as e:
                logger.error(f"Generation failed at step {step}: {e}")
                raise click.ClickException(str(e))

            changed = book.apply_result(result)
            book.save()
            plan = result.plan.to_dict() if result.plan is not None else None
            update_task_progress(progress, task_id, plan, result.progress_message or result.message)

            if result.is_complete:
                break
            if result.should_continue:
                continue

            # Paused on a clarifying question
            progress.stop()
            instruction = click.prompt(result.message)
            progress.start()
        else:
            logger.warning(f"Stopped after {max_steps} steps without completing")

    _echo_result(result, changed)
    click.echo(f"Notebook saved to {book.path}")

@cli.command()
@click.argument('notebook', type=click.Path(dir_okay=False))
@click.option('--instruction', '-i', required=True, help='Instruction, or the answer to a pending question')
@click.pass_context
def stream(ctx: click.Context, notebook: str, instruction: str):
    """Advance one step, printing progress as Server-Sent Events."""
    config = ctx.obj['config']
    book = NotebookFile.load(Path(notebook))
    events = StreamAdapter(_engine(ctx), config.stream).run(book.build_request(instruction))

    outcome = {}

    def _watch(source):
        for event in source:
            if isinstance(event, (CompleteEvent, ErrorEvent)):
                outcome['event'] = event
            yield event

    for frame in sse_frames(_watch(events)):
        click.echo(frame, nl=False)

    final = outcome.get('event')
    if isinstance(final, CompleteEvent):
        book.apply_result(final.result)
        book.save()
    elif isinstance(final, ErrorEvent):
        raise click.ClickException(final.error)

@cli.command()
@click.argument('prompt')
@click.option('--system', '-s', default='You are a helpful writing assistant.', help='System message')
@click.option('--stream', 'use_stream', is_flag=True, help='Print tokens as they arrive')
@click.option('--temperature', type=float, default=0.7, help='Sampling temperature')
@click.option('--max-tokens', type=int, default=2000, help='Max tokens to generate')
@click.pass_context
def complete(ctx: click.Context, prompt: str, system: str, use_stream: bool, temperature: float, max_tokens: int):
    """Run one completion through the provider fallback chain."""
    logger = ctx.obj['logger']
    generator = ctx.obj.get('generator') or FallbackGenerator.from_config(ctx.obj['config'])
    messages = [{"role": "system", "content": system}, {"role": "user", "content": prompt}]

    try:
        if not use_stream:
            completion = generator.generate(messages, temperature=temperature, max_tokens=max_tokens)
            click.echo(completion.content)
            logger.info(f"Answered by {completion.provider_id}/{completion.model_id}")
            return

        for item in generator.generate_stream(messages, temperature=temperature, max_tokens=max_tokens):
            if isinstance(item, StreamToken):
                click.echo(item.text, nl=False)
            elif isinstance(item, StreamReset):
                click.echo(f"\n[{item.provider_id}/{item.model_id} failed, retrying]\n", err=True)
            elif isinstance(item, StreamSummary):
                click.echo()
                logger.info(f"Answered by {item.provider_id}/{item.model_id}")
    except AllProvidersFailedError as e:
        logger.error(f"Completion failed: {e}")
        raise click.ClickException(str(e))

@cli.command()
@click.argument('notebook', type=click.Path(exists=True, dir_okay=False))
def show(notebook: str):
    """Show a notebook's sections and plan."""
    console = Console()
    book = NotebookFile.load(Path(notebook))
    memory = book.ai_memory or {}

    console.print(f"[bold]{book.title or 'Untitled'}[/bold]  phase: {memory.get('currentPhase', 'planning')}")

    sections = Table(title="Sections")
    sections.add_column("Title")
    sections.add_column("Chars", justify="right")
    sections.add_column("Preview")
    for s in book.sections:
        sections.add_row(s["title"], str(len(s["content"])), s["content"][:60].replace("\n", " "))
    console.print(sections)

    tasks = (memory.get("plan") or {}).get("tasks") or []
    if tasks:
        table = Table(title="Tasks")
        table.add_column("#", justify="right")
        table.add_column("Action")
        table.add_column("Section")
        table.add_column("Done")
        for i, t in enumerate(tasks, 1):
            table.add_row(str(i), t.get("action", ""), t.get("section", ""), "yes" if t.get("done") else "")
        console.print(table)

@cli.command('init-config')
@click.argument('path', type=click.Path(dir_okay=False))
def init_config(path: str):
    """Write the default configuration to PATH."""
    Config().to_yaml(Path(path))
    click.echo(f"Wrote default configuration to {path}")

def main():
    cli()

if __name__ == '__main__':
    main()
