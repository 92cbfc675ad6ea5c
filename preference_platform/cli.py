#!/usr/bin/env python3
"""
Command-line interface for the Preference Platform.

This CLI lets an annotator:
- Curate a comparison dataset stored in a JSON file
- Review comparison pairs and record preferences
- Run a simulated DPO training job with live progress
- Inspect the DPO and RLHF pipeline dashboards

Examples:
  Dataset:     preference-platform dataset add --prompt ... --response-a ... --response-b ...
  Annotate:    preference-platform annotate
  Train:       preference-platform train --epochs 3
  Pipelines:   preference-platform pipeline show rlhf
"""

import json
from functools import wraps
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn
from rich.table import Table

from .config import PlatformSettings
from .errors import PlatformError
from .logging_setup import setup_logging
from .models.comparison import Preference
from .models.pipeline import StepStatus
from .models.training import BATCH_SIZE_CHOICES, EPOCH_CHOICES, JobState, TrainingConfig
from .workflows.annotation import AnnotationSession, load_sample_items
from .workflows.dataset_store import DatasetStore
from .workflows.pipeline_engine import PipelineEngine, load_catalogue
from .workflows.training import EVENT_LOG, TrainingController

console = Console()

STATUS_STYLES = {
    StepStatus.COMPLETED: "green",
    StepStatus.IN_PROGRESS: "cyan",
    StepStatus.PENDING: "dim",
    StepStatus.ERROR: "red",
}


def handle_errors(func):
    """Report platform errors as CLI errors instead of tracebacks."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except PlatformError as exc:
            raise click.ClickException(str(exc)) from exc
    return wrapper


def load_dataset(path: Path) -> DatasetStore:
    """Read a dataset file into a fresh store (empty if the file is missing)."""
    store = DatasetStore()
    if path.exists():
        store.import_json(path.read_text())
    return store


def save_dataset(store: DatasetStore, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(store.export_json())


def _dataset_path(settings: PlatformSettings, file: Optional[str]) -> Path:
    return Path(file) if file else settings.dataset_file


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[: limit - 3] + "..."


dataset_file_option = click.option(
    "--file", "file", type=click.Path(dir_okay=False),
    help="Dataset JSON file (defaults to the configured dataset_file).",
)


@click.group()
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False),
              help="YAML settings file.")
@click.option("--log-level", default=None, help="Logging level (DEBUG, INFO, WARNING, ERROR).")
@click.pass_context
@handle_errors
def cli(ctx, config_path, log_level):
    """Curate preference data, annotate it, and simulate DPO training."""
    base = PlatformSettings.from_yaml(Path(config_path)) if config_path else None
    settings = PlatformSettings.from_env(base)
    setup_logging(log_level or settings.log_level)
    ctx.obj = settings


# === Dataset Commands ===

@cli.group()
def dataset():
    """Manage the comparison dataset."""


@dataset.command("show")
@dataset_file_option
@click.pass_obj
@handle_errors
def dataset_show(settings, file):
    """List comparison pairs and annotation counts."""
    store = load_dataset(_dataset_path(settings, file))
    breakdown = store.preference_breakdown()

    console.print(f"{store.annotated_count()}/{store.total_count()} Annotated")
    console.print(
        f"Response A: {breakdown['A']}  Response B: {breakdown['B']}  Ties: {breakdown['tie']}"
    )
    if not store.total_count():
        console.print("No comparison pairs yet.")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("ID", no_wrap=True)
    table.add_column("Prompt")
    table.add_column("Preference")
    for index, item in enumerate(store.items(), start=1):
        preference = store.preference_at(index - 1)
        table.add_row(
            str(index), item.id, _truncate(item.prompt, 60),
            preference.value if preference.is_set else "-",
        )
    console.print(table)


@dataset.command("add")
@dataset_file_option
@click.option("--prompt", required=True, help="Instruction or question.")
@click.option("--response-a", required=True, help="First response.")
@click.option("--response-b", required=True, help="Second response.")
@click.pass_obj
@handle_errors
def dataset_add(settings, file, prompt, response_a, response_b):
    """Add a comparison pair."""
    path = _dataset_path(settings, file)
    store = load_dataset(path)
    item = store.add(prompt, response_a, response_b)
    save_dataset(store, path)
    console.print(f"Added comparison {item.id} ({store.total_count()} total)")


@dataset.command("remove")
@dataset_file_option
@click.argument("item_id")
@click.pass_obj
@handle_errors
def dataset_remove(settings, file, item_id):
    """Remove a comparison pair by ID."""
    path = _dataset_path(settings, file)
    store = load_dataset(path)
    removed = store.remove(item_id)
    save_dataset(store, path)
    if removed:
        console.print(f"Removed {item_id}")
    else:
        console.print(f"No comparison with ID {item_id}; nothing removed")


@dataset.command("sample")
@dataset_file_option
@click.pass_obj
@handle_errors
def dataset_sample(settings, file):
    """Append the demonstration comparison pairs."""
    path = _dataset_path(settings, file)
    store = load_dataset(path)
    added = load_sample_items(store)
    save_dataset(store, path)
    console.print(f"Added {len(added)} sample comparisons")


@dataset.command("merge")
@dataset_file_option
@click.argument("source", type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
@handle_errors
def dataset_merge(settings, file, source):
    """Import a dataset export and append it."""
    path = _dataset_path(settings, file)
    store = load_dataset(path)
    count = store.import_json(Path(source).read_text())
    save_dataset(store, path)
    console.print(f"Imported {count} data points ({store.total_count()} total)")


@dataset.command("export")
@dataset_file_option
@click.option("--output", type=click.Path(dir_okay=False), help="Destination file.")
@click.pass_obj
@handle_errors
def dataset_export(settings, file, output):
    """Write a snapshot of the dataset."""
    store = load_dataset(_dataset_path(settings, file))
    if not store.total_count():
        raise click.ClickException("Dataset is empty; nothing to export")
    destination = Path(output) if output else Path(store.export_filename())
    save_dataset(store, destination)
    console.print(f"Exported {store.total_count()} comparisons to {destination}")


@dataset.command("pairs")
@dataset_file_option
@click.option("--output", type=click.Path(dir_okay=False), required=True,
              help="Destination JSONL file.")
@click.pass_obj
@handle_errors
def dataset_pairs(settings, file, output):
    """Write DPO chosen/rejected pairs as JSONL."""
    store = load_dataset(_dataset_path(settings, file))
    pairs = store.to_preference_pairs()
    destination = Path(output)
    destination.parent.mkdir(parents=True, exist_ok=True)
    with open(destination, "w") as f:
        for pair in pairs:
            f.write(json.dumps(pair) + "\n")
    console.print(f"Wrote {len(pairs)} preference pairs to {destination}")


# === Annotation Commands ===

ANNOTATE_CHOICES = {"a": Preference.A, "b": Preference.B, "t": Preference.TIE}


def _render_comparison(session: AnnotationSession) -> None:
    item = session.current_item
    preference = session.current_preference
    console.rule(f"Comparison {session.position_label} ({session.progress_percent:.0f}%)")
    console.print(Panel(item.prompt, title="Prompt"))
    console.print(Panel(item.response_a, title="Response A"))
    console.print(Panel(item.response_b, title="Response B"))
    if preference.is_set:
        console.print(f"Current preference: {preference.label}")


@cli.command()
@dataset_file_option
@click.pass_obj
@handle_errors
def annotate(settings, file):
    """Review comparison pairs and record preferences.

    Keys: a / b / t choose a preference, n next, p previous, s skip, q save and quit.
    """
    path = _dataset_path(settings, file)
    store = load_dataset(path)
    if not store.total_count():
        raise click.ClickException("Dataset is empty. Add pairs or run 'dataset sample' first.")

    session = AnnotationSession(store)
    while True:
        _render_comparison(session)
        key = click.prompt(
            "Choice", type=click.Choice(["a", "b", "t", "n", "p", "s", "q"]),
            show_choices=True,
        )
        if key == "q":
            break
        if key in ANNOTATE_CHOICES:
            reasoning = click.prompt("Reasoning (optional)", default="", show_default=False)
            annotation = session.annotate_current(ANNOTATE_CHOICES[key], reasoning)
            console.print(f"Preference saved: {annotation.preference.label}")
            if session.is_complete:
                console.print("All comparisons reviewed.")
                break
            session.advance()
        elif key == "n":
            session.advance()
        elif key == "p":
            session.retreat()
        elif key == "s":
            session.skip()
            console.print("Skipped")

    save_dataset(store, path)
    console.print(f"{store.annotated_count()}/{store.total_count()} Completed")


# === Training Commands ===

@cli.command()
@click.option("--model", "model_name", default="microsoft/DialoGPT-medium", show_default=True,
              help="Base model identifier.")
@click.option("--dataset-path", default="preference_dataset.json", show_default=True,
              help="Dataset reference recorded with the job.")
@click.option("--learning-rate", type=float, default=5e-5, show_default=True)
@click.option("--batch-size", type=click.Choice([str(b) for b in BATCH_SIZE_CHOICES]),
              default="4", show_default=True)
@click.option("--epochs", type=click.Choice([str(e) for e in EPOCH_CHOICES]),
              default="3", show_default=True)
@click.option("--beta", "beta_value", type=float, default=0.1, show_default=True)
@click.option("--warmup-steps", type=int, default=100, show_default=True)
@click.option("--save-steps", type=int, default=500, show_default=True)
@click.option("--tick-interval", type=float, default=None,
              help="Seconds between simulated steps (overrides settings).")
@click.pass_obj
@handle_errors
def train(settings, model_name, dataset_path, learning_rate, batch_size, epochs,
          beta_value, warmup_steps, save_steps, tick_interval):
    """Run a simulated DPO training job. Ctrl-C stops it."""
    config = TrainingConfig.build(
        model_name=model_name,
        dataset_path=dataset_path,
        learning_rate=learning_rate,
        batch_size=int(batch_size),
        epochs=int(epochs),
        beta_value=beta_value,
        warmup_steps=warmup_steps,
        save_steps=save_steps,
    )
    controller = TrainingController(
        steps_per_epoch=settings.steps_per_epoch,
        log_every=settings.log_every,
        log_capacity=settings.log_capacity,
        tick_interval=settings.tick_interval if tick_interval is None else tick_interval,
    )

    with Progress(
        TextColumn("[bold]Epoch {task.fields[epoch]}"),
        BarColumn(),
        TaskProgressColumn(),
        TextColumn("step {task.completed:.0f}/{task.total:.0f}"),
        console=console,
    ) as progress:
        bar = progress.add_task("training", total=config.total_steps(settings.steps_per_epoch), epoch=0)

        def on_event(name, snapshot):
            progress.update(bar, completed=snapshot.current_step, epoch=snapshot.current_epoch)
            if name == EVENT_LOG:
                progress.console.print(snapshot.last_log_line)

        controller.subscribe(on_event)
        controller.start(config)
        try:
            while not controller.wait(0.1):
                pass
        except KeyboardInterrupt:
            controller.stop()

    final = controller.snapshot()
    if final.state is JobState.COMPLETED:
        console.print("[green]Training Complete![/green] DPO training has finished successfully.")
    else:
        console.print(
            f"[red]Training Stopped[/red] at step {final.current_step}/{final.total_steps} "
            f"({final.progress_percent:.0f}%)."
        )


# === Pipeline Commands ===

@cli.group()
def pipeline():
    """Inspect the DPO and RLHF pipeline dashboards."""


def _engine(settings: PlatformSettings) -> PipelineEngine:
    return PipelineEngine(
        catalogue=load_catalogue(settings.catalogue_path),
        default_pipeline=settings.default_pipeline,
    )


@pipeline.command("list")
@click.pass_obj
@handle_errors
def pipeline_list(settings):
    """List the available pipelines."""
    engine = _engine(settings)
    for name in engine.available_pipelines():
        console.print(f"{name:<8} {engine.catalogue[name].get('title', '')}")


@pipeline.command("show")
@click.argument("name", required=False)
@click.option("--set", "updates", multiple=True, metavar="STEP=STATUS",
              help="Override a step status before rendering (repeatable).")
@click.option("--pause", is_flag=True, help="Show the pipeline as paused.")
@click.option("--reset", "reset", is_flag=True,
              help="Restore every step to its initial status before applying --set.")
@click.pass_obj
@handle_errors
def pipeline_show(settings, name, updates, pause, reset):
    """Render a pipeline's steps and overall progress."""
    engine = _engine(settings)
    if name:
        engine.select_pipeline(name)
    if reset:
        engine.reset()
        console.print(f"Reset {engine.name} to its initial step statuses")
    for update in updates:
        step_id, sep, status = update.partition("=")
        if not sep:
            raise click.BadParameter(f"Expected STEP=STATUS, got '{update}'", param_hint="--set")
        engine.set_step_status(step_id.strip(), status.strip())
    if pause:
        engine.toggle_running()

    state = "Running" if engine.running else "Paused"
    console.print(f"[bold]{engine.pipeline.title}[/bold] ({state})")
    console.print(f"{engine.summary()} - {engine.completion_percent():.0f}%")

    table = Table(show_header=True, header_style="bold")
    table.add_column("Step")
    table.add_column("Status")
    table.add_column("Duration")
    table.add_column("Details")
    for step in engine.steps:
        style = STATUS_STYLES[step.status]
        table.add_row(
            step.title,
            f"[{style}]{step.status.value}[/{style}]",
            step.duration or "-",
            "\n".join(step.details),
        )
    console.print(table)


def main():
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
