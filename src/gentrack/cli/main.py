import asyncio
import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from gentrack.api import track
from gentrack.config import TrackerConfig
from gentrack.context import TrackerScope
from gentrack.exceptions import SubmissionError
from gentrack.models import GenerationParams
from gentrack.status import ItemKind, ItemStatus
from gentrack.store import WorkItem
from gentrack.tracker import GenerationJobTracker
from gentrack.utils.logging import setup_logging, tracking_context

app = typer.Typer(no_args_is_help=True)

_STATUS_STYLES = {
    ItemStatus.PENDING: "white",
    ItemStatus.QUEUED: "cyan",
    ItemStatus.PROCESSING: "yellow",
    ItemStatus.COMPLETED: "green",
    ItemStatus.FAILED: "red",
}


def print_items(tracker: GenerationJobTracker, title: str) -> None:
    table = Table("Item", "Status", "Task ID", "Artifacts", "Error", title=title)
    for item in tracker.items:
        style = _STATUS_STYLES[item.status]
        table.add_row(
            item.id,
            f"[{style}]{item.status.value}[/{style}]",
            item.remote_task_id or "",
            str(len(item.artifacts)),
            item.error_message or "",
        )
    Console().print(table)


async def _watch_until_done(scope: TrackerScope) -> str | None:
    async with scope as tracker:
        session = tracker.session
        if session is None:
            return None
        return await session.wait()


def _configure(verbose: bool, json_logs: bool) -> TrackerConfig:
    setup_logging(level=logging.DEBUG if verbose else logging.WARNING, json_logs=json_logs)
    return TrackerConfig.from_env()


@app.command(name="watch")
def watch(
    container_id: Annotated[str, typer.Argument(help="Project or job container id")],
    refs: Annotated[
        list[str],
        typer.Argument(help="Refs to poll: item ids for prompts, task ids otherwise"),
    ],
    kind: Annotated[ItemKind, typer.Option("--kind", "-k", help="Kind of job")] = ItemKind.PROMPT,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
    json_logs: Annotated[
        bool, typer.Option("--json-logs", help="Log one JSON object per line")
    ] = False,
):
    """Poll outstanding jobs until none is queued or processing"""
    config = _configure(verbose=verbose, json_logs=json_logs)
    items = [
        WorkItem(id=ref, kind=kind, status=ItemStatus.QUEUED, remote_task_id=ref) for ref in refs
    ]
    scope = track(container_id=container_id, kind=kind, items=items, config=config)
    with tracking_context(container_id=container_id, kind=kind.value):
        reason = asyncio.run(_watch_until_done(scope))
    print_items(scope.tracker, title=f"{container_id} ({reason or 'idle'})")


@app.command(name="submit")
def submit(
    container_id: Annotated[str, typer.Argument(help="Project or job container id")],
    item_ids: Annotated[list[str], typer.Argument(help="Items to submit in one batch")],
    kind: Annotated[ItemKind, typer.Option("--kind", "-k", help="Kind of job")] = ItemKind.PROMPT,
    width: Annotated[int, typer.Option(help="Output width")] = 1024,
    height: Annotated[int, typer.Option(help="Output height")] = 1024,
    count: Annotated[int, typer.Option(help="Outputs per item")] = 1,
    prompt: Annotated[str | None, typer.Option(help="Prompt for image-driven jobs")] = None,
    image_url: Annotated[
        list[str] | None,
        typer.Option("--image-url", help="Reference image url, one per item, in order"),
    ] = None,
    watch_: Annotated[
        bool, typer.Option("--watch/--no-watch", help="Poll until the batch settles")
    ] = True,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
    json_logs: Annotated[
        bool, typer.Option("--json-logs", help="Log one JSON object per line")
    ] = False,
):
    """Submit items as one batch and optionally poll them"""
    config = _configure(verbose=verbose, json_logs=json_logs)
    urls = image_url or []
    if urls and len(urls) != len(item_ids):
        raise typer.BadParameter("Pass one --image-url per item", param_hint="--image-url")
    items = [
        WorkItem(
            id=item_id,
            kind=kind,
            payload={"imageUrl": urls[index]} if urls else {},
        )
        for index, item_id in enumerate(item_ids)
    ]
    params = GenerationParams(width=width, height=height, count=count, prompt=prompt)
    scope = track(container_id=container_id, kind=kind, items=items, config=config, resume=False)

    async def run() -> str | None:
        async with scope as tracker:
            await tracker.submit(params)
            session = tracker.session
            if not watch_ or session is None:
                return None
            return await session.wait()

    with tracking_context(container_id=container_id, kind=kind.value):
        try:
            reason = asyncio.run(run())
        except SubmissionError as error:
            Console(stderr=True).print(f"[red]Submission failed:[/red] {error}")
            raise typer.Exit(code=1) from error
    print_items(scope.tracker, title=f"{container_id} ({reason or 'submitted'})")


if __name__ == "__main__":
    app()
