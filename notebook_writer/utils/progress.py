from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn, TimeElapsedColumn
from typing import Optional

def create_progress(transient: bool = False) -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        transient=transient,
    )

def update_task_progress(progress: Progress, task_id, plan: Optional[dict], description: str) -> None:
    """Sync the bar with the done/total task counts of a wire-format plan."""
    tasks = (plan or {}).get("tasks") or []
    total = len(tasks) or None
    completed = sum(1 for t in tasks if t.get("done"))
    progress.update(task_id, total=total, completed=completed, description=description)
