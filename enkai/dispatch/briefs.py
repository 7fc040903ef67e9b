"""Markdown task briefs and hand-off instructions for manual parallel runs."""

from .splitter import SplitResult
from .tasks import TaskDescriptor


def format_task_brief(task: TaskDescriptor) -> str:
    created = task.created_at.strftime("%Y-%m-%d %H:%M:%S") if task.created_at else "-"
    return (
        f"# Enkai task: {task.id}\n\n"
        f"## Summary\n{task.instructions}\n\n"
        f"## Task kind\n{task.kind.value}\n\n"
        f"## Priority\n{task.priority.value}\n\n"
        f"## Expected result\n{task.expected_result}\n\n"
        "## Steps\n"
        "1. Read this brief\n"
        "2. Carry out the task\n"
        "3. Keep the implementation self-contained\n"
        "   - one file, one complete feature\n"
        "   - minimal external dependencies\n"
        "   - duplicated code is acceptable\n"
        "4. Update the status when done\n\n"
        "## Notes\n"
        "- Other tasks run in parallel with this one\n"
        f"- Only edit {task.destination} to avoid conflicts\n"
        "- Commit when finished\n\n"
        "---\n"
        f"Status: {task.status.value}\n"
        f"Created: {created}\n"
    )


def format_execution_instructions(result: SplitResult) -> str:
    """How to fan the batch out across separate assistant sessions by hand."""
    assignments = "\n".join(
        f"   - Session-{task.id.rsplit('-', 1)[-1]}: {task.destination}"
        for task in result.tasks
    )
    return (
        "# Enkai parallel run\n\n"
        "## Prepare\n"
        f"1. Open {result.total_files} assistant sessions\n"
        "2. Give each session one task brief:\n"
        f"{assignments}\n\n"
        "## Run\n"
        "1. Paste each brief into its session\n"
        "2. Start them all at once\n"
        "3. Commit each one as it finishes\n\n"
        "## Merge\n"
        "1. Merge to main once every task is done\n"
        "2. Conflicts should not occur, since every task owns its own file\n\n"
        f"Estimated completion time: {result.estimated_time}\n"
    )
