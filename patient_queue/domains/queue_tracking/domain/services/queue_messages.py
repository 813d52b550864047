"""Patient-facing wording for a QueueStatus."""

from ..entities.queue_status import QueueStatus
from ..value_objects.queue_stage import QueueStage

_ORDINAL_PHRASES = {
    1: "You're second in the queue",
    2: "You're third in the queue",
    3: "You're fourth in the queue",
}


def format_wait_time(minutes: int) -> str:
    """Format a wait estimate as a human-readable range.

    Under an hour the estimate is shown with a ±5 minute buffer, e.g. ``"10-20 minutes"``.
    """
    if minutes <= 0:
        return "No wait"

    if minutes < 60:
        return f"{max(0, minutes - 5)}-{minutes + 5} minutes"

    hours, remaining = divmod(minutes, 60)
    if remaining == 0:
        return f"{hours} {'hour' if hours == 1 else 'hours'}"
    return f"{hours}h {remaining}m"


def queue_status_message(status: QueueStatus) -> str:
    """Sentence shown next to the estimate; empty when the queue does not apply."""
    if status.stage is QueueStage.NOT_APPLICABLE:
        return ""
    if status.stage is QueueStage.FINISHED:
        return "Your visit is complete"
    if status.stage is QueueStage.IN_PROGRESS:
        return "You're being seen now"
    if status.stage is QueueStage.ENCOUNTER_PLANNED:
        return f"Your appointment will begin within {status.estimated_wait_minutes} minutes"
    if status.position == 0:
        return "You're next in the queue"
    if status.position in _ORDINAL_PHRASES:
        return _ORDINAL_PHRASES[status.position]
    return f"There are {status.position} patients ahead of you"
