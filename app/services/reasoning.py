from typing import Dict, List, Optional

from app.services.allocator import Allocation, AllocationResult, DayBlock
from app.services.weightage import WeightedTopic

HIGH_PRIORITY = 70.0
MEDIUM_PRIORITY = 40.0


def priority_tier(priority: float) -> str:
    if priority >= HIGH_PRIORITY:
        return "high"
    if priority >= MEDIUM_PRIORITY:
        return "medium"
    return "low"


def _signals(topic: WeightedTopic) -> str:
    parts: List[str] = []
    if topic.frequency:
        times = "time" if topic.frequency == 1 else "times"
        parts.append(f"asked {topic.frequency} {times} in previous year questions")
    if topic.marks:
        parts.append(f"carries {topic.marks:g} marks")
    if topic.recency:
        parts.append("appeared recently" if topic.recency >= 0.5 else "appeared in older papers")
    if not parts:
        return "no PYQ or marks data available"
    return ", ".join(parts)


def _fmt_minutes(minutes: int) -> str:
    hours, mins = divmod(minutes, 60)
    if hours and mins:
        return f"{hours}h{mins:02d}"
    if hours:
        return f"{hours}h"
    return f"{mins} min"


def explain_allocation(a: Allocation, result: AllocationResult) -> str:
    t = a.topic
    head = f"{priority_tier(t.priority).capitalize()} priority ({t.priority:g}/100): {_signals(t)}."

    if a.skipped:
        return (
            f"{head} Not scheduled: the {result.config.days}-day budget was used up by "
            f"higher-priority topics before its {result.config.min_topic_minutes} min minimum could fit."
        )

    share = 100.0 * a.minutes / result.total_minutes if result.total_minutes else 0.0
    text = f"{head} Allocated {_fmt_minutes(a.minutes)} ({share:.0f}% of the study budget)"
    if a.slots <= result.config.min_slots:
        text += ", the minimum per topic"
    elif a.capped:
        text += f", capped at {result.config.max_topic_share:.0%} of the budget"
    return text + "."


def explain_block(
    block: DayBlock, allocation: Allocation, result: AllocationResult, previous_day: Optional[int] = None
) -> str:
    """
    Justification d'un créneau journalier (inclut l'info de découpage).
    previous_day : jour de la partie précédente du même sujet.
    """
    text = explain_allocation(allocation, result)
    if block.parts > 1:
        text += f" Part {block.part} of {block.parts} on day {block.day}"
        if block.part > 1 and previous_day is not None:
            text += f", continued from day {previous_day}"
        text += "."
    return text


def annotate(result: AllocationResult) -> dict:
    """
    Retourne {"blocks": [(block, reasoning)], "skipped": [(allocation, reasoning)]}.
    """
    by_name = {a.topic.name: a for a in result.allocations}
    last_day: Dict[str, int] = {}
    blocks = []
    for b in result.blocks:
        blocks.append((b, explain_block(b, by_name[b.topic.name], result, last_day.get(b.topic.name))))
        last_day[b.topic.name] = b.day
    skipped = [(a, explain_allocation(a, result)) for a in result.skipped]
    return {"blocks": blocks, "skipped": skipped}
