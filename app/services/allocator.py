"""
Répartition d'un budget d'étude fixe (N jours x minutes/jour) entre les sujets.

Tout est calculé en créneaux de `slot_minutes` pour que chaque allocation
soit un multiple du créneau et que la somme ne dépasse jamais le budget.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List

from app.core.errors import ScheduleError
from app.services.weightage import WeightedTopic


@dataclass
class AllocationConfig:
    days: int = 3
    minutes_per_day: int = 360
    min_topic_minutes: int = 30
    slot_minutes: int = 15
    max_topic_share: float = 0.4

    def validate(self) -> None:
        if self.slot_minutes < 1:
            raise ScheduleError("slot_minutes must be at least 1")
        if self.days < 1:
            raise ScheduleError("days must be at least 1")
        if self.minutes_per_day < self.slot_minutes:
            raise ScheduleError("minutes_per_day must hold at least one slot")
        if self.min_topic_minutes < self.slot_minutes:
            raise ScheduleError("min_topic_minutes must be at least one slot")
        if not 0 < self.max_topic_share <= 1:
            raise ScheduleError("max_topic_share must be within (0, 1]")

    @property
    def day_slots(self) -> int:
        return self.minutes_per_day // self.slot_minutes

    @property
    def budget_slots(self) -> int:
        return self.day_slots * self.days

    @property
    def min_slots(self) -> int:
        return math.ceil(self.min_topic_minutes / self.slot_minutes)

    @property
    def cap_slots(self) -> int:
        return max(self.min_slots, int(self.max_topic_share * self.budget_slots))


@dataclass
class Allocation:
    topic: WeightedTopic
    slots: int = 0
    minutes: int = 0
    skipped: bool = False
    capped: bool = False


@dataclass
class DayBlock:
    day: int
    position: int
    topic: WeightedTopic
    minutes: int
    part: int = 1
    parts: int = 1


@dataclass
class AllocationResult:
    config: AllocationConfig
    allocations: List[Allocation] = field(default_factory=list)
    blocks: List[DayBlock] = field(default_factory=list)

    @property
    def total_minutes(self) -> int:
        return self.config.budget_slots * self.config.slot_minutes

    @property
    def allocated_minutes(self) -> int:
        return sum(a.minutes for a in self.allocations)

    @property
    def skipped(self) -> List[Allocation]:
        return [a for a in self.allocations if a.skipped]

    def day_minutes(self) -> Dict[int, int]:
        out: Dict[int, int] = {d: 0 for d in range(1, self.config.days + 1)}
        for b in self.blocks:
            out[b.day] += b.minutes
        return out


def _distribute(admitted: List[Allocation], remaining: int, cap: int) -> None:
    """
    Distribue `remaining` créneaux proportionnellement à la priorité
    (méthode du plus fort reste), sans dépasser `cap` par sujet.
    Ce qui ne peut être placé (tous plafonnés) reste non alloué.
    """
    while remaining > 0:
        eligible = [a for a in admitted if a.slots < cap and a.topic.priority > 0]
        if not eligible:
            break

        total_priority = sum(a.topic.priority for a in eligible)
        shares = [(a, remaining * a.topic.priority / total_priority) for a in eligible]

        given = 0
        for a, share in shares:
            take = min(int(share), cap - a.slots)
            a.slots += take
            given += take

        left = remaining - given
        by_remainder = sorted(
            shares,
            key=lambda s: (-(s[1] - int(s[1])), -s[0].topic.priority, s[0].topic.name.lower()),
        )
        for a, _ in by_remainder:
            if left == 0:
                break
            if a.slots < cap:
                a.slots += 1
                left -= 1
                given += 1

        if given == 0:
            break
        remaining -= given


def _pack_days(admitted: List[Allocation], config: AllocationConfig) -> List[DayBlock]:
    blocks: List[DayBlock] = []
    positions: Dict[int, int] = {}
    day, free = 1, config.day_slots

    for a in admitted:
        pieces = []
        left = a.slots
        while left > 0:
            if free == 0:
                day, free = day + 1, config.day_slots
            take = min(left, free)
            pieces.append((day, take))
            free -= take
            left -= take

        for part, (d, take) in enumerate(pieces, start=1):
            positions[d] = positions.get(d, 0) + 1
            blocks.append(
                DayBlock(
                    day=d,
                    position=positions[d],
                    topic=a.topic,
                    minutes=take * config.slot_minutes,
                    part=part,
                    parts=len(pieces),
                )
            )
    return blocks


def allocate(topics: List[WeightedTopic], config: AllocationConfig | None = None) -> AllocationResult:
    """
    Alloue le temps d'étude.

    1. Les sujets sont admis par priorité décroissante tant que leur minimum
       tient dans le budget ; les autres sont écartés.
    2. Chaque sujet admis reçoit son minimum, le reste est distribué au
       prorata de la priorité (plafonné à `max_topic_share` du budget).
    3. Les sujets sont placés jour par jour dans l'ordre de priorité ; un
       sujet qui déborde est découpé sur le jour suivant.
    """
    config = config or AllocationConfig()
    config.validate()
    if not topics:
        raise ScheduleError("At least one topic is required to build a schedule")

    ordered = sorted(topics, key=lambda t: (-t.priority, t.name.lower()))
    budget = config.budget_slots

    allocations = [Allocation(topic=t) for t in ordered]
    used = 0
    for a in allocations:
        if used + config.min_slots <= budget:
            a.slots = config.min_slots
            used += config.min_slots
        else:
            a.skipped = True

    admitted = [a for a in allocations if not a.skipped]
    _distribute(admitted, budget - used, config.cap_slots)

    for a in allocations:
        a.minutes = a.slots * config.slot_minutes
        a.capped = not a.skipped and a.slots >= config.cap_slots and a.slots > config.min_slots

    return AllocationResult(
        config=config,
        allocations=allocations,
        blocks=_pack_days(admitted, config),
    )
