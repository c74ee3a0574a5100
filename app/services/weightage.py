"""
Normalisation de la pondération des sujets.

Chaque sujet arrive avec des signaux bruts (fréquence dans les PYQ, barème,
récence). On les ramène sur une échelle commune puis on les combine en un
score de priorité 0..100, comparable d'un sujet à l'autre.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

EQUAL_PRIORITY = 50.0


@dataclass
class TopicSignal:
    name: str
    frequency: int = 0
    marks: float = 0.0
    recency: Optional[float] = None  # 0..1, 1 = tombé récemment


@dataclass
class WeightageConfig:
    frequency_weight: float = 0.5
    marks_weight: float = 0.35
    recency_weight: float = 0.15

    @property
    def total(self) -> float:
        return self.frequency_weight + self.marks_weight + self.recency_weight


@dataclass
class WeightedTopic:
    name: str
    frequency: int
    marks: float
    recency: Optional[float]
    priority: float


def _key(name: str) -> str:
    return " ".join(name.split()).lower()


def merge_signals(signals: Iterable[TopicSignal]) -> List[TopicSignal]:
    """
    Fusionne les doublons (casse / espaces ignorés).
    Fréquences et barèmes s'additionnent, la récence garde le max.
    Le premier libellé rencontré est conservé.
    """
    merged: Dict[str, TopicSignal] = {}
    for s in signals:
        name = " ".join((s.name or "").split())
        if not name:
            raise ValueError("Topic name must not be empty")
        if not math.isfinite(s.marks) or (s.recency is not None and not math.isfinite(s.recency)):
            raise ValueError(f"Non-finite signal for topic '{name}'")
        if s.frequency < 0 or s.marks < 0:
            raise ValueError(f"Negative signal for topic '{name}'")
        if s.recency is not None and not 0.0 <= s.recency <= 1.0:
            raise ValueError(f"Recency for topic '{name}' must be within [0, 1]")

        k = _key(name)
        current = merged.get(k)
        if current is None:
            merged[k] = TopicSignal(name=name, frequency=s.frequency, marks=s.marks, recency=s.recency)
            continue

        current.frequency += s.frequency
        current.marks += s.marks
        if not math.isfinite(current.marks):
            raise ValueError(f"Marks for topic '{name}' are too large")
        if s.recency is not None:
            current.recency = s.recency if current.recency is None else max(current.recency, s.recency)
    return list(merged.values())


def normalize(signals: Iterable[TopicSignal], config: Optional[WeightageConfig] = None) -> List[WeightedTopic]:
    """
    Calcule la priorité de chaque sujet.

    Chaque signal est divisé par son maximum sur l'ensemble des sujets, puis
    combiné par moyenne pondérée. Si aucun sujet n'a de signal, tous reçoivent
    la même priorité (répartition égale du temps).
    Résultat trié par priorité décroissante puis par nom.
    """
    config = config or WeightageConfig()
    weights = (config.frequency_weight, config.marks_weight, config.recency_weight)
    if not all(math.isfinite(w) for w in weights):
        raise ValueError("Weightage weights must be finite numbers")
    if config.total <= 0 or min(config.frequency_weight, config.marks_weight, config.recency_weight) < 0:
        raise ValueError("Weightage weights must be non-negative and not all zero")

    topics = merge_signals(signals)
    if not topics:
        return []

    max_freq = max(t.frequency for t in topics)
    max_marks = max(t.marks for t in topics)
    max_recency = max((t.recency or 0.0) for t in topics)

    # un signal absent de tous les sujets ne compte pas dans le dénominateur
    active_total = sum(
        weight
        for weight, maximum in (
            (config.frequency_weight, max_freq),
            (config.marks_weight, max_marks),
            (config.recency_weight, max_recency),
        )
        if maximum > 0
    )

    def ratio(value: float, maximum: float) -> float:
        return value / maximum if maximum > 0 else 0.0

    out: List[WeightedTopic] = []
    for t in topics:
        score = (
            config.frequency_weight * ratio(t.frequency, max_freq)
            + config.marks_weight * ratio(t.marks, max_marks)
            + config.recency_weight * ratio(t.recency or 0.0, max_recency)
        )
        out.append(
            WeightedTopic(
                name=t.name,
                frequency=t.frequency,
                marks=t.marks,
                recency=t.recency,
                priority=round(100.0 * score / active_total, 2) if active_total > 0 else 0.0,
            )
        )

    if all(t.priority == 0 for t in out):
        for t in out:
            t.priority = EQUAL_PRIORITY

    out.sort(key=lambda t: (-t.priority, t.name.lower()))
    return out
