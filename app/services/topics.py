"""
Extraction des sujets et de leur pondération à partir du texte d'un syllabus / PYQ.
"""
import logging
import math
import re
from typing import Any, Dict, List, Optional

from app.services.llm import LLMService
from app.services.weightage import TopicSignal
from app.utils.text_utils import normalize_text

logger = logging.getLogger(__name__)

MAX_TOPICS = 50
MAX_SOURCE_CHARS = 20000

_HEADING_RE = re.compile(
    r"^(?:unit|chapter|module|section|topic|part)\s*[-:.]?\s*(?:[0-9]+|[ivxlc]+)?\s*[-:.)]\s*(?P<name>.+)$",
    re.IGNORECASE,
)
_NUMBERED_RE = re.compile(r"^\d{1,2}(?:\.\d{1,2})*[.)]\s+(?P<name>[A-Z][^.?!]{2,80})$")
_MARKS_RE = re.compile(r"[\(\[]?\s*(?P<marks>\d+(?:\.\d+)?)\s*(?:marks?|m)\b\s*[\)\]]?", re.IGNORECASE)

SYSTEM_PROMPT = (
    "You analyse exam syllabi and previous year question papers (PYQ) for students. "
    "Identify the examinable topics and, for each one, how many times it was asked in the "
    "question papers (frequency), the marks it carries, and how recently it appeared "
    "(recency between 0 and 1, 1 = latest paper). Answer ONLY with JSON: "
    "{\"topics\":[{\"name\":str,\"frequency\":int,\"marks\":number,\"recency\":number|null}]}"
)


def _clean_name(raw: str) -> tuple[str, float]:
    marks = 0.0
    m = _MARKS_RE.search(raw)
    if m:
        marks = float(m.group("marks"))
        raw = raw[:m.start()] + raw[m.end():]
    name = normalize_text(raw).strip(" -:;,.")
    return name[:120], marks


def extract_topics_local(text: str) -> List[TopicSignal]:
    """
    Heuristique sans modèle : titres du type "Unit 3: Thermodynamics (15 marks)",
    "Chapter 2 - Algebra" ou lignes numérotées. La fréquence est le nombre de
    reprises du nom dans le reste du texte.
    """
    found: Dict[str, TopicSignal] = {}
    lowered = (text or "").lower()

    for line in (text or "").splitlines():
        line = normalize_text(line)
        if not line:
            continue
        match = _HEADING_RE.match(line) or _NUMBERED_RE.match(line)
        if not match:
            continue
        name, marks = _clean_name(match.group("name"))
        if len(name) < 3:
            continue

        key = name.lower()
        if key in found:
            found[key].marks += marks
            continue
        if len(found) >= MAX_TOPICS:
            break
        found[key] = TopicSignal(name=name, marks=marks)

    for key, signal in found.items():
        signal.frequency = max(0, lowered.count(key) - 1)

    return list(found.values())


def _coerce(item: Any) -> Optional[TopicSignal]:
    if not isinstance(item, dict):
        return None
    name = normalize_text(str(item.get("name") or ""))
    if not name:
        return None
    try:
        frequency = max(0, int(item.get("frequency") or 0))
        marks = max(0.0, float(item.get("marks") or 0))
        recency = item.get("recency")
        recency = None if recency is None else float(recency)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(marks) or (recency is not None and not math.isfinite(recency)):
        return None
    if recency is not None:
        recency = min(1.0, max(0.0, recency))
    return TopicSignal(name=name[:120], frequency=frequency, marks=marks, recency=recency)


def extract_topics(text: str, llm: LLMService) -> List[TopicSignal]:
    """
    Demande la pondération au modèle ; heuristique locale si pas de modèle
    ou si la réponse est inexploitable.
    """
    if not (text or "").strip():
        return []

    data = llm.complete_json(SYSTEM_PROMPT, f"Syllabus / question papers:\n{text[:MAX_SOURCE_CHARS]}")
    items = data.get("topics") if data is not None else None
    if isinstance(items, list):
        topics = [t for t in (_coerce(i) for i in items) if t is not None]
        if topics:
            return topics[:MAX_TOPICS]
    if data is not None:
        logger.warning("Model returned no usable topics, using local extraction.")

    return extract_topics_local(text)
