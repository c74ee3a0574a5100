"""Tests for app.services.topics."""
import json

from app.services.llm import LLMService
from app.services.topics import extract_topics, extract_topics_local

SYLLABUS = """
PHYSICS - SEMESTER 2
Unit 1: Thermodynamics (15 marks)
Unit II - Optics [10 marks]
Chapter 3. Waves and Oscillations
1. Modern Physics
Previous year questions
Q1. Explain the first law of thermodynamics.
Q2. State the laws of thermodynamics and derive efficiency.
Q3. Describe interference in optics.
"""


class FakeConverseClient:
    def __init__(self, text):
        self.text = text
        self.calls = []

    def converse(self, **kwargs):
        self.calls.append(kwargs)
        return {"output": {"message": {"content": [{"text": self.text}]}}}


def test_local_extraction_reads_headings_and_marks():
    topics = {t.name: t for t in extract_topics_local(SYLLABUS)}

    assert set(topics) == {"Thermodynamics", "Optics", "Waves and Oscillations", "Modern Physics"}
    assert topics["Thermodynamics"].marks == 15
    assert topics["Optics"].marks == 10
    assert topics["Waves and Oscillations"].marks == 0


def test_local_extraction_counts_recurrences():
    topics = {t.name: t for t in extract_topics_local(SYLLABUS)}
    assert topics["Thermodynamics"].frequency == 2
    assert topics["Optics"].frequency == 1
    assert topics["Modern Physics"].frequency == 0


def test_local_extraction_ignores_plain_text():
    assert extract_topics_local("Just a paragraph about nothing in particular.") == []
    assert extract_topics_local("") == []


def test_local_provider_uses_heuristics():
    topics = extract_topics(SYLLABUS, LLMService("local"))
    assert "Thermodynamics" in {t.name for t in topics}


def test_model_answer_is_used_when_available():
    payload = {"topics": [
        {"name": "Thermodynamics", "frequency": 7, "marks": 15, "recency": 0.9},
        {"name": "Optics", "frequency": "3", "marks": None},
        {"name": "", "frequency": 2},
        "not a topic",
    ]}
    client = FakeConverseClient("Here you go:\n```json\n" + json.dumps(payload) + "\n```")
    llm = LLMService("bedrock", model_id="test-model", client=client)

    topics = extract_topics(SYLLABUS, llm)

    assert [(t.name, t.frequency, t.marks, t.recency) for t in topics] == [
        ("Thermodynamics", 7, 15.0, 0.9),
        ("Optics", 3, 0.0, None),
    ]
    assert client.calls[0]["modelId"] == "test-model"
    assert "Unit 1: Thermodynamics" in client.calls[0]["messages"][0]["content"][0]["text"]


def test_unusable_model_answer_falls_back_to_headings():
    llm = LLMService("bedrock", client=FakeConverseClient("{\"topics\": []}"))
    topics = extract_topics(SYLLABUS, llm)
    assert "Optics" in {t.name for t in topics}


def test_model_answer_of_wrong_shape_falls_back_to_headings():
    llm = LLMService("bedrock", client=FakeConverseClient('{"topics": 5}'), fallback_local=False)
    topics = extract_topics(SYLLABUS, llm)
    assert "Thermodynamics" in {t.name for t in topics}


def test_non_finite_model_values_are_dropped():
    text = '{"topics": [{"name": "Optics", "marks": 1e400}, {"name": "Waves", "frequency": 1e400}, {"name": "Algebra", "marks": 5}]}'
    llm = LLMService("bedrock", client=FakeConverseClient(text))
    assert [t.name for t in extract_topics(SYLLABUS, llm)] == ["Algebra"]
