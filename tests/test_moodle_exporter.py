"""Tests for the Moodle XML export engine."""
import xml.etree.ElementTree as ET
from uuid import uuid4

import pytest

from testgen.exceptions import ConversionError
from testgen.models.schemas import ExportableAnswer, ExportableQuestion
from testgen.services.moodle_exporter import (
    MAX_TEXT_LENGTH,
    XML_DECLARATION,
    MoodleXMLExporter,
    sanitize_text,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _question(question_type: str, text: str = "Question?", points: float = 1.0) -> ExportableQuestion:
    return ExportableQuestion(id=uuid4(), question_text=text, question_type=question_type, points=points)


def _answers(*pairs):
    return [ExportableAnswer(text=text, is_correct=correct) for text, correct in pairs]


def _export(questions, answers_by_id=None, title="Quiz"):
    return MoodleXMLExporter().export(title, questions, answers_by_id or {})


def _parse(xml: str) -> ET.Element:
    return ET.fromstring(xml.encode("utf-8"))


def _fractions(question_el: ET.Element):
    return [a.get("fraction") for a in question_el.findall("answer")]


# ---------------------------------------------------------------------------
# Document shape
# ---------------------------------------------------------------------------

def test_output_has_declaration_and_single_quiz_root():
    q = _question("single_choice")
    xml = _export([q], {q.id: _answers(("A", True), ("B", False))})

    assert xml.startswith(XML_DECLARATION)
    assert xml.count("<quiz>") == 1
    assert xml.rstrip().endswith("</quiz>")
    assert _parse(xml).tag == "quiz"


def test_empty_export_is_still_a_quiz():
    root = _parse(_export([]))
    assert root.tag == "quiz"
    assert list(root) == []


def test_title_is_written_as_comment():
    xml = _export([], title="Biology -- week 3")
    assert "<!-- quiz: Biology - - week 3 -->" in xml


def test_questions_keep_their_order():
    questions = [_question("short_answer", text=f"Q{i}") for i in range(5)]
    answers = {q.id: _answers(("x", True)) for q in questions}
    root = _parse(_export(questions, answers))
    assert [q.find("name/text").text for q in root.findall("question")] == [f"Q{i}" for i in range(5)]


def test_common_question_fields():
    q = _question("short_answer", text="  Capital of France?  ", points=2.5)
    el = _parse(_export([q], {q.id: _answers(("Paris", True))})).find("question")

    assert el.find("name/text").text == "Capital of France?"
    questiontext = el.find("questiontext")
    assert questiontext.get("format") == "html"
    assert questiontext.find("text").text == "Capital of France?"
    assert el.find("generalfeedback/text").text is None
    assert el.find("defaultgrade").text == "2.5"
    assert el.find("penalty").text == "0.3333333"
    assert el.find("hidden").text == "0"

    # child order follows the Moodle schema
    tags = [child.tag for child in el]
    assert tags[:6] == ["name", "questiontext", "generalfeedback", "defaultgrade", "penalty", "hidden"]


def test_answer_element_shape():
    q = _question("short_answer")
    el = _parse(_export([q], {q.id: _answers(("Jupiter", True))})).find("question")
    answer = el.find("answer")

    assert answer.get("fraction") == "100"
    assert answer.get("format") == "html"
    assert answer.find("text").text == "Jupiter"
    assert answer.find("feedback").get("format") == "html"
    assert answer.find("feedback/text") is not None


# ---------------------------------------------------------------------------
# Per-type rules
# ---------------------------------------------------------------------------

def test_single_choice():
    q = _question("single_choice")
    answers = _answers(("A", True), ("B", False), ("C", False), ("D", False))
    el = _parse(_export([q], {q.id: answers})).find("question")

    assert el.get("type") == "multichoice"
    assert el.find("single").text == "true"
    assert el.find("shuffleanswers").text == "true"
    assert el.find("answernumbering").text == "abc"
    assert el.find("correctfeedback/text").text == "Correct!"
    assert el.find("incorrectfeedback/text").text == "Incorrect."
    assert _fractions(el) == ["100", "0", "0", "0"]
    assert [a.find("text").text for a in el.findall("answer")] == ["A", "B", "C", "D"]


def test_multiple_choice():
    q = _question("multiple_choice")
    answers = _answers(("A", True), ("B", True), ("C", False))
    el = _parse(_export([q], {q.id: answers})).find("question")

    assert el.get("type") == "multichoice"
    assert el.find("single").text == "false"
    assert _fractions(el) == ["100", "100", "0"]


def test_true_false_with_true_correct():
    q = _question("true_false")
    el = _parse(_export([q], {q.id: _answers(("true", True), ("false", False))})).find("question")

    assert el.get("type") == "truefalse"
    answers = el.findall("answer")
    assert [a.find("text").text for a in answers] == ["True", "False"]
    assert _fractions(el) == ["100", "0"]
    assert {a.get("format") for a in answers} == {"moodle_auto_format"}
    assert el.find("single") is None


def test_true_false_with_false_correct():
    q = _question("true_false")
    el = _parse(_export([q], {q.id: _answers(("True", False), ("False", True))})).find("question")
    assert _fractions(el) == ["0", "100"]


def test_true_false_without_correct_answer():
    q = _question("true_false")
    el = _parse(_export([q], {q.id: _answers(("True", False), ("False", False))})).find("question")
    assert _fractions(el) == ["0", "0"]


def test_short_answer_maps_answers_one_to_one():
    q = _question("short_answer")
    el = _parse(_export([q], {q.id: _answers(("Jupiter", True), ("jupiter", True))})).find("question")

    assert el.get("type") == "shortanswer"
    assert el.find("single") is None
    assert el.find("shuffleanswers") is None
    assert _fractions(el) == ["100", "100"]


def test_question_without_answer_entry_exports_no_answers():
    q = _question("single_choice")
    el = _parse(_export([q], {})).find("question")
    assert el.findall("answer") == []


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

def test_unknown_type_fails_whole_export():
    good = _question("single_choice")
    bad = _question("essay")
    exporter = MoodleXMLExporter()

    with pytest.raises(ConversionError) as exc_info:
        exporter.export("Quiz", [good, bad], {good.id: _answers(("A", True))})

    assert exc_info.value.question_id == bad.id
    assert "essay" in str(exc_info.value)


# ---------------------------------------------------------------------------
# Text handling
# ---------------------------------------------------------------------------

def test_sanitize_truncates_long_text():
    result = sanitize_text("a" * 300)
    assert len(result) == MAX_TEXT_LENGTH == 255
    assert result.endswith("...")


def test_sanitize_trims_whitespace():
    assert sanitize_text("  trimmed  ") == "trimmed"


def test_sanitize_keeps_text_at_limit():
    assert sanitize_text("b" * 255) == "b" * 255


def test_sanitize_replaces_characters_xml_cannot_carry():
    assert sanitize_text("a\x00b\x1fc") == "a\ufffdb\ufffdc"
    assert sanitize_text("tab\tand\nnewline") == "tab\tand\nnewline"


def test_control_characters_do_not_break_the_document():
    q = _question("short_answer", text="vertical\x0btab")
    xml = _export([q], {q.id: _answers(("form\x0cfeed", True))}, title="bell\x07")
    el = ET.fromstring(xml.encode("utf-8")).find("question")
    assert el.find("name/text").text == "vertical\ufffdtab"
    assert el.find("answer/text").text == "form\ufffdfeed"


def test_special_characters_are_escaped():
    q = _question("short_answer", text="Is 1 < 2 & 3 > 2?")
    xml = _export([q], {q.id: _answers(("<yes>", True))})

    assert "1 &lt; 2 &amp; 3 &gt; 2" in xml
    el = _parse(xml).find("question")
    assert el.find("name/text").text == "Is 1 < 2 & 3 > 2?"
    assert el.find("answer/text").text == "<yes>"


def test_long_answer_text_is_sanitized():
    q = _question("short_answer")
    el = _parse(_export([q], {q.id: _answers(("z" * 400, True))})).find("question")
    assert len(el.find("answer/text").text) == 255


def test_end_to_end_single_choice():
    q = _question("single_choice", text="What is 2+2?")
    answers = _answers(("4", True), ("3", False), ("5", False), ("22", False))
    xml = _export([q], {q.id: answers}, title="Arithmetic")

    assert 'type="multichoice"' in xml
    assert "What is 2+2?" in xml
    assert xml.count('fraction="100"') == 1
