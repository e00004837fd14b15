"""
Moodle XML export for generated tests.

Converts stored questions and their answers into a Moodle quiz import file:

    <?xml version="1.0" encoding="UTF-8"?>
    <quiz>
      <question type="multichoice|truefalse|shortanswer">
        <name><text>…</text></name>
        <questiontext format="html"><text>…</text></questiontext>
        …
        <answer fraction="100" format="html"><text>…</text><feedback …/></answer>
      </question>
    </quiz>

Questions are converted in the order supplied.  A question with an unknown
type aborts the whole export with ``ConversionError``.
"""
from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Sequence
from uuid import UUID

from testgen.exceptions import ConversionError
from testgen.models.schemas import ExportableAnswer, ExportableQuestion, QuestionType

logger = logging.getLogger(__name__)

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'

MAX_TEXT_LENGTH = 255
_ELLIPSIS = "..."

PENALTY = 0.3333333
CORRECT_FEEDBACK = "Correct!"
INCORRECT_FEEDBACK = "Incorrect."
ANSWER_NUMBERING = "abc"


# Anything outside the XML 1.0 Char production
_INVALID_XML_CHARS = re.compile(
    "[^\u0009\u000A\u000D\u0020-\uD7FF\uE000-\uFFFD\U00010000-\U0010FFFF]"
)
REPLACEMENT_CHAR = "\uFFFD"


def sanitize_text(text: str) -> str:
    """
    Replace characters XML 1.0 cannot carry with U+FFFD, strip surrounding
    whitespace and cap the result at 255 characters.
    """
    text = _INVALID_XML_CHARS.sub(REPLACEMENT_CHAR, text).strip()
    if len(text) > MAX_TEXT_LENGTH:
        text = text[: MAX_TEXT_LENGTH - len(_ELLIPSIS)] + _ELLIPSIS
    return text


# ---------------------------------------------------------------------------
# Quiz document model
# ---------------------------------------------------------------------------

@dataclass
class MoodleText:
    text: str = ""
    format: str = "html"


@dataclass
class MoodleAnswer:
    fraction: float
    text: str
    format: str = "html"
    feedback: MoodleText = field(default_factory=MoodleText)


@dataclass
class MoodleQuestion:
    """One ``<question>`` element; the choice-only fields stay None for other types."""

    type: str
    name: str
    question_text: MoodleText
    default_grade: float
    general_feedback: MoodleText = field(default_factory=MoodleText)
    penalty: float = PENALTY
    hidden: int = 0
    single: Optional[bool] = None
    shuffle_answers: Optional[bool] = None
    answer_numbering: Optional[str] = None
    correct_feedback: Optional[MoodleText] = None
    incorrect_feedback: Optional[MoodleText] = None
    answers: List[MoodleAnswer] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Exporter
# ---------------------------------------------------------------------------

class MoodleXMLExporter:
    """Builds a fresh Moodle XML quiz document per ``export`` call."""

    def __init__(self) -> None:
        self._converters: Dict[
            QuestionType, Callable[[MoodleQuestion, Sequence[ExportableAnswer]], None]
        ] = {
            QuestionType.SINGLE_CHOICE: self._as_single_choice,
            QuestionType.MULTIPLE_CHOICE: self._as_multiple_choice,
            QuestionType.TRUE_FALSE: self._as_true_false,
            QuestionType.SHORT_ANSWER: self._as_short_answer,
        }

    def export(
        self,
        quiz_title: str,
        questions: Sequence[ExportableQuestion],
        answers_by_question_id: Mapping[UUID, Sequence[ExportableAnswer]],
    ) -> str:
        """
        Convert *questions* (in the given order) to a Moodle XML document.

        Args:
            quiz_title: Written into the document as a comment.
            questions: Questions in export order.
            answers_by_question_id: Answers per question id, in display order.
                A question with no entry is exported without answers.

        Raises:
            ConversionError: A question has an unsupported type.
        """
        converted = [
            self.convert_question(q, answers_by_question_id.get(q.id, ()))
            for q in questions
        ]

        root = ET.Element("quiz")
        title = sanitize_text(quiz_title)
        if title:
            root.append(ET.Comment(f" quiz: {_comment_safe(title)} "))
        for question in converted:
            root.append(_question_element(question))

        ET.indent(root, space="  ")
        body = ET.tostring(root, encoding="unicode", short_empty_elements=False)

        logger.info("Exported %d questions to Moodle XML (%d chars)", len(converted), len(body))
        return XML_DECLARATION + body

    def convert_question(
        self,
        question: ExportableQuestion,
        answers: Sequence[ExportableAnswer],
    ) -> MoodleQuestion:
        try:
            question_type = QuestionType(question.question_type)
        except ValueError:
            raise ConversionError(
                question.id, f"unsupported question type: {question.question_type}"
            ) from None

        text = sanitize_text(question.question_text)
        moodle_question = MoodleQuestion(
            type="",
            name=text,
            question_text=MoodleText(text=text),
            default_grade=float(question.points),
        )
        self._converters[question_type](moodle_question, answers)
        return moodle_question

    # ------------------------------------------------------------------
    # Per-type rules
    # ------------------------------------------------------------------

    def _as_single_choice(self, mq: MoodleQuestion, answers: Sequence[ExportableAnswer]) -> None:
        self._as_choice(mq, answers, single=True)

    def _as_multiple_choice(self, mq: MoodleQuestion, answers: Sequence[ExportableAnswer]) -> None:
        self._as_choice(mq, answers, single=False)

    def _as_choice(
        self,
        mq: MoodleQuestion,
        answers: Sequence[ExportableAnswer],
        single: bool,
    ) -> None:
        mq.type = "multichoice"
        mq.single = single
        mq.shuffle_answers = True
        mq.answer_numbering = ANSWER_NUMBERING
        mq.correct_feedback = MoodleText(text=CORRECT_FEEDBACK)
        mq.incorrect_feedback = MoodleText(text=INCORRECT_FEEDBACK)
        mq.answers = self.convert_answers(answers)

    def _as_true_false(self, mq: MoodleQuestion, answers: Sequence[ExportableAnswer]) -> None:
        mq.type = "truefalse"
        true_answer = MoodleAnswer(fraction=0, text="True", format="moodle_auto_format")
        false_answer = MoodleAnswer(fraction=0, text="False", format="moodle_auto_format")

        correct = next((a for a in answers if a.is_correct), None)
        if correct is not None:
            if correct.text.strip().lower() == "true":
                true_answer.fraction = 100
            else:
                false_answer.fraction = 100

        mq.answers = [true_answer, false_answer]

    def _as_short_answer(self, mq: MoodleQuestion, answers: Sequence[ExportableAnswer]) -> None:
        mq.type = "shortanswer"
        mq.answers = self.convert_answers(answers)

    @staticmethod
    def convert_answers(answers: Sequence[ExportableAnswer]) -> List[MoodleAnswer]:
        return [
            MoodleAnswer(fraction=100 if a.is_correct else 0, text=sanitize_text(a.text))
            for a in answers
        ]


# ---------------------------------------------------------------------------
# XML rendering
# ---------------------------------------------------------------------------

def _question_element(mq: MoodleQuestion) -> ET.Element:
    el = ET.Element("question", {"type": mq.type})

    _text_child(el, "name", mq.name)
    _formatted_child(el, "questiontext", mq.question_text)
    _formatted_child(el, "generalfeedback", mq.general_feedback)
    ET.SubElement(el, "defaultgrade").text = _format_number(mq.default_grade)
    ET.SubElement(el, "penalty").text = _format_number(mq.penalty)
    ET.SubElement(el, "hidden").text = str(mq.hidden)

    if mq.single is not None:
        ET.SubElement(el, "single").text = _format_bool(mq.single)
    if mq.shuffle_answers is not None:
        ET.SubElement(el, "shuffleanswers").text = _format_bool(mq.shuffle_answers)
    if mq.answer_numbering is not None:
        ET.SubElement(el, "answernumbering").text = mq.answer_numbering
    if mq.correct_feedback is not None:
        _formatted_child(el, "correctfeedback", mq.correct_feedback)
    if mq.incorrect_feedback is not None:
        _formatted_child(el, "incorrectfeedback", mq.incorrect_feedback)

    for answer in mq.answers:
        answer_el = ET.SubElement(
            el,
            "answer",
            {"fraction": _format_number(answer.fraction), "format": answer.format},
        )
        ET.SubElement(answer_el, "text").text = answer.text
        _formatted_child(answer_el, "feedback", answer.feedback)

    return el


def _text_child(parent: ET.Element, tag: str, text: str) -> ET.Element:
    el = ET.SubElement(parent, tag)
    ET.SubElement(el, "text").text = text
    return el


def _formatted_child(parent: ET.Element, tag: str, value: MoodleText) -> ET.Element:
    el = _text_child(parent, tag, value.text)
    el.set("format", value.format)
    return el


def _format_number(value: float) -> str:
    """100.0 -> "100", 0.3333333 -> "0.3333333"."""
    return f"{value:.7f}".rstrip("0").rstrip(".")


def _format_bool(value: bool) -> str:
    return "true" if value else "false"


def _comment_safe(text: str) -> str:
    # "--" is not allowed inside an XML comment
    return re.sub(r"-(?=-)", "- ", text)
