"""
Exam generation.

The backend is asked for a quiz as JSON. Its raw text must decode into
``QuizPayload``; anything else raises ``StructuredDecodeFailure`` and no
quiz is persisted.
"""

import json
import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, model_validator

from omnirag.errors import StructuredDecodeFailure
from omnirag.llm.router import ProviderRouter
from omnirag.tasks.quiz_store import QuizStore

logger = logging.getLogger(__name__)


EXAM_SYSTEM_PROMPT = """You write multiple-choice exams from reference material.

Respond with JSON only, no prose and no code fences, in exactly this shape:
{
  "name": "<short exam title>",
  "questions": [
    {
      "question_text": "<question>",
      "options": ["<option A>", "<option B>", "<option C>", "<option D>"],
      "correct_answer_index": <0-based index into options>,
      "explanation": "<why the answer is correct>"
    }
  ]
}

Rules:
- Every question must be answerable from the material alone
- Exactly one option is correct
- Keep explanations to one or two sentences"""

EXAM_PROMPT = """Write {count} questions from this material.

Reference material:
---
{context}
---"""


# =============================================================================
# Payload models
# =============================================================================


class QuestionPayload(BaseModel):
    question_text: str = Field(..., min_length=1)
    options: list[str] = Field(..., min_length=2)
    correct_answer_index: int = Field(..., ge=0)
    explanation: str = ""

    @model_validator(mode="after")
    def answer_in_range(self) -> "QuestionPayload":
        if self.correct_answer_index >= len(self.options):
            raise ValueError(
                f"correct_answer_index {self.correct_answer_index} out of range "
                f"for {len(self.options)} options"
            )
        return self


class QuizPayload(BaseModel):
    """Exact shape the backend must produce."""

    name: str = Field(..., min_length=1)
    questions: list[QuestionPayload] = Field(..., min_length=1)


class Quiz(BaseModel):
    """A persisted quiz tied to a project."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    source_project_id: Optional[uuid.UUID] = None
    name: str
    questions: list[QuestionPayload]
    date_created: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# =============================================================================
# Decoding
# =============================================================================


def decode_quiz(text: str) -> QuizPayload:
    """
    Decode generated text into a QuizPayload.

    Surrounding prose or code fences are tolerated: the outermost JSON
    object in the text is used.

    Raises:
        StructuredDecodeFailure: If no JSON object is present or it does not
            match the quiz schema
    """
    json_match = re.search(r"\{.*\}", text, re.DOTALL)
    if not json_match:
        raise StructuredDecodeFailure("Exam response contained no JSON object")

    try:
        parsed = json.loads(json_match.group(0))
    except json.JSONDecodeError as e:
        raise StructuredDecodeFailure(f"Exam response is not valid JSON: {e}") from e

    try:
        return QuizPayload.model_validate(parsed)
    except ValidationError as e:
        raise StructuredDecodeFailure(
            f"Exam response does not match the quiz format: {e.error_count()} error(s)"
        ) from e


async def generate_exam(
    router: ProviderRouter,
    context: str,
    store: Optional[QuizStore] = None,
    project_id: Optional[uuid.UUID] = None,
    count: int = 5,
) -> Quiz:
    """
    Generate a quiz from reference material.

    Args:
        router: Provider router used for generation
        context: Aggregated reference material
        store: Where to persist the quiz (skipped when None)
        project_id: Project the quiz belongs to
        count: Number of questions to request

    Returns:
        The decoded (and, when a store is given, persisted) quiz

    Raises:
        ValueError: If context is empty or count is not positive
        ProviderError: If generation fails
        StructuredDecodeFailure: If the response cannot be decoded
        PersistenceFailure: If the quiz cannot be saved
    """
    if not context.strip():
        raise ValueError("No reference material to write an exam from")
    if count < 1:
        raise ValueError(f"count must be positive, got {count}")

    response = await router.complete(EXAM_SYSTEM_PROMPT, EXAM_PROMPT.format(count=count, context=context))
    payload = decode_quiz(response)

    quiz = Quiz(source_project_id=project_id, name=payload.name, questions=payload.questions)
    if store is not None:
        store.save(quiz)
    logger.info(f"Generated exam '{quiz.name}' with {len(quiz.questions)} questions")
    return quiz
