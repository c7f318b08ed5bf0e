"""
Single-shot generation tasks built on the provider router.

Components:
    - overview: Structured summary of one document
    - notebook: Study notes from a conversation
    - exam: Multiple-choice quiz decoded from JSON output
    - timeline: Chronological events from project context
"""

from omnirag.tasks.exam import Quiz, QuizPayload, decode_quiz, generate_exam
from omnirag.tasks.notebook import synthesize_notebook
from omnirag.tasks.overview import summarize_document
from omnirag.tasks.quiz_store import QuizStore
from omnirag.tasks.timeline import generate_timeline

__all__ = [
    "Quiz",
    "QuizPayload",
    "QuizStore",
    "decode_quiz",
    "generate_exam",
    "generate_timeline",
    "summarize_document",
    "synthesize_notebook",
]
