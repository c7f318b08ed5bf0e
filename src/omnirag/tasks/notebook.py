"""
Chat-to-notebook synthesis: turn a conversation into study notes.
"""

from typing import Sequence

from omnirag.llm.messages import Turn
from omnirag.llm.router import ProviderRouter

NOTEBOOK_SYSTEM_PROMPT = """You turn conversations into clean study notes.

Rules:
- Keep every fact, figure and conclusion from the conversation
- Drop greetings, small talk and repeated questions
- Organize by topic with "##" headings and bullet points
- Write in Markdown"""


def format_transcript(turns: Sequence[Turn]) -> str:
    return "\n\n".join(
        f"{'User' if t.is_user else 'Assistant'}: {t.content}" for t in turns
    )


async def synthesize_notebook(router: ProviderRouter, turns: Sequence[Turn]) -> str:
    """
    Produce Markdown notes from a conversation.

    Raises:
        ValueError: If there is nothing to synthesize
        ProviderError: If generation fails
    """
    if not turns:
        raise ValueError("Conversation is empty")
    prompt = f"Conversation:\n---\n{format_transcript(turns)}\n---\n\nNotes:"
    return await router.complete(NOTEBOOK_SYSTEM_PROMPT, prompt)
