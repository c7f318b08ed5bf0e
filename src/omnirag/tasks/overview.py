"""
Document overview: a structured summary of a single document.
"""

from omnirag.llm.router import ProviderRouter

OVERVIEW_SYSTEM_PROMPT = """You are a document analyst. Summarize documents faithfully.

Rules:
- Use only the document text; no outside knowledge
- Start with a one-paragraph overview
- Follow with "## Key Points" as a bulleted list
- End with "## Open Questions" listing anything the document leaves unresolved
- Write in Markdown"""

OVERVIEW_PROMPT = """Document: {name}
---
{text}
---

Overview:"""


async def summarize_document(router: ProviderRouter, name: str, text: str) -> str:
    """
    Produce a Markdown overview of a document.

    Args:
        router: Provider router used for generation
        name: Document display name
        text: Extracted document text

    Returns:
        Markdown overview

    Raises:
        ValueError: If text is empty
        ProviderError: If generation fails
    """
    if not text.strip():
        raise ValueError(f"Document '{name}' has no text to summarize")
    return await router.complete(OVERVIEW_SYSTEM_PROMPT, OVERVIEW_PROMPT.format(name=name, text=text))
