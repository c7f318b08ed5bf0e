"""
Chronological timeline extraction from aggregated project context.
"""

from omnirag.llm.router import ProviderRouter

TIMELINE_SYSTEM_PROMPT = """You extract timelines from reference material.

Rules:
- List every dated or clearly ordered event found in the material
- Sort events chronologically, oldest first
- Format each event as "- **<date or period>**: <event> (source: <file name>)"
- Use only the provided material; if there are no events, say so
- Write in Markdown under a "# Timeline" heading"""

TIMELINE_PROMPT = """Reference material:
---
{context}
---

Timeline:"""


async def generate_timeline(router: ProviderRouter, context: str) -> str:
    """
    Produce a Markdown timeline of the events in context.

    Raises:
        ValueError: If context is empty
        ProviderError: If generation fails
    """
    if not context.strip():
        raise ValueError("No reference material to build a timeline from")
    return await router.complete(TIMELINE_SYSTEM_PROMPT, TIMELINE_PROMPT.format(context=context))
