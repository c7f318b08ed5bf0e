"""
Message assembly and response post-processing shared by all providers.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Literal, Optional, Sequence

Role = Literal["system", "user", "assistant"]

GREETING_MARKER = "Hi! I'm Omni"

GENERAL_SYSTEM_PROMPT = """You are a helpful general-purpose AI assistant named Omni.
Answer the user's question clearly and concisely.
You can optionally suggest one follow-up action.
The tag format is [ACTION: ACTION_NAME].
Example: [ACTION: DRAFT_EMAIL]"""

FILE_ANALYST_PROMPT = """You are a File System Analyst AI assistant.

CRITICAL RULES:
1. Answer questions ONLY based on the file content provided in the context.
2. ALWAYS cite the source file name (e.g., "According to 'Resume.pdf'...").
3. If the context doesn't contain relevant information, say so clearly.

{actions}"""

_ACTION_TAG = re.compile(r"\[ACTION:([^\]]*)\]")
_BARE_TAG = re.compile(r"\[([A-Z_]+)\]\s*$")


@dataclass(frozen=True)
class Message:
    """One entry of a provider request."""

    role: Role
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class Turn:
    """A conversation turn as stored in chat history."""

    content: str
    is_user: bool


@dataclass(frozen=True)
class Reply:
    """Generated text split from its suggested follow-up action."""

    content: str
    action: Optional[str] = None


def build_messages(
    system_prompt: str,
    user_context: str,
    history: Sequence[Turn],
) -> list[Message]:
    """
    Assemble the message sequence sent to a provider.

    Order: system prompt, then the context (if any) as a user message, then
    the conversation in original order. A greeting that is the only history
    entry is left out.
    """
    messages = [Message("system", system_prompt)]

    if user_context:
        messages.append(Message("user", f"File Context:\n{user_context}"))

    for turn in history:
        if len(history) == 1 and GREETING_MARKER in turn.content:
            continue
        messages.append(Message("user" if turn.is_user else "assistant", turn.content))

    return messages


def build_system_prompt(files: Iterable[str] = ()) -> str:
    """
    Pick the system prompt for a conversation.

    Without attached files the general assistant prompt is used; with files
    the analyst prompt lists follow-up actions suited to their types.
    """
    names = list(files)
    if not names:
        return GENERAL_SYSTEM_PROMPT
    extensions = {name.rsplit(".", 1)[-1].lower() for name in names if "." in name}

    actions = [
        "ACTIONS:",
        "Your response MUST end with a single action tag.",
        "The tag format is [ACTION: ACTION_NAME].",
    ]
    if extensions & {"pdf", "txt", "md"}:
        actions.append("- For this document, suggest 'SUMMARIZE_DOCUMENT'.")
        actions.append("- If the user asks for a summary, suggest 'DRAFT_EMAIL'.")
    if extensions & {"swift", "py", "js"}:
        actions.append("- For this code file, suggest 'EXPLAIN_CODE' or 'FIND_BUGS'.")
    if "csv" in extensions:
        actions.append("- For this CSV file, suggest 'ANALYZE_DATA' or 'FIND_TRENDS'.")
    actions.append("- For a generic request, you can suggest 'DRAFT_EMAIL'.")
    actions.append("- Example ending: [ACTION: EXPLAIN_CODE]")

    return FILE_ANALYST_PROMPT.format(actions="\n".join(actions))


def parse_action(text: str) -> Reply:
    """
    Split a trailing action tag off generated text.

    Recognizes ``[ACTION: NAME]`` (last occurrence) and a bare trailing
    ``[NAME]`` made of upper-case letters and underscores.
    """
    tagged = list(_ACTION_TAG.finditer(text))
    if tagged:
        last = tagged[-1]
        content = text[: last.start()].strip()
        action = last.group(1).strip()
        return Reply(content=content, action=action or None)

    bare = _BARE_TAG.search(text)
    if bare:
        return Reply(content=text[: bare.start()].strip(), action=bare.group(1))

    return Reply(content=text.strip())
