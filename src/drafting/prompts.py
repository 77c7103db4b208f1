"""Prompt builder for the reply decision."""

from src.sweep.types import CandidateMessage

#: Returned verbatim by the model when the email needs no reply.
NO_REPLY_SENTINEL = "NO_REPLY"

_REPLY_RULES = [
    "Be concise, professional, helpful.",
    "If it's unclear, ask 1 clarifying question.",
    "Never mention AI.",
    "Do not promise anything untrue.",
]


def build_prompt(candidate: CandidateMessage, owner_name: str) -> str:
    """Build the fixed-shape decision prompt for a single candidate.

    Only the snippet is sent, never the full body.
    """
    rules = [*_REPLY_RULES, f'End with a simple signature: "— {owner_name}"']
    lines = [
        f"You are {owner_name}'s email assistant. Draft a reply only if a reply is needed.",
        f"If not needed, output exactly: {NO_REPLY_SENTINEL}",
        "",
        "Email:",
        f"From: {candidate.from_address}",
        f"Subject: {candidate.subject}",
        f"Snippet: {candidate.snippet}",
        "",
        "Reply rules:",
        *(f"- {rule}" for rule in rules),
    ]
    return "\n".join(lines) + "\n"
