"""RFC 822 reply composition that keeps replies in their conversation.

Threading is two-track: Gmail files a draft by its own threadId, while
other mail clients group by the In-Reply-To / References headers.  A
composed reply carries both whenever the original message allows it.
"""

import base64
from dataclasses import dataclass

from src.sweep.types import CandidateMessage

_CRLF = "\r\n"
_FIXED_HEADERS: list[tuple[str, str]] = [
    ("MIME-Version", "1.0"),
    ("Content-Type", 'text/plain; charset="UTF-8"'),
]


@dataclass(frozen=True)
class ThreadedReply:
    """A reply ready to be rendered.  Built fresh for each draft."""

    to_address: str
    subject: str
    body_text: str
    thread_id: str
    in_reply_to: str | None = None
    references: str | None = None


@dataclass(frozen=True)
class OutgoingMessage:
    """A stand-alone message that starts a new thread."""

    to: str
    subject: str
    body: str
    cc: str | None = None
    bcc: str | None = None


def reply_subject(subject: str) -> str:
    """Prefix 'Re: ' unless the subject already starts with 're:' in any case."""
    if subject.lower().startswith("re:"):
        return subject
    return f"Re: {subject}"


def compose(candidate: CandidateMessage, reply_text: str) -> ThreadedReply:
    """Derive a ThreadedReply from the original message and the reply text.

    Without a Message-ID on the original, neither In-Reply-To nor References
    is set; the draft is then linked to its conversation by threadId only.
    """
    in_reply_to: str | None = None
    references: str | None = None
    if candidate.message_id_header:
        in_reply_to = candidate.message_id_header
        references = (
            f"{candidate.references_header} {candidate.message_id_header}"
            if candidate.references_header
            else candidate.message_id_header
        )

    return ThreadedReply(
        to_address=candidate.reply_to or candidate.from_address,
        subject=reply_subject(candidate.subject),
        body_text=reply_text,
        thread_id=candidate.thread_id,
        in_reply_to=in_reply_to,
        references=references,
    )


def _render(headers: list[tuple[str, str]], body: str) -> bytes:
    head = _CRLF.join(f"{name}: {value}" for name, value in headers)
    return f"{head}{_CRLF}{_CRLF}{body}{_CRLF}".encode("utf-8")


def render(reply: ThreadedReply) -> bytes:
    """Render a ThreadedReply to RFC 822 bytes.

    Header order is fixed: To, Subject, MIME-Version, Content-Type, then
    In-Reply-To and References when present.  Lines end in CRLF; the body
    is followed by a single trailing CRLF.  The threadId is not a header and
    travels separately to the draft-create call.
    """
    headers = [("To", reply.to_address), ("Subject", reply.subject), *_FIXED_HEADERS]
    if reply.in_reply_to:
        headers.append(("In-Reply-To", reply.in_reply_to))
    if reply.references:
        headers.append(("References", reply.references))
    return _render(headers, reply.body_text)


def render_new(message: OutgoingMessage) -> bytes:
    """Render a new-thread message: To, [Cc], [Bcc], Subject, then fixed headers."""
    headers = [("To", message.to)]
    if message.cc:
        headers.append(("Cc", message.cc))
    if message.bcc:
        headers.append(("Bcc", message.bcc))
    headers.append(("Subject", message.subject))
    headers.extend(_FIXED_HEADERS)
    return _render(headers, message.body)


def encode_raw(message: bytes) -> str:
    """Encode RFC 822 bytes for the Gmail `raw` field (base64url, no padding)."""
    return base64.urlsafe_b64encode(message).decode("ascii").rstrip("=")
