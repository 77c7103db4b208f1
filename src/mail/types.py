"""Data types returned by the Gmail gateway."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class MailMessage:
    """A Gmail message as returned by messages.get.

    Populated by get_metadata (format=metadata):
        id, thread_id, snippet, headers (only the requested names), label_ids

    Populated by get_full (format=full):
        all of the above plus every header and the decoded text/plain body
    """

    id: str
    thread_id: str
    snippet: str = ""
    headers: list[tuple[str, str]] = field(default_factory=list)
    label_ids: list[str] = field(default_factory=list)
    body: str | None = None

    def header(self, name: str) -> str:
        """Return the first header value matching `name` (case-insensitive), or ''."""
        wanted = name.lower()
        for key, value in self.headers:
            if key.lower() == wanted:
                return value
        return ""


@dataclass(frozen=True)
class DraftRef:
    """Identifiers of a freshly created draft."""

    draft_id: str
    message_id: str | None = None
    thread_id: str | None = None


@dataclass(frozen=True)
class Label:
    id: str
    name: str
