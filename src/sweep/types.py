"""Types shared by the sweep pipeline."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class CandidateMessage:
    """Read-only snapshot of a message taken at selection time.

    The threading fields (reply_to, message_id_header, references_header)
    are empty strings when the original message lacks the header.
    """

    id: str
    thread_id: str
    snippet: str
    from_address: str
    subject: str
    date_received: str
    reply_to: str = ""
    message_id_header: str = ""
    references_header: str = ""


class CandidateState(str, Enum):
    """Where a single candidate ended up within one sweep.

    Selected → Decided{NoReply | HasReply} → Composed → Drafted → Marked.
    A failure at any arrow ends in ABANDONED; the candidate stays unmarked
    and will be selected again by a later sweep.
    """

    SELECTED = "selected"
    DECIDED_NO_REPLY = "decided_no_reply"
    DECIDED_HAS_REPLY = "decided_has_reply"
    COMPOSED = "composed"
    DRAFTED = "drafted"
    MARKED = "marked"
    ABANDONED = "abandoned"


@dataclass(frozen=True)
class DraftedMessage:
    message_id: str
    draft_id: str


@dataclass
class SweepOutcome:
    """Result of one sweep.  Lives only for the duration of the call.

    Only fully drafted-and-marked candidates appear in `drafted`; skipped or
    failed ones are counted in `skipped` but never listed.
    """

    drafted: list[DraftedMessage] = field(default_factory=list)
    skipped: int = 0

    @property
    def drafted_count(self) -> int:
        return len(self.drafted)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": True,
            "draftedCount": self.drafted_count,
            "drafted": [
                {"messageId": d.message_id, "draftId": d.draft_id} for d in self.drafted
            ],
        }


@dataclass(frozen=True)
class CandidateResult:
    """Terminal state of one candidate, plus the draft ID when one was created."""

    message_id: str
    state: CandidateState
    draft_id: str | None = None
