"""
Data models for the funding-call pipeline.

Jobs flow as JSON payloads through the queues:
discovery -> SummarizeJob -> summarize -> NotifyJob -> notify
"""

from dataclasses import dataclass, fields
from typing import Any


@dataclass
class Opportunity:
    """
    A funding call discovered on the listing page.

    Every field except title and link is optional; the listing parser
    degrades to None whenever a card lacks the data.

    Attributes:
        title: Call title
        link: Canonical URL of the call detail page (the job subject)
        identifier: Call identifier (e.g. HORIZON-CL6-2025-FARM2FORK-01)
        announcement_type: e.g. "Call for proposals"
        status: e.g. "Open For Submission", "Forthcoming"
        opening: Opening date as shown on the card
        deadline: Deadline date as shown on the card
        programme_name: Funding programme
        action_type: Type of action
        stage: "Single-stage" or "Two-stage"
        summary: Generated summary, set by the summarize stage
    """

    title: str
    link: str
    identifier: str | None = None
    announcement_type: str | None = None
    status: str | None = None
    opening: str | None = None
    deadline: str | None = None
    programme_name: str | None = None
    action_type: str | None = None
    stage: str | None = None
    summary: str | None = None

    @property
    def label(self) -> str:
        """Short name for log lines."""
        return self.identifier or self.title

    def to_dict(self) -> dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        if data["summary"] is None:
            del data["summary"]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Opportunity":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class SummarizeJob:
    """
    Payload of a summarize queue entry.

    Attributes:
        url: Subject URL (same as opportunity.link)
        opportunity: The discovered call
        enqueued_at: ISO timestamp of discovery
        attempts: Failed attempts so far
        last_attempt: ISO timestamp of the last failed attempt
        error: Error of the last failed attempt
    """

    url: str
    opportunity: Opportunity
    enqueued_at: str
    attempts: int = 0
    last_attempt: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "url": self.url,
            "opportunity": self.opportunity.to_dict(),
            "enqueued_at": self.enqueued_at,
            "attempts": self.attempts,
        }
        if self.last_attempt:
            data["last_attempt"] = self.last_attempt
        if self.error:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SummarizeJob":
        return cls(
            url=data["url"],
            opportunity=Opportunity.from_dict(data["opportunity"]),
            enqueued_at=data.get("enqueued_at", ""),
            attempts=data.get("attempts", 0),
            last_attempt=data.get("last_attempt"),
            error=data.get("error"),
        )


@dataclass
class NotifyJob:
    """
    Payload of a notify queue entry.

    Attributes:
        opportunity: The call, with its summary filled in
        summarized_at: ISO timestamp of summarization
        attempts: Failed attempts so far
        last_attempt: ISO timestamp of the last failed attempt
        error: Error of the last failed attempt
    """

    opportunity: Opportunity
    summarized_at: str
    attempts: int = 0
    last_attempt: str | None = None
    error: str | None = None

    @property
    def url(self) -> str:
        return self.opportunity.link

    def to_dict(self) -> dict[str, Any]:
        data = {
            "opportunity": self.opportunity.to_dict(),
            "summarized_at": self.summarized_at,
            "attempts": self.attempts,
        }
        if self.last_attempt:
            data["last_attempt"] = self.last_attempt
        if self.error:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NotifyJob":
        return cls(
            opportunity=Opportunity.from_dict(data["opportunity"]),
            summarized_at=data.get("summarized_at", ""),
            attempts=data.get("attempts", 0),
            last_attempt=data.get("last_attempt"),
            error=data.get("error"),
        )


def notify_subject(job: dict[str, Any]) -> str:
    """Subject of a notify queue payload."""
    return job["opportunity"]["link"]
