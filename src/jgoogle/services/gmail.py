"""Gmail API wrapper."""

import base64
import mimetypes
from dataclasses import dataclass, field
from email.message import EmailMessage
from pathlib import Path
from typing import Any, Optional

from ..errors import InputError
from .base import ServiceClient, path_segment

GMAIL_WEB_URL = "https://mail.google.com/mail/"


@dataclass
class ThreadSummary:
    id: str
    date: str = ""
    sender: str = ""
    subject: str = ""
    labels: list[str] = field(default_factory=list)


@dataclass
class ThreadPage:
    threads: list[ThreadSummary]
    next_page_token: Optional[str] = None


@dataclass
class Message:
    id: str
    sender: str = ""
    to: str = ""
    date: str = ""
    subject: str = ""
    labels: list[str] = field(default_factory=list)
    attachments: list[str] = field(default_factory=list)
    body: str = ""


@dataclass
class Thread:
    id: str
    messages: list[Message]


@dataclass
class Label:
    id: str
    name: str
    type: str = ""


@dataclass
class Draft:
    id: str
    message_id: Optional[str] = None


def _headers(payload: dict[str, Any]) -> dict[str, str]:
    """Header name (lower case) to value for a message payload."""
    return {h["name"].lower(): h["value"] for h in payload.get("headers", [])}


def _decode(data: str) -> str:
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")


def _walk_parts(payload: dict[str, Any]):
    yield payload
    for part in payload.get("parts", []) or []:
        yield from _walk_parts(part)


def extract_body(payload: dict[str, Any]) -> str:
    """Return the first text/plain body in a message, falling back to text/html."""
    html_body = ""
    for part in _walk_parts(payload):
        data = part.get("body", {}).get("data")
        if not data or part.get("filename"):
            continue
        mime_type = part.get("mimeType", "")
        if mime_type == "text/plain":
            return _decode(data)
        if mime_type == "text/html" and not html_body:
            html_body = _decode(data)
    return html_body


def extract_attachments(payload: dict[str, Any]) -> list[str]:
    return [part["filename"] for part in _walk_parts(payload) if part.get("filename")]


class GmailService(ServiceClient):
    """Gmail operations for one account."""

    BASE_URL = "https://gmail.googleapis.com/gmail/v1/users/me"

    def search_threads(
        self, query: str, max_results: int = 10, page_token: Optional[str] = None
    ) -> ThreadPage:
        """Search threads with Gmail query syntax (e.g. ``in:inbox is:unread``)."""
        data = self._get(
            "/threads",
            {"q": query, "maxResults": max_results, "pageToken": page_token},
        )
        threads = [self._thread_summary(t["id"]) for t in data.get("threads", [])]
        return ThreadPage(threads, data.get("nextPageToken"))

    def _thread_summary(self, thread_id: str) -> ThreadSummary:
        data = self._get(
            f"/threads/{path_segment(thread_id)}",
            {"format": "metadata", "metadataHeaders": ["From", "Subject", "Date"]},
        )
        messages = data.get("messages", [])
        headers = _headers(messages[0].get("payload", {})) if messages else {}
        labels: list[str] = []
        for message in messages:
            for label in message.get("labelIds", []):
                if label not in labels:
                    labels.append(label)
        return ThreadSummary(
            id=thread_id,
            date=headers.get("date", ""),
            sender=headers.get("from", ""),
            subject=headers.get("subject", ""),
            labels=labels,
        )

    def get_thread(self, thread_id: str) -> Thread:
        data = self._get(f"/threads/{path_segment(thread_id)}", {"format": "full"})
        messages = []
        for raw in data.get("messages", []):
            payload = raw.get("payload", {})
            headers = _headers(payload)
            messages.append(
                Message(
                    id=raw["id"],
                    sender=headers.get("from", ""),
                    to=headers.get("to", ""),
                    date=headers.get("date", ""),
                    subject=headers.get("subject", ""),
                    labels=raw.get("labelIds", []),
                    attachments=extract_attachments(payload),
                    body=extract_body(payload) or raw.get("snippet", ""),
                )
            )
        return Thread(id=data.get("id", thread_id), messages=messages)

    def list_labels(self) -> list[Label]:
        data = self._get("/labels")
        return [
            Label(id=item["id"], name=item.get("name", ""), type=item.get("type", ""))
            for item in data.get("labels", [])
        ]

    def resolve_label_ids(self, names: list[str]) -> list[str]:
        """Map label names (case-insensitive) to ids; unknown values pass through as ids."""
        if not names:
            return []
        by_name = {label.name.lower(): label.id for label in self.list_labels()}
        return [by_name.get(name.lower(), name) for name in names]

    def modify_labels(
        self, thread_ids: list[str], add: list[str], remove: list[str]
    ) -> None:
        if not add and not remove:
            raise InputError("Nothing to do: pass --add and/or --remove")
        ids = self.resolve_label_ids(add + remove)
        body = {"addLabelIds": ids[: len(add)], "removeLabelIds": ids[len(add) :]}
        for thread_id in thread_ids:
            self._post(f"/threads/{path_segment(thread_id)}/modify", body)

    def list_drafts(self) -> list[Draft]:
        data = self._get("/drafts")
        return [
            Draft(id=item["id"], message_id=item.get("message", {}).get("id"))
            for item in data.get("drafts", [])
        ]

    def delete_draft(self, draft_id: str) -> None:
        self._delete(f"/drafts/{path_segment(draft_id)}")

    def send_draft(self, draft_id: str) -> str:
        data = self._post("/drafts/send", {"id": draft_id})
        return data.get("id", "")

    def send_message(
        self,
        to: list[str],
        subject: str,
        body: str,
        cc: Optional[list[str]] = None,
        bcc: Optional[list[str]] = None,
        attachments: Optional[list[Path]] = None,
        reply_to_message_id: Optional[str] = None,
    ) -> str:
        """
        Send a plain-text email.

        Args:
            to: Recipient addresses
            subject: Subject line
            body: Plain-text body
            cc: Optional CC addresses
            bcc: Optional BCC addresses
            attachments: Optional files to attach
            reply_to_message_id: Gmail message id to reply to (keeps the thread)

        Returns:
            Id of the sent message
        """
        msg = EmailMessage()
        msg["From"] = self.email
        msg["To"] = ", ".join(to)
        if cc:
            msg["Cc"] = ", ".join(cc)
        if bcc:
            msg["Bcc"] = ", ".join(bcc)
        msg["Subject"] = subject
        msg.set_content(body)

        thread_id = None
        if reply_to_message_id:
            original = self._get(
                f"/messages/{path_segment(reply_to_message_id)}",
                {"format": "metadata", "metadataHeaders": ["Message-ID", "References"]},
            )
            thread_id = original.get("threadId")
            headers = _headers(original.get("payload", {}))
            parent_id = headers.get("message-id")
            if parent_id:
                msg["In-Reply-To"] = parent_id
                msg["References"] = " ".join(
                    filter(None, [headers.get("references"), parent_id])
                )

        for path in attachments or []:
            path = Path(path)
            if not path.is_file():
                raise InputError(f"Attachment not found: {path}")
            mime_type, _ = mimetypes.guess_type(path.name)
            maintype, subtype = (mime_type or "application/octet-stream").split("/", 1)
            msg.add_attachment(
                path.read_bytes(), maintype=maintype, subtype=subtype, filename=path.name
            )

        raw = base64.urlsafe_b64encode(msg.as_bytes()).decode("ascii")
        request: dict[str, Any] = {"raw": raw}
        if thread_id:
            request["threadId"] = thread_id
        data = self._post("/messages/send", request)
        return data.get("id", "")

    def thread_url(self, thread_id: str) -> str:
        return f"{GMAIL_WEB_URL}?authuser={self.email}#all/{thread_id}"
