"""Google Calendar API wrapper."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from .base import ServiceClient, path_segment


@dataclass
class Calendar:
    id: str
    name: str
    role: str = ""


@dataclass
class AclRule:
    id: str
    role: str
    scope_type: str
    scope_value: str = ""


@dataclass
class Attendee:
    email: str
    response_status: str = ""


@dataclass
class Event:
    id: str
    summary: str = ""
    start: str = ""
    end: str = ""
    location: str = ""
    description: str = ""
    html_link: str = ""
    attendees: list[Attendee] = field(default_factory=list)


@dataclass
class EventPage:
    events: list[Event]
    next_page_token: Optional[str] = None


@dataclass
class BusyPeriod:
    start: str
    end: str


def _when(value: dict[str, Any]) -> str:
    return value.get("dateTime") or value.get("date", "")


def parse_event(data: dict[str, Any]) -> Event:
    return Event(
        id=data["id"],
        summary=data.get("summary", ""),
        start=_when(data.get("start", {})),
        end=_when(data.get("end", {})),
        location=data.get("location", ""),
        description=data.get("description", ""),
        html_link=data.get("htmlLink", ""),
        attendees=[
            Attendee(a.get("email", ""), a.get("responseStatus", ""))
            for a in data.get("attendees", [])
        ],
    )


def event_time(value: str, all_day: bool) -> dict[str, str]:
    """Build a start/end object; all-day events carry a date only."""
    if all_day:
        return {"date": value[:10]}
    return {"dateTime": value}


def event_body(
    summary: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    description: Optional[str] = None,
    location: Optional[str] = None,
    attendees: Optional[list[str]] = None,
    all_day: bool = False,
) -> dict[str, Any]:
    """Event resource containing only the fields that were given."""
    body: dict[str, Any] = {}
    if summary is not None:
        body["summary"] = summary
    if start is not None:
        body["start"] = event_time(start, all_day)
    if end is not None:
        body["end"] = event_time(end, all_day)
    if description is not None:
        body["description"] = description
    if location is not None:
        body["location"] = location
    if attendees is not None:
        body["attendees"] = [{"email": a} for a in attendees]
    return body


class CalendarService(ServiceClient):
    """Calendar operations for one account."""

    BASE_URL = "https://www.googleapis.com/calendar/v3"

    def list_calendars(self) -> list[Calendar]:
        data = self._get("/users/me/calendarList")
        return [
            Calendar(id=c["id"], name=c.get("summary", ""), role=c.get("accessRole", ""))
            for c in data.get("items", [])
        ]

    def get_acl(self, calendar_id: str = "primary") -> list[AclRule]:
        data = self._get(f"/calendars/{path_segment(calendar_id)}/acl")
        return [
            AclRule(
                id=rule["id"],
                role=rule.get("role", ""),
                scope_type=rule.get("scope", {}).get("type", ""),
                scope_value=rule.get("scope", {}).get("value", ""),
            )
            for rule in data.get("items", [])
        ]

    def list_events(
        self,
        calendar_id: str = "primary",
        max_results: int = 10,
        page_token: Optional[str] = None,
        time_min: Optional[str] = None,
        time_max: Optional[str] = None,
        query: Optional[str] = None,
    ) -> EventPage:
        """List upcoming events (from now unless ``time_min`` is given)."""
        params = {
            "maxResults": max_results,
            "pageToken": page_token,
            "timeMin": time_min or datetime.now(timezone.utc).isoformat(),
            "timeMax": time_max,
            "q": query,
            "singleEvents": "true",
            "orderBy": "startTime",
        }
        data = self._get(f"/calendars/{path_segment(calendar_id)}/events", params)
        return EventPage(
            [parse_event(item) for item in data.get("items", [])],
            data.get("nextPageToken"),
        )

    def get_event(self, calendar_id: str, event_id: str) -> Event:
        return parse_event(
            self._get(f"/calendars/{path_segment(calendar_id)}/events/{path_segment(event_id)}")
        )

    def create_event(
        self,
        calendar_id: str,
        summary: str,
        start: str,
        end: str,
        description: Optional[str] = None,
        location: Optional[str] = None,
        attendees: Optional[list[str]] = None,
        all_day: bool = False,
    ) -> Event:
        body = event_body(summary, start, end, description, location, attendees, all_day)
        return parse_event(self._post(f"/calendars/{path_segment(calendar_id)}/events", body))

    def update_event(
        self,
        calendar_id: str,
        event_id: str,
        summary: Optional[str] = None,
        start: Optional[str] = None,
        end: Optional[str] = None,
        description: Optional[str] = None,
        location: Optional[str] = None,
        attendees: Optional[list[str]] = None,
        all_day: bool = False,
    ) -> Event:
        """Patch an event; fields left as None are not changed."""
        body = event_body(summary, start, end, description, location, attendees, all_day)
        return parse_event(
            self._patch(
                f"/calendars/{path_segment(calendar_id)}/events/{path_segment(event_id)}",
                body,
            )
        )

    def delete_event(self, calendar_id: str, event_id: str) -> None:
        self._delete(f"/calendars/{path_segment(calendar_id)}/events/{path_segment(event_id)}")

    def free_busy(
        self, calendar_ids: list[str], start: str, end: str
    ) -> dict[str, list[BusyPeriod]]:
        data = self._post(
            "/freeBusy",
            {
                "timeMin": start,
                "timeMax": end,
                "items": [{"id": cal_id} for cal_id in calendar_ids],
            },
        )
        calendars = data.get("calendars", {})
        return {
            cal_id: [
                BusyPeriod(b["start"], b["end"])
                for b in calendars.get(cal_id, {}).get("busy", [])
            ]
            for cal_id in calendar_ids
        }
