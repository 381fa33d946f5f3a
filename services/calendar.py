import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional

import httplib2
from google.oauth2.service_account import Credentials as SvcCreds
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from services.availability import default_duration
from services.errors import ExternalServiceFailure
from utils.timeparse import combine

SCOPES = ["https://www.googleapis.com/auth/calendar"]
log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalendarEvent:
    event_id: str
    meet_link: Optional[str]


class CalendarService:
    """Creates/deletes the calendar event (with a meeting link) behind a booking."""

    def create_event(self, booking) -> Optional[CalendarEvent]:
        raise NotImplementedError

    def delete_event(self, event_id: str) -> None:
        raise NotImplementedError


class NullCalendarService(CalendarService):
    """Used when calendar integration is switched off: no event, no link, no warning."""

    def create_event(self, booking) -> Optional[CalendarEvent]:
        return None

    def delete_event(self, event_id: str) -> None:
        return None


class GoogleCalendarService(CalendarService):
    def __init__(self, calendar_id: str, service_account_file: str, delegate: Optional[str] = None,
                 time_zone: str = "UTC", timeout: int = 10):
        self.calendar_id = calendar_id or "primary"
        self.service_account_file = service_account_file
        self.delegate = delegate
        self.time_zone = time_zone
        self.timeout = timeout
        self._service: Any = None

    def _get_service(self):
        if self._service is not None:
            return self._service
        if not self.service_account_file:
            raise ExternalServiceFailure("Google Calendar credentials not configured")
        try:
            creds = SvcCreds.from_service_account_file(self.service_account_file, scopes=SCOPES)
            if self.delegate:
                creds = creds.with_subject(self.delegate)
            http = AuthorizedHttp(creds, http=httplib2.Http(timeout=self.timeout))
            self._service = build("calendar", "v3", http=http, cache_discovery=False)
        except (OSError, ValueError) as exc:
            raise ExternalServiceFailure(f"Google Calendar unavailable: {exc}")
        return self._service

    def _event_body(self, booking) -> dict:
        start_at = combine(booking.date, booking.time)
        if start_at is None:
            raise ExternalServiceFailure(f"Booking {booking.id} has an unparseable start time")
        end_at = combine(booking.date, booking.end_time) if booking.end_time else None
        if end_at is None or end_at <= start_at:
            end_at = start_at + timedelta(hours=default_duration(booking.type))

        kind = "Free consultation" if booking.type == "free" else "Consultation"
        return {
            "summary": f"{kind} with {booking.email}",
            "description": f"Booking #{booking.id} ({booking.type})",
            "start": {"dateTime": start_at.isoformat(), "timeZone": self.time_zone},
            "end": {"dateTime": end_at.isoformat(), "timeZone": self.time_zone},
            "attendees": [{"email": booking.email}],
            "conferenceData": {
                "createRequest": {
                    "requestId": uuid.uuid4().hex,
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                }
            },
        }

    def create_event(self, booking) -> Optional[CalendarEvent]:
        service = self._get_service()
        try:
            event = service.events().insert(
                calendarId=self.calendar_id,
                body=self._event_body(booking),
                conferenceDataVersion=1,
                sendUpdates="all",
            ).execute()
        except (HttpError, OSError, httplib2.HttpLib2Error) as exc:
            raise ExternalServiceFailure(f"Calendar event creation failed: {exc}")

        meet_link = event.get("hangoutLink")
        if not meet_link:
            for entry in (event.get("conferenceData") or {}).get("entryPoints", []):
                if entry.get("entryPointType") == "video":
                    meet_link = entry.get("uri")
                    break
        log.info("Created calendar event %s for booking %s", event.get("id"), booking.id)
        return CalendarEvent(event_id=event.get("id"), meet_link=meet_link)

    def delete_event(self, event_id: str) -> None:
        service = self._get_service()
        try:
            service.events().delete(calendarId=self.calendar_id, eventId=event_id, sendUpdates="all").execute()
        except HttpError as exc:
            if getattr(exc.resp, "status", None) in (404, 410):
                return
            raise ExternalServiceFailure(f"Calendar event deletion failed: {exc}")
        except (OSError, httplib2.HttpLib2Error) as exc:
            raise ExternalServiceFailure(f"Calendar event deletion failed: {exc}")


def calendar_from_config(config) -> CalendarService:
    if not config.get("GOOGLE_CALENDAR_ENABLED"):
        return NullCalendarService()
    return GoogleCalendarService(
        calendar_id=config.get("GOOGLE_CALENDAR_ID", "primary"),
        service_account_file=config.get("GOOGLE_SERVICE_ACCOUNT_FILE"),
        delegate=config.get("GOOGLE_CALENDAR_DELEGATE"),
        time_zone=config.get("CALENDAR_TIME_ZONE", "UTC"),
        timeout=config.get("CALENDAR_TIMEOUT_SECONDS", 10),
    )
