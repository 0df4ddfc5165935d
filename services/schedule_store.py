"""
Schedule stores: anything that can hold an entry for a (date, slot).

The booking store, each company calendar and the internal calendar all
implement the same two calls, so the availability check can treat them
uniformly:

    find_conflict(window) -> description of the conflicting entry, or None
    add_event(event)      -> id of the created entry
"""

import json
import threading
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional

from utils.logger import logger

CALENDAR_SCOPES = ['https://www.googleapis.com/auth/calendar']


@dataclass(frozen=True)
class SlotWindow:
    """One of the fixed daily slots on a given date, in business time."""
    date: date
    slot: str
    start: datetime
    end: datetime
    label: str


@dataclass
class CalendarEvent:
    summary: str
    window: SlotWindow
    description: str = ''
    location: str = ''
    attendees: List[str] = field(default_factory=list)
    booking_id: Optional[str] = None


class ScheduleStore:
    name = 'schedule'

    def find_conflict(self, window: SlotWindow) -> Optional[str]:
        raise NotImplementedError

    def add_event(self, event: CalendarEvent) -> str:
        raise NotImplementedError


class MemoryScheduleStore(ScheduleStore):
    """In-process calendar used when no Google credentials are configured, and in tests"""

    def __init__(self, name):
        self.name = name
        self.events = []
        self._lock = threading.Lock()

    def find_conflict(self, window):
        with self._lock:
            for event in self.events:
                if event['status'] == 'cancelled':
                    continue
                if event['date'] == window.date and event['slot'] == window.slot:
                    return event['summary']
        return None

    def add_event(self, event):
        event_id = f"{self.name}-{uuid.uuid4().hex[:12]}"
        with self._lock:
            self.events.append({
                'id': event_id,
                'date': event.window.date,
                'slot': event.window.slot,
                'summary': event.summary,
                'description': event.description,
                'booking_id': event.booking_id,
                'status': 'confirmed',
            })
        return event_id

    def block(self, on_date, slot, summary='Blocked'):
        """Mark a slot as taken, e.g. a day off on the internal calendar."""
        with self._lock:
            self.events.append({
                'id': f"{self.name}-{uuid.uuid4().hex[:12]}",
                'date': on_date,
                'slot': slot,
                'summary': summary,
                'booking_id': None,
                'status': 'confirmed',
            })


class GoogleCalendarStore(ScheduleStore):
    """Google Calendar API v3 calendar, authorized with a service account"""

    def __init__(self, name, calendar_id, creds_info=None, service=None):
        self.name = name
        self.calendar_id = calendar_id
        if service is None:
            from google.oauth2.service_account import Credentials
            from googleapiclient.discovery import build

            creds = Credentials.from_service_account_info(creds_info, scopes=CALENDAR_SCOPES)
            service = build('calendar', 'v3', credentials=creds, cache_discovery=False)
        self._service = service

    def find_conflict(self, window):
        response = self._service.events().list(
            calendarId=self.calendar_id,
            timeMin=window.start.isoformat(),
            timeMax=window.end.isoformat(),
            singleEvents=True,
            orderBy='startTime',
        ).execute()
        for item in response.get('items', []):
            if item.get('status') == 'cancelled':
                continue
            return item.get('summary') or item.get('id')
        return None

    def add_event(self, event):
        body = {
            'summary': event.summary,
            'start': {'dateTime': event.window.start.isoformat()},
            'end': {'dateTime': event.window.end.isoformat()},
        }
        if event.description:
            body['description'] = event.description
        if event.location:
            body['location'] = event.location
        if event.attendees:
            body['attendees'] = [{'email': addr} for addr in event.attendees]

        result = self._service.events().insert(calendarId=self.calendar_id, body=body).execute()
        logger.info(f"Created event {result['id']} on calendar {self.name}")
        return result['id']


def calendar_names(cfg):
    return [cfg.MAIN_CALENDAR, cfg.LABOR_CALENDAR, cfg.INTERNAL_CALENDAR]


def build_schedule_stores(cfg):
    """Company and internal calendars, Google-backed where ids and credentials exist"""
    calendar_ids = json.loads(cfg.GOOGLE_CALENDAR_IDS) if cfg.GOOGLE_CALENDAR_IDS else {}
    creds_info = json.loads(cfg.GOOGLE_SHEETS_CREDS) if cfg.GOOGLE_SHEETS_CREDS else None

    stores = []
    for name in calendar_names(cfg):
        calendar_id = calendar_ids.get(name)
        if calendar_id and creds_info:
            stores.append(GoogleCalendarStore(name, calendar_id, creds_info=creds_info))
        else:
            logger.warning(f"No Google Calendar configured for {name}; using in-memory calendar")
            stores.append(MemoryScheduleStore(name))
    return stores
