# Booking persistence
import json
import threading
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Dict, Optional

from services.schedule_store import ScheduleStore
from utils.logger import logger

CONFIRMED = 'confirmed'
CANCELLED = 'cancelled'

SHEET_SCOPES = [
    'https://spreadsheets.google.com/feeds',
    'https://www.googleapis.com/auth/drive',
    'https://www.googleapis.com/auth/spreadsheets'
]

BOOKING_HEADERS = [
    'Booking ID', 'Date Created', 'Customer Name', 'Phone', 'Email',
    'Service', 'Crew Size', 'Pickup Address', 'Delivery Address', 'Distance (miles)', 'Drive Minutes',
    'Move Date', 'Slot', 'Window', 'Hourly Rate', 'Total Estimate', 'Price Breakdown',
    'Status', 'Source', 'Call SID', 'Calendar', 'Calendar Synced', 'Updated'
]


class DuplicateBookingError(Exception):
    """A confirmed booking already holds this (date, slot)."""


class PersistenceError(Exception):
    """The booking store could not record the booking."""


def _base36(number):
    chars = '0123456789abcdefghijklmnopqrstuvwxyz'
    out = ''
    while number:
        number, rem = divmod(number, 36)
        out = chars[rem] + out
    return out or '0'


def generate_booking_id():
    """Short id a caller can read back: WFM-<time in base 36>-<random>"""
    return f"WFM-{_base36(int(time.time() * 1000)).upper()}-{uuid.uuid4().hex[:6].upper()}"


@dataclass
class Booking:
    booking_id: str
    customer: Dict[str, str]
    schedule: Dict[str, object]
    service: Dict[str, object]
    route: Dict[str, object]
    price_breakdown: Dict[str, object]
    originating_call_id: Optional[str] = None
    status: str = CONFIRMED
    source: str = 'voice'
    calendar: Optional[str] = None
    calendar_synced: bool = False
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def move_date(self) -> date:
        return self.schedule['date']

    @property
    def slot(self):
        return self.schedule['slot']

    @property
    def key(self):
        return self.move_date, self.slot

    def to_dict(self):
        return asdict(self)


class BookingStore(ScheduleStore):
    """Persistent booking records; also answers availability for the slots it holds"""
    name = 'bookings'

    def insert(self, booking: Booking) -> Booking:
        raise NotImplementedError

    def get(self, booking_id) -> Optional[Booking]:
        raise NotImplementedError

    def mark_calendar_synced(self, booking_id, calendar, synced):
        raise NotImplementedError


class MemoryBookingStore(BookingStore):
    def __init__(self):
        self._bookings = {}
        self._by_slot = {}
        self._lock = threading.Lock()

    def insert(self, booking):
        with self._lock:
            if booking.key in self._by_slot:
                raise DuplicateBookingError(f"{booking.move_date} {booking.slot} is already booked")
            self._bookings[booking.booking_id] = booking
            self._by_slot[booking.key] = booking.booking_id
        logger.info(f"Stored booking {booking.booking_id} for {booking.move_date} {booking.slot}")
        return booking

    def get(self, booking_id):
        return self._bookings.get(booking_id)

    def find_conflict(self, window):
        booking_id = self._by_slot.get((window.date, window.slot))
        if booking_id:
            return f"booking {booking_id}"
        return None

    def cancel(self, booking_id):
        with self._lock:
            booking = self._bookings.get(booking_id)
            if booking is None or booking.status == CANCELLED:
                return False
            booking.status = CANCELLED
            booking.updated_at = datetime.now()
            self._by_slot.pop(booking.key, None)
        return True

    def mark_calendar_synced(self, booking_id, calendar, synced):
        booking = self._bookings.get(booking_id)
        if booking:
            booking.calendar = calendar
            booking.calendar_synced = synced
            booking.updated_at = datetime.now()


class SheetBookingStore(BookingStore):
    """Bookings worksheet in a Google Sheet.

    The uniqueness check re-reads the sheet and appends under a process lock,
    so it only holds while this process is the single writer.
    """

    def __init__(self, sheet_id, creds_info=None, workbook=None):
        if workbook is None:
            import gspread
            from google.oauth2.service_account import Credentials

            creds = Credentials.from_service_account_info(creds_info, scopes=SHEET_SCOPES)
            client = gspread.authorize(creds)
            workbook = client.open_by_key(sheet_id)
        self.workbook = workbook
        self.bookings_sheet = self._get_or_create_sheet('Bookings')
        self._lock = threading.Lock()
        self._initialize_headers()

    def _get_or_create_sheet(self, sheet_name):
        """Get existing sheet or create new one"""
        import gspread
        try:
            return self.workbook.worksheet(sheet_name)
        except gspread.WorksheetNotFound:
            return self.workbook.add_worksheet(title=sheet_name, rows=1000, cols=len(BOOKING_HEADERS))

    def _initialize_headers(self):
        if not self.bookings_sheet.row_values(1):
            self.bookings_sheet.append_row(BOOKING_HEADERS)

    @staticmethod
    def _is_active(record, on_date, slot):
        return (str(record.get('Move Date', '')) == on_date.isoformat()
                and record.get('Slot') == slot
                and record.get('Status') != CANCELLED)

    def _row_for(self, booking):
        quote = booking.price_breakdown
        return [
            booking.booking_id,
            booking.created_at.strftime('%Y-%m-%d %H:%M:%S'),
            booking.customer.get('name', ''),
            booking.customer.get('phone', ''),
            booking.customer.get('email', ''),
            booking.service.get('category', ''),
            booking.service.get('crew_size', ''),
            booking.route.get('pickup', ''),
            booking.route.get('delivery', ''),
            booking.route.get('distance_miles', ''),
            booking.route.get('drive_minutes', ''),
            booking.move_date.isoformat(),
            booking.slot,
            booking.schedule.get('window', ''),
            round(quote.get('hourly_rate', 0), 2),
            round(quote.get('total', 0), 2),
            json.dumps(quote),
            booking.status,
            booking.source,
            booking.originating_call_id or '',
            booking.calendar or '',
            'Yes' if booking.calendar_synced else 'No',
            booking.updated_at.strftime('%Y-%m-%d %H:%M:%S'),
        ]

    def insert(self, booking):
        with self._lock:
            try:
                records = self.bookings_sheet.get_all_records()
            except Exception as e:
                raise PersistenceError(f"Could not read bookings sheet: {e}") from e
            for record in records:
                if self._is_active(record, booking.move_date, booking.slot):
                    raise DuplicateBookingError(
                        f"{booking.move_date} {booking.slot} is already booked by {record.get('Booking ID')}")
            try:
                self.bookings_sheet.append_row(self._row_for(booking))
            except Exception as e:
                raise PersistenceError(f"Could not append booking {booking.booking_id}: {e}") from e
        logger.info(f"Saved booking {booking.booking_id} to Google Sheets")
        return booking

    def get(self, booking_id):
        for record in self.bookings_sheet.get_all_records():
            if record.get('Booking ID') == booking_id:
                return record
        return None

    def find_conflict(self, window):
        for record in self.bookings_sheet.get_all_records():
            if self._is_active(record, window.date, window.slot):
                return f"booking {record.get('Booking ID')}"
        return None

    def mark_calendar_synced(self, booking_id, calendar, synced):
        cell = self.bookings_sheet.find(booking_id)
        if cell is None:
            return
        self.bookings_sheet.update_cell(cell.row, BOOKING_HEADERS.index('Calendar') + 1, calendar or '')
        self.bookings_sheet.update_cell(cell.row, BOOKING_HEADERS.index('Calendar Synced') + 1,
                                        'Yes' if synced else 'No')


def build_booking_store(cfg):
    if cfg.GOOGLE_SHEETS_CREDS and cfg.BOOKING_SHEET_ID:
        return SheetBookingStore(cfg.BOOKING_SHEET_ID, creds_info=json.loads(cfg.GOOGLE_SHEETS_CREDS))
    logger.warning("Google Sheets not configured; bookings are kept in memory")
    return MemoryBookingStore()
