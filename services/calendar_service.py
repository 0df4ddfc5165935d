# Availability checking
from datetime import date, datetime, timedelta, time
from zoneinfo import ZoneInfo

from config import Config
from services.schedule_store import SlotWindow
from utils.logger import logger

MORNING = 'morning'
AFTERNOON = 'afternoon'

# Two fixed arrival windows per day
SLOTS = {
    MORNING: {'start': time(8, 0), 'label': '8-9 AM'},
    AFTERNOON: {'start': time(13, 0), 'label': '1-2 PM'},
}
SLOT_ORDER = (MORNING, AFTERNOON)
ARRIVAL_WINDOW = timedelta(hours=1)


def business_tz():
    return ZoneInfo(Config.BUSINESS_TIMEZONE)


def business_now():
    return datetime.now(business_tz())


def business_today():
    return business_now().date()


def slot_label(slot):
    return SLOTS[slot]['label']


def slot_window(on_date, slot, tz=None):
    """Start/end of the slot's arrival window on a date, timezone aware"""
    if slot not in SLOTS:
        raise ValueError(f"Unknown slot: {slot}")
    start = datetime.combine(on_date, SLOTS[slot]['start'], tzinfo=tz or business_tz())
    return SlotWindow(date=on_date, slot=slot, start=start, end=start + ARRIVAL_WINDOW,
                      label=SLOTS[slot]['label'])


class CalendarService:
    def __init__(self, stores, horizon_days=None, today=None):
        # Booking store first; it is the authority on what is already sold
        self.stores = list(stores)
        self.horizon_days = horizon_days or Config.BOOKING_HORIZON_DAYS
        self.today = today or business_today

    def check_slot(self, move_date, slot):
        """
        Check one slot against every schedule store.
        Returns {'available', 'reason', 'store'}; stops at the first conflict.
        """
        window = slot_window(move_date, slot)
        for store in self.stores:
            try:
                conflict = store.find_conflict(window)
            except Exception as e:
                logger.error(f"Schedule store {store.name} failed for {move_date} {slot}: {e}", exc_info=True)
                return {
                    'available': False,
                    'reason': f"Could not check the {store.name} calendar",
                    'store': store.name,
                }
            if conflict:
                return {
                    'available': False,
                    'reason': f"Already booked on the {store.name} calendar: {conflict}",
                    'store': store.name,
                }
        return {'available': True, 'reason': None, 'store': None}

    def get_available_slots(self, move_date):
        """Status of both daily slots, keyed by slot name, in display order"""
        return {slot: self.check_slot(move_date, slot) for slot in SLOT_ORDER}

    def free_slots(self, move_date):
        return [slot for slot, status in self.get_available_slots(move_date).items() if status['available']]

    def validate_booking_date(self, move_date):
        """Returns (ok, reason). Dates must fall between today and the booking horizon."""
        if not isinstance(move_date, date):
            return False, 'not a date'
        today = self.today()
        if move_date < today:
            return False, 'in the past'
        if move_date > today + timedelta(days=self.horizon_days):
            return False, f'more than {self.horizon_days} days out'
        return True, None

    @staticmethod
    def format_date(move_date):
        return move_date.strftime('%A, %B ') + str(move_date.day)

    def format_slots_message(self, move_date, free):
        """Offer whatever is open on the date"""
        spoken_date = self.format_date(move_date)
        if len(free) == 2:
            return (f"On {spoken_date} we have a morning arrival window from {slot_label(MORNING)} "
                    f"and an afternoon window from {slot_label(AFTERNOON)}. "
                    "Press 1 or say morning, or press 2 or say afternoon.")
        only = free[0]
        return (f"On {spoken_date} we only have the {only} window open, from {slot_label(only)}. "
                f"Say yes or press {1 if only == MORNING else 2} to take it, or say a different day.")
