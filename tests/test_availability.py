"""
Tests for slot availability, schedule stores and booking stores
"""

import threading
import unittest
from datetime import date, timedelta
from unittest.mock import MagicMock

from services.booking_service import (
    Booking, DuplicateBookingError, MemoryBookingStore, PersistenceError, SheetBookingStore, generate_booking_id,
)
from services.calendar_service import AFTERNOON, MORNING, CalendarService, slot_window
from services.schedule_store import CalendarEvent, GoogleCalendarStore, MemoryScheduleStore

TODAY = date(2030, 1, 7)
MOVE_DATE = date(2030, 1, 15)


def make_booking(on_date=MOVE_DATE, slot=MORNING, booking_id=None):
    window = slot_window(on_date, slot)
    return Booking(
        booking_id=booking_id or generate_booking_id(),
        customer={'name': 'John Smith', 'phone': '+13305550100', 'email': 'john@gmail.com'},
        schedule={'date': on_date, 'slot': slot, 'window': window.label},
        service={'category': 'full-service-moving', 'crew_size': 2, 'label': 'movers and truck'},
        route={'pickup': '1 Main St, Canton', 'delivery': '2 Oak St, Akron', 'distance_miles': 25,
               'drive_minutes': 50},
        price_breakdown={'hourly_rate': 211.25, 'total': 963.3},
        originating_call_id='CA123',
    )


class TestCalendarService(unittest.TestCase):
    def setUp(self):
        self.bookings = MemoryBookingStore()
        self.main = MemoryScheduleStore('worry-free-moving')
        self.labor = MemoryScheduleStore('quality-moving')
        self.internal = MemoryScheduleStore('internal')
        self.calendar = CalendarService([self.bookings, self.main, self.labor, self.internal],
                                        horizon_days=90, today=lambda: TODAY)

    def test_open_day(self):
        self.assertEqual(self.calendar.free_slots(MOVE_DATE), [MORNING, AFTERNOON])
        status = self.calendar.check_slot(MOVE_DATE, MORNING)
        self.assertTrue(status['available'])
        self.assertIsNone(status['store'])

    def test_any_calendar_blocks_the_slot(self):
        self.labor.block(MOVE_DATE, MORNING, 'Quality Moving job')
        status = self.calendar.check_slot(MOVE_DATE, MORNING)
        self.assertFalse(status['available'])
        self.assertEqual(status['store'], 'quality-moving')
        self.assertIn('Quality Moving job', status['reason'])
        self.assertEqual(self.calendar.free_slots(MOVE_DATE), [AFTERNOON])

    def test_internal_calendar_blocks_the_day(self):
        self.internal.block(MOVE_DATE, MORNING, 'Day off')
        self.internal.block(MOVE_DATE, AFTERNOON, 'Day off')
        self.assertEqual(self.calendar.free_slots(MOVE_DATE), [])
        self.assertEqual(self.calendar.free_slots(MOVE_DATE + timedelta(days=1)), [MORNING, AFTERNOON])

    def test_cancelled_events_do_not_block(self):
        self.main.block(MOVE_DATE, AFTERNOON, 'Old job')
        self.main.events[0]['status'] = 'cancelled'
        self.assertTrue(self.calendar.check_slot(MOVE_DATE, AFTERNOON)['available'])

    def test_booking_store_is_checked_first(self):
        self.bookings.insert(make_booking(booking_id='WFM-TEST-000001'))
        later = MagicMock()
        calendar = CalendarService([self.bookings, later], today=lambda: TODAY)
        status = calendar.check_slot(MOVE_DATE, MORNING)
        self.assertFalse(status['available'])
        self.assertEqual(status['store'], 'bookings')
        later.find_conflict.assert_not_called()

    def test_store_error_counts_as_unavailable(self):
        broken = MagicMock()
        broken.name = 'worry-free-moving'
        broken.find_conflict.side_effect = ConnectionError("calendar API down")
        calendar = CalendarService([self.bookings, broken], today=lambda: TODAY)
        status = calendar.check_slot(MOVE_DATE, AFTERNOON)
        self.assertFalse(status['available'])
        self.assertEqual(status['store'], 'worry-free-moving')

    def test_validate_booking_date(self):
        self.assertEqual(self.calendar.validate_booking_date(TODAY), (True, None))
        self.assertEqual(self.calendar.validate_booking_date(TODAY - timedelta(days=1)), (False, 'in the past'))
        ok, reason = self.calendar.validate_booking_date(TODAY + timedelta(days=91))
        self.assertFalse(ok)
        self.assertIn('90 days', reason)
        self.assertTrue(self.calendar.validate_booking_date(TODAY + timedelta(days=90))[0])
        self.assertFalse(self.calendar.validate_booking_date('tomorrow')[0])

    def test_slots_message(self):
        both = self.calendar.format_slots_message(MOVE_DATE, [MORNING, AFTERNOON])
        self.assertIn('Tuesday, January 15', both)
        self.assertIn('8-9 AM', both)
        self.assertIn('1-2 PM', both)
        only = self.calendar.format_slots_message(MOVE_DATE, [AFTERNOON])
        self.assertIn('only have the afternoon window', only)
        self.assertIn('press 2', only)

    def test_slot_window(self):
        window = slot_window(MOVE_DATE, AFTERNOON)
        self.assertEqual(window.start.hour, 13)
        self.assertEqual(window.end - window.start, timedelta(hours=1))
        self.assertIsNotNone(window.start.tzinfo)
        with self.assertRaises(ValueError):
            slot_window(MOVE_DATE, 'evening')


class TestGoogleCalendarStore(unittest.TestCase):
    def setUp(self):
        self.service = MagicMock()
        self.store = GoogleCalendarStore('worry-free-moving', 'cal-123', service=self.service)
        self.window = slot_window(MOVE_DATE, MORNING)

    def test_find_conflict_skips_cancelled(self):
        self.service.events().list().execute.return_value = {'items': [
            {'id': 'a', 'status': 'cancelled', 'summary': 'Old'},
            {'id': 'b', 'status': 'confirmed', 'summary': 'Smith move'},
        ]}
        self.assertEqual(self.store.find_conflict(self.window), 'Smith move')
        kwargs = self.service.events().list.call_args.kwargs
        self.assertEqual(kwargs['calendarId'], 'cal-123')
        self.assertEqual(kwargs['timeMin'], self.window.start.isoformat())

    def test_no_items_is_free(self):
        self.service.events().list().execute.return_value = {'items': []}
        self.assertIsNone(self.store.find_conflict(self.window))

    def test_add_event(self):
        self.service.events().insert().execute.return_value = {'id': 'evt-1'}
        event = CalendarEvent(summary='John Smith - movers and truck', window=self.window,
                              location='1 Main St', attendees=['john@gmail.com'])
        self.assertEqual(self.store.add_event(event), 'evt-1')
        body = self.service.events().insert.call_args.kwargs['body']
        self.assertEqual(body['start']['dateTime'], self.window.start.isoformat())
        self.assertEqual(body['attendees'], [{'email': 'john@gmail.com'}])


class TestMemoryBookingStore(unittest.TestCase):
    def test_one_booking_per_slot(self):
        store = MemoryBookingStore()
        first = store.insert(make_booking())
        with self.assertRaises(DuplicateBookingError):
            store.insert(make_booking())
        self.assertIs(store.get(first.booking_id), first)
        self.assertIsNotNone(store.find_conflict(slot_window(MOVE_DATE, MORNING)))
        self.assertIsNone(store.find_conflict(slot_window(MOVE_DATE, AFTERNOON)))

    def test_cancel_frees_the_slot(self):
        store = MemoryBookingStore()
        booking = store.insert(make_booking())
        self.assertTrue(store.cancel(booking.booking_id))
        self.assertFalse(store.cancel(booking.booking_id))
        self.assertIsNone(store.find_conflict(slot_window(MOVE_DATE, MORNING)))
        store.insert(make_booking())

    def test_concurrent_inserts_leave_one_winner(self):
        store = MemoryBookingStore()
        results = []
        barrier = threading.Barrier(8)

        def attempt():
            barrier.wait()
            try:
                store.insert(make_booking())
                results.append('ok')
            except DuplicateBookingError:
                results.append('dup')

        threads = [threading.Thread(target=attempt) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(results.count('ok'), 1)
        self.assertEqual(results.count('dup'), 7)

    def test_booking_ids_are_unique(self):
        ids = {generate_booking_id() for _ in range(200)}
        self.assertEqual(len(ids), 200)
        self.assertTrue(all(i.startswith('WFM-') for i in ids))


class TestSheetBookingStore(unittest.TestCase):
    def setUp(self):
        self.sheet = MagicMock()
        self.sheet.row_values.return_value = ['Booking ID']
        self.sheet.get_all_records.return_value = []
        workbook = MagicMock()
        workbook.worksheet.return_value = self.sheet
        self.store = SheetBookingStore('sheet-id', workbook=workbook)

    def test_insert_appends_row(self):
        booking = make_booking(booking_id='WFM-TEST-ABC123')
        self.store.insert(booking)
        row = self.sheet.append_row.call_args.args[0]
        self.assertEqual(row[0], 'WFM-TEST-ABC123')
        self.assertIn('2030-01-15', row)
        self.assertIn(MORNING, row)

    def test_insert_rejects_taken_slot(self):
        self.sheet.get_all_records.return_value = [
            {'Booking ID': 'WFM-OLD', 'Move Date': '2030-01-15', 'Slot': MORNING, 'Status': 'confirmed'},
        ]
        with self.assertRaises(DuplicateBookingError):
            self.store.insert(make_booking())
        self.sheet.append_row.assert_not_called()
        self.assertEqual(self.store.find_conflict(slot_window(MOVE_DATE, MORNING)), 'booking WFM-OLD')

    def test_cancelled_rows_do_not_count(self):
        self.sheet.get_all_records.return_value = [
            {'Booking ID': 'WFM-OLD', 'Move Date': '2030-01-15', 'Slot': MORNING, 'Status': 'cancelled'},
        ]
        self.store.insert(make_booking())
        self.sheet.append_row.assert_called_once()

    def test_sheet_errors_become_persistence_errors(self):
        self.sheet.append_row.side_effect = ConnectionError("quota exceeded")
        with self.assertRaises(PersistenceError):
            self.store.insert(make_booking())


if __name__ == '__main__':
    unittest.main()
