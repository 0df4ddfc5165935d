"""
End-to-end call flow tests: inbound events in, telephony actions out
"""

import unittest
from datetime import date, datetime, timedelta
from unittest.mock import MagicMock

from config import TestingConfig
from handlers.call_flow import CallFlowEngine
from handlers.estimate_handlers import spell_out
from handlers.stages import (
    BOOKING_DATE, BOOKING_SLOT, DECISION, EMAIL_QUOTE, FINALIZE_QUOTE, MAIN_MENU, PICKUP_ADDRESS, SERVICE_TYPE,
    is_allowed_move,
)
from services.ai_service import AIService
from services.booking_coordinator import BookingCoordinator
from services.booking_service import MemoryBookingStore
from services.calendar_service import AFTERNOON, MORNING, CalendarService, slot_window
from services.distance_service import DistanceService
from services.extraction_service import ExtractionService
from services.notification_service import EMAIL, QUOTE_ONLY
from services.pricing_service import PricingService
from services.schedule_store import MemoryScheduleStore
from services.session_service import ESCAPE, SessionStore

TODAY = date(2030, 1, 7)
MOVE_DATE = date(2030, 1, 15)
CALLER = '+13305550100'

# Canton house, 2 bedrooms, no stairs -> Akron apartment, 2 bedrooms, one flight; nothing extra
QUOTE_ANSWERS = [
    '123 Main Street, Canton', '1', '2', 'none',
    '45 Oak Avenue, Akron', '2', '2', 'one flight',
    '2', '2', '2',
]


class CallFlowTestCase(unittest.TestCase):
    def setUp(self):
        self.bookings = MemoryBookingStore()
        self.calendars = [MemoryScheduleStore(name) for name in ('worry-free-moving', 'quality-moving', 'internal')]
        self.internal = self.calendars[2]
        self.calendar = CalendarService([self.bookings] + self.calendars, horizon_days=90, today=lambda: TODAY)

        self.notifier = MagicMock()
        self.notifier.notify.return_value = 'sent'
        self.notifier.dispatch.return_value = {'email': 'sent', 'sms': 'sent'}
        self.notifier.send_booking_link.return_value = 'sent'
        self.notifier.notify_manager.return_value = 'sent'
        self.notifier.alert_operators.return_value = 'sent'

        self.engine = CallFlowEngine(
            sessions=SessionStore(15),
            extractor=ExtractionService(ai_service=AIService(api_key=''), today=lambda: TODAY),
            pricing=PricingService(TestingConfig),
            distance=DistanceService(api_key=''),
            calendar=self.calendar,
            coordinator=BookingCoordinator(self.bookings, self.calendar, self.calendars, self.notifier,
                                           TestingConfig),
            notifier=self.notifier,
            config=TestingConfig,
        )

    def say(self, call_id, text):
        return self.engine.handle_turn(call_id, speech=text, caller=CALLER)

    def redirect(self, call_id):
        return self.engine.handle_turn(call_id, caller=CALLER)

    def start(self, call_id='CA1'):
        action = self.engine.start_call(call_id, CALLER)
        return self.engine.sessions.get(call_id), action

    def run_to_decision(self, call_id='CA1'):
        session, _ = self.start(call_id)
        self.say(call_id, '1')
        self.say(call_id, '1')
        for answer in QUOTE_ANSWERS:
            action = self.say(call_id, answer)
        self.assertTrue(action.redirect)
        self.redirect(call_id)
        action = self.redirect(call_id)
        self.assertEqual(session.stage, DECISION)
        return session, action

    def run_to_slot(self, call_id='CA1'):
        session, _ = self.run_to_decision(call_id)
        self.say(call_id, '1')
        self.say(call_id, 'John Smith')
        self.say(call_id, 'john at gmail dot com')
        return session


class TestHappyPath(CallFlowTestCase):
    def test_greeting_then_menu(self):
        session, action = self.start()
        self.assertTrue(action.gather)
        self.assertEqual(action.say[0], f"Thank you for calling {TestingConfig.COMPANY_NAME}!")
        self.assertEqual(session.stage, MAIN_MENU)

    def test_quote_and_booking(self):
        session, action = self.run_to_decision()
        self.assertAlmostEqual(session.quote.total, 1254.10, places=2)
        self.assertEqual(session.quote.crew_size, 3)
        self.assertEqual(session.collected['distance_source'], 'fallback')
        self.assertTrue(action.gather)
        self.assertIn('$1,254', action.say[0])

        self.say('CA1', '1')
        self.say('CA1', 'John Smith')
        self.say('CA1', 'john at gmail dot com')
        action = self.say('CA1', 'January 15th')
        self.assertEqual(session.stage, BOOKING_SLOT)
        self.assertEqual(session.collected['offered_slots'], [MORNING, AFTERNOON])
        self.assertIn('Tuesday, January 15', action.say[-1])

        action = self.say('CA1', '1')
        self.assertTrue(action.redirect)
        action = self.redirect('CA1')

        self.assertTrue(action.hangup)
        booking_id = session.collected['booking_id']
        booking = self.bookings.get(booking_id)
        self.assertEqual(booking.customer['name'], 'John Smith')
        self.assertEqual(booking.customer['email'], 'john@gmail.com')
        self.assertEqual(booking.customer['phone'], CALLER)
        self.assertEqual(booking.key, (MOVE_DATE, MORNING))
        self.assertIn(spell_out(booking_id), ' '.join(action.say))
        self.assertTrue(session.closed)
        self.assertNotIn('CA1', self.engine.sessions)
        self.notifier.send_transcript.assert_called_once_with(session)

        stages = session.stages_visited()
        for before, after in zip(stages, stages[1:]):
            self.assertTrue(is_allowed_move(before, after), f"{before} -> {after}")

    def test_keypad_wins_over_speech(self):
        self.start()
        self.engine.handle_turn('CA1', digits='1', speech='I already have a quote and want to book')
        self.assertEqual(self.engine.sessions.get('CA1').stage, SERVICE_TYPE)

    def test_booking_link(self):
        session, _ = self.start()
        action = self.say('CA1', '2')
        self.assertTrue(action.redirect)
        action = self.redirect('CA1')
        self.assertTrue(action.hangup)
        self.notifier.send_booking_link.assert_called_once_with(CALLER)
        self.assertEqual(session.collected['booking_link_status'], 'sent')

    def test_email_quote(self):
        session, _ = self.run_to_decision()
        action = self.say('CA1', 'no')
        self.assertEqual(session.stage, EMAIL_QUOTE)
        self.assertTrue(action.gather)

        action = self.say('CA1', 'john at gmail dot com')
        self.assertTrue(action.hangup)
        channel, template, context = self.notifier.notify.call_args.args
        self.assertEqual((channel, template), (EMAIL, QUOTE_ONLY))
        self.assertEqual(context['email'], 'john@gmail.com')
        self.assertEqual(context['total'], '$1,254')

    def test_email_quote_declined(self):
        self.run_to_decision()
        self.say('CA1', '2')
        action = self.say('CA1', 'no thanks')
        self.assertTrue(action.hangup)
        self.notifier.notify.assert_not_called()


class TestRecovery(CallFlowTestCase):
    def test_hidden_escape_deflects_then_transfers(self):
        session, _ = self.start()
        action = self.engine.handle_turn('CA1', digits='9')
        self.assertEqual(session.stage, SERVICE_TYPE)
        self.assertTrue(action.gather)
        self.assertIn("I'd love to help you first", action.say[0])

        action = self.engine.handle_turn('CA1', digits='9')
        self.assertEqual(action.transfer_to, TestingConfig.TRANSFER_NUMBER)
        self.assertTrue(session.closed)

    def test_asking_for_a_person_counts_toward_escape(self):
        session, _ = self.start()
        self.say('CA1', 'can I speak to a person')
        self.assertEqual(session.stage, SERVICE_TYPE)
        action = self.say('CA1', 'I want a human')
        self.assertEqual(action.transfer_to, TestingConfig.TRANSFER_NUMBER)
        self.assertEqual(session.attempts[ESCAPE], 2)

    def test_unrecognized_input_transfers_after_retries(self):
        session, _ = self.start()
        for _ in range(TestingConfig.MAX_STAGE_RETRIES):
            action = self.say('CA1', 'hello?')
            self.assertTrue(action.gather)
            self.assertEqual(session.stage, MAIN_MENU)
        action = self.say('CA1', 'hello?')
        self.assertEqual(action.transfer_to, TestingConfig.TRANSFER_NUMBER)

    def test_progress_resets_retry_budget(self):
        session, _ = self.start()
        self.say('CA1', 'hello?')
        self.say('CA1', 'hello?')
        self.say('CA1', '1')
        action = self.say('CA1', 'what?')
        self.assertTrue(action.gather)
        self.assertEqual(session.stage, SERVICE_TYPE)

    def test_start_over_clears_quote(self):
        session, _ = self.run_to_decision()
        first_quote = session.quote
        action = self.say('CA1', 'can we start over')
        self.assertEqual(session.stage, PICKUP_ADDRESS)
        self.assertIsNone(session.quote)
        self.assertTrue(action.gather)

        answers = list(QUOTE_ANSWERS)
        answers[7] = 'no stairs'
        for answer in answers:
            self.say('CA1', answer)
        self.redirect('CA1')
        self.redirect('CA1')
        self.assertEqual(session.stage, DECISION)
        self.assertIsNot(session.quote, first_quote)
        self.assertEqual(session.quote.crew_size, 2)

    def test_slot_taken_during_booking(self):
        session = self.run_to_slot()
        self.say('CA1', 'January 15th')
        self.say('CA1', 'morning')

        # Someone else takes the morning before this call reaches the booking step
        self.internal.block(MOVE_DATE, MORNING, 'Phone booking')
        action = self.redirect('CA1')
        self.assertEqual(session.stage, BOOKING_DATE)
        self.assertTrue(action.gather)
        self.assertIn('just booked', action.say[0])
        self.assertIsNone(self.bookings.find_conflict(slot_window(MOVE_DATE, MORNING)))

        action = self.say('CA1', 'January 15th')
        self.assertEqual(session.collected['offered_slots'], [AFTERNOON])
        self.assertIn('only have the afternoon window', action.say[-1])

        self.say('CA1', 'yes')
        action = self.redirect('CA1')
        self.assertTrue(action.hangup)
        self.assertEqual(self.bookings.get(session.collected['booking_id']).slot, AFTERNOON)

    def test_fully_booked_day_transfers(self):
        self.internal.block(MOVE_DATE, MORNING, 'Day off')
        self.internal.block(MOVE_DATE, AFTERNOON, 'Day off')
        self.run_to_slot()
        action = self.say('CA1', 'January 15th')
        self.assertEqual(action.transfer_to, TestingConfig.TRANSFER_NUMBER)

    def test_different_day_goes_back_to_date(self):
        session = self.run_to_slot()
        self.say('CA1', 'January 15th')
        self.say('CA1', 'can we do a different day')
        self.assertEqual(session.stage, BOOKING_DATE)

    def test_date_outside_horizon_is_asked_again(self):
        session = self.run_to_slot()
        action = self.say('CA1', (TODAY + timedelta(days=120)).isoformat())
        self.assertEqual(session.stage, BOOKING_DATE)
        self.assertIn('more than 90 days out', action.say[0])

    def test_pricing_failure_transfers(self):
        self.engine.sessions.create('CA2', CALLER, FINALIZE_QUOTE)
        action = self.redirect('CA2')
        self.assertEqual(action.transfer_to, TestingConfig.TRANSFER_NUMBER)

    def test_handler_crash_transfers(self):
        self.engine.distance = MagicMock()
        self.engine.distance.get_route.side_effect = RuntimeError("boom")
        session, _ = self.start()
        self.say('CA1', '1')
        self.say('CA1', '1')
        for answer in QUOTE_ANSWERS:
            self.say('CA1', answer)
        action = self.redirect('CA1')
        self.assertEqual(action.transfer_to, TestingConfig.TRANSFER_NUMBER)
        self.assertTrue(session.closed)

    def test_unknown_call_starts_over(self):
        action = self.engine.handle_turn('CA-new', digits='1', caller=CALLER)
        self.assertTrue(action.gather)
        self.assertEqual(self.engine.sessions.get('CA-new').stage, MAIN_MENU)

    def test_stage_may_only_write_its_own_fields(self):
        session, _ = self.start()
        with self.assertRaises(ValueError):
            self.engine._write_fields(session, MAIN_MENU, {'email': 'john@gmail.com'})

    def test_end_call_and_idle_expiry(self):
        self.start('CA1')
        self.start('CA2')
        self.engine.end_call('CA1', 'completed')
        self.assertNotIn('CA1', self.engine.sessions)
        expired = self.engine.expire_idle(now=datetime.now() + timedelta(minutes=30))
        self.assertEqual([s.call_id for s in expired], ['CA2'])
        self.assertEqual(len(self.engine.sessions), 0)


if __name__ == '__main__':
    unittest.main()
