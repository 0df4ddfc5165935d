"""
Tests for the call session store
"""

import unittest
from datetime import datetime, timedelta

from services.session_service import AMBIGUOUS_INPUT, ESCAPE, CallSession, SessionStore, Turn
from utils.logger import call_logger


class TestSessionStore(unittest.TestCase):
    def setUp(self):
        self.store = SessionStore(idle_minutes=15)
        self.start = datetime(2030, 1, 7, 9, 0)

    def test_lifecycle(self):
        session = self.store.create('CA1', '+13305550100', 'greeting', now=self.start)
        self.assertIn('CA1', self.store)
        self.assertEqual(len(self.store), 1)
        self.assertIs(self.store.get('CA1'), session)
        self.assertEqual(session.attempts, {AMBIGUOUS_INPUT: 0, ESCAPE: 0, 'slot_unavailable': 0})

        later = self.start + timedelta(minutes=3)
        self.assertIs(self.store.touch('CA1', now=later), session)
        self.assertEqual(session.last_activity_at, later)

        self.assertIs(self.store.close('CA1'), session)
        self.assertTrue(session.closed)
        self.assertNotIn('CA1', self.store)
        self.assertIsNone(self.store.close('CA1'))
        self.assertIsNone(self.store.touch('CA1'))

    def test_expire_idle(self):
        self.store.create('old', None, 'main-menu', now=self.start)
        self.store.create('fresh', None, 'main-menu', now=self.start + timedelta(minutes=10))
        expired = self.store.expire_idle(now=self.start + timedelta(minutes=16))
        self.assertEqual([s.call_id for s in expired], ['old'])
        self.assertTrue(expired[0].closed)
        self.assertNotIn('old', self.store)
        self.assertIn('fresh', self.store)

    def test_separate_calls_do_not_share_state(self):
        a = self.store.create('A', None, 'main-menu')
        b = self.store.create('B', None, 'main-menu')
        a.collected['pickup_address'] = '1 Main St'
        a.bump(ESCAPE)
        self.assertEqual(b.collected, {})
        self.assertEqual(b.attempts[ESCAPE], 0)


class TestCallSession(unittest.TestCase):
    def test_quote_is_written_once(self):
        session = CallSession(call_id='CA1', caller_contact=None, stage='finalize-quote')
        session.set_quote('first')
        with self.assertRaises(ValueError):
            session.set_quote('second')
        session.clear_quote()
        session.set_quote('second')
        self.assertEqual(session.quote, 'second')

    def test_bump_counts(self):
        session = CallSession(call_id='CA1', caller_contact=None, stage='main-menu')
        self.assertEqual(session.bump(AMBIGUOUS_INPUT), 1)
        self.assertEqual(session.bump(AMBIGUOUS_INPUT), 2)
        self.assertEqual(session.bump('other'), 1)

    def test_stages_visited(self):
        session = CallSession(call_id='CA1', caller_contact=None, stage='greeting')
        self.assertEqual(session.stages_visited(), ['greeting'])
        session.record(Turn('greeting', 'main-menu', None))
        session.record(Turn('main-menu', 'service-type', '1'))
        self.assertEqual(session.stages_visited(), ['greeting', 'main-menu', 'service-type'])

    def test_call_logger_prefixes_call_id(self):
        with self.assertLogs('call_agent', level='INFO') as logs:
            call_logger('CA7').info('main-menu -> service-type')
        self.assertIn('Call CA7 - main-menu -> service-type', logs.output[0])


if __name__ == '__main__':
    unittest.main()
