"""
Tests for field extraction and the NLU wrapper
"""

import unittest
from datetime import date
from unittest.mock import MagicMock

from services.ai_service import AIService, AIServiceError
from services.extraction_service import FAILED, FALLBACK, OK, ExtractionService

TODAY = date(2030, 1, 7)


class FakeAI:
    """Stands in for AIService; returns canned values or raises"""

    def __init__(self, values=None, error=None, enabled=True):
        self.values = values or {}
        self.error = error
        self.enabled = enabled
        self.calls = []

    def extract_field(self, user_input, field_name, schema_description):
        self.calls.append((user_input, field_name, schema_description))
        if self.error:
            raise self.error
        return self.values.get(field_name)


def make_extractor(ai=None):
    return ExtractionService(ai_service=ai or FakeAI(enabled=False), today=lambda: TODAY)


class TestExtractionService(unittest.TestCase):
    def test_rules_win_with_full_confidence(self):
        ai = FakeAI(values={'email': 'other@example.com'})
        result = make_extractor(ai).extract("john at gmail dot com", 'email')
        self.assertEqual(result.kind, OK)
        self.assertEqual(result.value, 'john@gmail.com')
        self.assertEqual(result.source, 'rules')
        self.assertEqual(result.confidence, 1.0)
        self.assertEqual(ai.calls, [])

    def test_nlu_used_for_free_text(self):
        ai = FakeAI(values={'name': {'first': 'maria', 'last': 'de la cruz'}})
        result = make_extractor(ai).extract("uh it's maria de la cruz", 'name')
        self.assertEqual(result.kind, OK)
        self.assertEqual(result.source, 'nlu')
        self.assertEqual(result.value, ('Maria', 'De La Cruz'))

    def test_move_date_prompt_carries_today(self):
        ai = FakeAI(values={'move_date': '2030-02-14'})
        result = make_extractor(ai).extract("valentine's day", 'move_date')
        self.assertEqual(result.value, date(2030, 2, 14))
        self.assertIn('Today is 2030-01-07', ai.calls[0][2])

    def test_nlu_failure_falls_back_to_heuristic(self):
        ai = FakeAI(error=AIServiceError("timed out"))
        result = make_extractor(ai).extract("123 Main Street, Canton", 'address')
        self.assertEqual(result.kind, FALLBACK)
        self.assertEqual(result.source, 'heuristic')
        self.assertEqual(result.value, '123 Main Street, Canton')
        self.assertEqual(result.confidence, 0.5)

    def test_unexpected_nlu_error_falls_back(self):
        ai = FakeAI(error=RuntimeError("boom"))
        result = make_extractor(ai).extract("jay at example dot org", 'email')
        # The rule parser already handles this one
        self.assertEqual(result.value, 'jay@example.org')
        result = make_extractor(ai).extract("sometime soon", 'move_date')
        self.assertEqual(result.kind, FALLBACK)
        self.assertEqual(result.value, date(2030, 1, 14))

    def test_bad_nlu_value_is_discarded(self):
        ai = FakeAI(values={'email': 'not an email'})
        result = make_extractor(ai).extract("j smith at", 'email')
        self.assertEqual(result.source, 'heuristic')
        self.assertEqual(result.value, 'jsmith@')

    def test_default_used_when_nothing_parses(self):
        result = make_extractor().extract("umm", 'stairs')
        self.assertEqual(result.kind, FALLBACK)
        self.assertEqual(result.value, 0)
        self.assertEqual(result.source, 'default')
        result = make_extractor().extract("", 'packing')
        self.assertEqual(result.kind, FALLBACK)
        self.assertFalse(result.value)

    def test_structured_fields_skip_nlu(self):
        ai = FakeAI(values={'bedrooms': 3})
        result = make_extractor(ai).extract("lots", 'bedrooms')
        self.assertEqual(result.kind, FAILED)
        self.assertFalse(result.ok)
        self.assertEqual(ai.calls, [])

    def test_unknown_field_fails(self):
        self.assertEqual(make_extractor().extract("hello", 'shoe_size').kind, FAILED)

    def test_never_raises(self):
        extractor = make_extractor(FakeAI(error=RuntimeError("down")))
        for field_name in extractor.fields:
            for utterance in ('', None, '???', '9'):
                result = extractor.extract(utterance, field_name)
                self.assertIn(result.kind, (OK, FALLBACK, FAILED), field_name)


class TestAIService(unittest.TestCase):
    def test_parse_value_accepts_code_fence(self):
        self.assertEqual(AIService.parse_value('```json\n{"value": "john@gmail.com"}\n```'), 'john@gmail.com')
        self.assertIsNone(AIService.parse_value('{"value": null}'))

    def test_parse_value_rejects_garbage(self):
        with self.assertRaises(AIServiceError):
            AIService.parse_value('sure, the email is john@gmail.com')
        with self.assertRaises(AIServiceError):
            AIService.parse_value('{"email": "john@gmail.com"}')

    def test_disabled_without_key(self):
        service = AIService(api_key='')
        self.assertFalse(service.enabled)
        with self.assertRaises(AIServiceError):
            service.extract_field("hi", 'name', '')

    def test_extract_field_uses_client(self):
        client = MagicMock()
        client.chat.completions.create.return_value.choices[0].message.content = '{"value": "2030-03-01"}'
        service = AIService(api_key='', model='test-model', client=client)
        self.assertTrue(service.enabled)
        self.assertEqual(service.extract_field("march first", 'move_date', 'A date.'), '2030-03-01')
        kwargs = client.chat.completions.create.call_args.kwargs
        self.assertEqual(kwargs['model'], 'test-model')
        self.assertEqual(kwargs['temperature'], 0)

    def test_client_errors_are_wrapped(self):
        client = MagicMock()
        client.chat.completions.create.side_effect = TimeoutError("slow")
        service = AIService(api_key='', client=client)
        with self.assertRaises(AIServiceError):
            service.extract_field("hello", 'address', '')


if __name__ == '__main__':
    unittest.main()
