"""
Field extraction: turn one caller utterance into one structured value.

Each field is tried, in order, against
  1. its deterministic rule parser (digits and keywords),
  2. the NLU model, for free-text fields only,
  3. a deterministic heuristic, for free-text fields only,
  4. the field's safe default, where one exists.
The result is always an ``Extraction``; nothing here raises.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Callable, Dict, Optional

from services.ai_service import AIService, AIServiceError
from services.calendar_service import business_today
from services.validation_service import ValidationService
from utils.logger import logger

OK = 'ok'
FALLBACK = 'fallback'
FAILED = 'failed'

CONFIDENCE = {
    'rules': 1.0,
    'nlu': 0.8,
    'heuristic': 0.5,
    'default': 0.3,
}

_NO_DEFAULT = object()


@dataclass(frozen=True)
class Extraction:
    kind: str
    value: Any = None
    confidence: float = 0.0
    source: Optional[str] = None

    @property
    def ok(self):
        return self.kind in (OK, FALLBACK)

    @classmethod
    def failed(cls):
        return cls(kind=FAILED)


@dataclass
class FieldSpec:
    name: str
    parser: Optional[Callable[[str, date], Any]] = None
    free_text: bool = False
    description: str = ''
    coerce: Optional[Callable[[Any], Any]] = None
    heuristic: Optional[Callable[[str, date], Any]] = None
    default: Any = _NO_DEFAULT


class ExtractionService:
    def __init__(self, validator=None, ai_service=None, today=None):
        self.validator = validator or ValidationService()
        self.ai = ai_service or AIService()
        self.today = today or business_today
        self.fields: Dict[str, FieldSpec] = self._build_fields()

    def _build_fields(self):
        v = self.validator

        def yes_no_bool(text, today):
            answer = v.validate_yes_no(text)
            return None if answer is None else answer == 'yes'

        def coerce_text(value):
            if isinstance(value, str) and value.strip():
                return value.strip()
            return None

        def coerce_email(value):
            if isinstance(value, str) and v.is_valid_email(value):
                return value.strip().lower()
            return None

        def coerce_name(value):
            if isinstance(value, dict):
                first = (value.get('first') or '').strip()
                last = (value.get('last') or '').strip()
                return (first.title(), last.title()) if first else None
            if isinstance(value, str):
                return v.split_name(value)
            return None

        def coerce_date(value):
            if isinstance(value, str):
                try:
                    return date.fromisoformat(value.strip())
                except ValueError:
                    return None
            return None

        def email_heuristic(text, today):
            guess = v.spoken_email_fallback(text)
            return guess if '@' in guess else None

        specs = [
            FieldSpec('menu_choice', parser=lambda t, d: v.parse_menu_choice(t)),
            FieldSpec('service_category', parser=lambda t, d: v.parse_service_category(t)),
            FieldSpec('home_type', parser=lambda t, d: v.parse_home_type(t)),
            FieldSpec('bedrooms', parser=lambda t, d: v.extract_bedrooms(t)),
            FieldSpec('stairs', parser=lambda t, d: v.parse_stairs(t), default=0),
            FieldSpec('yes_no', parser=yes_no_bool),
            FieldSpec('appliances', parser=lambda t, d: v.parse_appliances(t)),
            FieldSpec('heavy_items', parser=lambda t, d: v.parse_heavy_items(t)),
            FieldSpec('packing', parser=yes_no_bool, default=False),
            FieldSpec('decision', parser=lambda t, d: v.parse_decision(t)),
            FieldSpec('slot', parser=lambda t, d: v.parse_slot(t)),
            FieldSpec(
                'address',
                free_text=True,
                description='A street address with city. Return it as one string, corrected for obvious '
                            'speech recognition errors.',
                coerce=coerce_text,
                heuristic=lambda t, d: v.clean_address(t),
            ),
            FieldSpec(
                'name',
                free_text=True,
                description='The caller\'s full name. Return {"first": ..., "last": ...}.',
                coerce=coerce_name,
                heuristic=lambda t, d: v.split_name(t),
            ),
            FieldSpec(
                'email',
                parser=lambda t, d: v.extract_email(t),
                free_text=True,
                description='An email address, possibly spelled out with words like "at" and "dot". '
                            'Return it as a plain lowercase address.',
                coerce=coerce_email,
                heuristic=email_heuristic,
            ),
            FieldSpec(
                'move_date',
                parser=lambda t, d: v.validate_date(t, today=d),
                free_text=True,
                description='The requested moving date. Return it as YYYY-MM-DD.',
                coerce=coerce_date,
                heuristic=lambda t, d: d + timedelta(days=7),
            ),
        ]
        return {spec.name: spec for spec in specs}

    def extract(self, utterance, field_name) -> Extraction:
        spec = self.fields.get(field_name)
        if spec is None:
            logger.error(f"Extraction requested for unknown field {field_name}")
            return Extraction.failed()

        text = (utterance or '').strip()
        today = self.today()

        if text:
            value = self._attempt(spec.parser, text, today, field_name)
            if value is not None:
                return Extraction(OK, value, CONFIDENCE['rules'], 'rules')

            if spec.free_text:
                value = self._ask_model(spec, text, today)
                if value is not None:
                    return Extraction(OK, value, CONFIDENCE['nlu'], 'nlu')

                value = self._attempt(spec.heuristic, text, today, field_name)
                if value is not None:
                    return Extraction(FALLBACK, value, CONFIDENCE['heuristic'], 'heuristic')

        if spec.default is not _NO_DEFAULT:
            return Extraction(FALLBACK, spec.default, CONFIDENCE['default'], 'default')

        return Extraction.failed()

    @staticmethod
    def _attempt(fn, text, today, field_name):
        if fn is None:
            return None
        try:
            return fn(text, today)
        except Exception as e:
            logger.warning(f"Parser for {field_name} failed on {text!r}: {e}")
            return None

    def _ask_model(self, spec, text, today):
        if not self.ai.enabled:
            return None
        description = spec.description
        if spec.name == 'move_date':
            description += f' Today is {today.isoformat()}.'
        try:
            raw = self.ai.extract_field(text, spec.name, description)
        except AIServiceError as e:
            logger.info(f"NLU unavailable for {spec.name}, using heuristic: {e}")
            return None
        except Exception as e:
            logger.error(f"Unexpected NLU failure for {spec.name}: {e}", exc_info=True)
            return None
        if raw is None:
            return None
        try:
            return spec.coerce(raw) if spec.coerce else raw
        except Exception as e:
            logger.warning(f"Discarding NLU value {raw!r} for {spec.name}: {e}")
            return None
