# Input validation & parsing
import re
from datetime import date, datetime, timedelta

FULL_SERVICE = 'full-service-moving'
LABOR_ONLY = 'labor-only'

HOME_TYPES = ['house', 'apartment', 'condo', 'townhouse', 'storage']

APPLIANCE_KEYWORDS = {
    'dishwasher': 'dishwasher',
    'washing machine': 'washer',
    'washer': 'washer',
    'dryer': 'dryer',
    'refrigerator': 'refrigerator',
    'fridge': 'refrigerator',
    'freezer': 'freezer',
    'stove': 'stove',
    'oven': 'stove',
    'range': 'stove',
}

HEAVY_ITEM_KEYWORDS = {
    'pool table': 'pool table',
    'billiard': 'pool table',
    'hot tub': 'hot tub',
    'jacuzzi': 'hot tub',
    'spa': 'hot tub',
    'piano': 'piano',
    'gun safe': 'safe',
    'safe': 'safe',
}

# Negative words that still mean yes
YES_PHRASES = ('why not', 'no problem', 'not a problem', "don't mind", 'dont mind', 'no reason not')

PERSON_KEYWORDS = ('speak', 'person', 'agent', 'human', 'representative', 'manager', 'operator')


class ValidationService:
    def __init__(self):
        self.number_words = {
            'zero': 0, 'none': 0, 'one': 1, 'two': 2, 'three': 3, 'four': 4, 'five': 5,
            'six': 6, 'seven': 7, 'eight': 8, 'nine': 9, 'ten': 10
        }
        self.name_lead_ins = [
            'my name is', 'the name is', 'name is', 'this is', "i'm", 'i am', "it's", 'its', 'it is'
        ]
        self._email_regex = re.compile(r'^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$')

    @staticmethod
    def _has_word(text, word):
        return re.search(r'\b' + re.escape(word) + r'\b', text) is not None

    def _first_number(self, text):
        """Return the first number spoken or typed in text, or None."""
        m = re.search(r'\d+', text)
        candidates = []
        if m:
            candidates.append((m.start(), int(m.group(0))))
        for word, num in self.number_words.items():
            wm = re.search(r'\b' + word + r'\b', text)
            if wm:
                candidates.append((wm.start(), num))
        if not candidates:
            return None
        return min(candidates)[1]

    @staticmethod
    def format_phone(digits: str) -> str:
        """Format digits into a readable phone string.
        - 10 digits: (XXX) XXX-XXXX
        - 11 digits starting with 1: drop leading 1 then US format
        - anything else is returned unchanged
        """
        if not digits:
            return ''
        d = re.sub(r'[^0-9]', '', digits)
        if len(d) == 11 and d[0] == '1':
            d = d[1:]
        if len(d) == 10:
            return f"({d[:3]}) {d[3:6]}-{d[6:]}"
        return digits

    def validate_yes_no(self, speech_text):
        """Validate yes/no response"""
        text = (speech_text or '').lower().strip()
        if text == '1':
            return 'yes'
        if text == '2':
            return 'no'

        no_keywords = ['no', 'nope', 'nah', 'not', 'none', 'negative', "don't", 'dont']
        yes_keywords = ['yes', 'yeah', 'yep', 'yup', 'ya', 'sure', 'okay', 'ok', 'correct', 'right',
                        'affirmative', 'absolutely', 'definitely']

        for phrase in YES_PHRASES:
            if phrase in text:
                return 'yes'
        # "not really" / "no thanks" must win over "right" / "ok" inside the same phrase
        for keyword in no_keywords:
            if self._has_word(text, keyword):
                return 'no'
        for keyword in yes_keywords:
            if self._has_word(text, keyword):
                return 'yes'
        return None

    def wants_person(self, speech_text):
        text = (speech_text or '').lower()
        return any(w in text for w in PERSON_KEYWORDS)

    def parse_menu_choice(self, speech_text):
        """Main menu: 1/quote, 2/book with an existing quote, 9/hidden escape."""
        text = (speech_text or '').lower().strip()
        if text in ('1', '2', '9'):
            return {'1': 'quote', '2': 'book', '9': 'escape'}[text]
        if self.wants_person(text):
            return 'escape'
        if any(w in text for w in ('quote', 'price', 'estimate', 'cost')):
            return 'quote'
        if any(w in text for w in ('book', 'schedule', 'already')):
            return 'book'
        return None

    def parse_service_category(self, speech_text):
        text = (speech_text or '').lower().strip()
        if text == '1':
            return FULL_SERVICE
        if text == '2':
            return LABOR_ONLY
        if 'labor' in text or 'labour' in text or 'help' in text or 'load' in text or 'own truck' in text:
            return LABOR_ONLY
        if 'truck' in text or 'mover' in text or 'full' in text or 'moving' in text:
            return FULL_SERVICE
        return None

    def parse_home_type(self, speech_text):
        text = (speech_text or '').lower().strip()
        if text.isdigit() and 1 <= int(text) <= len(HOME_TYPES):
            return HOME_TYPES[int(text) - 1]
        if 'town' in text:
            return 'townhouse'
        if 'apartment' in text or self._has_word(text, 'apt') or 'flat' in text:
            return 'apartment'
        if 'condo' in text:
            return 'condo'
        if 'storage' in text:
            return 'storage'
        if 'house' in text or 'home' in text:
            return 'house'
        return None

    def extract_bedrooms(self, speech_text):
        """Extract bedroom count from speech; studio counts as zero bedrooms."""
        text = (speech_text or '').lower().strip()
        if not text:
            return None
        if 'studio' in text:
            return 0
        n = self._first_number(text)
        if n is None:
            return None
        # Clamp ASR artifacts like 'on 5001' to a sensible range
        return max(0, min(n, 10))

    def parse_stairs(self, speech_text):
        """Number of flights of stairs. Elevators and ground floors count as zero."""
        text = (speech_text or '').lower().strip()
        if not text:
            return None
        no_stairs_keywords = ['no stairs', 'no steps', 'ground floor', 'first floor', 'main floor',
                              'elevator', 'single story', 'one story', 'flat']
        for keyword in no_stairs_keywords:
            if keyword in text:
                return 0

        floor_ordinals = {'second': 1, 'third': 2, 'fourth': 3, 'fifth': 4}
        for word, flights in floor_ordinals.items():
            if f'{word} floor' in text:
                return flights

        n = self._first_number(text)
        if n is not None:
            return max(0, min(n, 10))

        answer = self.validate_yes_no(text)
        if answer == 'no':
            return 0
        if answer == 'yes' or 'stair' in text or 'step' in text:
            return 1
        return None

    def parse_appliances(self, speech_text):
        """Return the list of appliances mentioned, or None if nothing recognized."""
        return self._match_keywords(speech_text, APPLIANCE_KEYWORDS)

    def parse_heavy_items(self, speech_text):
        """Return the list of heavy/specialty items mentioned, or None."""
        return self._match_keywords(speech_text, HEAVY_ITEM_KEYWORDS)

    def _match_keywords(self, speech_text, keyword_map):
        text = (speech_text or '').lower()
        found = []
        # Longest keywords first so "dishwasher" is not also read as "washer"
        for keyword in sorted(keyword_map, key=len, reverse=True):
            if re.search(r'\b' + re.escape(keyword) + r's?\b', text):
                item = keyword_map[keyword]
                if item not in found:
                    found.append(item)
                text = re.sub(r'\b' + re.escape(keyword) + r's?\b', ' ', text)
        return found or None

    def parse_decision(self, speech_text):
        """Quote decision: 1/yes book, 2/no just the quote, 9 transfer, or start over."""
        text = (speech_text or '').lower().strip()
        if text == '9':
            return 'transfer'
        if 'start over' in text or 'restart' in text or 'change' in text or 'different address' in text:
            return 'restart'
        if self.wants_person(text):
            return 'transfer'
        if 'book' in text or 'schedule' in text:
            return 'yes'
        return self.validate_yes_no(text)

    def parse_slot(self, speech_text):
        text = (speech_text or '').lower().strip()
        if text == '1':
            return 'morning'
        if text == '2':
            return 'afternoon'
        # The window the caller names first wins: "afternoon, I work in the morning"
        named = [(text.find(word), word) for word in ('morning', 'afternoon') if word in text]
        if named:
            return min(named)[1]

        text = re.sub(r"\bi am\b", ' ', text)
        if self._has_word(text, 'am') or 'a.m' in text:
            return 'morning'
        if self._has_word(text, 'pm') or 'p.m' in text:
            return 'afternoon'
        if self._has_word(text, 'eight') or self._has_word(text, '8'):
            return 'morning'
        if 'one o' in text or self._has_word(text, '1'):
            return 'afternoon'
        return None

    def wants_different_date(self, speech_text):
        text = (speech_text or '').lower()
        return any(p in text for p in ('different day', 'different date', 'another day', 'another date',
                                       'other day', 'other date', 'change the date'))

    def extract_email(self, speech_text):
        """Extract email from speech"""
        text = (speech_text or '').lower().strip()
        if not text:
            return None

        text = text.replace(' at ', '@').replace(' dot ', '.').replace(' underscore ', '_')
        text = text.replace(' dash ', '-').replace(' period ', '.')
        # Collapse spaces around the separators the caller spelled out
        text = re.sub(r'\s*@\s*', '@', text)
        text = re.sub(r'\s*\.\s*', '.', text)

        email_pattern = r'[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}'
        match = re.search(email_pattern, text)
        if match:
            return match.group(0).lower()
        return None

    def is_valid_email(self, email_candidate: str) -> bool:
        """Return True if the provided string matches a basic email pattern."""
        if not email_candidate:
            return False
        e = email_candidate.strip().strip("\"'").strip()
        return bool(self._email_regex.match(e))

    def spoken_email_fallback(self, speech_text):
        """Literal "at" -> "@" and "dot" -> "." substitution with spaces removed."""
        text = (speech_text or '').lower().strip()
        text = re.sub(r'\bat\b', '@', text)
        text = re.sub(r'\bdot\b', '.', text)
        text = re.sub(r'\bunderscore\b', '_', text)
        return re.sub(r'\s+', '', text)

    def split_name(self, speech_text):
        """Split a spoken name into (first, last) after dropping lead-in phrases."""
        low = (speech_text or '').lower().strip()
        for tok in self.name_lead_ins:
            if low.startswith(tok + ' '):
                low = low[len(tok):]
                break
        cleaned = re.sub(r"[^a-zA-Z'\-\s]", ' ', low)
        parts = [p for p in cleaned.split() if p]
        if not parts:
            return None
        first = parts[0].title()
        last = ' '.join(parts[1:]).title()
        return first, last

    def clean_address(self, speech_text):
        text = re.sub(r'\s+', ' ', (speech_text or '')).strip().strip('.')
        for prefix in ('it is ', "it's ", 'the address is ', 'address is ', "i'm at ", 'i am at '):
            if text.lower().startswith(prefix):
                text = text[len(prefix):]
        return text or None

    def validate_date(self, speech_text, today=None):
        """Validate and parse date from speech"""
        text = (speech_text or '').lower().strip()
        if not text:
            return None
        today = today or date.today()

        # Handle relative dates
        if 'day after tomorrow' in text:
            return today + timedelta(days=2)
        if 'tomorrow' in text:
            return today + timedelta(days=1)
        if 'today' in text:
            return today
        if 'next week' in text:
            return today + timedelta(days=7)

        # Normalize: remove commas and ordinal suffixes (st, nd, rd, th)
        norm = text.replace(',', ' ')
        norm = re.sub(r'\b(\d{1,2})(st|nd|rd|th)\b', r'\1', norm)
        norm = re.sub(r'\s+', ' ', norm).strip()

        month_names = (
            'january|february|march|april|may|june|july|august|september|october|november|december|'
            'jan|feb|mar|apr|jun|jul|aug|sep|sept|oct|nov|dec'
        )
        patterns = [
            rf'\b({month_names})\s+(\d{{1,2}})(?:\s+(\d{{4}}))?\b',
            rf'\b(\d{{1,2}})\s+(?:of\s+)?({month_names})(?:\s+(\d{{4}}))?\b',
            r'\b(\d{4})-(\d{1,2})-(\d{1,2})\b',
            r'\b(\d{1,2})/(\d{1,2})(?:/(\d{2,4}))?\b',
        ]

        for idx, pat in enumerate(patterns):
            m = re.search(pat, norm)
            if not m:
                continue
            parsed = self._build_date(idx, m.groups(), today)
            if parsed:
                return parsed

        # Handle day names
        days = ['monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday']
        for i, day in enumerate(days):
            if day in text:
                days_ahead = (i - today.weekday()) % 7
                if days_ahead == 0 or 'next ' + day in text:
                    days_ahead = days_ahead or 7
                return today + timedelta(days=days_ahead)

        return None

    def _build_date(self, pattern_index, groups, today):
        g1, g2, g3 = groups
        try:
            if pattern_index in (0, 1):
                mon, day = (g1, g2) if pattern_index == 0 else (g2, g1)
                year = int(g3) if g3 else today.year
                month = None
                for fmt in ('%B', '%b'):
                    try:
                        month = datetime.strptime(mon[:3] if fmt == '%b' else mon, fmt).month
                        break
                    except ValueError:
                        continue
                if month is None:
                    return None
                parsed = date(year, month, int(day))
                if not g3 and parsed < today:
                    parsed = parsed.replace(year=today.year + 1)
                return parsed
            if pattern_index == 2:
                return date(int(g1), int(g2), int(g3))
            year = int(g3) if g3 else today.year
            if g3 and len(g3) == 2:
                year = 2000 + int(g3)
            parsed = date(year, int(g1), int(g2))
            if not g3 and parsed < today:
                parsed = parsed.replace(year=today.year + 1)
            return parsed
        except ValueError:
            return None
