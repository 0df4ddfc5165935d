# OpenAI integration
import json
import re

from config import Config
from utils.logger import logger


class AIServiceError(Exception):
    """The language model call failed, timed out or returned unusable output."""


class AIService:
    def __init__(self, api_key=None, model=None, timeout=None, client=None):
        self.api_key = api_key if api_key is not None else Config.OPENAI_API_KEY
        self.model = model or Config.OPENAI_MODEL
        self.timeout = timeout or Config.OPENAI_TIMEOUT
        self._client = client

    @property
    def enabled(self):
        return self._client is not None or bool(self.api_key)

    def _get_client(self):
        if self._client is None:
            if not self.api_key:
                raise AIServiceError("OPENAI_API_KEY is not configured")
            from openai import OpenAI
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        return self._client

    def extract_field(self, user_input, field_name, schema_description):
        """Ask the model to pull a single field out of the caller's words.

        The model is told to answer with a JSON object ``{"value": ...}``;
        ``value`` is ``null`` when the field is not present. Returns the value
        or raises ``AIServiceError``.
        """
        system_prompt = (
            "You extract one field from what a caller said to a moving company. "
            f"Field: {field_name}. {schema_description} "
            'Respond with JSON only, in the form {"value": <value or null>}.'
        )
        try:
            client = self._get_client()
            response = client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_input},
                ],
                max_tokens=80,
                temperature=0,
            )
            content = response.choices[0].message.content or ''
        except AIServiceError:
            raise
        except Exception as e:
            logger.warning(f"NLU call failed for field {field_name}: {e}")
            raise AIServiceError(str(e)) from e

        return self.parse_value(content)

    @staticmethod
    def _strip_code_fence(content):
        content = content.strip()
        fenced = re.match(r'^```(?:json)?\s*(.*?)\s*```$', content, re.DOTALL | re.IGNORECASE)
        if fenced:
            return fenced.group(1).strip()
        return content

    @classmethod
    def parse_value(cls, content):
        """Parse the model's JSON reply, tolerating markdown code fences."""
        text = cls._strip_code_fence(content or '')
        try:
            payload = json.loads(text)
        except (TypeError, ValueError) as e:
            raise AIServiceError(f"Unparseable NLU output: {content!r}") from e
        if not isinstance(payload, dict) or 'value' not in payload:
            raise AIServiceError(f"NLU output missing 'value': {content!r}")
        return payload['value']
