# product_discovery/services/llm_parsing.py
"""
JSON extraction for LLM replies.

Every prompt call-site goes through these helpers so that a reply is
either parsed JSON of the expected shape or a failure with a reason.
Replies are scanned for the first bracket-delimited substring that
decodes; surrounding prose and markdown fences are ignored.
"""

import json
import logging
from typing import Any, Optional

from product_discovery.models.internal import LLMResult

logger = logging.getLogger(__name__)

_decoder = json.JSONDecoder()


def _scan_for_json(text: str, opener: str, expected_type: type) -> Optional[Any]:
    start = text.find(opener)
    while start != -1:
        try:
            value, _ = _decoder.raw_decode(text, start)
            if isinstance(value, expected_type):
                return value
        except json.JSONDecodeError:
            pass
        start = text.find(opener, start + 1)
    return None


def extract_json_array(text: Optional[str], provider: str = None) -> LLMResult:
    if not text or not text.strip():
        return LLMResult.failure("empty reply", provider)

    value = _scan_for_json(text, "[", list)
    if value is None:
        logger.debug(f"No JSON array in reply from {provider}: {text[:200]}")
        return LLMResult.failure("no JSON array in reply", provider)
    return LLMResult.success(value, provider)


def extract_json_object(text: Optional[str], provider: str = None) -> LLMResult:
    if not text or not text.strip():
        return LLMResult.failure("empty reply", provider)

    value = _scan_for_json(text, "{", dict)
    if value is None:
        logger.debug(f"No JSON object in reply from {provider}: {text[:200]}")
        return LLMResult.failure("no JSON object in reply", provider)
    return LLMResult.success(value, provider)
