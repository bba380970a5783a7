"""Parameter extraction - pull emails, dates and times out of free-form text."""

import logging
import re
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)


EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")

# Tried in order; the first pattern with any match wins.
DATE_PATTERNS = (
    re.compile(r"\b\d{1,2}/\d{1,2}/\d{4}\b"),
    re.compile(r"\b\d{4}-\d{1,2}-\d{1,2}\b"),
    re.compile(r"\b(?:today|tomorrow|yesterday)\b", re.IGNORECASE),
)

TIME_PATTERN = re.compile(r"\b\d{1,2}:\d{2}(?:\s*(?:AM|PM))?\b", re.IGNORECASE)

_RELATIVE_DAYS = {"today": 0, "tomorrow": 1, "yesterday": -1}


class ParameterExtractor:
    """
    Extracts structured hints from a user message into context entries.

    Keys written (only when something was found):
        extracted_emails  - every email address, in order
        primary_email     - the first email address
        extracted_dates   - raw date strings from the first matching format
        resolved_dates    - the same dates as ISO strings (YYYY-MM-DD)
        extracted_times   - raw time strings ("9:30", "2:15 PM")

    Example:
        extractor = ParameterExtractor()
        hints = extractor.extract("email bob@example.com tomorrow at 3:00 PM")
        # {"extracted_emails": ["bob@example.com"], "primary_email": "bob@example.com",
        #  "extracted_dates": ["tomorrow"], "resolved_dates": ["2024-05-02"],
        #  "extracted_times": ["3:00 PM"]}
    """

    def extract(self, message: str, reference: Optional[datetime] = None) -> Dict[str, Any]:
        found: Dict[str, Any] = {}
        if not message:
            return found

        emails = self.extract_emails(message)
        if emails:
            found["extracted_emails"] = emails
            found["primary_email"] = emails[0]

        dates = self.extract_dates(message)
        if dates:
            found["extracted_dates"] = dates
            resolved = [
                d for d in (self.resolve_date(raw, reference) for raw in dates) if d
            ]
            if resolved:
                found["resolved_dates"] = resolved

        times = self.extract_times(message)
        if times:
            found["extracted_times"] = times

        return found

    def extract_emails(self, message: str) -> List[str]:
        return EMAIL_PATTERN.findall(message)

    def extract_dates(self, message: str) -> List[str]:
        for pattern in DATE_PATTERNS:
            matches = pattern.findall(message)
            if matches:
                return matches
        return []

    def extract_times(self, message: str) -> List[str]:
        return TIME_PATTERN.findall(message)

    def resolve_date(self, raw: str, reference: Optional[datetime] = None) -> Optional[str]:
        """Turn an extracted date string into ``YYYY-MM-DD``, or None"""
        base = reference or datetime.now()
        offset = _RELATIVE_DAYS.get(raw.lower())
        if offset is not None:
            return (base + timedelta(days=offset)).date().isoformat()

        try:
            # MM/DD/YYYY is month-first; ISO dates parse unambiguously.
            return date_parser.parse(raw, dayfirst=False).date().isoformat()
        except (ValueError, OverflowError) as e:
            logger.debug(f"Could not resolve date '{raw}': {e}")
            return None
