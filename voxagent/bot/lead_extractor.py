"""
Lead extraction from caller utterances.

The extractor scans user messages for contact details (email, phone, name and
company) with regular expressions, accumulates them across the conversation and
notifies observers with the current best snapshot once at least a name, email or
phone number is known.

Matching is deliberately literal: spoken-out digits ("five five five ...") are not
recognised, and a short digit run such as a zip code never qualifies as a phone.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from voxagent.config.constants import EVENT_LEAD
from voxagent.config.logging_config import get_logger
from voxagent.config.settings import LeadExtractorConfig
from voxagent.models.events import EventEmitter
from voxagent.models.message_schemas import (
    LEAD_FIELDS,
    ConversationState,
    LeadConfidence,
    LeadInfo,
    Message,
    MessageRole,
)

EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
PHONE_PATTERN = re.compile(r"(\+?1?[\s.-]?\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{4})")

# Cues are case-insensitive, the captured name must be capitalized
_NAME_WORD = r"[A-Z][a-zA-Z]+"
_NAME = rf"({_NAME_WORD}(?:\s+{_NAME_WORD})?)"
_APOSTROPHE = "['\u2019]"

NAME_PATTERNS = [
    re.compile(rf"(?i:\bmy name(?:{_APOSTROPHE}s| is))\s+{_NAME}"),
    re.compile(rf"(?i:\bi(?:{_APOSTROPHE}m| am))\s+{_NAME}"),
    re.compile(rf"(?i:\bthis is)\s+{_NAME}"),
    re.compile(rf"(?i:\bcall me)\s+{_NAME}"),
    re.compile(rf"(?i:\bi(?:{_APOSTROPHE}m| am) called)\s+{_NAME}"),
]
GREETING_PATTERN = re.compile(rf"^(?i:hi|hello|hey)\s+({_NAME_WORD})")

COMPANY_PATTERNS = [
    re.compile(r"(?i:\bwork (?:at|for))\s+([A-Z][^,.]+)"),
    re.compile(r"(?i:\bcompany is)\s+([A-Z][^,.]+)"),
    re.compile(r"(?i:\bfrom)\s+([A-Z][^,.]+(?i:inc|llc|corp|company|co\.|ltd)\.?)"),
]

NAME_CONFIDENCE = 0.85
VALID_CONFIDENCE = 1.0
UNVALIDATED_CONFIDENCE = 0.5
MIN_PHONE_DIGITS = 10
MAX_PHONE_DIGITS = 15


def normalize_phone(phone: str) -> str:
    """
    Normalize a matched phone number.

    Non-digits other than ``+`` are stripped; 11 digits starting with 1 gain a
    leading ``+``; exactly 10 digits gain ``+1``; anything else is returned as is.
    """
    digits = re.sub(r"[^\d+]", "", phone)

    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    if len(digits) == 10:
        return f"+1{digits}"
    return digits


def validate_email(email: str) -> bool:
    return EMAIL_PATTERN.search(email) is not None


def validate_phone(phone: str) -> bool:
    digits = re.sub(r"\D", "", phone)
    return MIN_PHONE_DIGITS <= len(digits) <= MAX_PHONE_DIGITS


class LeadExtractor(EventEmitter):
    """
    Accumulates contact information from user messages.

    Events:
        lead(LeadInfo) - the full current snapshot, re-announced whenever a
        qualifying message is processed
    """

    def __init__(
        self,
        config: Optional[LeadExtractorConfig] = None,
        logger: Optional[logging.Logger] = None,
        **overrides: Any,
    ):
        super().__init__()
        base = config or LeadExtractorConfig()
        self.config = base.model_copy(update=overrides) if overrides else base
        self.logger = logger or get_logger("lead_extractor")
        self._current: Dict[str, str] = {}

    def process_message(self, message: Message) -> Optional[LeadInfo]:
        """
        Extract lead fields from one message and merge them into the accumulated lead.

        Args:
            message: A conversation message; only user messages are scanned

        Returns:
            The current lead snapshot if it has minimum information and per-message
            notification is enabled, otherwise None
        """
        return self._process(message, notify=self.config.extract_on_every_message)

    def process_conversation(self, state: ConversationState) -> Optional[LeadInfo]:
        """
        Re-derive the lead from a full conversation history.

        Accumulated state is discarded first. The replay does not notify per message;
        a single ``lead`` event carries the final snapshot.

        Returns:
            The final snapshot, or None if minimum information was never found
        """
        self.reset()

        for message in state.messages:
            self._process(message, notify=False)

        lead = self._build_lead_info()
        if not self._has_minimum_info(lead):
            return None

        if self.config.extract_on_conversation_end:
            self.emit(EVENT_LEAD, lead)
        return lead

    def get_current_lead(self) -> LeadInfo:
        return self._build_lead_info()

    def reset(self) -> None:
        self._current = {}
        self.logger.debug("Lead extractor reset")

    def has_complete_lead(self) -> bool:
        """True only when name, email and phone are all present."""
        lead = self._build_lead_info()
        return bool(lead.name and lead.email and lead.phone)

    def _process(self, message: Message, notify: bool) -> Optional[LeadInfo]:
        if message.role != MessageRole.USER:
            return None

        updates = self._extract(message.content)

        # Fields missing from this message keep their accumulated value
        self._current.update(updates)

        lead = self._build_lead_info()
        if notify and self._has_minimum_info(lead):
            self.emit(EVENT_LEAD, lead)
            return lead
        return None

    def _extract(self, text: str) -> Dict[str, str]:
        updates: Dict[str, str] = {}

        email = EMAIL_PATTERN.search(text)
        if email:
            updates["email"] = email.group(0)
            self.logger.debug(f"Extracted email: {updates['email']}")

        phone = PHONE_PATTERN.search(text)
        if phone:
            updates["phone"] = normalize_phone(phone.group(1))
            self.logger.debug(f"Extracted phone: {updates['phone']}")

        name = self._extract_name(text)
        if name:
            updates["name"] = name
            self.logger.debug(f"Extracted name: {name}")

        company = self._extract_company(text)
        if company:
            updates["company"] = company
            self.logger.debug(f"Extracted company: {company}")

        for extractor in self.config.custom_extractors:
            updates.update(self._run_custom_extractor(extractor, text))

        return updates

    def _run_custom_extractor(self, extractor, text: str) -> Dict[str, str]:
        try:
            result = extractor(text) or {}
        except Exception as e:
            self.logger.error(f"Custom extractor {extractor!r} failed: {e}", exc_info=True)
            return {}

        if isinstance(result, LeadInfo):
            result = result.model_dump(exclude={"confidence"})

        fields = {}
        for key, value in result.items():
            if key not in LEAD_FIELDS:
                self.logger.debug(f"Ignoring unknown lead field from custom extractor: {key}")
            elif value is not None:
                fields[key] = str(value)
        return fields

    @staticmethod
    def _extract_name(text: str) -> Optional[str]:
        for pattern in NAME_PATTERNS:
            match = pattern.search(text)
            if match:
                return match.group(1).strip()

        greeting = GREETING_PATTERN.search(text)
        if greeting:
            return greeting.group(1).strip()

        return None

    @staticmethod
    def _extract_company(text: str) -> Optional[str]:
        for pattern in COMPANY_PATTERNS:
            match = pattern.search(text)
            if match:
                return match.group(1).strip()
        return None

    def _build_lead_info(self) -> LeadInfo:
        current = self._current
        confidence = LeadConfidence()

        if current.get("name"):
            confidence.name = NAME_CONFIDENCE
        if current.get("email"):
            confidence.email = (
                VALID_CONFIDENCE if validate_email(current["email"]) else UNVALIDATED_CONFIDENCE
            )
        if current.get("phone"):
            confidence.phone = (
                VALID_CONFIDENCE if validate_phone(current["phone"]) else UNVALIDATED_CONFIDENCE
            )

        return LeadInfo(
            name=current.get("name"),
            email=current.get("email"),
            phone=current.get("phone"),
            company=current.get("company"),
            notes=current.get("notes"),
            confidence=confidence,
        )

    @staticmethod
    def _has_minimum_info(lead: LeadInfo) -> bool:
        return any((lead.name, lead.email, lead.phone))
