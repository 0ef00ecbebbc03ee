"""
intent/interpreter.py — Keyword command interpreter for Voice Launch Control.

A deliberately simple substring matcher: the transcript is normalised and the
keyword families in :data:`~core.constants.INTENT_KEYWORDS` are tried in
priority order. The first family with a match decides the intent.
"""

from __future__ import annotations

import logging

from core.constants import INTENT_KEYWORDS, Intent

logger = logging.getLogger(__name__)


def normalise(text: str) -> str:
    """
    Lowercase *text*, strip it, and collapse internal whitespace.

    Args:
        text: Raw transcript from a recognizer.

    Returns:
        The normalised transcript (possibly empty).
    """
    return " ".join(text.lower().split())


def interpret(text: str) -> Intent:
    """
    Map a transcript onto an :class:`~core.constants.Intent`.

    Utterances may contain keywords from several families ("launch, then
    report status"); the fixed priority LAUNCH > RESET > STATUS resolves them.
    Never raises; anything unmatched (including blank text) is
    :attr:`Intent.UNKNOWN`.

    Args:
        text: Raw transcript text. Case and spacing are irrelevant.

    Returns:
        The matched intent.
    """
    utterance = normalise(text)
    for intent, keywords in INTENT_KEYWORDS:
        if any(keyword in utterance for keyword in keywords):
            logger.debug("Interpreted %r as %s", utterance, intent.value)
            return intent

    logger.debug("No command keyword in %r", utterance)
    return Intent.UNKNOWN
