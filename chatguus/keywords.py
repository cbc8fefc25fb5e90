"""Shared keyword tables.

Every layer that looks at raw text (intent classifier, email routing,
self-rating, satisfaction analysis) reads its keywords from here so the
layers cannot drift apart. Bump KEYWORD_TABLE_VERSION on any change.

Keywords match whole words (or whole phrases) case-insensitively, so
inflections and Dutch compounds are listed explicitly.
"""

import re
from functools import lru_cache
from typing import Dict, Iterable, List, Tuple

KEYWORD_TABLE_VERSION = "2024.1"

# --- Intent classification -------------------------------------------------

URGENCY = ("dringend", "spoed", "urgent", "asap", "direct", "zo snel mogelijk")

COMPLAINT = (
    "klacht", "klachten", "ontevreden", "slecht", "slechte", "problematisch",
    "irritant", "teleurgesteld", "teleurstellend",
)

COMPLIMENT = (
    "compliment", "complimenten", "tevreden", "goed", "goede", "uitstekend",
    "perfect", "geweldig",
)

PRICING = (
    "prijs", "prijzen", "kosten", "kost", "tarief", "tarieven", "budget",
    "offerte", "price", "prices", "pricing", "cost", "costs", "quote",
)

ACCESSIBILITY = (
    "rolstoel", "rolstoelen", "toegankelijk", "toegankelijkheid", "invalide",
    "mindervalide", "mobiliteit", "lift", "wheelchair", "accessible",
    "accessibility", "mobility",
)

EVENT_MODIFICATION = (
    "annuleren", "annulering", "verplaatsen", "verzetten", "omboeken",
    "wijzigen", "wijziging", "cancel", "reschedule", "postpone",
)

PROBLEM = (
    "doet het niet", "werkt niet", "kapot", "probleem", "problemen", "storing",
    "defect", "stuk", "lekt", "broken", "not working", "problem", "issue",
)

HELP_ACTION = (
    "help", "hulp", "helpen", "repareren", "oplossen", "maken", "regelen",
    "nodig", "fix", "repair", "assist",
)

IT_DEVICES = (
    "computer", "computers", "laptop", "laptops", "internet", "wifi", "wi-fi",
    "netwerk", "software", "systeem", "inloggen", "wachtwoord", "email",
    "printer", "printers", "beamer", "presentatie", "technisch", "it", "ict",
    "helpdesk",
)

CLEANING = (
    "schoonmaak", "schoonmaken", "schoon", "vuil", "vies", "smerig", "opruimen",
    "stofzuigen", "dweil", "dweilen", "ramen", "toilet", "toiletten", "afval",
    "vuilnis", "hygiëne", "cleaning",
)

EXISTING_EVENT = (
    "bestaand evenement", "geplande bijeenkomst", "lopend event",
    "wijziging evenement", "annuleren", "verplaatsen", "aanpassing",
    "extra faciliteiten",
)

EVENT = (
    "evenement", "evenementen", "event", "events", "borrel", "borrels",
    "bedrijfsborrel", "feest", "feestje", "bijeenkomst", "netwerkbijeenkomst",
    "vergadering", "vergaderruimte", "workshop", "congres", "seminar", "lunch",
    "diner", "zaal", "ruimte", "meeting", "party", "conference",
)

ORGANISE = (
    "organiseren", "organiseer", "plannen", "plan", "boeken", "reserveren",
    "huren", "houden", "geven", "organize", "organise", "book", "reserve", "host",
)

EVENT_INFO = (
    "wanneer", "programma", "mijn", "hoe laat", "agenda", "tijden",
    "when", "schedule", "programme", "program", "my",
)

FAQ_TOPICS: Dict[str, Tuple[str, ...]] = {
    "openingstijden": ("openingstijden", "geopend", "open", "opening hours"),
    "locatie": ("locatie", "adres", "bereikbaar", "bereikbaarheid", "parkeren", "address", "parking"),
    "faciliteiten": ("faciliteiten", "voorzieningen", "catering", "facilities"),
    "contact": ("contact", "telefoonnummer", "bellen", "phone"),
}

GREETINGS = (
    "hallo", "hoi", "hey", "goedemorgen", "goedemiddag", "goedenavond",
    "dank", "bedankt", "dankjewel", "hello", "hi", "thanks", "thank you",
)

# --- Email routing departments ---------------------------------------------

DEPARTMENTS: Dict[str, str] = {
    "it": "IT Support",
    "cleaning": "Schoonmaak Team",
    "existing_event": "Events Coordinatie",
    "general": "Algemeen Team",
    "events": "Events Team",
}

# --- Self-rating ------------------------------------------------------------

UNCERTAIN_REPLY = ("sorry", "i don't know", "weet ik niet")
CONTACT_REPLY = ("contact", "email", "e-mail")
EVENT_REPLY = ("event", "booking", "evenement", "reservering")

# --- Satisfaction feedback --------------------------------------------------

FEEDBACK_CATEGORIES: Dict[str, Tuple[str, ...]] = {
    "technical": ("error", "bug", "broken", "not working", "crash", "loading"),
    "usability": ("confusing", "unclear", "difficult", "hard to use", "complicated"),
    "performance": ("slow", "timeout", "delay", "waiting", "loading"),
    "content": ("wrong", "incorrect", "outdated", "missing", "inaccurate"),
    "service": ("rude", "unhelpful", "impatient", "unprofessional"),
}

FEEDBACK_URGENT = (
    "urgent", "emergency", "immediately", "asap", "critical",
    "terrible", "awful", "horrible", "worst", "angry",
    "refund", "cancel", "cancelled", "complaint", "lawyer", "legal",
)

STOPWORDS = frozenset((
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "is", "was", "are", "were",
))


@lru_cache(maxsize=1024)
def _pattern(keyword: str) -> "re.Pattern[str]":
    return re.compile(r"(?<!\w)" + re.escape(keyword.lower()) + r"(?!\w)")


def matched_keywords(text: str, keywords: Iterable[str]) -> List[str]:
    """Keywords from the table that occur in text, in table order"""
    if not text:
        return []
    lowered = text.lower()
    return [keyword for keyword in keywords if _pattern(keyword).search(lowered)]


def contains_any(text: str, keywords: Iterable[str]) -> bool:
    if not text:
        return False
    lowered = text.lower()
    return any(_pattern(keyword).search(lowered) for keyword in keywords)


def department_for(text: str) -> str:
    """Department key for a service request, scanned from raw text"""
    if contains_any(text, IT_DEVICES):
        return "it"
    if contains_any(text, CLEANING):
        return "cleaning"
    if contains_any(text, EXISTING_EVENT):
        return "existing_event"
    return "general"


def faq_topic_for(text: str) -> str:
    for topic, keywords in FAQ_TOPICS.items():
        if contains_any(text, keywords):
            return topic
    return ""
