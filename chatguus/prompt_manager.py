"""Prompt management and tenant-aware canned texts"""

from typing import Dict, List, Optional

import structlog
from jinja2 import Template

from .models import Intent, IntentType, Tenant

logger = structlog.get_logger(__name__)

LANGUAGE_NAMES = {"nl": "Nederlands", "en": "Engels"}


class PromptManager:
    """Render system prompts and the fixed message pools for a tenant"""

    def __init__(self):
        self.templates: Dict[str, Template] = {}
        self.load_templates()

    def load_templates(self):
        """Load prompt templates"""
        self.templates["system"] = Template("""\
Je bent {{ p.name }}, een {{ p.traits | join(', ') }} assistent van {{ b.companyName }}.

PERSOONLIJKHEID:
{% for trait in p.traits %}- {{ trait }}
{% endfor %}
COMMUNICATIESTIJL:
- Toon: {{ p.tone }}
- Taal: {{ p.language }}
- Altijd behulpzaam en proactief
- Stel vervolgvragen en geef concrete vervolgstappen

HOOFDTAKEN:
{%- if f.serviceRequests %}

{{ loop_index.next() }}. SERVICEVRAGEN AFHANDELEN:
   - Verzamel volledige informatie over het verzoek
   - Routeer naar het juiste team:
{%- for dept, email in routing.items() %}
     * {{ dept }}: {{ email }}
{%- endfor %}
{%- endif %}
{%- if f.eventInquiries %}

{{ loop_index.next() }}. EVENEMENTEN:
   - Vraag door naar type evenement, aantal personen, budget en gewenste datum
   - Stuur door naar: {{ events_email }}
{%- endif %}
{%- if f.faqSystem %}

{{ loop_index.next() }}. FAQ ONDERSTEUNING:
   - Beantwoord vragen met bedrijfsinformatie van {{ b.companyName }}
   - Verwijs naar relevante contactpersonen
{%- endif %}

EERLIJKHEID:
- Verzin nooit feiten, prijzen, data of beschikbaarheid.
- Weet je het antwoord niet, zeg dan eerlijk "Dat weet ik niet" ("I don't know") en verwijs naar {{ general_email }}.

Reageer altijd in het {{ language_name }} en blijf in karakter als {{ p.name }}.""")

        self.templates["service_it"] = Template(
            "De gebruiker heeft een IT-gerelateerde vraag. Vraag welke apparaten, software of "
            "systemen het betreft en wat er precies misgaat.")
        self.templates["service_cleaning"] = Template(
            "De gebruiker heeft een schoonmaakvraag. Vraag wat er geregeld moet worden: dagelijkse "
            "schoonmaak, een eenmalige klus of iets speciaals.")
        self.templates["service_general"] = Template(
            "De gebruiker heeft een serviceverzoek. Vraag naar de aard van het verzoek, wanneer het "
            "uitgevoerd moet worden en eventuele specifieke vereisten.")
        self.templates["event_inquiry"] = Template(
            "De gebruiker wil een evenement organiseren bij {{ company }}. Vraag naar type evenement, "
            "waarom {{ company }}, aantal gasten, budget en timing.")
        self.templates["event_modification"] = Template(
            "De gebruiker wil een bestaand evenement wijzigen of annuleren. Vraag om de naam en datum "
            "van het evenement en de gewenste wijziging.")
        self.templates["complaint"] = Template(
            "De gebruiker is ontevreden. Toon begrip, bied excuses aan en vraag wat er precies misging"
            "{% if urgent %}; behandel dit met voorrang{% endif %}.")
        self.templates["accessibility_inquiry"] = Template(
            "De gebruiker vraagt naar toegankelijkheid. Geef alleen informatie die je zeker weet en "
            "verwijs voor details naar {{ general_email }}.")
        self.templates["pricing_inquiry"] = Template(
            "De gebruiker vraagt naar prijzen. Noem geen bedragen; bied aan een passende offerte te "
            "laten maken via {{ general_email }}.")

        self.faq_answers = {
            "openingstijden": "{{ company }} is doordeweeks geopend van 8:00 tot 18:00. Voor evenementen "
                              "kan dit in overleg ook buiten deze tijden.",
            "locatie": "{{ company }} is goed bereikbaar met openbaar vervoer en heeft eigen parkeervoorzieningen.",
            "faciliteiten": "Er zijn diverse ruimtes voor vergaderingen, evenementen en werkplekken, met moderne "
                            "AV-apparatuur en cateringmogelijkheden.",
            "contact": "Voor algemene vragen kun je terecht bij {{ general_email }}.",
        }

        logger.info("Prompt templates loaded", count=len(self.templates))

    def system_prompt(self, tenant: Tenant) -> str:
        """Full system prompt for a tenant, feature blocks in fixed order"""
        data = tenant.dump()
        return self.templates["system"].render(
            p=data["personality"],
            b=data["branding"],
            f=data["features"],
            routing=tenant.routing,
            events_email=tenant.routing.get("events") or tenant.general_email,
            general_email=tenant.general_email,
            language_name=LANGUAGE_NAMES.get(tenant.personality.language, "Engels"),
            loop_index=_Counter(),
        )

    def intent_guidance(self, tenant: Tenant, intent: Intent) -> Optional[str]:
        """Short extra system message steering the reply for this intent"""
        context = {
            "company": tenant.branding.company_name,
            "general_email": tenant.general_email,
            "urgent": intent.urgent,
        }

        if intent.type == IntentType.SERVICE_REQUEST:
            key = f"service_{intent.category}" if f"service_{intent.category}" in self.templates else "service_general"
            return self.templates[key].render(**context)

        if intent.type == IntentType.FAQ and intent.category in self.faq_answers:
            answer = Template(self.faq_answers[intent.category]).render(**context)
            return f"Beantwoord deze FAQ-vraag in je eigen woorden: {answer}"

        template = self.templates.get(intent.type.value)
        return template.render(**context) if template else None

    def welcome_messages(self, tenant: Tenant) -> List[str]:
        bot = tenant.personality.name
        company = tenant.branding.company_name
        if tenant.is_dutch:
            return [
                f"Hallo! Ik ben {bot} van {company}. Waar kan ik je mee helpen? 👋",
                f"Welkom bij {company}! Ik sta klaar om je te helpen. Wat zou je willen weten? 😊",
                f"Hoi! Fijn dat je er bent. Ik help je graag met al je vragen over {company}! 🏢",
            ]
        return [
            f"Hello! I'm {bot} from {company}. How can I help you today? 👋",
            f"Welcome to {company}! I'm here to assist you. What would you like to know? 😊",
            f"Hi there! Great to see you. I'm happy to help with any questions about {company}! 🏢",
        ]

    def fallback_messages(self, tenant: Tenant) -> List[str]:
        """Replies used when generation fails; each one names a human contact"""
        email = tenant.general_email
        if tenant.is_dutch:
            return [
                f"Sorry, ik had even een technisch probleempje! Kun je je vraag opnieuw stellen? "
                f"Of neem direct contact op via {email}",
                f"Oeps, er ging iets mis aan mijn kant. Probeer het nog eens, of mail ons via {email} "
                f"voor snelle hulp!",
                f"Excuses voor de storing! Waar kan ik je mee helpen? Anders kun je altijd terecht bij {email}",
            ]
        return [
            f"Sorry, I had a technical hiccup! Could you please rephrase your question? "
            f"Or contact us directly at {email}",
            f"Oops, something went wrong on my side. Please try again, or email {email} "
            f"for immediate assistance!",
            f"Apologies for the issue! How can I help you? You can always reach us at {email}",
        ]

    def conversation_starters(self, tenant: Tenant) -> List[str]:
        if tenant.is_dutch:
            return [
                "Waar kan ik je mee helpen?",
                "Heb je vragen over onze faciliteiten?",
                "Wil je een evenement organiseren?",
                "Kan ik je ergens mee van dienst zijn?",
            ]
        return [
            "How can I help you?",
            "Do you have questions about our facilities?",
            "Would you like to organise an event?",
            "Is there anything I can do for you?",
        ]

    def quick_replies(self, intent_type: str, language: str = "nl") -> List[str]:
        replies = {
            "service_request": ["IT probleem", "Schoonmaak verzoek", "Algemene vraag", "Bestaand evenement"],
            "event_inquiry": ["Bedrijfsborrel", "Vergadering", "Workshop", "Netwerkbijeenkomst", "Anders"],
            "faq": ["Openingstijden", "Locatie & bereikbaarheid", "Faciliteiten", "Prijzen", "Contact"],
            "general": ["Serviceverzoek", "Evenement plannen", "Informatie", "Contact opnemen"],
        }
        if language != "nl":
            replies = {
                "service_request": ["IT problem", "Cleaning request", "General question", "Existing event"],
                "event_inquiry": ["Company drinks", "Meeting", "Workshop", "Networking event", "Other"],
                "faq": ["Opening hours", "Location & directions", "Facilities", "Prices", "Contact"],
                "general": ["Service request", "Plan an event", "Information", "Get in touch"],
            }
        return replies.get(intent_type, replies["general"])


class _Counter:
    """Numbering helper for the optional task blocks of the system prompt"""

    def __init__(self):
        self.value = 0

    def next(self) -> int:
        self.value += 1
        return self.value
