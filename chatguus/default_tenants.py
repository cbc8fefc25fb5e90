"""Tenants available at process start"""

from typing import Any, Dict, List

KOEPEL: Dict[str, Any] = {
    "id": "koepel",
    "name": "De Koepel",
    "domain": "cupolaxs.nl",
    "branding": {
        "primaryColor": "#2563eb",
        "secondaryColor": "#64748b",
        "logo": "/assets/koepel-logo.png",
        "avatar": "🤖",
        "companyName": "De Koepel",
        "botName": "Guus",
        "welcomeMessage": "Hallo! Ik ben Guus van de Koepel. Waar kan ik je mee helpen?",
    },
    "personality": {
        "name": "Guus",
        "traits": ["vriendelijk", "gastvrij", "behulpzaam", "professioneel"],
        "tone": "informeel maar respectvol",
        "language": "nl",
    },
    "routing": {
        "general": "welcome@cupolaxs.nl",
        "it": "support@axs-ict.com",
        "cleaning": "ralphcassa@gmail.com",
        "events": "irene@cupolaxs.nl",
    },
    "features": {
        "serviceRequests": True,
        "eventInquiries": True,
        "faqSystem": True,
        "emailRouting": True,
        "googleSheets": True,
    },
}

DEMO_COMPANY: Dict[str, Any] = {
    "id": "demo-company",
    "name": "Demo Company",
    "domain": "demo.example.com",
    "branding": {
        "primaryColor": "#059669",
        "secondaryColor": "#6b7280",
        "logo": "/assets/demo-logo.png",
        "avatar": "🏢",
        "companyName": "Demo Company",
        "botName": "Assistant",
        "welcomeMessage": "Hello! I'm your virtual assistant. How can I help you today?",
    },
    "personality": {
        "name": "Assistant",
        "traits": ["professional", "efficient", "helpful"],
        "tone": "formal but friendly",
        "language": "en",
    },
    "routing": {
        "general": "info@demo.example.com",
        "it": "tech@demo.example.com",
        "sales": "sales@demo.example.com",
        "support": "support@demo.example.com",
    },
    "features": {
        "serviceRequests": True,
        "eventInquiries": False,
        "faqSystem": True,
        "emailRouting": True,
        "googleSheets": False,
    },
}

DEFAULT_TENANTS: List[Dict[str, Any]] = [KOEPEL, DEMO_COMPANY]
