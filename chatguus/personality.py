"""Reply generation with the tenant's personality"""

import random
import time
from typing import Dict, List, Optional

import openai
import structlog

from .cache import TTLCache
from .config import settings
from .exceptions import ConfigurationError, UpstreamError
from .metrics import record_llm_call
from .models import HistoryTurn, Intent, Tenant
from .prompt_manager import PromptManager

logger = structlog.get_logger(__name__)

_ROLES = {"user": "user", "assistant": "assistant", "ai": "assistant", "bot": "assistant"}


class ResponseGenerator:
    """Produce a reply for a classified message; never raises"""

    def __init__(
        self,
        prompts: PromptManager,
        cache: Optional[TTLCache] = None,
        client: Optional[openai.AsyncOpenAI] = None,
    ):
        self.prompts = prompts
        self.cache = cache
        self._client = client
        self.total_generations = 0
        self.total_fallbacks = 0

    @property
    def client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            if not settings.openai_configured:
                raise ConfigurationError("OpenAI API key not configured", integration="openai")
            self._client = openai.AsyncOpenAI(
                api_key=settings.openai_api_key,
                timeout=settings.openai_timeout_seconds,
            )
            logger.info("OpenAI provider initialized", model=settings.openai_model)
        return self._client

    def system_prompt(self, tenant: Tenant) -> str:
        if self.cache is None:
            return self.prompts.system_prompt(tenant)
        return self.cache.get_or_set(
            f"tenant:{tenant.id}:prompt",
            lambda: self.prompts.system_prompt(tenant),
        )

    def build_messages(
        self,
        tenant: Tenant,
        intent: Intent,
        message: str,
        history: Optional[List[HistoryTurn]] = None,
    ) -> List[Dict[str, str]]:
        """System prompt, intent guidance, recent history, then the user turn"""
        messages = [{"role": "system", "content": self.system_prompt(tenant)}]

        guidance = self.prompts.intent_guidance(tenant, intent)
        if guidance:
            messages.append({"role": "system", "content": guidance})

        recent = (history or [])[-settings.history_limit:] if settings.history_limit > 0 else []
        for turn in recent:
            role = _ROLES.get(turn.role)
            if role and turn.content:
                messages.append({"role": role, "content": turn.content})

        messages.append({"role": "user", "content": message})
        return messages

    async def generate(
        self,
        tenant: Tenant,
        intent: Intent,
        message: str,
        history: Optional[List[HistoryTurn]] = None,
    ) -> str:
        start_time = time.perf_counter()
        try:
            reply = await self._complete(self.build_messages(tenant, intent, message, history))
            self.total_generations += 1
            record_llm_call("success", time.perf_counter() - start_time)
            logger.info("Reply generated",
                        tenant=tenant.id,
                        intent_type=intent.type.value,
                        length=len(reply))
            return reply

        except ConfigurationError as e:
            logger.warning("Language model unavailable, using fallback",
                           tenant=tenant.id, error=e.detail)
            record_llm_call("unconfigured", time.perf_counter() - start_time)
        except Exception as e:
            logger.error("Reply generation failed", tenant=tenant.id, error=str(e))
            record_llm_call("error", time.perf_counter() - start_time)

        self.total_fallbacks += 1
        return self.fallback(tenant)

    def fallback(self, tenant: Tenant) -> str:
        return random.choice(self.prompts.fallback_messages(tenant))

    async def _complete(self, messages: List[Dict[str, str]]) -> str:
        """OpenAI chat completion"""
        response = await self.client.chat.completions.create(
            model=settings.openai_model,
            messages=messages,
            max_tokens=settings.openai_max_tokens,
            temperature=settings.openai_temperature,
        )

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as e:
            raise UpstreamError(f"Malformed completion: {e}", service="openai")

        if not content or not content.strip():
            raise UpstreamError("Empty completion", service="openai")
        return content.strip()
