import logging
from typing import Optional, List, Tuple, Any
from groq import AsyncGroq
from google import genai
from ..core.config import settings

logger = logging.getLogger(__name__)


class LLMService:
    """
    Service for interacting with LLMs (Groq and Google Gemini).
    Fallback order: Groq 1 -> Gemini 1 -> Gemini 2 -> Groq 2 (last resort)
    """

    def __init__(self, config=settings):
        self.config = config
        # List of (client, name, provider) tuples in fallback order
        self.clients: List[Tuple[Any, str, str]] = []
        self.current_index: int = 0

        # 1. Groq primary
        if config.GROQ_API_KEY:
            client = AsyncGroq(api_key=config.GROQ_API_KEY)
            self.clients.append((client, "GROQ_API_KEY (primary)", "groq"))

        # 2. Gemini primary
        if config.GEMINI_API_KEY:
            client = genai.Client(api_key=config.GEMINI_API_KEY)
            self.clients.append((client, "GEMINI_API_KEY (primary)", "gemini"))

        # 3. Gemini backup
        if config.GEMINI_API_KEY_2:
            client = genai.Client(api_key=config.GEMINI_API_KEY_2)
            self.clients.append((client, "GEMINI_API_KEY_2 (backup)", "gemini"))

        # 4. Groq last resort
        if config.GROQ_API_KEY_2:
            client = AsyncGroq(api_key=config.GROQ_API_KEY_2)
            self.clients.append((client, "GROQ_API_KEY_2 (last resort)", "groq"))

        logger.info("LLM Service initialized with %d providers", len(self.clients))
        for _, name, provider in self.clients:
            logger.info("  - %s (%s)", name, provider)

    @property
    def available(self) -> bool:
        return bool(self.clients)

    def _is_rate_limit_error(self, error: Exception) -> bool:
        """Check if the error is a rate limit error."""
        error_str = str(error).lower()
        return (
            "429" in error_str or
            "rate limit" in error_str or
            "rate_limit" in error_str or
            "quota" in error_str or
            "resource exhausted" in error_str
        )

    async def _try_groq(
            self,
            client: AsyncGroq,
            messages: List[dict],
            temperature: float,
            max_tokens: int,
            json_mode: bool
    ) -> str:
        """Try a Groq client."""
        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        response = await client.chat.completions.create(
            model=self.config.GROQ_MODEL,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            **kwargs
        )
        return response.choices[0].message.content or ""

    async def _try_gemini(
            self,
            client: genai.Client,
            messages: List[dict],
            temperature: float,
            max_tokens: int,
            json_mode: bool
    ) -> str:
        """Try a Gemini client using the google-genai SDK."""
        # Gemini takes a single prompt; fold the system message in front
        prompt_parts = []
        for msg in messages:
            if msg["role"] == "system":
                prompt_parts.append(f"Instructions: {msg['content']}\n\n")
            elif msg["role"] == "user":
                prompt_parts.append(msg["content"])

        full_prompt = "".join(prompt_parts)

        config = {
            "temperature": temperature,
            "max_output_tokens": max_tokens
        }
        if json_mode:
            config["response_mime_type"] = "application/json"

        response = await client.aio.models.generate_content(
            model=self.config.GEMINI_MODEL,
            contents=full_prompt,
            config=config
        )
        return response.text or ""

    async def generate(
            self,
            prompt: str,
            system_prompt: Optional[str] = None,
            temperature: float = 0.7,
            max_tokens: int = 1024,
            json_mode: bool = False
    ) -> str:
        """
        Generate a response from the LLM.
        Fallback order: Groq 1 -> Gemini 1 -> Gemini 2 -> Groq 2
        """
        if not self.clients:
            raise RuntimeError("No LLM service available. Please configure GROQ_API_KEY or GEMINI_API_KEY.")

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        # Try each client in fallback order, starting from the last one that worked
        last_error = None
        for i in range(len(self.clients)):
            idx = (self.current_index + i) % len(self.clients)
            client, name, provider = self.clients[idx]

            try:
                if provider == "groq":
                    result = await self._try_groq(client, messages, temperature, max_tokens, json_mode)
                else:  # gemini
                    result = await self._try_gemini(client, messages, temperature, max_tokens, json_mode)

                self.current_index = idx
                return result

            except Exception as e:
                last_error = e
                if self._is_rate_limit_error(e):
                    logger.warning("Rate limited on %s, trying next provider...", name)
                else:
                    logger.warning("LLM error (%s): %s", name, e)

        raise RuntimeError(f"All LLM providers failed. Last error: {last_error}")

    async def generate_json(
            self,
            prompt: str,
            system_prompt: Optional[str] = None,
            temperature: float = 0.2,
            max_tokens: int = 2048
    ) -> str:
        """
        Generate a JSON response from the LLM.
        Uses lower temperature and the providers' JSON response mode.
        """
        json_system = (system_prompt or "") + "\n\nRespond ONLY with valid JSON. No explanations or markdown."
        return await self.generate(prompt, json_system, temperature, max_tokens, json_mode=True)


# Singleton instance
llm_service = LLMService()
