"""Translation provider abstractions."""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

import httpx

from .errors import (
    TranslationProviderConfigurationError,
    UpstreamCallFailure,
)

if TYPE_CHECKING:  # pragma: no cover
    from .configuration import PassageConfig

logger = logging.getLogger(__name__)

DEEPL_FREE_URL = "https://api-free.deepl.com/v2/translate"
DEEPL_PRO_URL = "https://api.deepl.com/v2/translate"
DEFAULT_TIMEOUT = 30.0

_QUOTES_PATTERN = re.compile(r"^['\"]+|['\"]+$")


class TranslationProvider(ABC):
    """Abstract adapter for translation backends.

    ``translate`` returns one string per input text, in input order. Any
    failure of the underlying service is raised as ``UpstreamCallFailure``.
    """

    name = "provider"

    @abstractmethod
    def translate(
        self,
        texts: Sequence[str],
        *,
        target_language: str,
    ) -> List[str]:
        """Translate the provided texts into the target language."""

    def close(self) -> None:
        """Release network resources held by the provider."""

    def _log_debug(self, label: str, payload: Any) -> None:
        if not getattr(self, "debug", False):
            return
        try:
            if isinstance(payload, (dict, list)):
                message = json.dumps(payload, ensure_ascii=False, indent=2)
            else:
                message = str(payload)
        except (TypeError, ValueError):
            message = repr(payload)
        logger.debug("[%s] %s:\n%s", self.name, label, message)


class EchoTranslationProvider(TranslationProvider):
    """A provider that returns the original text (useful for testing)."""

    name = "echo"

    def translate(
        self,
        texts: Sequence[str],
        *,
        target_language: str,
    ) -> List[str]:
        return list(texts)


def sanitise_api_key(raw: Optional[str]) -> str:
    """Strip whitespace and stray quotes that creep in from .env files."""

    return _QUOTES_PATTERN.sub("", (raw or "").strip())


def resolve_deepl_url(api_key: str, api_url: Optional[str] = None) -> str:
    """Pick the DeepL endpoint; free-tier keys end in ``:fx``."""

    if api_url and api_url.strip():
        return api_url.strip()
    if api_key.lower().endswith(":fx"):
        return DEEPL_FREE_URL
    return DEEPL_PRO_URL


class DeepLTranslationProvider(TranslationProvider):
    """Translation provider backed by the DeepL REST API."""

    name = "deepl"

    def __init__(
        self,
        api_key: Optional[str],
        *,
        api_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.Client] = None,
        debug: bool = False,
    ) -> None:
        self.api_key = sanitise_api_key(api_key)
        if not self.api_key:
            raise TranslationProviderConfigurationError(
                "DeepL configuration missing. Set DEEPL_KEY or choose a "
                "different provider."
            )
        self.api_url = resolve_deepl_url(self.api_key, api_url)
        self.debug = debug
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=httpx.Timeout(timeout))

    def translate(
        self,
        texts: Sequence[str],
        *,
        target_language: str,
    ) -> List[str]:
        if not texts:
            return []

        form = {
            "text": list(texts),
            "target_lang": target_language.upper(),
        }
        self._log_debug("provider.request.form", form)

        try:
            response = self._client.post(
                self.api_url,
                data=form,
                headers={"Authorization": f"DeepL-Auth-Key {self.api_key}"},
            )
        except httpx.TimeoutException as exc:
            raise UpstreamCallFailure(
                f"Translation service timed out: {exc}"
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamCallFailure(
                f"Translation service unavailable: {exc}"
            ) from exc

        if response.is_error:
            raise UpstreamCallFailure(
                _error_detail(response),
                status=response.status_code,
                retry_after=response.headers.get("retry-after"),
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamCallFailure(
                f"Translation service returned invalid JSON: {exc}",
                status=502,
            ) from exc
        self._log_debug("provider.response.payload", payload)

        translations = payload.get("translations") if isinstance(payload, dict) else None
        if not isinstance(translations, list):
            # The dispatcher reports the count mismatch.
            return []
        return [
            str(entry.get("text") or "") if isinstance(entry, dict) else ""
            for entry in translations
        ]

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


def _error_detail(response: httpx.Response) -> str:
    """Extract a readable message from a failed DeepL response."""

    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "error"):
            value = body.get(key)
            if value:
                return str(value)
    return response.reason_phrase or "translation failed"


class OpenAITranslationProvider(TranslationProvider):
    """Translation provider that uses OpenAI chat models."""

    name = "openai"
    DEFAULT_MODEL = "gpt-5-mini"

    SYSTEM_PROMPT = (
        "You are a professional translator. Return only JSON. "
        "Translate every provided text segment into the requested language. "
        "Preserve whitespace at the start and end of each segment, line breaks, "
        "placeholders, numbers, and markup. "
        "Respond strictly with an object shaped as "
        '{"translations": [{"id": "...", "translated": "..."}]} '
        "containing exactly one entry per segment. "
        "Do not add commentary. Do not wrap the JSON in markdown code fences."
    )

    def __init__(
        self,
        api_key: Optional[str],
        *,
        model: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        client: Any = None,
        debug: bool = False,
    ) -> None:
        self.debug = debug
        self.model = model or self.DEFAULT_MODEL
        if client is not None:
            self._client = client
            return
        api_key = sanitise_api_key(api_key)
        if not api_key:
            raise TranslationProviderConfigurationError(
                "OpenAI configuration missing. Set OPENAI_API_KEY or choose a "
                "different provider."
            )
        try:
            from openai import OpenAI
        except ImportError as exc:  # pragma: no cover - import guard
            raise TranslationProviderConfigurationError(
                "OpenAI Python SDK not installed. Install with `pip install openai`."
            ) from exc

        self._client = OpenAI(api_key=api_key, timeout=timeout)

    def translate(
        self,
        texts: Sequence[str],
        *,
        target_language: str,
    ) -> List[str]:
        if not texts:
            return []

        user_payload = {
            "target_language": target_language,
            "segments": [
                {"id": str(index), "text": text} for index, text in enumerate(texts)
            ],
        }
        self._log_debug("provider.request.payload", user_payload)

        try:
            response = self._client.responses.create(
                model=self.model,
                input=[
                    {
                        "role": "system",
                        "content": [
                            {"type": "input_text", "text": self.SYSTEM_PROMPT},
                        ],
                    },
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "input_text",
                                "text": json.dumps(user_payload, ensure_ascii=False),
                            }
                        ],
                    },
                ],
            )
        except Exception as exc:  # pragma: no cover - network call
            raise UpstreamCallFailure(
                f"Translation service temporarily unavailable: {exc}",
                status=getattr(exc, "status_code", None),
            ) from exc

        items = _parse_translation_items(getattr(response, "output_text", None))
        self._log_debug("provider.response.items", items)

        mapping: Dict[str, str] = {}
        for item in items:
            if not isinstance(item, dict):
                continue
            segment_id = item.get("id")
            translated = item.get("translated")
            if isinstance(segment_id, str) and isinstance(translated, str):
                mapping[segment_id] = translated

        # Dropped ids shorten the result, which the dispatcher rejects.
        return [
            mapping[str(index)]
            for index in range(len(texts))
            if str(index) in mapping
        ]


def _strip_code_fence(text: str) -> str:
    """Remove leading/trailing markdown code fences if present."""

    stripped = text.strip()
    if not stripped.startswith("```"):
        return stripped
    first_newline = stripped.find("\n")
    if first_newline == -1:
        return stripped
    body = stripped[first_newline + 1 :]
    closing_index = body.rfind("```")
    if closing_index != -1:
        body = body[:closing_index]
    return body.strip()


def _parse_translation_items(output_text: Any) -> List[Any]:
    """Turn a model's JSON answer into the list of translation entries."""

    if not output_text:
        raise UpstreamCallFailure(
            "Translation provider response empty or unrecognised.", status=502
        )
    try:
        payload = json.loads(_strip_code_fence(str(output_text)))
    except json.JSONDecodeError as exc:
        raise UpstreamCallFailure(
            f"Translation provider returned invalid JSON: {exc}", status=502
        ) from exc

    if isinstance(payload, dict) and isinstance(payload.get("translations"), list):
        return payload["translations"]
    if isinstance(payload, list):
        return payload
    raise UpstreamCallFailure(
        "Translation provider response malformed: could not find translations list.",
        status=502,
    )


def build_provider(
    name: Optional[str],
    *,
    settings: Optional["PassageConfig"] = None,
    debug: bool = False,
) -> TranslationProvider:
    """Factory to create providers by name."""

    normalized = (name or "deepl").strip().lower()
    if normalized in {"echo", "noop", "mock"}:
        return EchoTranslationProvider()
    if settings is None:
        raise TranslationProviderConfigurationError(
            f"Provider '{normalized}' requires configuration settings."
        )
    if normalized in {"deepl", "default"}:
        return DeepLTranslationProvider(
            settings.DEEPL_KEY,
            api_url=settings.DEEPL_API_URL,
            timeout=settings.UPSTREAM_TIMEOUT_MS / 1000.0,
            debug=debug,
        )
    if normalized in {"openai", "gpt"}:
        return OpenAITranslationProvider(
            settings.OPENAI_API_KEY,
            model=settings.OPENAI_MODEL,
            timeout=settings.UPSTREAM_TIMEOUT_MS / 1000.0,
            debug=debug,
        )
    raise TranslationProviderConfigurationError(
        f"Unknown translation provider '{name}'."
    )
