#!/usr/bin/env python3
"""
LLM Provider Module

This module provides the translation side of the pipeline: an abstraction
layer for talking to OpenAI-compatible chat completion APIs (OpenAI,
OpenRouter), the fixed translation instruction sent for every literal, and the
tolerant parser that recovers a JSON object from a free-form completion.
"""

import json
import logging
from enum import Enum
from dataclasses import dataclass
from typing import Optional, Dict, Any, List

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------------------
# Translation Prompt
# ------------------------------------------------------------------------------

DEFAULT_MODEL = "gpt-4o-mini"

# Every literal is translated into this fixed set, independent of the language
# list configured for the generated runtime module.
TRANSLATION_LANGUAGES = {
    "en": "English",
    "es": "Spanish",
    "zh": "Chinese",
    "fr": "French",
    "hi": "Hindi",
    "ja": "Japanese",
}

TRANSLATION_EXAMPLE = {
    "en": "Hello, {name}",
    "es": "Hola, {name}",
    "zh": "你好, {name}",
    "fr": "Bonjour, {name}",
    "hi": "नमस्ते, {name}",
    "ja": "こんにちは, {name}",
}

TRANSLATION_PROMPT_TEMPLATE = """\
Translate the following text into {language_names}. \
Ensure the translation is concise, professional, elegant, and suitable for a UI-friendly commercial context. \
Your output should be in JSON format: {example} \
Please respond only in this JSON format. {style_directive} \
Please translate: {text}"""


def _format_language_names(names: List[str]) -> str:
    """Join names as 'A, B, and C'."""
    if len(names) < 2:
        return "".join(names)
    return ", ".join(names[:-1]) + ", and " + names[-1]


def build_translation_prompt(text: str, style_directive: str = "") -> str:
    """
    Build the single user instruction sent for one literal.

    Args:
        text: The literal to translate
        style_directive: Optional caller supplied instruction, appended verbatim

    Returns:
        The full prompt string
    """
    return TRANSLATION_PROMPT_TEMPLATE.format(
        language_names=_format_language_names(list(TRANSLATION_LANGUAGES.values())),
        example=json.dumps(TRANSLATION_EXAMPLE, ensure_ascii=False),
        style_directive=style_directive or "",
        text=text,
    )


# ------------------------------------------------------------------------------
# Tolerant JSON extraction
# ------------------------------------------------------------------------------


def parse_json_text(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Recover a JSON object from a completion that may be wrapped in prose.

    The text is scanned once, remembering the first '{' and the last '}'. The
    slice between them (inclusive) is parsed strictly. This is a best-effort
    decoder: a stray '}' after the object, or several JSON fragments in one
    reply, make the slice unparsable and the result is None.

    Args:
        text: Raw completion text

    Returns:
        The parsed object, or None if no braces were found, the slice is not
        valid JSON, or it does not decode to an object.
    """
    if not text:
        return None

    open_brace_index = -1
    close_brace_index = -1
    for index, char in enumerate(text):
        if char == "{" and open_brace_index == -1:
            open_brace_index = index
        elif char == "}":
            close_brace_index = index

    if open_brace_index == -1 or close_brace_index == -1:
        return None

    try:
        parsed = json.loads(text[open_brace_index : close_brace_index + 1])
    except ValueError:
        return None

    if not isinstance(parsed, dict):
        return None
    return parsed


# ------------------------------------------------------------------------------
# Provider configuration and client
# ------------------------------------------------------------------------------


class LLMProvider(Enum):
    """Supported LLM providers."""

    OPENAI = "openai"
    OPENROUTER = "openrouter"


@dataclass
class LLMConfig:
    """
    Configuration for LLM API access.

    Attributes:
        provider: The LLM provider to use (OpenAI or OpenRouter)
        api_key: API key for authentication
        model: Model identifier (e.g., "gpt-4o-mini" or "openai/gpt-4o-mini")
        site_url: Optional site URL for OpenRouter rankings
        site_name: Optional site name for OpenRouter rankings
    """

    provider: LLMProvider
    api_key: str
    model: str = DEFAULT_MODEL
    site_url: Optional[str] = None
    site_name: Optional[str] = None

    def __post_init__(self):
        """Validate configuration after initialization."""
        if isinstance(self.provider, str):
            self.provider = LLMProvider(self.provider.lower())

        if not self.api_key:
            raise ValueError("API key is required")

        if not self.model:
            raise ValueError("Model name is required")


class LLMClient:
    """
    Client for interacting with LLM APIs.

    Supports both OpenAI and OpenRouter with a unified interface.
    Uses the OpenAI Python SDK as both providers are API-compatible.
    """

    # Provider-specific base URLs
    BASE_URLS = {
        LLMProvider.OPENAI: "https://api.openai.com/v1",
        LLMProvider.OPENROUTER: "https://openrouter.ai/api/v1",
    }

    def __init__(self, config: LLMConfig):
        self.config = config
        self.client = self._create_client()

        logger.info(
            f"Initialized LLM client with provider={config.provider.value}, "
            f"model={config.model}"
        )

    def _create_client(self):
        from openai import OpenAI

        base_url = self.BASE_URLS[self.config.provider]
        logger.debug(f"Creating OpenAI client with base_url={base_url}")
        return OpenAI(api_key=self.config.api_key, base_url=base_url)

    def _get_extra_headers(self) -> Dict[str, str]:
        """
        Get provider-specific extra headers.

        For OpenRouter, includes HTTP-Referer and X-Title for rankings.
        """
        if self.config.provider != LLMProvider.OPENROUTER:
            return {}

        headers = {}
        if self.config.site_url:
            headers["HTTP-Referer"] = self.config.site_url
        if self.config.site_name:
            headers["X-Title"] = self.config.site_name
        return headers

    def chat_completion(self, messages: list, **kwargs) -> Optional[str]:
        """
        Send a chat completion request and return the text of the first choice.

        Args:
            messages: List of message dicts with 'role' and 'content'
            **kwargs: Additional arguments to pass to the API

        Returns:
            The message content, or None if the service returned no content

        Raises:
            Exception: For any API-related errors (authentication, transport, etc.)
        """
        try:
            api_params = {
                "model": self.config.model,
                "messages": messages,
                **kwargs,
            }

            extra_headers = self._get_extra_headers()
            if extra_headers:
                api_params["extra_headers"] = extra_headers

            logger.debug(
                f"Sending chat completion request to {self.config.provider.value} "
                f"(model: {self.config.model})"
            )
            response = self.client.chat.completions.create(**api_params)
        except Exception as e:
            logger.error(f"Error calling {self.config.provider.value} API: {e}")
            raise

        if not response.choices:
            return None
        content = response.choices[0].message.content
        if content:
            logger.debug(
                f"Received response from {self.config.provider.value}: {content[:100]}..."
            )
        return content


def translate_literal_with_llm(
    text: str,
    style_directive: str,
    llm_config: LLMConfig,
    client: Optional[LLMClient] = None,
) -> Optional[Dict[str, str]]:
    """
    Translate one literal into every language of TRANSLATION_LANGUAGES.

    Empty or unparsable completions are soft failures: they are logged and
    None is returned so the literal is skipped for this run and retried on the
    next one. Transport errors are not caught.

    Args:
        text: The literal to translate
        style_directive: Optional extra instruction for tone/style
        llm_config: LLM provider configuration
        client: Reuse an existing client instead of creating one

    Returns:
        Mapping of language code to translated string, or None on soft failure
    """
    client = client or LLMClient(llm_config)

    messages = [
        {"role": "user", "content": build_translation_prompt(text, style_directive)}
    ]
    content = client.chat_completion(messages=messages)

    if not content:
        logger.warning(f"LLM returned no message for: {text!r}")
        return None

    record = parse_json_text(content)
    if record is None:
        logger.warning(f"Could not parse LLM response for {text!r}: {content}")
        return None

    return record
