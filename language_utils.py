from babel import Locale
from typing import List

import logging

logger = logging.getLogger(__name__)

# Language codes that the generated runtime module can be configured with.
KNOWN_LANGUAGE_CODES = (
    "en",
    "zh",
    "ja",
    "es",
    "fr",
    "hi",
    "de",
    "ru",
    "pt",
    "it",
    "ko",
    "tr",
    "vi",
    "th",
    "id",
    "ar",
    "pl",
    "nl",
    "sv",
    "uk",
)

DEFAULT_LANGUAGE_CODES = "en,zh,ja,es,fr,hi"


def get_language_name(locale_code: str) -> str:
    """
    Get the English display name of a language code using Babel.

    Args:
        locale_code: A language code such as 'en', 'zh' or 'pt-BR'

    Returns:
        The English display name, or the code itself if Babel can't parse it.
    """
    try:
        locale = Locale.parse(locale_code.replace("-", "_"))
        return locale.get_display_name(locale="en")
    except Exception as e:
        logger.warning(
            f"Could not determine language name for locale '{locale_code}': {e}"
        )
        return locale_code


def get_native_language_name(locale_code: str) -> str:
    """
    Get the name of a language written in that language (e.g. 'ja' -> '日本語').

    This is the label shown to end users in the generated language picker list.
    Falls back to the code itself when Babel has no data for it.
    """
    try:
        name = Locale.parse(locale_code).get_display_name(locale=locale_code)
    except Exception as e:
        logger.warning(
            f"Could not determine native name for locale '{locale_code}': {e}"
        )
        return locale_code
    if not name:
        return locale_code
    return name[:1].upper() + name[1:]


def parse_language_codes(value: str) -> List[str]:
    """Split a comma separated language flag into trimmed, non-empty codes."""
    if not value:
        return []
    return [code.strip() for code in value.split(",") if code.strip()]


def validate_language_codes(codes: List[str]) -> List[str]:
    """
    Ensure every configured code is one of KNOWN_LANGUAGE_CODES.

    Raises:
        ValueError: On the first unknown code, or when no code is given.
    """
    if not codes:
        raise ValueError("At least one language code is required")
    for code in codes:
        if code not in KNOWN_LANGUAGE_CODES:
            raise ValueError(f'Unknown language code: "{code}"')
    return codes
