from babel import Locale

import logging
import re
from dataclasses import dataclass
from typing import Dict

logger = logging.getLogger(__name__)

# Used when the translator's language list cannot be fetched.
BUILTIN_LANGUAGE_CODES = (
    "ar", "bg", "cs", "da", "de", "el", "en", "es", "et", "fa", "fi", "fr",
    "he", "hi", "hr", "hu", "id", "it", "ja", "ko", "lt", "lv", "nb", "nl",
    "pl", "pt", "pt-pt", "ro", "ru", "sk", "sl", "sr-Latn", "sv", "th", "tr",
    "uk", "vi", "zh-Hans", "zh-Hant",
)


@dataclass(frozen=True)
class LanguageDescriptor:
    """A language supported by the translator."""

    code: str
    display_name: str
    native_name: str
    writing_direction: str = "ltr"

    def __str__(self) -> str:
        return f"{self.code} - {self.display_name}"


def _parse_locale(locale_code: str) -> Locale:
    # Translator codes use '-' separators (zh-Hans, pt-pt); Babel wants '_'.
    normalized_code = re.sub(r"-", "_", locale_code.strip())
    return Locale.parse(normalized_code)


def get_language_name(locale_code: str) -> str:
    """
    Get the English display name of a translator language code using Babel.

    Args:
        locale_code: A string representing a language code in various formats:
                    - Language code (e.g., 'en', 'fr')
                    - Language with region (e.g., 'pt-pt', 'fr-CA')
                    - Language with script (e.g., 'zh-Hans', 'sr-Latn')

    Returns:
        The display name of the language in English, including script or region
        if present. Returns the original locale_code if parsing fails.
    """
    try:
        locale = _parse_locale(locale_code)
        return locale.get_display_name(locale="en")
    except Exception as e:
        # Log warning and return the original code if parsing fails
        logger.warning(
            f"Could not determine language name for locale '{locale_code}': {e}"
        )
        return locale_code


def describe_language(locale_code: str) -> LanguageDescriptor:
    """Build a LanguageDescriptor for a code from Babel's CLDR data."""
    try:
        locale = _parse_locale(locale_code)
    except Exception as e:
        logger.warning(f"Unknown language code '{locale_code}': {e}")
        return LanguageDescriptor(locale_code, locale_code, locale_code, "ltr")

    direction = "rtl" if locale.character_order == "right-to-left" else "ltr"
    return LanguageDescriptor(
        code=locale_code,
        display_name=locale.get_display_name(locale="en") or locale_code,
        native_name=locale.get_display_name(locale=locale) or locale_code,
        writing_direction=direction,
    )


def builtin_language_catalog() -> Dict[str, LanguageDescriptor]:
    """Return the static language list keyed by language code."""
    return {code: describe_language(code) for code in BUILTIN_LANGUAGE_CODES}
