#!/usr/bin/env python3
"""
Translator Service Module

This module talks to the Azure AI Translator text API (v3.0). It owns the
pooled HTTP session, sends the whole document as one ordered batch and reads
the list of supported languages. Authentication is a subscription key and
region passed as request headers.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlparse

import requests
from requests.adapters import HTTPAdapter

from errors import (
    InvalidInputError,
    TranslationCountMismatchError,
    TranslationServiceError,
    TransportError,
)
from language_utils import LanguageDescriptor, builtin_language_catalog
from resw_document import TranslationEntry

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://api.cognitive.microsofttranslator.com"
API_VERSION = "3.0"
DEFAULT_TIMEOUT = 30.0
DEFAULT_POOL_MAXSIZE = 10


@dataclass
class TranslatorConfig:
    """
    Configuration for Azure Translator access.

    Attributes:
        endpoint: Absolute https base URL of the translator resource
        subscription_key: Value of the Ocp-Apim-Subscription-Key header
        subscription_region: Value of the Ocp-Apim-Subscription-Region header
        timeout: Seconds to wait for connect and read on each request
        pool_maxsize: Number of pooled connections kept by the session
    """

    endpoint: str = DEFAULT_ENDPOINT
    subscription_key: Optional[str] = None
    subscription_region: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT
    pool_maxsize: int = DEFAULT_POOL_MAXSIZE

    def __post_init__(self):
        """Validate the endpoint after initialization."""
        endpoint = (self.endpoint or "").strip()
        parsed = urlparse(endpoint)
        if parsed.scheme.lower() != "https" or not parsed.netloc:
            raise InvalidInputError(
                f"Translator endpoint must be an absolute https URL, got '{self.endpoint}'"
            )
        self.endpoint = endpoint.rstrip("/")

        if self.timeout is None or self.timeout <= 0:
            raise InvalidInputError("HTTP timeout must be a positive number of seconds")
        if self.pool_maxsize is None or self.pool_maxsize < 1:
            raise InvalidInputError("HTTP pool size must be at least 1")

    def require_credentials(self) -> None:
        """Raise InvalidInputError unless both key and region are set."""
        if not self.subscription_key or not self.subscription_key.strip():
            raise InvalidInputError("Azure subscription key is required")
        if not self.subscription_region or not self.subscription_region.strip():
            raise InvalidInputError("Azure subscription region is required")


class TranslatorClient:
    """
    Client for the Azure Translator REST API.

    The client keeps one requests.Session for its whole lifetime so that
    connections are pooled across the language listing and translate calls.
    A session can be injected to share a pool or to substitute a fake one.
    """

    def __init__(
        self, config: TranslatorConfig, session: Optional[requests.Session] = None
    ):
        self.config = config
        self._owns_session = session is None
        self.session = session if session is not None else self._create_session()

        logger.debug(
            f"Initialized translator client for {config.endpoint} "
            f"(region={config.subscription_region or '-'}, timeout={config.timeout}s)"
        )

    def _create_session(self) -> requests.Session:
        """Create a session with a connection pool and retries disabled."""
        session = requests.Session()
        adapter = HTTPAdapter(
            pool_connections=self.config.pool_maxsize,
            pool_maxsize=self.config.pool_maxsize,
            max_retries=0,
        )
        session.mount("https://", adapter)
        return session

    def close(self) -> None:
        if self._owns_session:
            self.session.close()

    def __enter__(self) -> "TranslatorClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _url(self, route: str) -> str:
        return f"{self.config.endpoint}/{route.lstrip('/')}"

    def _auth_headers(self) -> Dict[str, str]:
        return {
            "Ocp-Apim-Subscription-Key": self.config.subscription_key.strip(),
            "Ocp-Apim-Subscription-Region": self.config.subscription_region.strip(),
        }

    def get_languages(self) -> Any:
        """
        GET /languages for the translation scope and return the decoded JSON.

        Raises:
            TransportError: If the service cannot be reached or returns invalid JSON
            TranslationServiceError: For a non-success HTTP status
        """
        url = self._url("languages")
        params = {"api-version": API_VERSION, "scope": "translation"}
        logger.debug(f"Requesting language list from {url}")
        try:
            response = self.session.get(url, params=params, timeout=self.config.timeout)
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Could not reach {url}: {e}") from e

        if not response.ok:
            raise TranslationServiceError(
                response.status_code,
                f"Reading available languages failed, HTTP error: {response.status_code}",
            )
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"Language list from {url} is not valid JSON: {e}") from e

    def translate(
        self,
        entries: Sequence[TranslationEntry],
        source_language: str,
        target_language: str,
    ) -> List[str]:
        """
        Translate all entries in a single POST /translate call.

        Args:
            entries: Ordered translation entries; order is the wire contract
            source_language: Language code of the source text (from=)
            target_language: Language code to translate into (to=)

        Returns:
            One translated string per entry, in the same order

        Raises:
            InvalidInputError: If credentials are missing
            TransportError: If no response was received
            TranslationServiceError: For a non-success HTTP status
            TranslationCountMismatchError: If the response does not hold
                exactly one translation per entry
        """
        if not entries:
            logger.debug("No entries to translate, skipping the translate call")
            return []

        self.config.require_credentials()

        url = self._url("translate")
        params = {
            "api-version": API_VERSION,
            "from": source_language,
            "to": target_language,
        }
        body = [entry.to_payload() for entry in entries]

        logger.info(
            f"Translating {len(body)} entries from '{source_language}' to '{target_language}'"
        )
        logger.debug(f"POST {url} params={params}")

        try:
            response = self.session.post(
                url,
                params=params,
                headers=self._auth_headers(),
                json=body,
                timeout=self.config.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Error calling translator at {url}: {e}")
            raise TransportError(f"Could not reach {url}: {e}") from e

        if not response.ok:
            logger.error(f"Translation failed, HTTP error: {response.status_code}")
            raise TranslationServiceError(response.status_code)

        try:
            payload = response.json()
        except ValueError as e:
            logger.error(f"Translator response is not valid JSON: {e}")
            payload = None

        results = parse_translation_response(payload, target_language)
        if len(results) != len(entries):
            logger.error(
                f"Translator returned {len(results)} results for {len(entries)} entries"
            )
            raise TranslationCountMismatchError(len(entries), len(results))

        return results


def parse_translation_response(payload: Any, target_language: str = None) -> List[str]:
    """
    Flatten a /translate response into one string per submitted entry.

    Each element may carry several translation variants; the one addressed to
    target_language is used, falling back to the first. Elements that are not
    shaped as expected contribute nothing, which surfaces as a count mismatch.
    """
    results: List[str] = []
    if not isinstance(payload, list):
        return results

    for item in payload:
        if not isinstance(item, dict):
            continue
        translations = item.get("translations")
        if not isinstance(translations, list) or not translations:
            continue

        chosen = None
        for translation in translations:
            if isinstance(translation, dict) and translation.get("to") == target_language:
                chosen = translation
                break
        if chosen is None:
            chosen = translations[0]

        if isinstance(chosen, dict) and isinstance(chosen.get("text"), str):
            results.append(chosen["text"])

    return results


# ------------------------------------------------------------------------------
# Language Catalog
# ------------------------------------------------------------------------------


def parse_language_catalog(payload: Any) -> Dict[str, LanguageDescriptor]:
    """Build descriptors from a /languages response body."""
    catalog: Dict[str, LanguageDescriptor] = {}
    if not isinstance(payload, dict):
        return catalog
    translation = payload.get("translation")
    if not isinstance(translation, dict):
        return catalog

    for code, details in translation.items():
        if not isinstance(details, dict):
            continue
        catalog[code] = LanguageDescriptor(
            code=code,
            display_name=str(details.get("name", "")),
            native_name=str(details.get("nativeName", "")),
            writing_direction=str(details.get("dir", "ltr")),
        )
    return catalog


def fetch_language_catalog(client: TranslatorClient) -> Dict[str, LanguageDescriptor]:
    """
    Fetch the supported languages, returning an empty mapping on any failure.

    Translation does not depend on the catalog, so errors are logged and
    swallowed here instead of ending the run.
    """
    try:
        payload = client.get_languages()
    except (TransportError, TranslationServiceError) as e:
        logger.warning(f"Failed to read available languages: {e}")
        return {}

    catalog = parse_language_catalog(payload)
    if not catalog:
        logger.warning("Language list response did not contain any languages")
    else:
        logger.debug(f"Loaded {len(catalog)} languages from the translator service")
    return catalog


class LanguageCatalog:
    """
    In-memory cache of the supported languages.

    The remote list is fetched once; when that fetch fails the built-in list
    is cached in its place.
    """

    def __init__(self, client: TranslatorClient):
        self.client = client
        self._languages: Optional[Dict[str, LanguageDescriptor]] = None
        self.is_fallback = False

    def languages(self) -> Dict[str, LanguageDescriptor]:
        if self._languages is None:
            fetched = fetch_language_catalog(self.client)
            if not fetched:
                logger.warning("Falling back to the built-in language list")
                fetched = builtin_language_catalog()
                self.is_fallback = True
            self._languages = fetched
        return self._languages

    def get(self, code: str) -> Optional[LanguageDescriptor]:
        return self.languages().get(code)
