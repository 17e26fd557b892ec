"""
Language code mapping between local tags and OHT provider codes.

Local tags are lowercase BCP 47 style codes ('de', 'pt-br', 'zh-hans').
OHT uses its own locale codes ('de-de', 'pt-br', 'zh-cn-cmn-s').

Several local tags may share one OHT code ('pt' and 'pt-pt'). Mapping back
from OHT picks the first local tag registered for that code, so the
result depends only on table order.
"""

import threading
from typing import Dict, List, Optional

from oht_gateway.logger import get_logger
from oht_gateway.gateway.errors import ErrorKind, GatewayError

logger = get_logger(__name__)

# Default local -> OHT mapping
DEFAULT_LANGUAGE_MAPPING = {
    'af': 'af',
    'ar': 'ar-sa',
    'az': 'az-az',
    'bg': 'bg-bg',
    'bn': 'bn-bd',
    'bs': 'bs-ba',
    'ca': 'ca-es',
    'cs': 'cs-cz',
    'da': 'da',
    'de': 'de-de',
    'el': 'el-gr',
    'en': 'en-us',
    'es': 'es-es',
    'et': 'et-ee',
    'fa': 'fa-ir',
    'fi': 'fi-fi',
    'fr': 'fr-fr',
    'gu': 'gu-in',
    'he': 'he-il',
    'hi': 'hi-in',
    'hr': 'hr-hr',
    'ht': 'ht',
    'hu': 'hu-hu',
    'hy': 'hy-am',
    'id': 'id-id',
    'is': 'is-is',
    'it': 'it-it',
    'ja': 'ja-jp',
    'ka': 'ka-ge',
    'kk': 'kk-kz',
    'km': 'km-kh',
    'ko': 'ko-kp',
    'ku': 'ku-tr',
    'lt': 'lt-lt',
    'lv': 'lv-lv',
    'mk': 'mk-mk',
    'mr': 'mr-in',
    'ms': 'ms-my',
    'nl': 'nl-nl',
    'nb': 'no-no',  # Norwegian Bokmål
    'pa': 'pa-in',
    'pl': 'pl-pl',
    'ps': 'ps',
    'pt': 'pt-pt',
    'pt-br': 'pt-br',
    'pt-pt': 'pt-pt',
    'ro': 'ro-ro',
    'ru': 'ru-ru',
    'sa': 'sa-in',
    'sk': 'sk-sk',
    'sl': 'sl-si',
    'sq': 'sq-al',
    'sr': 'sr-rs',
    'sv': 'sv-se',
    'ta': 'ta-in',
    'th': 'th-th',
    'tl': 'tl-ph',
    'tr': 'tr-tr',
    'uk': 'uk-ua',
    'ur': 'ur-pk',
    'uz': 'uz-uz',
    'vi': 'vi-vn',
    'zh-hans': 'zh-cn-cmn-s',
    'zh-hant': 'zh-cn-cmn-t',
}


def normalize_tag(tag: str) -> str:
    """Lowercase and use '-' as separator: 'pt_BR' -> 'pt-br'."""
    return (tag or '').strip().replace('_', '-').lower()


class LanguageMapper:
    """Bidirectional lookup between local tags and OHT codes."""

    def __init__(self, overrides: Optional[Dict[str, str]] = None):
        self._to_remote: Dict[str, str] = {}
        for local, remote in DEFAULT_LANGUAGE_MAPPING.items():
            self._to_remote[normalize_tag(local)] = normalize_tag(remote)
        for local, remote in (overrides or {}).items():
            self._to_remote[normalize_tag(local)] = normalize_tag(remote)

        self._to_local: Dict[str, str] = {}
        for local, remote in self._to_remote.items():
            # First registration wins
            self._to_local.setdefault(remote, local)

    def to_remote(self, local_tag: str) -> Optional[str]:
        """OHT code for a local tag, None when unmapped."""
        return self._to_remote.get(normalize_tag(local_tag))

    def require_remote(self, local_tag: str) -> str:
        remote = self.to_remote(local_tag)
        if remote is None:
            raise GatewayError(
                f"Language '{local_tag}' is not supported by OHT",
                ErrorKind.VALIDATION,
                details={"language": local_tag},
            )
        return remote

    def to_local(self, remote_code: str) -> Optional[str]:
        """First local tag registered for an OHT code, None when unknown."""
        return self._to_local.get(normalize_tag(remote_code))

    def is_supported(self, local_tag: str) -> bool:
        return normalize_tag(local_tag) in self._to_remote

    def local_tags(self) -> List[str]:
        return list(self._to_remote.keys())

    def as_dict(self) -> Dict[str, str]:
        return dict(self._to_remote)


class SupportedLanguageCache:
    """
    Languages OHT supports, fetched once and kept for the cache's lifetime.

    The owner decides the lifetime (typically one per process). Failed
    fetches are not cached so the next call tries again.
    """

    def __init__(self):
        self._languages: Optional[Dict[str, str]] = None
        self._lock = threading.Lock()

    def get(self, client) -> Dict[str, str]:
        with self._lock:
            if self._languages is not None:
                return dict(self._languages)
            try:
                languages = client.get_supported_languages()
            except GatewayError as e:
                logger.warning("Could not fetch OHT supported languages: %s", e)
                return {}
            self._languages = languages
            logger.info("Cached %s OHT supported languages", len(languages))
            return dict(languages)

    @property
    def is_populated(self) -> bool:
        return self._languages is not None
