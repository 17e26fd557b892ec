"""
OHT API Client

This module contains the transport layer for the OneHourTranslation REST API:
- Request building against the production or sandbox base URL
- Credential injection on every call
- Response envelope decoding into tagged results
- Mapping of transport and envelope failures onto GatewayError kinds

Each endpoint helper returns decoded data; callers never see raw envelopes.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

import httpx

from oht_gateway.config import API_VERSION, PRODUCTION_URL, SANDBOX_URL
from oht_gateway.logger import get_logger
from oht_gateway.gateway.errors import ErrorKind, GatewayError
from oht_gateway.gateway.models import RemoteCredential, RemoteProject

logger = get_logger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def get_httpx_timeout(timeout_config: Any) -> httpx.Timeout:
    """
    Convert timeout configuration to httpx.Timeout object.

    Args:
        timeout_config: Either a number (read timeout) or a dict with
            connect, write, read, pool keys

    Returns:
        httpx.Timeout object
    """
    if isinstance(timeout_config, dict):
        return httpx.Timeout(
            connect=timeout_config.get('connect', 10.0),
            write=timeout_config.get('write', 60.0),
            read=timeout_config.get('read', 60.0),
            pool=timeout_config.get('pool', 10.0),
        )
    else:
        timeout_value = float(timeout_config) if timeout_config else 60.0
        return httpx.Timeout(
            connect=10.0,
            write=60.0,
            read=timeout_value,
            pool=10.0,
        )


# ============================================================
# Response envelope
# ============================================================

@dataclass(frozen=True)
class EnvelopeOk:
    results: Any


@dataclass(frozen=True)
class EnvelopeStatusError:
    code: int
    msg: str


@dataclass(frozen=True)
class EnvelopeErrors:
    errors: List[str]
    msg: str


Envelope = Union[EnvelopeOk, EnvelopeStatusError, EnvelopeErrors]


def decode_envelope(body: bytes) -> Envelope:
    """
    Decode an OHT response body `{status: {code, msg}, errors: [...], results: ...}`.

    Raises:
        GatewayError: TRANSPORT when the body is not a usable envelope.
    """
    try:
        payload = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        raise GatewayError("OHT service returned a malformed response envelope", ErrorKind.TRANSPORT)

    status = payload.get("status") if isinstance(payload, dict) else None
    if not isinstance(status, dict) or "code" not in status:
        raise GatewayError("OHT service returned a response without status", ErrorKind.TRANSPORT)

    try:
        code = int(status["code"])
    except (TypeError, ValueError):
        raise GatewayError(f"OHT service returned an invalid status code: {status['code']!r}",
                           ErrorKind.TRANSPORT)
    msg = str(status.get("msg") or "")

    if code != 0:
        return EnvelopeStatusError(code=code, msg=msg)

    errors = payload.get("errors") or []
    if not isinstance(errors, list):
        errors = [errors]
    if errors:
        return EnvelopeErrors(errors=[str(e) for e in errors], msg=msg)

    return EnvelopeOk(results=payload.get("results"))


def unwrap_envelope(envelope: Envelope, status_code: int = None) -> Any:
    """Return the results of a successful envelope, raise the matching GatewayError otherwise."""
    if isinstance(envelope, EnvelopeStatusError):
        raise GatewayError(
            f"OHT service returned validation error: #{envelope.code} {envelope.msg}",
            ErrorKind.VALIDATION,
            code=envelope.code,
            status_code=status_code,
        )
    if isinstance(envelope, EnvelopeErrors):
        joined = "; ".join(envelope.errors)
        logger.warning("OHT error: %s", joined)
        raise GatewayError(
            f"OHT service returned following error: {joined}",
            ErrorKind.REMOTE,
            status_code=status_code,
            details={"errors": envelope.errors},
        )
    return envelope.results


def _redact(params: Dict[str, Any]) -> Dict[str, Any]:
    redacted = dict(params)
    secret = redacted.get("secret_key")
    if secret:
        redacted["secret_key"] = f"{str(secret)[:4]}..."
    return redacted


# ============================================================
# Client
# ============================================================

class OhtClient:
    """Synchronous client for the OHT API, one per gateway."""

    def __init__(self, credential: RemoteCredential, timeout: Any = 60, debug: bool = False,
                 transport: Optional[httpx.BaseTransport] = None):
        self.credential = credential
        self.debug = debug
        self._http = httpx.Client(timeout=get_httpx_timeout(timeout), transport=transport)

    @property
    def base_url(self) -> str:
        return SANDBOX_URL if self.credential.use_sandbox else PRODUCTION_URL

    def close(self):
        self._http.close()

    @property
    def is_closed(self) -> bool:
        return self._http.is_closed

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def request(self, path: str, method: str = "GET", params: Optional[Dict[str, Any]] = None,
                download: bool = False, content_type: str = FORM_CONTENT_TYPE,
                files: Optional[Dict[str, Any]] = None) -> Any:
        """
        Do a request to the OHT service.

        Args:
            path: Resource path below the API version, e.g. "projects/translation"
            method: GET or POST
            params: Query (GET) or form (POST) parameters
            download: Return the raw body instead of decoding the envelope
            content_type: Content type of non-multipart POST bodies
            files: Multipart file parts; switches POST to multipart

        Returns:
            Raw bytes when download is set, the envelope results otherwise

        Raises:
            GatewayError: TRANSPORT, VALIDATION or REMOTE
        """
        url = f"{self.base_url}/{API_VERSION}/{path}"
        method = method.upper()

        payload = {k: v for k, v in (params or {}).items() if v is not None}
        # Credentials go last so callers cannot override them
        payload["public_key"] = self.credential.public_key
        payload["secret_key"] = self.credential.secret_key

        try:
            if method == "GET":
                response = self._http.get(url, params=payload)
            elif method == "POST":
                if files:
                    response = self._http.post(url, data=payload, files=files)
                else:
                    response = self._http.post(url, data=payload, headers={"Content-Type": content_type})
            else:
                raise ValueError(f"Unsupported method: {method}")
        except httpx.TimeoutException:
            logger.error("OHT request to %s timed out", url)
            raise GatewayError("Unable to connect to OHT service due to following error: request timed out",
                               ErrorKind.TRANSPORT, details={"url": url})
        except httpx.HTTPError as e:
            logger.error("OHT request to %s failed: %s", url, e)
            raise GatewayError(f"Unable to connect to OHT service due to following error: {e}",
                               ErrorKind.TRANSPORT, details={"url": url})

        if self.debug:
            logger.debug("Sending request to OHT at %s method %s with data %s\n\nResponse: %s %s",
                         url, method, _redact(payload), response.status_code, response.content[:500])

        if not response.is_success:
            try:
                envelope = decode_envelope(response.content)
            except GatewayError:
                envelope = None
            if isinstance(envelope, EnvelopeStatusError):
                unwrap_envelope(envelope, status_code=response.status_code)
            raise GatewayError(
                f"Unable to connect to OHT service due to following error: {response.reason_phrase}",
                ErrorKind.TRANSPORT,
                status_code=response.status_code,
                details={"url": url},
            )

        # Downloads are returned as is; the caller decides what they contain
        if download:
            return response.content

        return unwrap_envelope(decode_envelope(response.content))

    # --------------------------------------------------------
    # Resources
    # --------------------------------------------------------

    def _first_uuid(self, results: Any) -> str:
        if isinstance(results, list) and results:
            return str(results[0])
        if isinstance(results, str) and results:
            return results
        raise GatewayError("OHT did not return a resource uuid", ErrorKind.REMOTE)

    def upload_file_resource(self, xliff: str, name: str) -> str:
        """Create a file resource from an XLIFF document and return its uuid."""
        files = {"upload": (f"{name}.xliff", xliff.encode("utf-8"), "text/plain")}
        return self._first_uuid(self.request("resources/file", "POST", files=files))

    def upload_text_resource(self, text: str) -> str:
        """Create a text resource and return its uuid."""
        return self._first_uuid(self.request("resources/text", "POST", {"text": text}))

    def download_resource(self, resource_uuid: str, project_id: Optional[str] = None) -> bytes:
        params = {"project_id": project_id} if project_id else {}
        return self.request(f"resources/{resource_uuid}/download", "GET", params, download=True)

    # --------------------------------------------------------
    # Projects
    # --------------------------------------------------------

    def new_translation_project(self, job_item_id: int, source_language: str, target_language: str,
                                resource_uuid: str, callback_token: str, callback_url: str = None,
                                notes: str = None, expertise: str = None,
                                params: Optional[Dict[str, Any]] = None) -> RemoteProject:
        """Create a translation project for one job item."""
        params = dict(params or {})
        params.update({
            "source_language": source_language,
            "target_language": target_language,
            "sources": resource_uuid,
            "notes": notes,
            "callback_url": callback_url,
            "custom0": job_item_id,
            "custom1": callback_token,
        })
        if expertise:
            params["expertise"] = expertise

        results = self.request("projects/translation", "POST", params)
        if not isinstance(results, dict) or not results.get("project_id"):
            raise GatewayError("OHT did not return a project id", ErrorKind.REMOTE)
        return RemoteProject.from_results(results)

    def get_project_details(self, project_id: str) -> RemoteProject:
        results = self.request(f"projects/{project_id}")
        if not isinstance(results, dict):
            raise GatewayError(f"Unexpected project data for OHT project {project_id}", ErrorKind.REMOTE)
        results.setdefault("project_id", project_id)
        return RemoteProject.from_results(results)

    def add_project_comment(self, project_id: str, content: str = "") -> Any:
        return self.request(f"projects/{project_id}/comments", "POST", {"content": content})

    def get_project_comments(self, project_id: str) -> List[Dict[str, Any]]:
        results = self.request(f"projects/{project_id}/comments", "GET")
        return results if isinstance(results, list) else []

    # --------------------------------------------------------
    # Tools, account and discovery
    # --------------------------------------------------------

    def get_wordcount(self, resource_uuid: str) -> Any:
        return self.request("tools/wordcount", "GET", {"resources": resource_uuid})

    def get_account_details(self) -> Dict[str, Any]:
        results = self.request("account")
        return results if isinstance(results, dict) else {}

    def get_quotation(self, resource_uuids: List[str], word_count: int, source_language: str,
                      target_language: str, service: str = "translation", expertise: str = None,
                      proofreading: str = None, currency: str = None) -> Dict[str, Any]:
        """
        Get a price quote.

        service is one of translation (default), proofreading, transproof, transcription.
        """
        results = self.request("tools/quote", "GET", {
            "resources": ",".join(resource_uuids),
            "word_count": word_count,
            "source_language": source_language,
            "target_language": target_language,
            "service": service,
            "expertise": expertise,
            "proofreading": proofreading,
            "currency": currency,
        })
        return results if isinstance(results, dict) else {}

    def get_expertise(self, source_language: str = None, target_language: str = None) -> Dict[str, str]:
        """Expertise options keyed by code. Both languages or neither must be given."""
        results = self.request("discover/expertise", "GET", {
            "source_language": source_language,
            "target_language": target_language,
        })
        return {
            str(entry["code"]): str(entry.get("name", entry["code"]))
            for entry in results or []
            if isinstance(entry, dict) and entry.get("code")
        }

    def get_supported_languages(self) -> Dict[str, str]:
        """Languages supported by OHT, name keyed by provider code."""
        results = self.request("discover/languages")
        return {
            str(entry["code"]): str(entry.get("name", entry["code"]))
            for entry in results or []
            if isinstance(entry, dict) and entry.get("code")
        }

    def get_supported_language_pairs(self) -> List[Dict[str, str]]:
        pairs = []
        for entry in self.request("discover/language_pairs") or []:
            source = (entry.get("source") or {}).get("code") if isinstance(entry, dict) else None
            if not source:
                continue
            for target in entry.get("targets") or []:
                if isinstance(target, dict) and target.get("code"):
                    pairs.append({"source_language": source, "target_language": target["code"]})
        return pairs
