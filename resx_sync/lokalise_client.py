"""Async client for the Lokalise API operations used by the sync pipeline."""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Union

import httpx
import jsonschema
from aiolimiter import AsyncLimiter

from resx_sync.errors import RateLimitedError, RemoteError
from resx_sync.models import JobResult, JobState

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = 'https://api.lokalise.com/api2'

# Lokalise allows 6 requests per second per token.
DEFAULT_MAX_REQUESTS_PER_SECOND = 6

_RATE_LIMIT_MARKERS = ('429', 'too many', 'rate limit', 'throttl')

_FINISHED_STATUSES = {'finished'}
_FAILED_STATUSES = {'failed', 'cancelled'}

LANGUAGES_SCHEMA = {
    "type": "object",
    "required": ["languages"],
    "properties": {
        "languages": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["lang_iso"],
                "properties": {"lang_iso": {"type": "string"}}
            }
        }
    }
}

PROCESS_SCHEMA = {
    "type": "object",
    "required": ["process_id", "status"],
    "properties": {
        "process_id": {"type": "string"},
        "status": {"type": "string"},
        "message": {"type": ["string", "null"]},
        "details": {"type": ["object", "null"]}
    }
}

PROCESS_STATUS_SCHEMA = {
    "type": "object",
    "required": ["process"],
    "properties": {"process": PROCESS_SCHEMA}
}

EXPORT_SCHEMA = {
    "type": "object",
    "anyOf": [
        {"required": ["bundle_url"], "properties": {"bundle_url": {"type": "string", "minLength": 1}}},
        {"required": ["process_id"], "properties": {"process_id": {"type": "string", "minLength": 1}}}
    ]
}


@dataclass(frozen=True)
class Immediate:
    """A remote operation that completed synchronously."""
    value: Any


@dataclass(frozen=True)
class Deferred:
    """A remote operation queued as a backend process that must be polled."""
    project_id: str
    process_id: str


RemoteResult = Union[Immediate, Deferred]


@dataclass(frozen=True)
class UploadRequest:
    filename: str
    data: str
    lang_iso: str
    tags: List[str] = field(default_factory=lambda: ['auto-upload'])

    def to_payload(self) -> Dict[str, Any]:
        return {
            'data': self.data,
            'filename': self.filename,
            'lang_iso': self.lang_iso,
            'convert_placeholders': False,
            'replace_modified': False,
            'skip_detect_lang': True,
            'tags': list(self.tags),
            'tag_inserted_keys': True,
            'tag_updated_keys': True,
        }


@dataclass(frozen=True)
class MachineTranslateRequest:
    language_iso: str
    # 'missing_only' never overwrites existing human translations.
    pre_translate_mode: str = 'missing_only'

    def to_payload(self) -> Dict[str, Any]:
        return {
            'keys': [],
            'language_iso': self.language_iso,
            'pre_translate_mode': self.pre_translate_mode,
        }


@dataclass(frozen=True)
class ExportRequest:
    locale: str
    format: str = 'resx'

    def to_payload(self) -> Dict[str, Any]:
        return {
            'format': self.format,
            'original_filenames': True,
            'directory_prefix': '',
            'filter_langs': [self.locale],
            'replace_breaks': False,
            'include_comments': True,
            'include_description': True,
            'export_empty_as': 'skip',
        }


def is_rate_limited(exc: BaseException) -> bool:
    """True if ``exc`` is a rejection caused by rate limiting or throttling."""
    if isinstance(exc, RateLimitedError):
        return True
    if isinstance(exc, RemoteError):
        message = str(exc).lower()
        return any(marker in message for marker in _RATE_LIMIT_MARKERS)
    return False


def _error_message(body: Any, fallback: str) -> str:
    if isinstance(body, dict):
        error = body.get('error')
        if isinstance(error, dict) and error.get('message'):
            return str(error['message'])
        if body.get('message'):
            return str(body['message'])
    return fallback


def _validate(body: Dict[str, Any], schema: Dict[str, Any], operation: str) -> None:
    try:
        jsonschema.validate(instance=body, schema=schema)
    except jsonschema.ValidationError as schema_exc:
        raise RemoteError(f"Unexpected {operation} response: {schema_exc.message}") from schema_exc


def _job_result_from_process(process: Dict[str, Any]) -> JobResult:
    status = str(process.get('status', '')).lower()
    details = process.get('details') or {}
    if status in _FINISHED_STATUSES:
        return JobResult(JobState.FINISHED, payload=details)
    if status in _FAILED_STATUSES:
        return JobResult(JobState.FAILED, message=process.get('message') or f"Process {status}", payload=details)
    return JobResult(JobState.PENDING, payload=details)


class LokaliseClient:
    """
    Thin async wrapper over the Lokalise REST API.

    Every API call passes through a shared ``AsyncLimiter`` so the backend's
    request quota is respected in aggregate. Bundle downloads go through a
    separate HTTP client that follows redirects and does not send the API token.
    """

    def __init__(
            self,
            api_token: str,
            base_url: str = DEFAULT_API_BASE_URL,
            max_requests_per_second: float = DEFAULT_MAX_REQUESTS_PER_SECOND,
            request_timeout: float = 60.0,
            transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip('/'),
            headers={'X-Api-Token': api_token, 'Content-Type': 'application/json'},
            timeout=request_timeout,
            transport=transport,
        )
        self._download_http = httpx.AsyncClient(
            follow_redirects=True,
            timeout=request_timeout,
            transport=transport,
        )
        self._rate_limiter = AsyncLimiter(max_rate=max_requests_per_second, time_period=1)

    async def aclose(self) -> None:
        await self._http.aclose()
        await self._download_http.aclose()

    async def __aenter__(self) -> "LokaliseClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def _request(
            self,
            method: str,
            endpoint: str,
            payload: Optional[Dict[str, Any]] = None,
            params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        logger.debug("API %s %s", method, endpoint)
        async with self._rate_limiter:
            try:
                response = await self._http.request(method, endpoint, json=payload, params=params)
            except httpx.HTTPError as http_exc:
                raise RemoteError(f"Transport error on {method} {endpoint}: {http_exc}") from http_exc

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code == 429:
            raise RateLimitedError(f"API Error (429): {_error_message(body, response.text)}", status_code=429)
        if response.status_code >= 400:
            raise RemoteError(
                f"API Error ({response.status_code}): {_error_message(body, response.text)}",
                status_code=response.status_code
            )
        if not isinstance(body, dict):
            raise RemoteError(f"Unexpected non-JSON response from {method} {endpoint}")
        return body

    def _to_remote_result(self, project_id: str, body: Dict[str, Any]) -> RemoteResult:
        process = body.get('process')
        if isinstance(process, dict):
            _validate(process, PROCESS_SCHEMA, 'process')
            if str(process['status']).lower() not in _FINISHED_STATUSES:
                return Deferred(project_id=project_id, process_id=process['process_id'])
        return Immediate(body)

    async def fetch_project_languages(self, project_id: str) -> Set[str]:
        """Return the language ISO codes configured in the project."""
        body = await self._request('GET', f'/projects/{project_id}/languages', params={'limit': 5000})
        _validate(body, LANGUAGES_SCHEMA, 'languages')
        return {language['lang_iso'] for language in body['languages']}

    async def upload_file(self, project_id: str, request: UploadRequest) -> RemoteResult:
        body = await self._request('POST', f'/projects/{project_id}/files/upload', request.to_payload())
        return self._to_remote_result(project_id, body)

    async def trigger_machine_translation(self, project_id: str, request: MachineTranslateRequest) -> RemoteResult:
        body = await self._request(
            'POST', f'/projects/{project_id}/keys/bulk/machine-translate', request.to_payload()
        )
        return self._to_remote_result(project_id, body)

    async def get_job_status(self, handle: Deferred) -> JobResult:
        body = await self._request('GET', f'/projects/{handle.project_id}/processes/{handle.process_id}')
        _validate(body, PROCESS_STATUS_SCHEMA, 'process status')
        return _job_result_from_process(body['process'])

    async def request_export(self, project_id: str, request: ExportRequest) -> RemoteResult:
        """
        Ask the backend to build a translation bundle for one locale.

        Returns:
            ``Immediate(bundle_url)`` when the bundle is ready, or ``Deferred`` when
            the backend queued the export as a process.
        """
        body = await self._request('POST', f'/projects/{project_id}/files/download', request.to_payload())
        _validate(body, EXPORT_SCHEMA, 'export')
        if body.get('bundle_url'):
            return Immediate(body['bundle_url'])
        return Deferred(project_id=project_id, process_id=body['process_id'])

    async def download_bundle(self, url: str) -> bytes:
        logger.debug("Downloading bundle from %s", url)
        try:
            response = await self._download_http.get(url)
        except httpx.HTTPError as http_exc:
            raise RemoteError(f"Transport error downloading bundle: {http_exc}") from http_exc
        if response.status_code >= 400:
            raise RemoteError(f"Bundle download failed ({response.status_code})", status_code=response.status_code)
        return response.content
