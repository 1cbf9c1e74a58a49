"""Cloud authentication metadata published by a Kusto endpoint."""

from __future__ import annotations

import json
import os
import posixpath
import threading
import urllib.error
import urllib.request
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from kustodata.errors import Kind, Op, new_error

METADATA_PATH = "/v1/rest/auth/metadata"
DEFAULT_AUTH_ENV_VAR_NAME = "AadAuthorityUri"
DEFAULT_KUSTO_CLIENT_APP_ID = "db662dc1-0cfe-4e1c-a843-19a68e65be58"
DEFAULT_PUBLIC_LOGIN_URL = "https://login.microsoftonline.com"
DEFAULT_REDIRECT_URI = "https://microsoft/kustoclient"
DEFAULT_KUSTO_SERVICE_RESOURCE_ID = "https://kusto.kusto.windows.net"
DEFAULT_FIRST_PARTY_AUTHORITY_URL = (
    "https://login.microsoftonline.com/f8cdef31-a31e-4b4a-93e4-5f571e91255a"
)


def get_env_or_default(key: str, fallback: str) -> str:
    """Value of the environment variable ``key`` if it is set, else ``fallback``."""
    return os.environ.get(key, fallback)


@dataclass(frozen=True)
class CloudInfo:
    """Login and application settings for a Kusto cloud."""

    login_endpoint: str = ""
    login_mfa_required: bool = False
    kusto_client_app_id: str = ""
    kusto_client_redirect_uri: str = ""
    kusto_service_resource_id: str = ""
    first_party_authority_url: str = ""


_JSON_FIELDS = {
    "loginendpoint": ("login_endpoint", str),
    "loginmfarequired": ("login_mfa_required", bool),
    "kustoclientappid": ("kusto_client_app_id", str),
    "kustoclientredirecturi": ("kusto_client_redirect_uri", str),
    "kustoserviceresourceid": ("kusto_service_resource_id", str),
    "firstpartyauthorityurl": ("first_party_authority_url", str),
}

DEFAULT_CLOUD_INFO = CloudInfo(
    login_endpoint=get_env_or_default(DEFAULT_AUTH_ENV_VAR_NAME, DEFAULT_PUBLIC_LOGIN_URL),
    login_mfa_required=False,
    kusto_client_app_id=DEFAULT_KUSTO_CLIENT_APP_ID,
    kusto_client_redirect_uri=DEFAULT_REDIRECT_URI,
    kusto_service_resource_id=DEFAULT_KUSTO_SERVICE_RESOURCE_ID,
    first_party_authority_url=DEFAULT_FIRST_PARTY_AUTHORITY_URL,
)

_cache: dict[str, CloudInfo] = {}
_locks: dict[str, threading.Lock] = {}
_locks_guard = threading.Lock()


def _lookup(mapping: dict[str, Any], name: str) -> Any:
    if name in mapping:
        return mapping[name]
    lowered = name.lower()
    return next((v for k, v in mapping.items() if k.lower() == lowered), None)


def _parse_cloud_info(body: bytes) -> CloudInfo:
    document = json.loads(body)
    if document is None:
        return CloudInfo()
    if not isinstance(document, dict):
        raise ValueError("cloud metadata must be a JSON object")
    section = _lookup(document, "AzureAD")
    if section is None:
        return CloudInfo()
    if not isinstance(section, dict):
        raise ValueError("AzureAD section of cloud metadata must be a JSON object")
    values: dict[str, Any] = {}
    for key, raw in section.items():
        field = _JSON_FIELDS.get(key.lower())
        if field is None or raw is None:
            continue
        attribute, expected = field
        if not isinstance(raw, expected):
            raise ValueError(f"cloud metadata field {key} has the wrong type")
        values[attribute] = raw
    return CloudInfo(**values)


def _metadata_url(kusto_uri: str) -> str:
    parts = urlsplit(kusto_uri)
    path = parts.path
    if not path.startswith("/"):
        path = "/" + path
    joined = posixpath.normpath(path.rstrip("/") + METADATA_PATH)
    return urlunsplit((parts.scheme, parts.netloc, joined, parts.query, parts.fragment))


def _fetch(kusto_uri: str, opener: urllib.request.OpenerDirector) -> CloudInfo:
    url = _metadata_url(kusto_uri)
    request = urllib.request.Request(url, method="GET")
    try:
        response = opener.open(request)
    except urllib.error.HTTPError as http_error:
        response = http_error

    with response:
        status_code = response.status if response.status is not None else response.code
        if status_code >= 300 and status_code != 404:
            reason = getattr(response, "reason", "") or ""
            if not reason:
                try:
                    reason = HTTPStatus(status_code).phrase
                except ValueError:
                    reason = ""
            status = f"{status_code} {reason}".rstrip()
            raise new_error(
                Op.CLOUD_INFO,
                Kind.HTTP_ERROR,
                Exception(f"error {status} when querying endpoint {url}"),
            )
        try:
            body = response.read()
        except OSError as exc:
            raise new_error(Op.CLOUD_INFO, Kind.HTTP_ERROR, exc) from exc

    if not body:
        return DEFAULT_CLOUD_INFO
    return _parse_cloud_info(body)


def get_metadata(
    kusto_uri: str, opener: urllib.request.OpenerDirector | None = None
) -> CloudInfo:
    """Fetch the cloud metadata of an endpoint, once per URI.

    A 404 or an empty body yields :data:`DEFAULT_CLOUD_INFO`; any other status
    of 300 or above raises :class:`~kustodata.errors.KustoError`.
    """
    cached = _cache.get(kusto_uri)
    if cached is not None:
        return cached
    with _locks_guard:
        lock = _locks.setdefault(kusto_uri, threading.Lock())
    with lock:
        cached = _cache.get(kusto_uri)
        if cached is not None:
            return cached
        info = _fetch(kusto_uri, opener or urllib.request.build_opener())
        _cache[kusto_uri] = info
        return info