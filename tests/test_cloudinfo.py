import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from kustodata.cloudinfo import (
    DEFAULT_CLOUD_INFO,
    METADATA_PATH,
    CloudInfo,
    get_env_or_default,
    get_metadata,
)
from kustodata.errors import Kind, KustoError, Op

PAYLOAD_1 = (
    '{"AzureAD": {"LoginEndpoint": "https://login.microsoftonline.com","LoginMfaRequired": false,'
    '"KustoClientAppId": "db662dc1-0cfe-4e1c-a843-19a68e65be58","KustoClientRedirectUri": "https://microsoft/kustoclient",'
    '"KustoServiceResourceId": "https://kusto.dev.kusto.windows.net",'
    '"FirstPartyAuthorityUrl": "https://login.microsoftonline.com/f8cdef31-a31e-4b4a-93e4-5f571e91255a"  },'
    '  "dSTS": {"CloudEndpointSuffix": "windows.net","DstsRealm": "realm://dsts.core.windows.net",'
    '"DstsInstance": "prod-dsts.dsts.core.windows.net","KustoDnsHostName": "kusto.windows.net","ServiceName": "kusto"}}'
)
PAYLOAD_2 = (
    '{"AzureAD": {"LoginEndpoint": "https://login2.microsoftonline.com","LoginMfaRequired": true,'
    '"KustoClientAppId": "db662dc1-0cfe-4e1c-a843-19a68e65bxxx","KustoClientRedirectUri": "https://microsoft/kustoclient",'
    '"KustoServiceResourceId": "https://kusto.dev.kusto.windows.net",'
    '"FirstPartyAuthorityUrl": "https://login.microsoftonline.com/f8cdef31-a31e-4b4a-93e4-5f571e912xxx"  },'
    '  "dSTS": {"CloudEndpointSuffix": "windows.net","DstsRealm": "realm://dsts.core.windows.net",'
    '"DstsInstance": "prod-dsts.dsts.core.windows.net","KustoDnsHostName": "kusto.windows.net","ServiceName": "kusto"}}'
)
PAYLOAD_MISSING = (
    '{"AzureAD": {"LoginMfaRequired": false,"KustoClientAppId": "db662dc1-0cfe-4e1c-a843-19a68e65be58",'
    '"KustoClientRedirectUri": "https://microsoft/kustoclient","KustoServiceResourceId": "https://kusto.dev.kusto.windows.net",'
    '"FirstPartyAuthorityUrl": "https://login.microsoftonline.com/f8cdef31-a31e-4b4a-93e4-5f571e91255a"  },'
    '  "dSTS": {"CloudEndpointSuffix": "windows.net"}}'
)
PAYLOAD_EXTRA = (
    '{"AzureAD": {"SomeExtraKey":"dummyvalue","LoginEndpoint": "https://login.microsoftonline.com","LoginMfaRequired": false,'
    '"KustoClientAppId": "db662dc1-0cfe-4e1c-a843-19a68e65be58","KustoClientRedirectUri": "https://microsoft/kustoclient",'
    '"KustoServiceResourceId": "https://kusto.dev.kusto.windows.net",'
    '"FirstPartyAuthorityUrl": "https://login.microsoftonline.com/f8cdef31-a31e-4b4a-93e4-5f571e91255a"  }}'
)

INFO_1 = CloudInfo(
    login_endpoint="https://login.microsoftonline.com",
    login_mfa_required=False,
    kusto_client_app_id="db662dc1-0cfe-4e1c-a843-19a68e65be58",
    kusto_client_redirect_uri="https://microsoft/kustoclient",
    kusto_service_resource_id="https://kusto.dev.kusto.windows.net",
    first_party_authority_url="https://login.microsoftonline.com/f8cdef31-a31e-4b4a-93e4-5f571e91255a",
)


class _State:
    code = 200
    payload = b""
    paths: list = []


class _Handler(BaseHTTPRequestHandler):
    def do_GET(self):
        _State.paths.append(self.path)
        body = _State.payload if _State.code == 200 else b""
        self.send_response(_State.code)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, *args):
        pass


@pytest.fixture(scope="module")
def server_url():
    server = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


def _serve(code, payload):
    _State.code = code
    _State.payload = payload.encode()


@pytest.mark.parametrize(
    "name, code, payload, want",
    [
        ("test_cloud_info_success_1", 200, PAYLOAD_1, INFO_1),
        (
            "test_cloud_info_success_2",
            200,
            PAYLOAD_2,
            CloudInfo(
                login_endpoint="https://login2.microsoftonline.com",
                login_mfa_required=True,
                kusto_client_app_id="db662dc1-0cfe-4e1c-a843-19a68e65bxxx",
                kusto_client_redirect_uri="https://microsoft/kustoclient",
                kusto_service_resource_id="https://kusto.dev.kusto.windows.net",
                first_party_authority_url="https://login.microsoftonline.com/f8cdef31-a31e-4b4a-93e4-5f571e912xxx",
            ),
        ),
        ("test_cloud_info_not_found", 404, "", DEFAULT_CLOUD_INFO),
        (
            "test_cloud_info_missing_key",
            200,
            PAYLOAD_MISSING,
            CloudInfo(
                login_endpoint="",
                login_mfa_required=False,
                kusto_client_app_id="db662dc1-0cfe-4e1c-a843-19a68e65be58",
                kusto_client_redirect_uri="https://microsoft/kustoclient",
                kusto_service_resource_id="https://kusto.dev.kusto.windows.net",
                first_party_authority_url="https://login.microsoftonline.com/f8cdef31-a31e-4b4a-93e4-5f571e91255a",
            ),
        ),
        ("test_cloud_info_extra_key", 200, PAYLOAD_EXTRA, INFO_1),
        ("test_cloud_info_empty_body", 200, "", DEFAULT_CLOUD_INFO),
    ],
)
def test_get_metadata(server_url, name, code, payload, want):
    _serve(code, payload)
    assert get_metadata(f"{server_url}/{name}") == want


def test_get_metadata_internal_error(server_url):
    name = "test_cloud_info_internal_error"
    _serve(500, "")
    with pytest.raises(KustoError) as info:
        get_metadata(f"{server_url}/{name}")
    assert info.value.op == Op.CLOUD_INFO
    assert info.value.kind == Kind.HTTP_ERROR
    assert str(info.value) == (
        f"Op(Op(6)): Kind(KHTTPError): error 500 Internal Server Error "
        f"when querying endpoint {server_url}/{name}{METADATA_PATH}"
    )


def test_get_metadata_requests_metadata_path(server_url):
    _State.paths.clear()
    _serve(200, PAYLOAD_1)
    result = get_metadata(f"{server_url}/path_check")
    assert result == INFO_1
    assert _State.paths == [f"/path_check{METADATA_PATH}"]


def test_get_metadata_root_path(server_url):
    _State.paths.clear()
    _serve(200, PAYLOAD_1)
    assert get_metadata(server_url) == INFO_1
    assert _State.paths == [METADATA_PATH]


def test_get_metadata_is_cached(server_url):
    url = f"{server_url}/cached_entry"
    _serve(200, PAYLOAD_1)
    first = get_metadata(url)
    _serve(200, PAYLOAD_2)
    second = get_metadata(url)
    assert first == INFO_1
    assert second == INFO_1


def test_not_found_returns_default_values(server_url):
    _serve(404, "")
    info = get_metadata(f"{server_url}/defaults_check")
    assert info.kusto_client_app_id == "db662dc1-0cfe-4e1c-a843-19a68e65be58"
    assert info.kusto_client_redirect_uri == "https://microsoft/kustoclient"
    assert info.kusto_service_resource_id == "https://kusto.kusto.windows.net"
    assert info.login_mfa_required is False


def test_get_env_or_default_set(monkeypatch):
    monkeypatch.setenv("KUSTODATA_TEST_VAR", "value")
    assert get_env_or_default("KUSTODATA_TEST_VAR", "fallback") == "value"


def test_get_env_or_default_set_empty(monkeypatch):
    monkeypatch.setenv("KUSTODATA_TEST_VAR", "")
    assert get_env_or_default("KUSTODATA_TEST_VAR", "fallback") == ""


def test_get_env_or_default_unset(monkeypatch):
    monkeypatch.delenv("KUSTODATA_TEST_VAR", raising=False)
    assert get_env_or_default("KUSTODATA_TEST_VAR", "fallback") == "fallback"