"""Tests for authentication and the provider gateway."""

import threading
from concurrent.futures import ThreadPoolExecutor
from functools import partial

import httpx
import pytest

from extipam.exceptions import AuthenticationError, TransportError
from extipam.provider.auth import authenticate, extract_token
from extipam.provider.gateway import ProviderGateway

from conftest import BASE


def make_gateway(transport, **kwargs):
    authenticator = partial(authenticate, BASE, "api", "secret", transport=transport)
    return ProviderGateway(BASE, authenticator, transport=transport, **kwargs)


# ============================================
# Authentication
# ============================================


def test_extract_token():
    body = '"Session Token-> BAMAuthToken: gPVNMTU2OD= <- for User : api"'
    assert extract_token(body) == "BAMAuthToken: gPVNMTU2OD="
    assert extract_token("Welcome") is None


def test_authenticate_returns_token(fake_bam, transport):
    token = authenticate(BASE, "api", "secret", transport=transport)

    assert token == "BAMAuthToken: tok1"
    login = fake_bam.calls("login")[0]
    assert login.url.params["username"] == "api"


def test_authenticate_rejected(fake_bam, transport):
    with pytest.raises(AuthenticationError):
        authenticate(BASE, "api", "wrong", transport=transport)


def test_authenticate_without_token_in_body():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="hello"))
    with pytest.raises(AuthenticationError):
        authenticate(BASE, "api", "secret", transport=transport)


def test_authenticate_unreachable():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportError):
        authenticate(BASE, "api", "secret", transport=httpx.MockTransport(refuse))


# ============================================
# Gateway
# ============================================


def test_request_sends_token_and_accept_header(fake_bam, transport):
    gateway = make_gateway(transport)
    gateway.login()

    response = gateway.get("getEntityByName", params={"parentId": 0, "name": "Engineering"})

    assert response.ok
    assert response.json()["id"] == 7
    sent = fake_bam.calls("getEntityByName")[0]
    assert sent.headers["Authorization"] == "BAMAuthToken: tok1"
    assert sent.headers["Accept"] == "application/json"
    assert str(sent.url).startswith(BASE)


def test_lazy_login_on_first_request(fake_bam, transport):
    gateway = make_gateway(transport)
    assert not gateway.authenticated

    gateway.get("getEntities", params={"parentId": 0})

    assert gateway.authenticated
    assert fake_bam.logins == 1


def test_reauthenticates_once_on_auth_failure(fake_bam, transport):
    gateway = make_gateway(transport)
    gateway.login()
    fake_bam.expire_token()

    response = gateway.get("getEntityByName", params={"parentId": 0, "name": "Engineering"})

    assert response.ok
    assert fake_bam.logins == 2
    assert len(fake_bam.calls("getEntityByName")) == 2


def test_persistent_auth_failure_surfaces():
    def handler(request):
        if request.url.path.endswith("/login"):
            return httpx.Response(200, text="Session Token-> BAMAuthToken: x <- for User : api")
        return httpx.Response(401, text="Authentication Error")

    transport = httpx.MockTransport(handler)
    gateway = make_gateway(transport)
    gateway.login()

    with pytest.raises(AuthenticationError):
        gateway.get("getEntities")


def test_concurrent_stale_token_logs_in_once(fake_bam, transport):
    gateway = make_gateway(transport)
    gateway.login()
    fake_bam.expire_token()
    barrier = threading.Barrier(8)

    def call(_):
        barrier.wait()
        return gateway.get("getEntities", params={"parentId": 0}).status_code

    with ThreadPoolExecutor(max_workers=8) as pool:
        statuses = list(pool.map(call, range(8)))

    assert statuses == [200] * 8
    assert fake_bam.logins == 2


def test_non_2xx_is_returned_not_raised(fake_bam, transport):
    gateway = make_gateway(transport)
    response = gateway.post("assignIP4Address", params={"ip4Address": "10.0.0.5"})
    assert response.ok

    again = gateway.post("assignIP4Address", params={"ip4Address": "10.0.0.5"})
    assert again.status_code == 500
    assert "Duplicate" in again.body


@pytest.mark.parametrize(
    "error",
    [httpx.ConnectError, httpx.ReadTimeout, httpx.ConnectTimeout],
)
def test_network_failures_are_transport_errors(error):
    def handler(request):
        if request.url.path.endswith("/login"):
            return httpx.Response(200, text="Session Token-> BAMAuthToken: x <- for User : api")
        raise error("boom", request=request)

    gateway = make_gateway(httpx.MockTransport(handler))

    with pytest.raises(TransportError):
        gateway.get("getEntities")


def test_custom_auth_header(fake_bam, transport):
    fake_bam.auth_header = "X-Auth"
    gateway = make_gateway(transport, auth_header="X-Auth")
    gateway.login()

    gateway.get("getEntities", params={"parentId": 0})

    sent = fake_bam.calls("getEntities")[0]
    assert sent.headers["X-Auth"] == "BAMAuthToken: tok1"


def test_absolute_paths_are_rejected(transport):
    gateway = make_gateway(transport)
    with pytest.raises(ValueError):
        gateway.get("https://elsewhere.example.com/getEntities")
