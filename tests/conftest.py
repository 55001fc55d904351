"""
Pytest fixtures for extipam tests.

``FakeBam`` stands in for a BlueCat Address Manager REST v1 endpoint behind
an ``httpx.MockTransport``, so the gateway, client, coordinator and API are
exercised over real httpx request/response objects.
"""

import json
import threading
from datetime import datetime, timedelta

import httpx
import pytest

from extipam.adapter import IpamAdapter
from extipam.config import AdapterConfig

BASE = "https://bam.example.com/Services/REST/v1/"


# ============================================
# Fake Provider
# ============================================


class FakeBam:
    """In-memory BlueCat v1 endpoint."""

    def __init__(self):
        self.lock = threading.Lock()
        self.password = "secret"
        self.logins = 0
        self.token = None
        self.auth_header = "Authorization"
        self.requests: list[httpx.Request] = []
        self.wrap_results = False
        self.case_insensitive_groups = False

        # name -> (id, description)
        self.groups = {"Engineering": (7, "Engineering lab"), "Default": (1, "")}
        # (group id, network address) -> raw entity
        self.networks = {}
        # subnet id -> next available address (None for full)
        self.next_ip = {}
        # address -> object id
        self.addresses = {}
        self.assigned = []
        self.deleted = []

    # -- setup helpers --------------------------------------------------------

    def add_network(self, group_id, cidr, subnet_id, name="lab", properties=None):
        address = cidr.split("/")[0]
        if properties is None:
            properties = f"CIDR={cidr}|allowDuplicateHost=disable|"
        self.networks[(str(group_id), address)] = {
            "id": subnet_id,
            "name": name,
            "type": "IP4Network",
            "properties": properties,
        }

    def expire_token(self):
        """Make the provider forget the current session."""
        with self.lock:
            self.token = "expired"

    # -- request handling -----------------------------------------------------

    def _json(self, payload, status=200):
        return httpx.Response(status, text=json.dumps(payload))

    def _list(self, items):
        return self._json({"results": items} if self.wrap_results else items)

    @staticmethod
    def _empty_entity():
        return {"id": 0, "name": None, "type": None, "properties": None}

    def handler(self, request: httpx.Request) -> httpx.Response:
        with self.lock:
            self.requests.append(request)
            call = request.url.path.rsplit("/", 1)[-1]
            params = request.url.params

            if call == "login":
                if params.get("password") != self.password:
                    return httpx.Response(401, text="Invalid username or password")
                self.logins += 1
                self.token = f"BAMAuthToken: tok{self.logins}"
                return httpx.Response(
                    200, text=f'"Session Token-> {self.token} <- for User : api"'
                )

            if request.headers.get(self.auth_header) != self.token:
                return httpx.Response(401, text="Authentication Error")

            return getattr(self, f"_do_{call}")(request, params)

    def _do_getEntityByName(self, request, params):
        name = params["name"]
        for group_name, (group_id, description) in self.groups.items():
            match = (
                group_name.lower() == name.lower()
                if self.case_insensitive_groups
                else group_name == name
            )
            if match:
                return self._json(
                    {
                        "id": group_id,
                        "name": group_name,
                        "type": "Configuration",
                        "properties": f"description={description}|",
                    }
                )
        return self._json(self._empty_entity())

    def _do_getEntities(self, request, params):
        return self._list(
            [
                {
                    "id": group_id,
                    "name": name,
                    "type": "Configuration",
                    "properties": f"description={description}|" if description else "",
                }
                for name, (group_id, description) in self.groups.items()
            ]
        )

    def _do_getIPRangedByIP(self, request, params):
        key = (params["containerId"], params["address"])
        return self._json(self.networks.get(key, self._empty_entity()))

    def _do_getNextAvailableIP4Address(self, request, params):
        value = self.next_ip.get(params["parentId"])
        if callable(value):
            value = value()
        return self._json(value)

    def _do_getIP4Address(self, request, params):
        object_id = self.addresses.get(params["address"])
        if object_id is None:
            return self._json(self._empty_entity())
        return self._json(
            {
                "id": object_id,
                "name": None,
                "type": "IP4Address",
                "properties": f"address={params['address']}|state=STATIC|",
            }
        )

    def _do_assignIP4Address(self, request, params):
        address = params["ip4Address"]
        if address in self.addresses:
            return httpx.Response(500, text=f"Duplicate of another item: {address}")
        object_id = 9000 + len(self.addresses)
        self.addresses[address] = object_id
        self.assigned.append(dict(params))
        return httpx.Response(200, text=str(object_id))

    def _do_delete(self, request, params):
        object_id = int(params["objectId"])
        for address, existing in list(self.addresses.items()):
            if existing == object_id:
                del self.addresses[address]
                self.deleted.append(address)
        return httpx.Response(200, text="")

    def calls(self, name):
        return [r for r in self.requests if r.url.path.endswith("/" + name)]


class FakeClock:
    """Manually advanced time source."""

    def __init__(self):
        self.now = datetime(2026, 1, 1, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


# ============================================
# Fixtures
# ============================================


@pytest.fixture
def fake_bam():
    bam = FakeBam()
    bam.add_network(7, "10.0.0.0/24", 101, name="Engineering LAN")
    bam.add_network(1, "192.168.10.0/24", 201, name="Default LAN")
    return bam


@pytest.fixture
def transport(fake_bam):
    return httpx.MockTransport(fake_bam.handler)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return AdapterConfig(
        URL="https://bam.example.com",
        USER="api",
        PASSWORD="secret",
        DEFAULT_GROUP="Default",
        RESERVATION_TTL_SECONDS=300,
        RESERVATION_SWEEP_INTERVAL_SECONDS=0,
        MAX_ALLOCATION_RETRIES=5,
    )


@pytest.fixture
def adapter(config, transport, clock):
    adapter = IpamAdapter(config, transport=transport, clock=clock)
    yield adapter
    adapter.close()
