import asyncio

import httpx
import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from otpdesk.db import mongo
from otpdesk.db.indexes import create_indexes
from otpdesk.main import app
from otpdesk.services import employee_service
from otpdesk.services.provider_client import ProviderClient, set_provider_client

PROVIDER_URL = "https://provider.test/stubs/handler_api.php"

DEFAULT_RESPONSES = {
    "getNumber": "NO_NUMBERS",
    "getStatus": "STATUS_WAIT_CODE",
    "setStatus": "ACCESS_CANCEL",
}


class FakeProvider:
    """
    Scripted provider. Queue plain-text answers (or httpx exceptions, or
    (status_code, text) tuples) per action; an empty queue falls back to
    the default answer.
    """
    
    def __init__(self):
        self.queues = {action: [] for action in DEFAULT_RESPONSES}
        self.calls = []
    
    def queue(self, action, *answers):
        self.queues[action].extend(answers)
    
    def calls_for(self, action):
        return [c for c in self.calls if c["action"] == action]
    
    def handler(self, request: httpx.Request) -> httpx.Response:
        params = dict(request.url.params)
        self.calls.append(params)
        action = params["action"]
        
        queue = self.queues[action]
        answer = queue.pop(0) if queue else DEFAULT_RESPONSES[action]
        
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, tuple):
            status_code, text = answer
            return httpx.Response(status_code, text=text)
        return httpx.Response(200, text=answer)


@pytest.fixture
def db():
    database = AsyncMongoMockClient()["otpdesk_test"]
    mongo.use_database(database)
    asyncio.run(create_indexes())
    yield database
    mongo.use_database(None)


@pytest.fixture
def provider():
    fake = FakeProvider()
    client = ProviderClient(
        base_url=PROVIDER_URL,
        api_key="test-key",
        transport=httpx.MockTransport(fake.handler),
    )
    set_provider_client(client)
    yield fake
    set_provider_client(None)


@pytest.fixture
def client(db, provider):
    return TestClient(app)


@pytest.fixture
def employee(db):
    return asyncio.run(employee_service.create_employee(
        name="Priya Sharma",
        username="Priya",
        email="priya@example.com",
        password="s3cret",
    ))
