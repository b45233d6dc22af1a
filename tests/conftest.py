"""
Shared pytest fixtures for UsedBy tests.
"""

import os
import sys
from unittest.mock import AsyncMock, MagicMock, patch

import boto3
import httpx
import pytest
from moto import mock_aws

# Add functions directory to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "functions"))

TABLE_NAME = "usedby-dependents-cache"


def pytest_configure(config):
    """Set environment before test collection.

    Modules read configuration at import, so this has to happen before any
    test module imports them.
    """
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
    os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
    os.environ.setdefault("AWS_REGION", "us-east-1")
    os.environ.setdefault("DEPENDENTS_TABLE", TABLE_NAME)
    os.environ.setdefault("GITHUB_TOKEN", "ghp_test_token")
    os.environ.pop("PIPELINE_QUEUE_URL", None)
    os.environ.pop("GITHUB_TOKEN_SECRET_ARN", None)

    # Disable HTTP client connection pooling in tests to allow proper mocking
    # Each call creates a fresh client, allowing httpx.MockTransport to work
    os.environ["USE_CONNECTION_POOLING"] = "false"


@pytest.fixture(autouse=True)
def aws_credentials():
    """Set fake AWS credentials for all tests."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
    os.environ["AWS_REGION"] = "us-east-1"


@pytest.fixture(autouse=True)
def reset_aws_clients():
    """Reset shared AWS client singletons between tests."""
    yield
    from shared.aws_clients import reset_clients
    reset_clients()


@pytest.fixture(autouse=True)
def reset_registry():
    """Start every test with an empty strategy registry."""
    from ecosystems.registry import clear_registry

    clear_registry()
    yield
    clear_registry()


@pytest.fixture(autouse=True)
def reset_github_token():
    yield
    from shared.github_token import reset_token_cache
    reset_token_cache()


@pytest.fixture(autouse=True)
def cloudwatch():
    """Metrics go to a mock instead of CloudWatch."""
    client = MagicMock()
    with patch("shared.metrics.get_cloudwatch", return_value=client):
        yield client


@pytest.fixture
def strategies():
    """Register the built-in ecosystem strategies."""
    from ecosystems.registry import register_default_strategies

    register_default_strategies()


@pytest.fixture
def no_sleep():
    """Make backoff and page delays instant. Yields the sleep mock."""
    with patch("pipeline.rate_limit.asyncio.sleep", new=AsyncMock()) as sleep_mock:
        yield sleep_mock


def create_mock_transport(handler):
    """Create a mock transport for httpx that routes requests to handler."""
    async def mock_handler(request: httpx.Request) -> httpx.Response:
        return handler(request)
    return httpx.MockTransport(mock_handler)


@pytest.fixture
def mock_http():
    """
    Route every httpx.AsyncClient created during the test to a handler.

    Usage:
        mock_http(lambda request: httpx.Response(200, json={...}))
    """
    original_init = httpx.AsyncClient.__init__
    patcher = None

    def install(handler):
        nonlocal patcher

        def patched_init(self, *args, **kwargs):
            kwargs["transport"] = create_mock_transport(handler)
            original_init(self, *args, **kwargs)

        if patcher is not None:
            patcher.stop()
        patcher = patch.object(httpx.AsyncClient, "__init__", patched_init)
        patcher.start()

    yield install

    if patcher is not None:
        patcher.stop()


def create_dependents_table(dynamodb):
    dynamodb.create_table(
        TableName=TABLE_NAME,
        KeySchema=[{"AttributeName": "pk", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "pk", "AttributeType": "S"}],
        BillingMode="PAY_PER_REQUEST",
    )


@pytest.fixture
def mock_dynamodb():
    """Mocked DynamoDB with the dependents cache table."""
    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")
        create_dependents_table(dynamodb)
        yield dynamodb


@pytest.fixture
def store(mock_dynamodb):
    from shared.kv_store import KVStore

    return KVStore(table_name=TABLE_NAME)


@pytest.fixture
def sqs_queue(mock_dynamodb):
    """URL of a mocked pipeline queue (shares the mock_aws context)."""
    sqs = boto3.client("sqs", region_name="us-east-1")
    return sqs.create_queue(QueueName="usedby-pipeline")["QueueUrl"]
