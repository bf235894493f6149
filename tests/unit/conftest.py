"""Unit tests conftest for Lambda function test isolation.

Lambda modules are all named index.py. Tests load them with
importlib.util.spec_from_file_location under distinct module names; this
hook drops any plain ``index`` module cached by an earlier session.
"""

import sys

import boto3
import pytest
from moto import mock_aws

from fundtracker_common.kv_store import DynamoKeyValueStore

KV_TABLE_NAME = "fundtracker-kv-test"
WEBHOOK_URL = "https://discord.com/api/webhooks/123/test-token"


def pytest_sessionstart(session):
    """Initialize the test session."""
    if "index" in sys.modules:
        del sys.modules["index"]


@pytest.fixture
def lambda_env(monkeypatch):
    """Environment shared by the stage Lambdas."""
    monkeypatch.setenv("KV_BACKEND", "dynamodb")
    monkeypatch.setenv("KV_TABLE_NAME", KV_TABLE_NAME)
    monkeypatch.setenv("FEED_URL", "https://portal.example.eu/screen/opportunities/calls")
    monkeypatch.setenv("LISTING_FETCH_MODE", "http")
    monkeypatch.setenv("DISCORD_WEBHOOK_URL", WEBHOOK_URL)
    monkeypatch.setenv("NOTIFY_DELAY_MS", "0")
    monkeypatch.setenv("LOG_LEVEL", "INFO")


@pytest.fixture
def kv_table(lambda_env):
    """Mocked DynamoDB KV table; yields a store for seeding and inspection."""
    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")
        dynamodb.create_table(
            TableName=KV_TABLE_NAME,
            KeySchema=[
                {"AttributeName": "namespace", "KeyType": "HASH"},
                {"AttributeName": "key", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "namespace", "AttributeType": "S"},
                {"AttributeName": "key", "AttributeType": "S"},
            ],
            BillingMode="PAY_PER_REQUEST",
        )
        yield DynamoKeyValueStore(KV_TABLE_NAME, region_name="us-east-1")
