"""Pytest fixtures and configuration."""

from __future__ import annotations

import os
from typing import Any, Generator

import pytest
from fastapi.testclient import TestClient
from google.cloud.firestore_v1 import SERVER_TIMESTAMP

# Set environment variables before importing app modules
os.environ["DEMO_MODE"] = "true"
os.environ["DOCUMENT_STORE"] = "memory"

from typetalk.repositories.local_repo import MemoryDocumentStore  # noqa: E402
from typetalk.rules.models import Identity  # noqa: E402
from typetalk.services.access_service import AccessService  # noqa: E402

USER_ID = "testuser"
OTHER_USER_ID = "otheruser"


@pytest.fixture
def store() -> MemoryDocumentStore:
    """Empty in-memory document store. Writing to it directly acts as the Admin SDK."""
    return MemoryDocumentStore()


@pytest.fixture
def service(store: MemoryDocumentStore) -> AccessService:
    return AccessService(store)


@pytest.fixture
def user() -> Identity:
    return Identity.signed_in(USER_ID)


@pytest.fixture
def other_user() -> Identity:
    return Identity.signed_in(OTHER_USER_ID)


@pytest.fixture
def anonymous() -> Identity:
    return Identity.anonymous()


@pytest.fixture
def valid_user_data() -> dict[str, Any]:
    return {
        "uid": USER_ID,
        "email": "test@example.com",
        "name": "테스트 사용자",
        "createdAt": SERVER_TIMESTAMP,
        "updatedAt": SERVER_TIMESTAMP,
        "mbtiType": "ENFP",
    }


@pytest.fixture
def valid_recommendation() -> dict[str, Any]:
    return {
        "recommendationId": "rec_test_123",
        "userId": USER_ID,
        "type": "user",
        "targetId": "target_user",
        "score": 85.5,
        "reasons": ["MBTI 호환성이 높습니다", "공통 관심사가 있습니다"],
        "createdAt": SERVER_TIMESTAMP,
        "algorithm": {
            "version": "1.0",
            "factors": {
                "mbtiCompatibility": 90.0,
                "sharedInterests": 80.0,
                "activityLevel": 85.0,
                "location": 87.0,
            },
        },
    }


@pytest.fixture
def valid_chat_data() -> dict[str, Any]:
    return {
        "chatId": "chat_test_123",
        "type": "group",
        "title": "테스트 채팅방",
        "createdBy": USER_ID,
        "createdAt": SERVER_TIMESTAMP,
        "updatedAt": SERVER_TIMESTAMP,
        "participants": [USER_ID],
    }


@pytest.fixture
def valid_message_data() -> dict[str, Any]:
    return {
        "messageId": "msg_test_123",
        "chatId": "chat_test_123",
        "senderId": USER_ID,
        "content": "테스트 메시지입니다.",
        "type": "text",
        "createdAt": SERVER_TIMESTAMP,
    }


@pytest.fixture
def valid_test_data() -> dict[str, Any]:
    return {
        "testId": "test_123",
        "userId": USER_ID,
        "result": "ENFP",
        "completedAt": SERVER_TIMESTAMP,
        "scores": {"E_I": 35.0, "S_N": 40.0, "T_F": 25.0, "J_P": 45.0},
    }


@pytest.fixture
def api_client(service: AccessService) -> Generator[TestClient, None, None]:
    """Test client backed by the in-memory store, authenticated via demo mode."""
    from typetalk.main import app
    from typetalk.services.access_service import get_access_service

    app.dependency_overrides[get_access_service] = lambda: service

    client = TestClient(app)
    yield client

    app.dependency_overrides.pop(get_access_service, None)
