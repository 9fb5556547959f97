"""Security rule scenarios run through AccessService against the in-memory store.

Data is seeded with ``store.set`` (the Admin SDK path, which bypasses rules);
client operations go through the service.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from google.api_core.exceptions import AlreadyExists
from google.cloud.firestore_v1 import SERVER_TIMESTAMP

from typetalk.core.exceptions import (
    DocumentExistsError,
    DocumentNotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from typetalk.rules.models import Decision, Identity, Operation
from typetalk.services.access_service import AccessService

NON_PARTICIPANT = Identity.signed_in("nonparticipant")


class TestUsersCollection:
    def test_signed_in_user_reads_other_profile(self, store, service, user, valid_user_data):
        store.set("users", "otheruser", {**valid_user_data, "uid": "otheruser", "email": "other@example.com"})

        profile = service.get_document(user, "users", "otheruser")

        assert profile["uid"] == "otheruser"

    def test_anonymous_cannot_read_profile(self, store, service, anonymous, valid_user_data):
        store.set("users", "testuser", valid_user_data)

        with pytest.raises(PermissionDeniedError):
            service.get_document(anonymous, "users", "testuser")

    def test_user_creates_only_own_profile(self, store, service, user, valid_user_data):
        service.create_document(user, "users", "testuser", valid_user_data)
        assert store.get("users", "testuser")["mbtiType"] == "ENFP"

        with pytest.raises(PermissionDeniedError):
            service.create_document(user, "users", "otheruser", {**valid_user_data, "uid": "otheruser"})
        assert store.get("users", "otheruser") is None

    def test_user_updates_only_own_profile(self, store, service, user, valid_user_data):
        store.set("users", "testuser", valid_user_data)
        store.set("users", "otheruser", {**valid_user_data, "uid": "otheruser", "email": "other@example.com"})

        service.update_document(
            user, "users", "testuser", {"name": "수정된 이름", "updatedAt": SERVER_TIMESTAMP}
        )
        assert store.get("users", "testuser")["name"] == "수정된 이름"

        with pytest.raises(PermissionDeniedError):
            service.update_document(user, "users", "otheruser", {"name": "해킹된 이름"})
        assert store.get("users", "otheruser")["name"] == "테스트 사용자"

    @pytest.mark.parametrize(
        "patch",
        [{"uid": "changed_uid"}, {"email": "changed@example.com"}, {"createdAt": SERVER_TIMESTAMP}],
    )
    def test_protected_fields_cannot_change(self, store, service, user, valid_user_data, patch):
        store.set("users", "testuser", valid_user_data)
        before = store.get("users", "testuser")

        with pytest.raises(PermissionDeniedError):
            service.update_document(user, "users", "testuser", patch)

        assert store.get("users", "testuser") == before

    @pytest.mark.parametrize(
        "patch",
        [
            {"uid.x": "evil", "email.y": "attacker@example.com"},
            {"createdAt.seconds": 0},
            {"`uid`": "changed_uid"},
            {"": "blank"},
        ],
    )
    def test_nested_field_paths_rejected(self, store, service, user, valid_user_data, patch):
        store.set("users", "testuser", valid_user_data)
        before = store.get("users", "testuser")

        with pytest.raises(ValidationError):
            service.update_document(user, "users", "testuser", patch)

        assert store.get("users", "testuser") == before

    def test_invalid_mbti_type_rejected(self, store, service, user, valid_user_data):
        with pytest.raises(PermissionDeniedError):
            service.create_document(user, "users", "testuser", {**valid_user_data, "mbtiType": "INVALID"})

        service.create_document(user, "users", "testuser", {**valid_user_data, "mbtiType": "INTJ"})
        assert store.get("users", "testuser")["mbtiType"] == "INTJ"

    def test_server_timestamps_resolved_on_write(self, store, service, user, valid_user_data):
        service.create_document(user, "users", "testuser", valid_user_data)

        stored = store.get("users", "testuser")

        assert stored["createdAt"] is not SERVER_TIMESTAMP
        assert stored["createdAt"].tzinfo is not None


class TestRecommendationsCollection:
    def test_user_reads_only_own_recommendation(self, store, service, user, other_user, valid_recommendation):
        store.set("recommendations", "rec_test_123", valid_recommendation)

        assert service.get_document(user, "recommendations", "rec_test_123")["score"] == 85.5

        with pytest.raises(PermissionDeniedError):
            service.get_document(other_user, "recommendations", "rec_test_123")

    def test_only_status_can_change(self, store, service, user, valid_recommendation):
        store.set("recommendations", "rec_test_123", valid_recommendation)

        service.update_document(
            user,
            "recommendations",
            "rec_test_123",
            {"viewedAt": SERVER_TIMESTAMP, "actionTaken": "accepted"},
        )
        assert store.get("recommendations", "rec_test_123")["actionTaken"] == "accepted"

        with pytest.raises(PermissionDeniedError):
            service.update_document(user, "recommendations", "rec_test_123", {"score": 100.0})

        with pytest.raises(PermissionDeniedError):
            service.update_document(user, "recommendations", "rec_test_123", {"reasons": ["조작된 이유"]})

    def test_invalid_action_taken_rejected(self, store, service, user, valid_recommendation):
        store.set("recommendations", "rec_test_123", valid_recommendation)

        with pytest.raises(PermissionDeniedError):
            service.update_document(user, "recommendations", "rec_test_123", {"actionTaken": "invalid_action"})

        service.update_document(user, "recommendations", "rec_test_123", {"actionTaken": "rejected"})
        assert store.get("recommendations", "rec_test_123")["actionTaken"] == "rejected"


class TestChatsCollection:
    def test_signed_in_user_reads_chat(self, store, service, other_user, valid_chat_data):
        store.set("chats", "chat_test_123", valid_chat_data)

        assert service.get_document(other_user, "chats", "chat_test_123")["title"] == "테스트 채팅방"

    def test_read_missing_chat_is_not_found(self, service, user):
        with pytest.raises(DocumentNotFoundError):
            service.get_document(user, "chats", "missing")

    def test_creator_must_be_participant(self, store, service, user, valid_chat_data):
        service.create_document(user, "chats", "chat_test_123", valid_chat_data)
        assert store.get("chats", "chat_test_123") is not None

        with pytest.raises(PermissionDeniedError):
            service.create_document(
                user,
                "chats",
                "other_chat",
                {**valid_chat_data, "chatId": "other_chat", "participants": ["otheruser"]},
            )
        assert store.get("chats", "other_chat") is None

    def test_only_participants_update(self, store, service, user, other_user, valid_chat_data):
        store.set("chats", "chat_test_123", valid_chat_data)

        service.update_document(
            user, "chats", "chat_test_123", {"title": "수정된 제목", "updatedAt": SERVER_TIMESTAMP}
        )

        with pytest.raises(PermissionDeniedError):
            service.update_document(other_user, "chats", "chat_test_123", {"title": "해킹된 제목"})
        assert store.get("chats", "chat_test_123")["title"] == "수정된 제목"


class TestMessagesCollection:
    @pytest.fixture(autouse=True)
    def seed_chat(self, store):
        store.set("chats", "chat_test_123", {
            "chatId": "chat_test_123",
            "type": "group",
            "title": "테스트 채팅방",
            "createdBy": "testuser",
            "participants": ["testuser", "otheruser"],
            "createdAt": SERVER_TIMESTAMP,
            "updatedAt": SERVER_TIMESTAMP,
        })

    def test_only_participants_read(self, store, service, user, valid_message_data):
        store.set("messages", "msg_test_123", valid_message_data)

        assert service.get_document(user, "messages", "msg_test_123")["content"] == "테스트 메시지입니다."

        with pytest.raises(PermissionDeniedError):
            service.get_document(NON_PARTICIPANT, "messages", "msg_test_123")

    def test_only_participants_write(self, store, service, user, valid_message_data):
        service.create_document(user, "messages", "msg_test_123", valid_message_data)
        assert store.get("messages", "msg_test_123") is not None

        with pytest.raises(PermissionDeniedError):
            service.create_document(
                NON_PARTICIPANT,
                "messages",
                "other_msg",
                {**valid_message_data, "messageId": "other_msg", "senderId": "nonparticipant"},
            )
        assert store.get("messages", "other_msg") is None

    def test_only_sender_edits(self, store, service, user, other_user, valid_message_data):
        store.set("messages", "msg_test_123", valid_message_data)

        service.update_document(
            user, "messages", "msg_test_123", {"content": "수정된 메시지", "updatedAt": SERVER_TIMESTAMP}
        )

        with pytest.raises(PermissionDeniedError):
            service.update_document(other_user, "messages", "msg_test_123", {"content": "해킹된 메시지"})
        assert store.get("messages", "msg_test_123")["content"] == "수정된 메시지"

    def test_sender_cannot_rewrite_sender_through_field_path(self, store, service, user, valid_message_data):
        store.set("messages", "msg_test_123", valid_message_data)

        with pytest.raises(ValidationError):
            service.update_document(user, "messages", "msg_test_123", {"senderId.uid": "otheruser"})
        assert store.get("messages", "msg_test_123")["senderId"] == "testuser"

    def test_message_in_missing_chat_denied(self, service, user, valid_message_data):
        with pytest.raises(PermissionDeniedError):
            service.create_document(user, "messages", "msg_x", {**valid_message_data, "chatId": "no_such_chat"})


class TestMbtiTestsCollection:
    def test_user_reads_only_own_result(self, store, service, user, other_user, valid_test_data):
        store.set("mbti_tests", "test_123", valid_test_data)

        assert service.get_document(user, "mbti_tests", "test_123")["result"] == "ENFP"

        with pytest.raises(PermissionDeniedError):
            service.get_document(other_user, "mbti_tests", "test_123")

    def test_user_creates_only_own_result(self, store, service, user, valid_test_data):
        service.create_document(user, "mbti_tests", "test_123", valid_test_data)

        with pytest.raises(PermissionDeniedError):
            service.create_document(
                user, "mbti_tests", "other_test", {**valid_test_data, "testId": "other_test", "userId": "otheruser"}
            )

    def test_results_cannot_be_modified(self, store, service, user, valid_test_data):
        store.set("mbti_tests", "test_123", valid_test_data)

        with pytest.raises(PermissionDeniedError):
            service.update_document(user, "mbti_tests", "test_123", {"result": "INTJ"})
        assert store.get("mbti_tests", "test_123")["result"] == "ENFP"

    def test_invalid_result_rejected(self, service, user, valid_test_data):
        with pytest.raises(PermissionDeniedError):
            service.create_document(user, "mbti_tests", "test_123", {**valid_test_data, "result": "INVALID"})


class TestGeneralSecurity:
    @pytest.mark.parametrize("collection", ["users", "recommendations", "chats", "messages"])
    def test_anonymous_cannot_list(self, service, anonymous, collection):
        with pytest.raises(PermissionDeniedError):
            service.list_documents(anonymous, collection)

    @pytest.mark.parametrize("collection", ["unknown_collection", "_internal"])
    def test_undeclared_collections_closed(self, service, user, collection):
        with pytest.raises(PermissionDeniedError):
            service.list_documents(user, collection)

    def test_signed_in_user_lists_users(self, store, service, user, valid_user_data):
        store.set("users", "testuser", valid_user_data)

        docs = service.list_documents(user, "users")

        assert [doc_id for doc_id, _ in docs] == ["testuser"]

    def test_delete_denied(self, store, service, user, valid_user_data):
        store.set("users", "testuser", valid_user_data)

        with pytest.raises(PermissionDeniedError):
            service.delete_document(user, "users", "testuser")
        assert store.get("users", "testuser") is not None

    def test_denied_error_carries_request(self, service, anonymous):
        with pytest.raises(PermissionDeniedError) as exc_info:
            service.get_document(anonymous, "users", "testuser")

        assert exc_info.value.request.operation is Operation.READ
        assert "users/testuser" in exc_info.value.message

    def test_empty_patch_rejected(self, store, service, user, valid_user_data):
        store.set("users", "testuser", valid_user_data)

        with pytest.raises(ValidationError):
            service.update_document(user, "users", "testuser", {})

    def test_document_id_with_slash_rejected(self, service, user):
        with pytest.raises(ValidationError):
            service.check(user, Operation.READ, "users", "testuser/private/doc")

    def test_concurrent_create_does_not_overwrite(self, user, valid_chat_data):
        store = MagicMock()
        store.get.return_value = None
        store.create.side_effect = AlreadyExists("Document already exists: chats/chat_test_123")
        service = AccessService(store)

        with pytest.raises(DocumentExistsError):
            service.create_document(user, "chats", "chat_test_123", valid_chat_data)

        store.set.assert_not_called()

    def test_create_over_existing_document_denied(self, store, service, user, valid_chat_data):
        store.set("chats", "chat_test_123", {**valid_chat_data, "title": "원래 제목"})

        with pytest.raises(PermissionDeniedError):
            service.create_document(user, "chats", "chat_test_123", valid_chat_data)
        assert store.get("chats", "chat_test_123")["title"] == "원래 제목"


class TestCheck:
    def test_check_does_not_write(self, store, service, user, valid_user_data):
        decision = service.check(user, Operation.CREATE, "users", "testuser", valid_user_data)

        assert decision is Decision.ALLOW
        assert store.get("users", "testuser") is None

    def test_check_resolves_chat_lookup(self, user, valid_message_data):
        store = MagicMock()
        store.get.side_effect = lambda collection, doc_id: (
            {"participants": ["testuser"]} if (collection, doc_id) == ("chats", "chat_test_123") else None
        )
        service = AccessService(store)

        decision = service.check(user, Operation.CREATE, "messages", "msg_1", valid_message_data)

        assert decision is Decision.ALLOW
        store.get.assert_any_call("chats", "chat_test_123")
        store.set.assert_not_called()
        store.create.assert_not_called()

    @pytest.mark.parametrize("collection", ["_internal/x", "_migrations", "emails"])
    def test_undeclared_collection_skips_store(self, user, collection):
        store = MagicMock()
        service = AccessService(store)

        decision = service.check(user, Operation.READ, collection, "doc")

        assert decision is Decision.DENY
        store.get.assert_not_called()


class TestDocumentStores:
    def test_memory_create_refuses_existing_document(self, store, valid_chat_data):
        store.create("chats", "chat_test_123", valid_chat_data)

        with pytest.raises(AlreadyExists):
            store.create("chats", "chat_test_123", {**valid_chat_data, "title": "덮어쓰기"})
        assert store.get("chats", "chat_test_123")["title"] == "테스트 채팅방"

    def test_firestore_create_uses_create_only_write(self, valid_chat_data):
        from typetalk.repositories.firestore_repo import FirestoreDocumentStore

        db = MagicMock()
        FirestoreDocumentStore(db).create("chats", "chat_test_123", valid_chat_data)

        ref = db.collection.return_value.document.return_value
        ref.create.assert_called_once_with(valid_chat_data)
        ref.set.assert_not_called()
