# -*- coding: utf-8 -*-
"""
数据模型单元测试
"""

import pytest
from app.models.auth import TokenData
from app.models.file import FileMeta, FileRecord, FileUpdate, FolderRecord, sanitize
from app.models.user import (
    RESET_AUDIT_LIMIT,
    AuditEvent,
    UserRecord,
    UserResponse,
    UserUpdate
)


class TestUserRecord:
    """用户记录测试"""

    def test_from_raw_valid(self):
        """测试正常条目被解析并规范化"""
        user = UserRecord.from_raw({
            "id": "u1",
            "email": "  Alice@Example.COM ",
            "role": "Client",
            "passwordHash": "pbkdf2$1$aa$bb",
            "fullName": "Alice",
        })

        assert user is not None
        assert user.email == "alice@example.com"
        assert user.role == "client"
        assert user.full_name == "Alice"
        assert user.active is True

    @pytest.mark.parametrize("raw", [
        None,
        "not-a-dict",
        {"email": "a@example.com", "role": "client"},
        {"id": "u1", "role": "client"},
        {"id": "u1", "email": "a@example.com"},
        {"id": "u1", "email": "a@example.com", "role": "superuser"},
    ])
    def test_from_raw_drops_malformed(self, raw):
        """测试缺少关键字段或角色无效的条目被丢弃"""
        assert UserRecord.from_raw(raw) is None

    def test_only_explicit_false_deactivates(self):
        """测试只有显式 false 才表示停用"""
        base = {"id": "u1", "email": "a@example.com", "role": "client"}

        assert UserRecord.from_raw({**base, "active": False}).active is False
        assert UserRecord.from_raw({**base, "active": None}).active is True
        assert UserRecord.from_raw({**base, "active": 0}).active is True

    def test_to_storage_uses_camel_case(self):
        """测试存储格式使用 camelCase 且保留未知字段"""
        user = UserRecord.from_raw({
            "id": "u1",
            "email": "a@example.com",
            "role": "admin",
            "lastLoginAt": "2024-01-01T00:00:00.000Z",
            "legacyField": "keep-me",
        })
        stored = user.to_storage()

        assert stored["lastLoginAt"] == "2024-01-01T00:00:00.000Z"
        assert stored["legacyField"] == "keep-me"
        assert "last_login_at" not in stored
        assert "resetTokenHash" not in stored

    def test_audit_trail_bounded(self):
        """测试审计记录只保留最近 50 条"""
        user = UserRecord(id="u1", email="a@example.com", role="client")
        for i in range(RESET_AUDIT_LIMIT + 10):
            user.append_audit(AuditEvent(at=f"2024-01-01T00:00:{i:02d}.000Z", action="requested"))

        assert len(user.reset_audit) == RESET_AUDIT_LIMIT
        assert user.reset_audit[-1].at == "2024-01-01T00:00:59.000Z"
        assert user.reset_audit[0].at == "2024-01-01T00:00:10.000Z"


class TestUserViews:
    """用户视图测试"""

    def test_response_has_no_secrets(self):
        """测试用户视图不包含密码哈希和重置令牌"""
        user = UserRecord(
            id="u1",
            email="a@example.com",
            role="client",
            password_hash="pbkdf2$1$aa$bb",
            reset_token_hash="deadbeef",
            reset_token_expires_at="2024-01-01T01:00:00.000Z",
            full_name="Alice",
        )
        data = UserResponse.from_record(user).model_dump(by_alias=True)

        assert data["fullName"] == "Alice"
        assert data["email"] == "a@example.com"
        for key in ("passwordHash", "password_hash", "resetTokenHash", "resetTokenExpiresAt"):
            assert key not in data

    def test_update_tracks_present_fields(self):
        """测试部分更新只记录请求中出现的字段"""
        update = UserUpdate.model_validate({"id": "u1", "fullName": "New Name"})

        assert "full_name" in update.model_fields_set
        assert "company" not in update.model_fields_set


class TestTokenData:
    """会话声明测试"""

    def test_from_claims(self):
        """测试从 Token 声明构建"""
        data = TokenData.from_claims({
            "role": "client", "email": "a@example.com", "uid": "u1",
            "src": "kv", "iat": 1, "exp": 2,
        })

        assert data.role == "client"
        assert data.uid == "u1"
        assert data.exp == 2

    def test_missing_role(self):
        """测试缺少 role 时返回 None"""
        assert TokenData.from_claims({"uid": "u1"}) is None
        assert TokenData.from_claims({"role": ""}) is None


class TestFileModels:
    """文件与目录模型测试"""

    def test_sanitize(self):
        """测试去掉尖括号、首尾空白并截断"""
        assert sanitize("  <b>Report</b>  ") == "bReport/b"
        assert sanitize("x" * 300) == "x" * 200
        assert sanitize("abcdef", 3) == "abc"
        assert sanitize("y" * 300, None) == "y" * 300
        assert sanitize(None) == ""

    def test_folder_from_raw(self):
        """测试目录条目解析"""
        folder = FolderRecord.from_raw({"id": "f1", "name": "Docs", "allowedUserIds": ["u1", "", None]})

        assert folder.is_shared is True
        assert folder.allowed_user_ids == ["u1"]
        assert FolderRecord.from_raw({"id": "f1"}) is None

    def test_file_from_raw_requires_content(self):
        """测试缺少内容的文件条目被丢弃"""
        assert FileRecord.from_raw({"id": "x", "fileName": "a.txt"}) is None
        assert FileRecord.from_raw({"id": "x", "fileName": "a.txt", "contentBase64": "aGk="}) is not None

    def test_meta_excludes_content(self):
        """测试文件元数据不包含内容"""
        record = FileRecord.from_raw({
            "id": "x", "fileName": "a.txt", "contentBase64": "aGk=", "size": 2,
        })
        meta = FileMeta.from_record(record, "Docs").model_dump(by_alias=True)

        assert meta["folderName"] == "Docs"
        assert meta["title"] == "a.txt"
        assert "contentBase64" not in meta

    def test_file_update_grants_presence(self):
        """测试 allowedUserIds 出现与否可以区分"""
        assert "allowed_user_ids" in FileUpdate.model_validate({"id": "f", "allowedUserIds": []}).model_fields_set
        assert "allowed_user_ids" not in FileUpdate.model_validate({"id": "f", "title": "t"}).model_fields_set
