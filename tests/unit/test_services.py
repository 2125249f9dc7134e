# -*- coding: utf-8 -*-
"""
认证服务单元测试
"""

import pytest
from app.core.config import Settings
from app.core.context import create_context
from app.core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    InactivityResetRequired,
    InvalidInputError
)
from app.core.security import decode_access_token, verify_password
from app.core.store import DisabledKeyValueStore, MemoryKeyValueStore
from app.models.auth import TokenData
from app.services.auth_service import AuthService, SessionGuard
from app.services.user_directory import UserDirectory


SECRET = "test-secret-key-for-testing-only"


def _reload(ctx, user_id):
    return UserDirectory(ctx.store).load().find_by_id(user_id)


class TestLogin:
    """登录测试"""

    def test_login_directory_user(self, ctx, make_user):
        """测试目录用户登录（邮箱大小写和空白不敏感）"""
        user = make_user("alice@example.com", "longpass1")
        service = AuthService(ctx)

        result = service.login("client", "  ALICE@example.com ", "longpass1")

        assert result.role == "client"
        assert result.max_age == 43200
        claims = decode_access_token(result.token, SECRET, clock=ctx.clock)
        assert claims["uid"] == user.id
        assert claims["email"] == "alice@example.com"
        assert claims["src"] == "kv"
        assert _reload(ctx, user.id).last_login_at == ctx.clock.isoformat()

    def test_wrong_password(self, ctx, make_user):
        """测试密码错误"""
        make_user("alice@example.com", "longpass1")

        with pytest.raises(AuthenticationError) as exc_info:
            AuthService(ctx).login("client", "alice@example.com", "wrongpass")

        assert exc_info.value.message == "Invalid login details."

    def test_wrong_role(self, ctx, make_user):
        """测试角色不符与密码错误返回相同错误"""
        make_user("alice@example.com", "longpass1")

        with pytest.raises(AuthenticationError) as exc_info:
            AuthService(ctx).login("admin", "alice@example.com", "longpass1")

        assert exc_info.value.message == "Invalid login details."

    def test_inactive_user(self, ctx, make_user):
        """测试停用用户不能登录"""
        make_user("alice@example.com", "longpass1", active=False)

        with pytest.raises(AuthenticationError):
            AuthService(ctx).login("client", "alice@example.com", "longpass1")

    def test_unknown_user(self, ctx):
        """测试不存在的用户"""
        with pytest.raises(AuthenticationError):
            AuthService(ctx).login("client", "nobody@example.com", "longpass1")

    def test_legacy_plaintext_password(self, ctx, make_user):
        """测试旧明文密码仍可登录"""
        make_user("legacy@example.com", "", password_hash="plain-old-pass")

        result = AuthService(ctx).login("client", "legacy@example.com", "plain-old-pass")

        assert result.role == "client"

    def test_configured_admin(self, ctx):
        """测试环境变量配置的内置管理员登录"""
        result = AuthService(ctx).login("admin", "Owner@Example.com", "owner-password-1")
        claims = decode_access_token(result.token, SECRET, clock=ctx.clock)

        assert result.role == "admin"
        assert claims["uid"] == "env-admin"
        assert claims["src"] == "env"

    def test_owner_role_alias(self, ctx):
        """测试 owner 角色作为内置管理员的别名"""
        result = AuthService(ctx).login("owner", "owner@example.com", "owner-password-1")

        assert result.role == "admin"

    def test_configured_account_requires_password(self, memory_store, clock):
        """测试未配置密码时内置账户不能以空密码登录"""
        settings = Settings(TESTING=True, JWT_SECRET=SECRET, ADMIN_EMAIL="owner@example.com")
        ctx = create_context(settings, store=memory_store, clock=clock)

        with pytest.raises(AuthenticationError):
            AuthService(ctx).login("admin", "owner@example.com", "")

    def test_missing_secret(self, memory_store, clock):
        """测试未配置签名密钥时返回配置错误"""
        ctx = create_context(Settings(TESTING=True), store=memory_store, clock=clock)

        with pytest.raises(ConfigurationError):
            AuthService(ctx).login("client", "alice@example.com", "longpass1")

    def test_store_disabled_still_allows_configured_account(self, clock):
        """测试未配置存储时内置账户仍可登录"""
        settings = Settings(
            TESTING=True,
            ADMIN_EMAIL="owner@example.com",
            ADMIN_PASSWORD="owner-password-1",
        )
        ctx = create_context(settings, store=DisabledKeyValueStore(), clock=clock)

        assert AuthService(ctx).login("admin", "owner@example.com", "owner-password-1").role == "admin"


class TestInactivityPolicy:
    """不活跃策略测试"""

    def test_login_after_threshold_refused(self, ctx, make_user):
        """测试超过阈值后拒绝登录并记录标记"""
        user = make_user("alice@example.com", "longpass1")
        ctx.clock.advance(days=61)

        with pytest.raises(InactivityResetRequired) as exc_info:
            AuthService(ctx).login("client", "alice@example.com", "longpass1")

        assert exc_info.value.status_code == 403
        assert "60 days" in exc_info.value.message

        stored = _reload(ctx, user.id)
        assert stored.inactivity_reset_required_at == ctx.clock.isoformat()
        assert stored.reset_audit[-1].action == "required_due_inactivity"
        assert stored.reset_audit[-1].days == 60

    def test_marker_recorded_once(self, ctx, make_user):
        """测试同一不活跃周期只记录一次标记和审计"""
        user = make_user("alice@example.com", "longpass1")
        ctx.clock.advance(days=61)
        service = AuthService(ctx)

        for _ in range(3):
            with pytest.raises(InactivityResetRequired):
                service.login("client", "alice@example.com", "longpass1")
            ctx.clock.advance(hours=1)

        stored = _reload(ctx, user.id)
        assert len(stored.reset_audit) == 1

    def test_within_threshold(self, ctx, make_user):
        """测试阈值内正常登录，且登录会刷新活动时间"""
        make_user("alice@example.com", "longpass1")
        service = AuthService(ctx)

        ctx.clock.advance(days=59)
        service.login("client", "alice@example.com", "longpass1")
        ctx.clock.advance(days=59)

        assert service.login("client", "alice@example.com", "longpass1").role == "client"

    def test_wrong_password_does_not_mark(self, ctx, make_user):
        """测试密码错误时不记录不活跃标记"""
        user = make_user("alice@example.com", "longpass1")
        ctx.clock.advance(days=90)

        with pytest.raises(AuthenticationError):
            AuthService(ctx).login("client", "alice@example.com", "nope-nope")

        assert _reload(ctx, user.id).inactivity_reset_required_at is None

    def test_custom_threshold(self, memory_store, clock, make_user):
        """测试自定义阈值"""
        make_user("alice@example.com", "longpass1")
        settings = Settings(TESTING=True, JWT_SECRET=SECRET, INACTIVITY_RESET_DAYS=10)
        ctx = create_context(settings, store=memory_store, clock=clock)
        clock.advance(days=11)

        with pytest.raises(InactivityResetRequired) as exc_info:
            AuthService(ctx).login("client", "alice@example.com", "longpass1")

        assert exc_info.value.days == 10


class TestSessionGuard:
    """会话校验测试"""

    def _cookies(self, ctx, role="client"):
        token = AuthService(ctx).login(
            role, "owner@example.com" if role == "admin" else "alice@example.com",
            "owner-password-1" if role == "admin" else "longpass1"
        ).token
        return {ctx.settings.SESSION_COOKIE_NAME: token}

    def test_authenticate(self, ctx, make_user):
        """测试有效 Cookie 解析为会话"""
        make_user("alice@example.com", "longpass1")
        session = SessionGuard(ctx).authenticate(self._cookies(ctx))

        assert isinstance(session, TokenData)
        assert session.role == "client"

    def test_missing_cookie(self, ctx):
        """测试缺少 Cookie"""
        assert SessionGuard(ctx).authenticate({}) is None

    def test_expired_session(self, ctx, make_user):
        """测试会话过期"""
        make_user("alice@example.com", "longpass1")
        cookies = self._cookies(ctx)
        ctx.clock.advance(hours=12)

        assert SessionGuard(ctx).authenticate(cookies) is None

    def test_require_role(self, ctx, make_user):
        """测试角色不符统一返回 401"""
        make_user("alice@example.com", "longpass1")
        guard = SessionGuard(ctx)

        assert guard.require_role("client", self._cookies(ctx)).role == "client"
        with pytest.raises(AuthenticationError):
            guard.require_role("admin", self._cookies(ctx))
        assert guard.require_role("admin", self._cookies(ctx, "admin")).uid == "env-admin"


class TestProfileAndPassword:
    """资料与修改密码测试"""

    def _session(self, ctx, user):
        return TokenData(role=user.role, email=user.email, uid=user.id, src="kv")

    def test_get_profile(self, ctx, make_user):
        """测试获取目录用户资料"""
        user = make_user("alice@example.com", "longpass1", full_name="Alice")
        profile = AuthService(ctx).get_profile(self._session(ctx, user))

        assert profile.full_name == "Alice"

    def test_profile_for_env_account(self, ctx):
        """测试内置账户没有资料"""
        session = TokenData(role="admin", email="owner@example.com", uid="env-admin", src="env")

        assert AuthService(ctx).get_profile(session) is None

    def test_profile_for_deactivated_user(self, ctx, make_user):
        """测试停用用户的会话失效"""
        user = make_user("alice@example.com", "longpass1", active=False)

        with pytest.raises(AuthenticationError):
            AuthService(ctx).get_profile(self._session(ctx, user))

    def test_change_password(self, ctx, make_user):
        """测试修改密码并记录审计"""
        user = make_user("alice@example.com", "longpass1")
        service = AuthService(ctx)

        service.change_password(self._session(ctx, user), "longpass1", "newpass123")

        stored = _reload(ctx, user.id)
        assert verify_password("newpass123", stored.password_hash) is True
        assert stored.reset_audit[-1].action == "self_change"
        assert stored.last_password_reset_at == ctx.clock.isoformat()

    def test_change_password_wrong_current(self, ctx, make_user):
        """测试原密码错误"""
        user = make_user("alice@example.com", "longpass1")

        with pytest.raises(InvalidInputError):
            AuthService(ctx).change_password(self._session(ctx, user), "bad", "newpass123")

    def test_change_password_too_short(self, ctx, make_user):
        """测试新密码太短"""
        user = make_user("alice@example.com", "longpass1")

        with pytest.raises(InvalidInputError):
            AuthService(ctx).change_password(self._session(ctx, user), "longpass1", "short")


class TestUserDirectory:
    """用户目录测试"""

    def test_drops_malformed_entries(self):
        """测试读取时丢弃无效条目"""
        store = MemoryKeyValueStore()
        store.set_json("portal_users_v1", [
            {"id": "u1", "email": "a@example.com", "role": "client"},
            {"id": "u2", "email": "b@example.com"},
            "garbage",
            {"id": "u3", "email": "c@example.com", "role": "root"},
        ])

        collection = UserDirectory(store).load()

        assert collection.enabled is True
        assert [u.id for u in collection.users] == ["u1"]

    def test_keeps_users_with_bad_secondary_fields(self):
        """测试次要字段异常时保留用户，只规范化异常值"""
        store = MemoryKeyValueStore()
        store.set_json("portal_users_v1", [
            {"id": "u1", "email": "a@example.com", "role": "client",
             "portalDownloads": [{"label": "doc"}, {"label": "Guide", "url": "https://x.example.com/g"}]},
            {"id": "u2", "email": "b@example.com", "role": "client",
             "resetAudit": ["legacy-string-entry", {"at": "2024-01-01T00:00:00.000Z", "action": "requested"}]},
            {"id": "u3", "email": "c@example.com", "role": "admin", "createdAt": 1704067200000},
        ])
        directory = UserDirectory(store)

        users = directory.load().users

        assert [u.id for u in users] == ["u1", "u2", "u3"]
        assert [d.url for d in users[0].portal_downloads] == ["https://x.example.com/g"]
        assert [e.action for e in users[1].reset_audit] == ["requested"]
        assert users[2].created_at == "2024-01-01T00:00:00.000Z"

        directory.save(users)

        assert [u["id"] for u in store.get_json_list("portal_users_v1")] == ["u1", "u2", "u3"]

    def test_disabled_store(self):
        """测试未配置存储时读为空、写报错"""
        directory = UserDirectory(DisabledKeyValueStore())

        assert directory.load().enabled is False
        with pytest.raises(ConfigurationError):
            directory.save([])
