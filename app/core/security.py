# -*- coding: utf-8 -*-
"""
安全模块

包含密码哈希、会话 Token 签发和验证等安全功能

Token 为标准紧凑 JWS（HS256）：
    base64url(header).base64url(payload).base64url(hmac-sha256)
"""

import re
import hmac
import json
import hashlib
import secrets
from typing import Optional, Dict, Any

from jose import jws
from jose.exceptions import JOSEError

from .clock import SystemClock


TOKEN_ALGORITHM = "HS256"
DEFAULT_TOKEN_TTL_SECONDS = 12 * 60 * 60

PBKDF2_PREFIX = "pbkdf2"
PBKDF2_ITERATIONS = 120000
PBKDF2_KEY_LENGTH = 32
SALT_BYTES = 16

_DURATION_RE = re.compile(r"^(\d+)([smhd])$")
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 60 * 60, "d": 24 * 60 * 60}

_system_clock = SystemClock()


# =============================================================================
# 常量时间比较
# =============================================================================

def safe_equals(a: str, b: str) -> bool:
    """
    常量时间字符串比较

    长度不同直接返回 False（长度由编码格式固定，不构成泄露）
    """
    left = str(a).encode("utf-8")
    right = str(b).encode("utf-8")
    if len(left) != len(right):
        return False
    return hmac.compare_digest(left, right)


# =============================================================================
# 密码哈希
# =============================================================================

def _derive(password: str, salt_hex: str, iterations: int) -> str:
    # 盐值以十六进制字符串本身作为 PBKDF2 的 salt 字节，兼容已有数据
    return hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt_hex.encode("utf-8"),
        iterations,
        PBKDF2_KEY_LENGTH,
    ).hex()


def hash_password(password: str) -> str:
    """
    对密码进行哈希处理

    Args:
        password: 原始密码

    Returns:
        str: pbkdf2$<iterations>$<saltHex>$<hashHex>
    """
    salt_hex = secrets.token_hex(SALT_BYTES)
    digest = _derive(password, salt_hex, PBKDF2_ITERATIONS)
    return f"{PBKDF2_PREFIX}${PBKDF2_ITERATIONS}${salt_hex}${digest}"


def verify_password(
    plain_password: str,
    hashed_password: str,
    allow_legacy: bool = True
) -> bool:
    """
    验证密码

    非 pbkdf2 格式的存量值按明文做常量时间比较（旧数据兼容），
    格式错误的哈希一律返回 False

    Args:
        plain_password: 原始密码
        hashed_password: 存储的密码哈希
        allow_legacy: 是否允许旧明文数据比较

    Returns:
        bool: 密码是否匹配
    """
    stored = str(hashed_password or "")
    if not stored:
        return False

    if not stored.startswith(PBKDF2_PREFIX + "$"):
        if not allow_legacy:
            return False
        return safe_equals(plain_password, stored)

    parts = stored.split("$")
    if len(parts) != 4:
        return False

    _, raw_iterations, salt_hex, expected = parts
    try:
        iterations = int(raw_iterations)
    except ValueError:
        return False
    if iterations <= 0 or not salt_hex or not expected:
        return False

    return safe_equals(_derive(str(plain_password), salt_hex, iterations), expected)


def hash_token(raw_token: str) -> str:
    """重置令牌的 SHA-256 摘要（只存摘要，不存原文）"""
    return hashlib.sha256(str(raw_token or "").encode("utf-8")).hexdigest()


def generate_reset_token() -> str:
    """生成 32 字节随机重置令牌（十六进制）"""
    return secrets.token_hex(32)


# =============================================================================
# 会话 Token
# =============================================================================

def parse_duration(value: Optional[str]) -> int:
    """
    解析时长字符串

    Args:
        value: 形如 30s / 15m / 12h / 7d 的字符串

    Returns:
        int: 秒数，无法识别时为 12 小时
    """
    match = _DURATION_RE.match(str(value or "12h"))
    if not match:
        return DEFAULT_TOKEN_TTL_SECONDS
    return int(match.group(1)) * _UNIT_SECONDS[match.group(2)]


def create_access_token(
    data: Dict[str, Any],
    secret: str,
    expires_in: str = "12h",
    clock=None
) -> str:
    """
    创建会话 Token

    Args:
        data: 要编码的声明（role, email, uid, src 等）
        secret: 签名密钥
        expires_in: 有效期字符串
        clock: 时钟对象，默认系统时钟

    Returns:
        str: 紧凑 JWS 字符串
    """
    if not secret:
        raise ValueError("signing secret must not be empty")

    clock = clock or _system_clock
    issued_at = clock.timestamp()

    to_encode = dict(data)
    to_encode.update({
        "iat": issued_at,
        "exp": issued_at + parse_duration(expires_in)
    })

    return jws.sign(to_encode, secret, algorithm=TOKEN_ALGORITHM)


def decode_access_token(token: str, secret: str, clock=None) -> Optional[Dict[str, Any]]:
    """
    验证并解码会话 Token

    签名不匹配、格式错误、缺少 exp 或已过期都返回 None，不抛出异常

    Args:
        token: 紧凑 JWS 字符串
        secret: 签名密钥
        clock: 时钟对象，默认系统时钟

    Returns:
        Optional[Dict[str, Any]]: 声明字典
    """
    if not token or not secret:
        return None
    if str(token).count(".") != 2:
        return None

    try:
        payload = jws.verify(str(token), secret, algorithms=[TOKEN_ALGORITHM])
        claims = json.loads(payload)
    except (JOSEError, ValueError, TypeError):
        return None

    if not isinstance(claims, dict):
        return None

    exp = claims.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)) or not exp:
        return None

    clock = clock or _system_clock
    if clock.timestamp() >= exp:
        return None

    return claims
