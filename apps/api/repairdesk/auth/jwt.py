import base64
import hashlib
import hmac
import json
import time
from typing import Any

from fastapi import HTTPException, status


class JwtError(Exception):
    pass


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode().rstrip("=")


def _b64url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _sign(signing_input: bytes, secret: str) -> str:
    return _b64url_encode(hmac.new(secret.encode(), signing_input, hashlib.sha256).digest())


def issue_jwt(payload: dict[str, Any], secret: str, expires_in_s: int = 3600) -> str:
    now = int(time.time())
    header = {"alg": "HS256", "typ": "JWT"}
    claims = {**payload, "iat": now, "exp": now + expires_in_s}

    encoded_header = _b64url_encode(json.dumps(header, separators=(",", ":")).encode())
    encoded_payload = _b64url_encode(json.dumps(claims, separators=(",", ":")).encode())
    signature = _sign(f"{encoded_header}.{encoded_payload}".encode(), secret)
    return f"{encoded_header}.{encoded_payload}.{signature}"


def issue_actor_token(user_id: str, role: str, secret: str, expires_in_s: int = 3600) -> str:
    return issue_jwt({"sub": user_id, "role": role}, secret, expires_in_s=expires_in_s)


def decode_jwt(token: str, secret: str) -> dict[str, Any]:
    try:
        encoded_header, encoded_payload, encoded_signature = token.split(".")
    except ValueError as exc:
        raise JwtError("Malformed JWT") from exc

    header = json.loads(_b64url_decode(encoded_header))
    if header.get("alg") != "HS256":
        raise JwtError("Unsupported JWT algorithm")

    expected = _sign(f"{encoded_header}.{encoded_payload}".encode(), secret)
    if not hmac.compare_digest(expected, encoded_signature):
        raise JwtError("Invalid JWT signature")

    payload = json.loads(_b64url_decode(encoded_payload))
    exp = payload.get("exp")
    if not isinstance(exp, int) or exp < int(time.time()):
        raise JwtError("Expired JWT")

    return payload


def jwt_http_exception(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=message,
        headers={"WWW-Authenticate": "Bearer"},
    )
