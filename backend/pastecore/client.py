"""
HTTP client for the paste API.

All encryption happens here, before anything is sent. The server only ever
receives ciphertext, the iv and a password-derived delete authorization; the
password, the derived key and the salt stay on this side.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

import httpx
import structlog

from pastecore.crypto import EncryptedPayload, decrypt, derive_delete_auth, encrypt
from pastecore.encoding import b64url_decode, b64url_encode
from pastecore.errors import (
    InvalidToken,
    NotFound,
    PasteError,
    PowInvalid,
    PowRequired,
    RateLimited,
    ServerError,
    ValidationError,
)
from pastecore.links import build_share_url, parse_share_url
from pastecore.pow import solve_pow
from pastecore.validators import validate_new_paste

logger = structlog.get_logger()

DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class PowChallenge:
    challenge: str
    difficulty: int
    expires_at: int


@dataclass(frozen=True)
class CreatedPaste:
    id: str
    delete_token: str
    delete_auth: str
    share_url: str


@dataclass(frozen=True)
class FetchedPaste:
    ciphertext: bytes
    iv: bytes
    meta: dict
    views_left: int | None


@dataclass(frozen=True)
class ViewedPaste:
    text: str
    views_left: int | None
    meta: dict


def _raise_for_error(response: httpx.Response) -> None:
    """Translate an error response into the shared error taxonomy."""
    if response.status_code < 400:
        return

    code = None
    try:
        body = response.json()
        if isinstance(body, dict):
            code = body.get("error")
    except ValueError:
        pass

    status = response.status_code
    if status == 400:
        if code == PowRequired.code:
            raise PowRequired()
        if code == PowInvalid.code:
            raise PowInvalid()
        raise ValidationError(code or "bad_request")
    if status == 422:
        raise ValidationError("invalid_request")
    if status == 403:
        raise InvalidToken(code)
    if status == 404:
        raise NotFound()
    if status == 429:
        raise RateLimited(code)
    raise ServerError(code)


class PasteClient:
    """
    Zero-knowledge paste client.

    Pass ``http`` to reuse an existing ``httpx.Client`` (its base URL must
    point at the service root); otherwise one is created for ``base_url``.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        *,
        http: httpx.Client | None = None,
        share_base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        pow_attempts: int = 2,
    ):
        self._owns_http = http is None
        self._http = http or httpx.Client(base_url=base_url, timeout=timeout)
        self.share_base_url = share_base_url or base_url
        self.pow_attempts = max(1, pow_attempts)

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "PasteClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = self._http.request(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.warning("paste_api_unreachable", method=method, error=type(e).__name__)
            raise ServerError("network_error", "Network error. Please check your connection.") from e
        _raise_for_error(response)
        return response

    def get_pow_challenge(self) -> PowChallenge | None:
        """Fetch a challenge, or None when the server does not require PoW."""
        response = self._request("GET", "/api/pow")
        if response.status_code == 204:
            return None
        data = response.json()
        return PowChallenge(
            challenge=data["challenge"],
            difficulty=data["difficulty"],
            expires_at=data["expiresAt"],
        )

    def _solve_current_challenge(self) -> dict | None:
        challenge = self.get_pow_challenge()
        if challenge is None:
            return None
        nonce = solve_pow(challenge.challenge, challenge.difficulty)
        return {"challenge": challenge.challenge, "nonce": nonce}

    def create_paste(
        self,
        text: str,
        password: str,
        expire_in_seconds: int,
        *,
        views_allowed: int | None = None,
        single_view: bool = False,
        mime: str = "text/plain",
    ) -> CreatedPaste:
        """Encrypt ``text`` under ``password`` and upload it."""
        validate_new_paste(text, password, expire_in_seconds, None if single_view else views_allowed)
        payload = encrypt(text, password)
        delete_auth = derive_delete_auth(password, payload.salt)
        meta = {
            "expireTs": int(time.time()) + expire_in_seconds,
            "mime": mime,
            "singleView": single_view,
            "viewsAllowed": 1 if single_view else views_allowed,
        }

        last_error: PasteError | None = None
        for _ in range(self.pow_attempts):
            body = {
                "ct": b64url_encode(payload.ciphertext),
                "iv": b64url_encode(payload.iv),
                "meta": meta,
                "pow": self._solve_current_challenge(),
                "deleteAuth": delete_auth,
            }
            try:
                response = self._request("POST", "/api/pastes", json=body)
            except (PowInvalid, PowRequired) as e:
                # The challenge expired or was taken; a fresh one may succeed.
                last_error = e
                continue

            data = response.json()
            logger.info("paste_created", paste_id=data["id"])
            return CreatedPaste(
                id=data["id"],
                delete_token=data["deleteToken"],
                delete_auth=delete_auth,
                share_url=build_share_url(self.share_base_url, data["id"], payload.salt, payload.iv),
            )

        raise last_error

    def fetch_paste(self, paste_id: str) -> FetchedPaste:
        """Fetch the ciphertext of a paste. Each call consumes one view."""
        data = self._request("GET", f"/api/pastes/{paste_id}").json()
        return FetchedPaste(
            ciphertext=b64url_decode(data["ct"]),
            iv=b64url_decode(data["iv"]),
            meta=data["meta"],
            views_left=data.get("viewsLeft"),
        )

    def view_paste(self, share_url: str, password: str) -> ViewedPaste:
        """Fetch and decrypt the paste behind a share link."""
        link = parse_share_url(share_url)
        fetched = self.fetch_paste(link.paste_id)
        text = decrypt(
            EncryptedPayload(ciphertext=fetched.ciphertext, iv=link.iv, salt=link.salt),
            password,
        )
        return ViewedPaste(text=text, views_left=fetched.views_left, meta=fetched.meta)

    def delete_paste(self, paste_id: str, delete_token: str) -> None:
        """Delete with the creator's delete token."""
        self._request("DELETE", f"/api/pastes/{paste_id}", params={"token": delete_token})

    def delete_with_password(self, share_url: str, password: str) -> None:
        """Delete using the password; does not consume a view."""
        link = parse_share_url(share_url)
        delete_auth = derive_delete_auth(password, link.salt)
        self._request("POST", f"/api/pastes/{link.paste_id}/delete", json={"deleteAuth": delete_auth})
