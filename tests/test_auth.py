from datetime import datetime, timedelta, timezone

import jwt
import pytest

from pebble_cms.auth import TokenService, hash_password, verify_credentials
from pebble_cms.config import Settings
from pebble_cms.errors import InvalidToken, TokenExpired, TokenSignatureInvalid

from .conftest import ADMIN_PASSWORD, EDITOR_PASSWORD, SECRET


class TestTokenService:
    def test_issued_token_verifies(self, tokens):
        identity = tokens.verify(tokens.issue("admin"))
        assert identity.username == "admin"

    def test_claims_expire_after_seven_days(self, tokens):
        now = datetime.now(timezone.utc).replace(microsecond=0)
        claims = jwt.decode(tokens.issue("admin", now=now), SECRET, algorithms=["HS256"])
        assert claims["exp"] - claims["iat"] == int(timedelta(days=7).total_seconds())
        assert claims["username"] == "admin"

    def test_expired_token_rejected(self, tokens):
        issued = datetime.now(timezone.utc) - timedelta(days=8)
        with pytest.raises(TokenExpired):
            tokens.verify(tokens.issue("admin", now=issued))

    def test_token_valid_just_before_expiry(self, tokens):
        issued = datetime.now(timezone.utc) - timedelta(days=7) + timedelta(minutes=5)
        assert tokens.verify(tokens.issue("admin", now=issued)).username == "admin"

    def test_altered_signature_rejected(self, tokens):
        token = tokens.issue("admin")
        header, payload, signature = token.split(".")
        forged = f"{header}.{payload}.{signature[:-4]}{'AAAA' if signature[-4:] != 'AAAA' else 'BBBB'}"
        with pytest.raises(TokenSignatureInvalid):
            tokens.verify(forged)

    def test_token_from_other_secret_rejected(self, tokens):
        other = TokenService("another-secret-that-is-also-long-enough")
        with pytest.raises(TokenSignatureInvalid):
            tokens.verify(other.issue("admin"))

    def test_garbage_rejected(self, tokens):
        with pytest.raises(InvalidToken):
            tokens.verify("not-a-jwt")

    def test_missing_username_rejected(self):
        now = datetime.now(timezone.utc)
        token = jwt.encode({"iat": now, "exp": now + timedelta(days=1)}, SECRET, algorithm="HS256")
        with pytest.raises(InvalidToken):
            TokenService(SECRET).verify(token)

    def test_expired_and_forged_both_surface_as_invalid_token(self, tokens):
        assert issubclass(TokenExpired, InvalidToken)
        assert issubclass(TokenSignatureInvalid, InvalidToken)
        assert TokenExpired().status_code == TokenSignatureInvalid().status_code == 401

    def test_secret_required(self):
        with pytest.raises(ValueError):
            TokenService("")


class TestCredentials:
    def test_admin_and_editor_accepted(self, settings):
        assert verify_credentials(settings, "admin", ADMIN_PASSWORD)
        assert verify_credentials(settings, "editor", EDITOR_PASSWORD)

    def test_wrong_password_rejected(self, settings):
        assert not verify_credentials(settings, "admin", "wrong")
        assert not verify_credentials(settings, "editor", ADMIN_PASSWORD)

    def test_unknown_user_rejected(self, settings):
        assert not verify_credentials(settings, "mallory", ADMIN_PASSWORD)

    def test_no_hash_configured(self):
        settings = Settings(_env_file=None, jwt_secret=SECRET, admin_password_hash="")
        assert not verify_credentials(settings, "admin", "anything")

    def test_hash_password_produces_bcrypt(self):
        assert hash_password("pw").startswith("$2")
