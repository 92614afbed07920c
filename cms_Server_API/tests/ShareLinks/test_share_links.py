# tests/ShareLinks/test_share_links.py
# Description: Long share tokens, legacy signed short codes and revocable store-backed short codes.
#
# Imports
from datetime import timedelta
#
# Third-party imports
import pytest
#
# Local imports
from cms_Server_API.app.core.DB_Management.Document_Store import InputError
from cms_Server_API.app.core.Security import Share_Links
from cms_Server_API.app.core.Security.Share_Links import (
    LinkIssuer, ShareLinkIssueError, ShareLinkNotFoundError, ShareLinkStateError, sign_short_payload, to_base36
)
#
########################################################################################################################
#
# Functions:

SECRET = "test-share-secret"


@pytest.fixture
def issuer(content_db, clock):
    return LinkIssuer(content_db.share_links, secret=SECRET, prefix="share", code_length=4, clock=clock)


class TestLongTokens:

    def test_token_round_trip(self, issuer):
        issued = issuer.create_share_token(timedelta(hours=2))
        result = issuer.verify_share_token(issued.token)

        assert result.valid is True
        assert result.expires_at == issued.expires_at

    def test_token_from_other_secret_is_invalid(self, issuer, content_db, clock):
        other = LinkIssuer(content_db.share_links, secret="another-secret", clock=clock)
        token = other.create_share_token(timedelta(hours=2)).token

        assert issuer.verify_share_token(token).valid is False

    def test_expired_token_is_invalid(self, issuer, clock):
        clock.advance(hours=-3)
        token = issuer.create_share_token(timedelta(hours=1)).token

        result = issuer.verify_share_token(token)
        assert result.valid is False
        assert result.expires_at is None

    def test_garbage_token_is_invalid(self, issuer):
        assert issuer.verify_share_token("not-a-jwt-at-all").valid is False


class TestLegacyShortCodes:

    def test_code_shape(self, issuer, clock):
        expires_at = clock() + timedelta(hours=5)
        code = issuer.create_legacy_code(expires_at)
        payload = to_base36(int(expires_at.timestamp()))

        assert code == f"share-{payload}.{sign_short_payload(payload, SECRET)}"
        assert len(code.rsplit(".", 1)[1]) == 6

    @pytest.mark.asyncio
    async def test_validity_needs_only_secret_and_code(self, tmp_path, clock):
        from cms_Server_API.app.core.DB_Management.Content_DB import ContentDatabase

        expires_at = clock() + timedelta(hours=1)
        code = LinkIssuer(ContentDatabase(tmp_path / "a", clock=clock).share_links, secret=SECRET,
                          clock=clock).create_legacy_code(expires_at)

        # A different process with an empty store and the same secret.
        fresh = LinkIssuer(ContentDatabase(tmp_path / "b", clock=clock).share_links, secret=SECRET, clock=clock)
        check = fresh.inspect_short_code(code)
        status = await fresh.validate_short_code(code)

        assert check.valid and check.legacy and not check.expired
        assert check.expires_at == expires_at.replace(microsecond=0)
        assert status.valid is True

    @pytest.mark.asyncio
    async def test_expired_legacy_code_keeps_valid_signature(self, issuer, clock):
        code = issuer.create_legacy_code(clock() + timedelta(minutes=10))
        clock.advance(minutes=11)

        check = issuer.inspect_short_code(code)
        assert check.valid is True
        assert check.expired is True
        assert check.legacy is True
        assert (await issuer.validate_short_code(code)).valid is False

    @pytest.mark.parametrize("code", [
        "share-",
        "share-.abcdef",
        "share-abc",
        "share-abc.",
    ])
    def test_malformed_legacy_codes(self, issuer, code):
        check = issuer.inspect_short_code(code)
        assert check.valid is False
        assert check.legacy is True

    def test_tampered_signature_is_invalid(self, issuer, clock):
        code = issuer.create_legacy_code(clock() + timedelta(hours=1))
        payload, signature = code.rsplit(".", 1)
        tampered = f"{payload}.{'a' if signature[0] != 'a' else 'b'}{signature[1:]}"

        assert issuer.inspect_short_code(tampered).valid is False

    def test_bare_code_format_check(self, issuer):
        assert issuer.inspect_short_code("k7pq").valid is True
        assert issuer.inspect_short_code("k7pq").legacy is False
        assert issuer.inspect_short_code("ab").valid is False
        assert issuer.inspect_short_code("ABCD").valid is False
        assert issuer.inspect_short_code("l0o1").valid is False
        assert issuer.inspect_short_code("").valid is False

    @pytest.mark.asyncio
    async def test_bare_code_without_record_is_invalid(self, issuer):
        assert (await issuer.validate_short_code("k7pq")).valid is False


class TestStoreBackedCodes:

    @pytest.mark.asyncio
    async def test_revocation_invalidates_before_expiry(self, issuer):
        record = await issuer.create_short_link(ttl_hours=1)
        code = record["code"]
        assert (await issuer.validate_short_code(code)).valid is True

        assert await issuer.revoke(code) is True
        status = await issuer.validate_short_code(code)

        assert status.valid is False
        assert status.expires_at == record["expiresAt"]

    @pytest.mark.asyncio
    async def test_revoke_is_idempotent(self, issuer, clock):
        code = (await issuer.create_short_link(permanent=True))["code"]
        await issuer.revoke(code)
        first = await issuer.store.get_by_key(code)
        clock.advance(minutes=5)
        await issuer.revoke(code)

        assert (await issuer.store.get_by_key(code))["revokedAt"] == first["revokedAt"]
        assert await issuer.revoke("zzzz") is False

    @pytest.mark.asyncio
    async def test_record_expiry(self, issuer, clock):
        code = (await issuer.create_short_link(ttl_hours=2))["code"]
        clock.advance(hours=2)
        assert (await issuer.validate_short_code(code)).valid is False

    @pytest.mark.asyncio
    async def test_permanent_link(self, issuer, clock):
        record = await issuer.create_short_link(permanent=True, note="grandparents")
        clock.advance(days=400)

        status = await issuer.validate_short_code(record["code"])
        assert record["expiresAt"] is None
        assert status.valid is True
        assert status.expires_at is None

    @pytest.mark.asyncio
    async def test_code_uses_configured_alphabet_and_length(self, content_db, clock):
        issuer = LinkIssuer(content_db.share_links, secret=SECRET, code_length=6, clock=clock)
        code = (await issuer.create_short_link(ttl_hours=1))["code"]

        assert len(code) == 6
        assert set(code) <= set(Share_Links.SHARE_CODE_ALPHABET)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kwargs", [{}, {"ttl_hours": 0}, {"ttl_hours": 169}])
    async def test_create_needs_ttl_or_permanent(self, issuer, kwargs):
        with pytest.raises(InputError):
            await issuer.create_short_link(**kwargs)

    @pytest.mark.asyncio
    async def test_collisions_exhaust_issue_budget(self, issuer, monkeypatch):
        monkeypatch.setattr(Share_Links, "generate_short_code", lambda length: "k7pq")
        await issuer.create_short_link(ttl_hours=1)

        with pytest.raises(ShareLinkIssueError):
            await issuer.create_short_link(ttl_hours=1)
        assert len(await issuer.list_links()) == 1

    @pytest.mark.asyncio
    async def test_extend_from_future_expiry(self, issuer):
        record = await issuer.create_short_link(ttl_hours=3)
        extended = await issuer.extend(record["code"], 2)
        assert extended["expiresAt"] == record["expiresAt"] + timedelta(hours=2)

    @pytest.mark.asyncio
    async def test_extend_expired_link_counts_from_now(self, issuer, clock):
        record = await issuer.create_short_link(ttl_hours=1)
        clock.advance(hours=5)

        extended = await issuer.extend(record["code"], 4)

        assert extended["expiresAt"] == clock() + timedelta(hours=4)
        assert (await issuer.validate_short_code(record["code"])).valid is True

    @pytest.mark.asyncio
    async def test_extend_rejections(self, issuer):
        permanent = (await issuer.create_short_link(permanent=True))["code"]
        revoked = (await issuer.create_short_link(ttl_hours=1))["code"]
        await issuer.revoke(revoked)

        with pytest.raises(ShareLinkStateError):
            await issuer.extend(permanent, 1)
        with pytest.raises(ShareLinkStateError):
            await issuer.extend(revoked, 1)
        with pytest.raises(ShareLinkNotFoundError):
            await issuer.extend("zzzz", 1)

    @pytest.mark.asyncio
    async def test_list_links_newest_first(self, issuer, clock):
        first = await issuer.create_short_link(ttl_hours=1, note="first")
        clock.advance(minutes=1)
        second = await issuer.create_short_link(ttl_hours=1, note="second")

        assert [link["code"] for link in await issuer.list_links()] == [second["code"], first["code"]]

#
# End of test_share_links.py
########################################################################################################################
