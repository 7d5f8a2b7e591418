"""Unit tests for modules.spark.services.identity."""

from modules.spark.services.identity import IdentityProvider, LocalIdentityProvider


class TestLocalIdentityProvider:
    def test_satisfies_protocol(self):
        assert isinstance(LocalIdentityProvider(), IdentityProvider)

    def test_starts_signed_out(self):
        identity = LocalIdentityProvider()

        assert identity.current_owner_id is None
        assert not identity.is_authenticated

    def test_sign_in_notifies_listeners(self):
        identity = LocalIdentityProvider()
        seen = []
        identity.add_listener(seen.append)

        identity.sign_in("user-1")
        identity.sign_out()

        assert seen == ["user-1", None]

    def test_repeated_sign_in_is_silent(self):
        identity = LocalIdentityProvider("user-1")
        seen = []
        identity.add_listener(seen.append)

        identity.sign_in("user-1")
        identity.sign_out()
        identity.sign_out()

        assert seen == [None]

    def test_anonymous_sign_in_generates_owner(self):
        identity = LocalIdentityProvider()

        owner_id = identity.sign_in_anonymously()

        assert owner_id.startswith("anon-")
        assert identity.current_owner_id == owner_id

    def test_removed_listener_not_called(self):
        identity = LocalIdentityProvider()
        seen = []
        remove = identity.add_listener(seen.append)

        remove()
        remove()
        identity.sign_in("user-1")

        assert seen == []
