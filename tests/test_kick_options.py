import pytest

from auth.claims import ClaimsIdentity, ClaimTypes
from kickauth.constants import KickAuthenticationDefaults, KickClaimTypes
from kickauth.options import KickAuthenticationOptions, get_data
from tests.oauth_helpers import USER_INFO_JSON


def _run_claim_mappings(document) -> ClaimsIdentity:
    options = KickAuthenticationOptions()
    identity = ClaimsIdentity()
    options.claim_mappings.apply(document, identity, "Kick")
    return identity


@pytest.mark.parametrize(
    ("claim_type", "expected_value"),
    [
        (ClaimTypes.SUBJECT, "12345"),
        (ClaimTypes.NAME, "dallas"),
        (ClaimTypes.EMAIL, "dallas@kick.com"),
        (
            KickClaimTypes.PROFILE_PICTURE,
            "https://files.kick.com/images/user/12345/profile.webp",
        ),
    ],
)
def test_claim_mappings_extract_expected_value(claim_type: str, expected_value: str) -> None:
    identity = _run_claim_mappings(USER_INFO_JSON)

    claim = identity.find_first(claim_type)
    assert claim is not None
    assert claim.value == expected_value
    assert claim.issuer == "Kick"


def test_claim_mappings_full_claim_set() -> None:
    identity = _run_claim_mappings(USER_INFO_JSON)

    assert identity.to_dict() == {
        "sub": "12345",
        "name": "dallas",
        "email": "dallas@kick.com",
        "urn:kick:profilepicture": "https://files.kick.com/images/user/12345/profile.webp",
    }


def test_claim_mappings_handle_numeric_user_id() -> None:
    identity = _run_claim_mappings({"data": [{"user_id": 98765, "name": "numeric_user"}]})

    assert identity.find_first(ClaimTypes.SUBJECT).value == "98765"
    assert identity.find_first(ClaimTypes.EMAIL) is None
    assert identity.find_first(KickClaimTypes.PROFILE_PICTURE) is None


def test_claim_mappings_handle_empty_data_array() -> None:
    assert _run_claim_mappings({"data": []}).claims == []


def test_claim_mappings_handle_missing_data_property() -> None:
    assert _run_claim_mappings({"user_id": "123", "name": "test"}).claims == []


@pytest.mark.parametrize(
    "document",
    [
        {"data": {"user_id": "1"}},
        {"data": "1"},
        {"data": None},
        {"data": ["not-an-object"]},
        [{"user_id": "1"}],
        None,
    ],
)
def test_claim_mappings_handle_wrong_shapes(document) -> None:
    assert _run_claim_mappings(document).claims == []


def test_claim_mappings_handle_missing_optional_fields() -> None:
    identity = _run_claim_mappings({"data": [{"user_id": "123", "name": "minimal_user"}]})

    assert identity.find_first(ClaimTypes.SUBJECT) is not None
    assert identity.find_first(ClaimTypes.NAME) is not None
    assert identity.find_first(ClaimTypes.EMAIL) is None
    assert identity.find_first(KickClaimTypes.PROFILE_PICTURE) is None


def test_get_data_reads_only_first_entry() -> None:
    user = {"data": [{"name": "first"}, {"name": "second", "email": "b@kick.com"}]}

    assert get_data(user, "name") == "first"
    assert get_data(user, "email") is None


def test_default_options_endpoints() -> None:
    options = KickAuthenticationOptions()

    assert options.authorization_endpoint == "https://id.kick.com/oauth/authorize"
    assert options.token_endpoint == "https://id.kick.com/oauth/token"
    assert options.user_info_endpoint == "https://api.kick.com/public/v1/users"


def test_default_options_callback_path_and_issuer() -> None:
    options = KickAuthenticationOptions()

    assert options.callback_path == "/signin-kick"
    assert options.claims_issuer == "Kick"


def test_default_options_pkce_and_scope() -> None:
    options = KickAuthenticationOptions()

    assert options.use_pkce is True
    assert KickAuthenticationOptions.pkce_required is True
    assert "user:read" in options.scopes


def test_default_options_are_not_shared() -> None:
    first = KickAuthenticationOptions()
    second = KickAuthenticationOptions()

    first.add_scope("channel:read")
    first.claim_mappings.clear()

    assert second.scopes == ["user:read"]
    assert len(second.claim_mappings) == 4


def test_defaults_constants() -> None:
    assert KickAuthenticationDefaults.AUTHENTICATION_SCHEME == "Kick"
    assert KickAuthenticationDefaults.DISPLAY_NAME == "Kick"
    assert KickAuthenticationDefaults.ISSUER == "Kick"
    assert KickAuthenticationDefaults.CALLBACK_PATH == "/signin-kick"
    assert KickClaimTypes.PROFILE_PICTURE == "urn:kick:profilepicture"
