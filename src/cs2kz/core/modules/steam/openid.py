"""Steam login via OpenID 2.0.

Users are sent to Steam with `login_url()`. Steam redirects them back to our
`return_to` URL with a `CallbackPayload` in the query string, which has to be
sent back to Steam for verification before we can trust the SteamID in it.
"""

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field

from cs2kz.errors import AuthenticationError

logger = structlog.get_logger(__name__)

LOGIN_URL = "https://steamcommunity.com/openid/login"
OPENID_NS = "http://specs.openid.net/auth/2.0"
IDENTIFIER_SELECT = "http://specs.openid.net/auth/2.0/identifier_select"


class OpenIDVerificationError(AuthenticationError):
    error_type = "openid_verification_failed"

    def __init__(self, message: str = "failed to verify login with Steam") -> None:
        super().__init__(message)


def login_url(return_to: str, userdata: str) -> str:
    """Build the URL users are redirected to in order to log in with Steam.

    `userdata` is attached to `return_to` and comes back verbatim in the callback.
    """
    return_url = httpx.URL(return_to).copy_merge_params({"userdata": userdata})
    realm = f"{return_url.scheme}://{return_url.netloc.decode()}"
    params = {
        "openid.ns": OPENID_NS,
        "openid.mode": "checkid_setup",
        "openid.identity": IDENTIFIER_SELECT,
        "openid.claimed_id": IDENTIFIER_SELECT,
        "openid.realm": realm,
        "openid.return_to": str(return_url),
    }
    return str(httpx.URL(LOGIN_URL, params=params))


class CallbackPayload(BaseModel):
    """Query parameters Steam attaches when redirecting back to us."""

    model_config = ConfigDict(populate_by_name=True)

    ns: str = Field(alias="openid.ns")
    identity: str | None = Field(default=None, alias="openid.identity")
    claimed_id: str = Field(alias="openid.claimed_id")
    mode: str = Field(alias="openid.mode")
    return_to: str = Field(alias="openid.return_to")
    op_endpoint: str = Field(alias="openid.op_endpoint")
    response_nonce: str = Field(alias="openid.response_nonce")
    invalidate_handle: str | None = Field(default=None, alias="openid.invalidate_handle")
    assoc_handle: str = Field(alias="openid.assoc_handle")
    signed: str = Field(alias="openid.signed")
    sig: str = Field(alias="openid.sig")
    userdata: str

    def verification_form(self) -> dict[str, str]:
        form = self.model_dump(by_alias=True, exclude={"userdata"}, exclude_none=True)
        form["openid.mode"] = "check_authentication"
        return form

    def steam_id(self) -> int:
        last_segment = httpx.URL(self.claimed_id).path.rstrip("/").rsplit("/", 1)[-1]
        if not last_segment.isdigit():
            raise OpenIDVerificationError("Steam returned an invalid SteamID")
        return int(last_segment)

    async def verify(self, expected_host: str, client: httpx.AsyncClient) -> int:
        """Ask Steam whether this payload is genuine and return the user's SteamID64."""
        if httpx.URL(self.return_to).host != expected_host:
            logger.debug("openid_host_mismatch", return_to=self.return_to, expected_host=expected_host)
            raise OpenIDVerificationError("`return_to` host does not match our host")

        try:
            response = await client.post(
                LOGIN_URL,
                data=self.verification_form(),
                headers={"Origin": "https://steamcommunity.com", "Referer": "https://steamcommunity.com/"},
            )
        except httpx.HTTPError as e:
            logger.warning("openid_request_failed", error=str(e))
            raise OpenIDVerificationError("failed to make HTTP request to Steam") from e

        if not response.is_success:
            logger.warning("openid_bad_status", status=response.status_code)
            raise OpenIDVerificationError(f"Steam returned a bad status code ({response.status_code})")

        if "is_valid:true" not in (line.strip() for line in response.text.splitlines()):
            logger.info("openid_invalid_payload", claimed_id=self.claimed_id)
            raise OpenIDVerificationError("invalid payload")

        return self.steam_id()
