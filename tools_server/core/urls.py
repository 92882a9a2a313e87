"""URL patterns shared by the routers and the login page."""

BASE_API_URL = "/api"
API_VERSION = "/v1"
API_V1 = BASE_API_URL + API_VERSION

LOGIN_URL = "/login"
AUTH_URL = "/auth/{provider}"
AUTH_CALLBACK_URL = "/auth/{provider}/callback"
LOGOUT_URL = "/logout"
PROFILE_URL = "/profile"
HEALTH_URL = "/health"

ACCOUNT_URL = "/accounts"
COMPONENT_URL = "/components"
PAGE_URL = "/pages"
QUERY_URL = "/queries"
QUERY_EXECUTE_URL = QUERY_URL + "/execute"


def auth_url(provider: str) -> str:
    return AUTH_URL.format(provider=provider)
