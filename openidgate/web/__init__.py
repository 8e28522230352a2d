"""Web handlers for openidgate."""

from openidgate.web.handlers import (
    begin_login,
    create_oidc_blueprint,
    create_openid20_blueprint,
    require_session,
)

__all__ = [
    "begin_login",
    "create_oidc_blueprint",
    "create_openid20_blueprint",
    "require_session",
]
