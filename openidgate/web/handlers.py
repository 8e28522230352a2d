"""Flask handlers for both login flows.

Nothing is registered at import time: build a blueprint from a configured
flow or client and register it on the host application.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from functools import wraps
from typing import TYPE_CHECKING, Any
from urllib.parse import quote, unquote, urlsplit

from flask import Blueprint, g, jsonify, make_response, redirect, request

from openidgate.core.errors import AuthError, NoSessionError
from openidgate.core.oidc.session import NONCE_COOKIE, ONE_HOUR, delete_cookie, set_cookie

if TYPE_CHECKING:
    from werkzeug.wrappers import Response as WerkzeugResponse

    from openidgate.core.oidc.flows import ImplicitFlow
    from openidgate.core.openid20.client import OpenID20Client

logger = logging.getLogger(__name__)

LOGIN_PATH = "/auth/login"
LOGOUT_PATH = "/auth/logout"
OPENID20_LOGIN_PATH = "/openid/login"


def access_denied(error: AuthError) -> tuple[str, int]:
    """Generic error response; the diagnostic only goes to the log."""
    logger.warning(f"Access denied ({error.kind}): {error.message}", extra={"auth_error": error.to_dict()})
    return "Access denied", error.status_code


def request_uri() -> str:
    """Percent-encoded path, including any mount prefix, and query string."""
    uri = quote(request.root_path + request.path)
    if request.query_string:
        uri += "?" + request.query_string.decode("latin-1")
    return uri


def begin_login(flow: ImplicitFlow) -> WerkzeugResponse:
    """Redirect the browser to the provider for authentication."""
    auth_request = flow.start(request.host)
    response = redirect(auth_request.redirect_url, code=302)
    flow.session.clear(response)
    set_cookie(response, NONCE_COOKIE, auth_request.nonce or "", ONE_HOUR)
    return response


def require_session(flow: ImplicitFlow) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator requiring a valid session; sets ``g.identity``.

    Requests without a valid session are redirected to the provider.
    """

    def decorator(f: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(f)
        def decorated_function(*args: Any, **kwargs: Any) -> Any:
            try:
                g.identity = flow.session.load(request)
            except AuthError as e:
                if not isinstance(e, NoSessionError):
                    logger.debug(f"Session rejected: {e.message}")
                return begin_login(flow)
            return f(*args, **kwargs)

        return decorated_function

    return decorator


def create_oidc_blueprint(flow: ImplicitFlow, home: str = "/") -> Blueprint:
    """Build the login, callback and logout routes for the ID token flow.

    Args:
        flow: Configured ID token flow.
        home: Where to send the browser after login and logout.
    """
    bp = Blueprint("oidc_auth", __name__)

    def login() -> WerkzeugResponse:
        return begin_login(flow)

    def callback() -> str | tuple[str, int] | WerkzeugResponse:
        if request.method == "GET":
            return flow.relay_page()

        id_token = request.form.get("id_token", "")
        try:
            flow.complete(id_token, request.cookies.get(NONCE_COOKIE))
        except AuthError as e:
            return access_denied(e)

        response = redirect(home, code=302)
        delete_cookie(response, NONCE_COOKIE)
        flow.session.store(response, id_token)
        return response

    def logout() -> WerkzeugResponse:
        response = redirect(home, code=302)
        flow.session.clear(response)
        return response

    bp.add_url_rule(LOGIN_PATH, "login", login, methods=["GET"])
    bp.add_url_rule(flow.callback_path, "callback", callback, methods=["GET", "POST"])
    bp.add_url_rule(LOGOUT_PATH, "logout", logout, methods=["POST"])
    return bp


def create_openid20_blueprint(client: OpenID20Client, callback_path: str | None = None) -> Blueprint:
    """Build the login and callback routes for the OpenID 2.0 flow.

    Args:
        client: Configured OpenID 2.0 client.
        callback_path: Route of the callback inside the application. Defaults
            to the decoded path of ``client.return_to``; pass the path without
            the mount prefix when the application is not mounted at the root.
    """
    bp = Blueprint("openid20_auth", __name__)
    if callback_path is None:
        callback_path = unquote(urlsplit(client.return_to).path) or "/"

    def login() -> WerkzeugResponse:
        auth_request = client.create_request()
        response = redirect(auth_request.redirect_url, code=302)
        set_cookie(response, NONCE_COOKIE, auth_request.nonce or "", ONE_HOUR)
        return response

    def callback() -> Any:
        params = request.args.to_dict(flat=False)
        try:
            identity = client.complete(params, request_uri(), request.cookies.get(NONCE_COOKIE))
        except AuthError as e:
            return access_denied(e)
        response = make_response(jsonify(identity.to_dict()))
        delete_cookie(response, NONCE_COOKIE)
        return response

    bp.add_url_rule(OPENID20_LOGIN_PATH, "login", login, methods=["GET"])
    bp.add_url_rule(callback_path, "callback", callback, methods=["GET"])
    return bp
