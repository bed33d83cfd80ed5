from authlib.integrations.flask_client import OAuthError
from flask import current_app, redirect, url_for
from flask_login import login_user

from app.auth import auth_bp
from app.extensions import db, oauth
from app.models import AuthorizedClient, User


def _frontend_url(path: str = "") -> str:
    return current_app.config["FRONTEND_URL"].rstrip("/") + path


@auth_bp.route("/oauth2/authorization/google")
def google_login():
    redirect_uri = url_for("auth.google_callback", _external=True)
    return oauth.google.authorize_redirect(
        redirect_uri, access_type="offline", prompt="consent"
    )


@auth_bp.route("/login/oauth2/code/google")
def google_callback():
    try:
        token = oauth.google.authorize_access_token()
    except OAuthError as exc:
        current_app.logger.warning("Google sign-in failed: %s", exc.description)
        return redirect(_frontend_url("/login?error=true"))

    userinfo = token.get("userinfo") or oauth.google.userinfo(token=token)
    subject = userinfo.get("sub")
    if not subject:
        current_app.logger.warning("Google sign-in returned no subject")
        return redirect(_frontend_url("/login?error=true"))

    user = User.query.filter_by(subject=subject).first()
    if not user:
        user = User(subject=subject)
        db.session.add(user)
    user.email = userinfo.get("email")
    user.name = userinfo.get("name")
    user.picture = userinfo.get("picture")

    client = user.authorized_client or AuthorizedClient(registration_id="google")
    client.update_from_token(token)
    user.authorized_client = client
    db.session.commit()

    login_user(user)
    current_app.logger.info("User %s signed in", user.email)
    return redirect(url_for("web.drive_init_and_redirect"))
