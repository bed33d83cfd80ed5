from datetime import datetime, timezone

from flask_login import UserMixin

from app.extensions import db, login_manager


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    subject = db.Column(db.String(255), unique=True, nullable=False, index=True)
    email = db.Column(db.String(255), nullable=True)
    name = db.Column(db.String(255), nullable=True)
    picture = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    authorized_client = db.relationship(
        "AuthorizedClient",
        backref="user",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def as_dict(self):
        return {
            "name": self.name,
            "email": self.email,
            "picture": self.picture,
            "authenticated": True,
        }


@login_manager.user_loader
def load_user(user_id: str):
    return db.session.get(User, int(user_id))


class AuthorizedClient(db.Model):
    """OAuth2 grant of one user for the Google registration."""

    __tablename__ = "authorized_clients"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True, index=True
    )
    registration_id = db.Column(db.String(64), nullable=False, default="google")
    access_token = db.Column(db.Text, nullable=True)
    refresh_token = db.Column(db.Text, nullable=True)
    token_type = db.Column(db.String(32), nullable=True)
    scope = db.Column(db.Text, nullable=True)
    expires_at = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    def update_from_token(self, token: dict) -> None:
        self.access_token = token.get("access_token")
        if token.get("refresh_token"):
            self.refresh_token = token["refresh_token"]
        self.token_type = token.get("token_type")
        self.scope = token.get("scope")
        self.expires_at = token.get("expires_at")
