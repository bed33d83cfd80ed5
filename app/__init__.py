from flask import Flask
from flask_cors import CORS

from app.api import api_bp
from app.auth import auth_bp
from app.config import Config
from app.extensions import db, login_manager, oauth
from app.services.drive import DriveFileStore
from app.web import web_bp

GOOGLE_DISCOVERY_URL = "https://accounts.google.com/.well-known/openid-configuration"


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    db.init_app(app)
    login_manager.init_app(app)
    oauth.init_app(app)
    oauth.register(
        "google",
        server_metadata_url=GOOGLE_DISCOVERY_URL,
        client_kwargs={"scope": app.config["GOOGLE_SCOPES"]},
    )
    app.extensions["drive_file_store"] = DriveFileStore()

    app.register_blueprint(auth_bp)
    app.register_blueprint(web_bp)
    app.register_blueprint(api_bp)
    CORS(
        app,
        origins=app.config["CORS_ALLOWED_ORIGINS"],
        methods=app.config["CORS_ALLOWED_METHODS"],
        max_age=app.config["CORS_MAX_AGE"],
        supports_credentials=True,
    )

    @app.cli.command("init-db")
    def init_db_command():
        db.create_all()
        print("Initialized DriveMarks database.")

    with app.app_context():
        db.create_all()

    return app
