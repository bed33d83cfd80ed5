import sys
import logging
import argparse
from app import create_app

# No werkzeug request log or startup banner.
logging.getLogger('werkzeug').disabled = True
sys.modules['flask.cli'].show_server_banner = lambda *x: None

app = create_app()


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="drivemarks",
        description="Serve the DriveMarks bookmark API backed by Google Drive.",
    )
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8080)
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app.logger.info(
        "Drive folder %s, data file %s, frontend %s",
        app.config["DRIVE_FOLDER_NAME"],
        app.config["DRIVE_DATA_FILE"],
        app.config["FRONTEND_URL"],
    )
    print(f"DriveMarks listening on http://{args.host}:{args.port}", flush=True)
    app.run(host=args.host, port=args.port, debug=args.debug)


if __name__ == "__main__":
    main()
