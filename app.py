# DROP — local file server: browse, download, upload, automatic expiry
# Files older than the configured expiry are removed by cleanup.CleanupScheduler.

import os
import re
import stat
import secrets
import posixpath
import logging
from typing import Optional, Sequence
from urllib.parse import quote

from flask import (
    Flask, request, jsonify, send_file,
    abort, render_template,
)
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from werkzeug.security import safe_join

from cleanup import CleanupScheduler
from listing import annotate, read_directory
from settings import (
    Settings, SettingsError,
    configure_logging, parse_args, prepare_directories, resolve_settings,
)

log = logging.getLogger(__name__)

UPLOAD_PATH = "/uploads"


# ─────────────────────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────────────────────
def clean_filename(name: Optional[str]) -> Optional[str]:
    """Last path component of a submitted filename, or None if unusable."""
    name = re.split(r"[\\/]", name or "")[-1]
    if not name or name in (".", "..") or "\x00" in name:
        return None
    return name


def has_parent_segment(path: str) -> bool:
    return ".." in re.split(r"[\\/]", path)


def parent_of(request_path: str) -> Optional[str]:
    trimmed = request_path.rstrip("/")
    if not trimmed:
        return None
    return quote(posixpath.dirname(trimmed) or "/")


# ─────────────────────────────────────────────────────────────
# APP
# ─────────────────────────────────────────────────────────────
def create_app(settings: Settings) -> Flask:
    app = Flask(__name__, static_folder=None)
    app.config["DROP_SETTINGS"] = settings
    if settings.max_upload_mb > 0:
        app.config["MAX_CONTENT_LENGTH"] = settings.max_upload_mb * 1024 * 1024

    work_dir   = str(settings.work_dir)
    upload_dir = str(settings.upload_dir)
    expiry     = settings.expiry_seconds

    # ── rate limit ───────────────────────────────────────────
    app.config["RATELIMIT_ENABLED"] = bool(settings.upload_rate_limit)
    limiter = Limiter(get_remote_address, app=app,
                      default_limits=[],
                      storage_uri="memory://")

    # ── security headers ─────────────────────────────────────
    @app.before_request
    def generate_nonce():
        request._csp_nonce = secrets.token_urlsafe(16)

    @app.context_processor
    def inject_globals():
        return {
            "csp_nonce": getattr(request, "_csp_nonce", ""),
            "upload_path": UPLOAD_PATH,
            "expiry_hours": settings.expiry_hours,
        }

    @app.after_request
    def security_headers(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"]        = "DENY"
        response.headers["Referrer-Policy"]        = "no-referrer"
        # inline countdown script is allowed by nonce only
        nonce = getattr(request, "_csp_nonce", "")
        response.headers["Content-Security-Policy"] = (
            f"default-src 'self'; "
            f"script-src 'nonce-{nonce}'; "
            f"style-src 'self' 'unsafe-inline'; "
            f"frame-ancestors 'none'; "
            f"form-action 'self';"
        )
        response.headers.pop("Server", None)
        return response

    # ── browse / download ────────────────────────────────────
    @app.route("/", defaults={"subpath": ""})
    @app.route("/<path:subpath>")
    def browse(subpath):
        if has_parent_segment(subpath):
            abort(400, description="Invalid path.")

        full_path = safe_join(work_dir, subpath) if subpath else work_dir
        if full_path is None:
            abort(400, description="Invalid path.")

        try:
            st = os.stat(full_path)
        except (FileNotFoundError, NotADirectoryError):
            abort(404, description="File or directory not found.")
        except OSError as e:
            app.logger.error("stat failed for %s: %s", full_path, e)
            abort(500)

        request_path = "/" + subpath
        if stat.S_ISDIR(st.st_mode):
            return serve_directory(full_path, request_path)
        return serve_file(full_path)

    def serve_directory(dir_path: str, request_path: str):
        try:
            entries = read_directory(dir_path)
        except (FileNotFoundError, NotADirectoryError):
            abort(404, description="File or directory not found.")
        except OSError as e:
            app.logger.error("cannot read directory %s: %s", dir_path, e)
            abort(500, description="Failed to read directory.")

        rows = annotate(entries, expiry, base=request_path)
        return render_template(
            "index.html",
            request_path=request_path,
            parent_path=parent_of(request_path),
            rows=rows,
        )

    def serve_file(file_path: str):
        # the sweeper may have removed it since it was listed
        try:
            return send_file(file_path, as_attachment=True,
                             download_name=os.path.basename(file_path))
        except (FileNotFoundError, NotADirectoryError):
            abort(404, description="File or directory not found.")
        except OSError as e:
            app.logger.error("cannot send %s: %s", file_path, e)
            abort(500)

    # ── upload ───────────────────────────────────────────────
    def upload():
        if request.method != "POST":
            return render_template("upload.html")

        try:
            incoming = request.files.getlist("file")
        except ValueError as e:
            app.logger.warning("could not parse upload form: %s", e)
            abort(400, description="Failed to parse form.")

        incoming = [f for f in incoming if f.filename]
        if not incoming:
            abort(400, description="No file selected.")

        uploaded, failed = [], []
        for storage in incoming:
            name = clean_filename(storage.filename)
            try:
                if name is None:
                    failed.append(storage.filename)
                    continue
                # overwrites an existing file of the same name
                dest = os.path.join(upload_dir, name)
                try:
                    storage.save(dest)
                except OSError as e:
                    app.logger.warning("upload of %s failed: %s", name, e)
                    failed.append(name)
                else:
                    app.logger.info("uploaded %s", dest)
                    uploaded.append(name)
            finally:
                storage.close()

        return render_template("upload_result.html", uploaded=uploaded, failed=failed)

    if settings.upload_rate_limit:
        upload = limiter.limit(settings.upload_rate_limit, methods=["POST"])(upload)
    app.add_url_rule(UPLOAD_PATH, "upload", upload, methods=["GET", "POST"])

    # ── error handlers ───────────────────────────────────────
    @app.errorhandler(400)
    def bad_request(e):
        return jsonify({"error": e.description}), 400

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Not found."}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed."}), 405

    @app.errorhandler(413)
    def too_large(e):
        return jsonify({"error": f"File too large. Limit: {settings.max_upload_mb} MB."}), 413

    @app.errorhandler(429)
    def rate_limit(e):
        return jsonify({"error": "Too many requests."}), 429

    @app.errorhandler(500)
    def server_error(e):
        return jsonify({"error": "Internal server error."}), 500

    return app


# ─────────────────────────────────────────────────────────────
# ENTRY POINT
# ─────────────────────────────────────────────────────────────
def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)
    settings = resolve_settings(args)

    try:
        settings = prepare_directories(settings)
    except SettingsError as e:
        log.critical("%s", e)
        raise SystemExit(1)

    scheduler = CleanupScheduler(settings.work_dir, settings.expiry_seconds,
                                 interval=settings.sweep_interval)
    scheduler.start()

    app = create_app(settings)
    addr = f"http://localhost:{settings.port}"
    print("File server started.")
    print(f"Work directory:   {settings.work_dir}")
    print(f"Upload directory: {settings.upload_dir}")
    print(f"File expiry:      {settings.expiry_hours:g} hour(s)")
    print(f"Browse: {addr}/")
    print(f"Upload: {addr}{UPLOAD_PATH}")

    try:
        app.run(host=settings.host, port=int(settings.port), threaded=True)
    finally:
        scheduler.stop()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
