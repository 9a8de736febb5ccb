"""HTTP front end.

Lightweight ``http.server`` application exposing the webhook receiver, the
manual check, the admin helpers and the password-gated brand settings page.
Each request is handled on its own thread.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Callable, Optional
from urllib.parse import parse_qs, urlparse

from . import config
from .catalog import ShopifyClient
from .config import ConfigError, Settings
from .emailer import EmailDispatcher, build_test_message
from .monitor import InventoryMonitor
from .state import BrandStore, StateStore
from .utils import tail_file
from .verification import SHOPIFY_HMAC_HEADER, verify_shopify_hmac

logger = logging.getLogger(__name__)

MAX_BODY_BYTES = 1024 * 1024


def _spawn_thread(target: Callable, *args) -> None:
    threading.Thread(target=target, args=args, name="webhook-worker", daemon=True).start()


@dataclass
class MonitorApp:
    """Everything a request handler needs, built once at startup."""

    settings: Settings
    monitor: Optional[InventoryMonitor] = None
    config_error: Optional[ConfigError] = None
    # Runs webhook work once the response has been written.
    spawn: Callable[..., None] = _spawn_thread

    @classmethod
    def create(cls, settings: Settings) -> "MonitorApp":
        try:
            config.validate(settings)
        except ConfigError as e:
            logger.error("%s", e)
            return cls(settings=settings, config_error=e)

        monitor = InventoryMonitor(
            settings,
            client=ShopifyClient(settings),
            dispatcher=EmailDispatcher(settings),
            state_store=StateStore(settings.state_file),
            brand_store=BrandStore(settings.brands_file, settings.monitored_brands),
        )
        return cls(settings=settings, monitor=monitor)


SETTINGS_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>Brand Monitor Settings</title>
<style>
body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Arial, sans-serif; background: #f5f5f5; padding: 20px; line-height: 1.6; }
.card { max-width: 900px; margin: 0 auto; background: white; padding: 30px; border-radius: 8px; box-shadow: 0 2px 4px rgba(0,0,0,0.1); }
input, textarea { width: 100%; padding: 12px; border: 1px solid #ddd; border-radius: 4px; font-size: 14px; box-sizing: border-box; }
textarea { min-height: 400px; font-family: 'Courier New', monospace; }
.btn { background: #007bff; color: white; padding: 12px 24px; border: none; border-radius: 4px; cursor: pointer; margin-top: 12px; }
.alert { padding: 12px 16px; border-radius: 4px; margin-bottom: 20px; }
.alert-success { background: #d4edda; color: #155724; }
.alert-error { background: #f8d7da; color: #721c24; }
#brands-container { display: none; }
</style>
</head>
<body>
<div class="card">
  <h1>Brand Monitor Settings</h1>
  <p>Manage the brands being monitored for inventory changes</p>
  <div id="password-container">
    <form onsubmit="checkPassword(event)">
      <label for="password">Enter Password:</label>
      <input type="password" id="password" required autofocus>
      <p>This password is set in your .env file as SETTINGS_PASSWORD</p>
      <button type="submit" class="btn">Access Settings</button>
    </form>
  </div>
  <div id="brands-container">
    <p><strong>One brand per line.</strong> Names are case-sensitive and must match Shopify exactly.
       Current count: <span id="brand-count">0</span></p>
    <div id="message-container"></div>
    <form onsubmit="saveBrands(event)">
      <textarea id="brands" required></textarea>
      <button type="submit" class="btn">Save Brands</button>
      <button type="button" class="btn" onclick="loadBrands()">Reset</button>
    </form>
  </div>
</div>
<script>
let currentPassword = '';
function showMessage(text, ok) {
  document.getElementById('message-container').innerHTML =
    '<div class="alert ' + (ok ? 'alert-success' : 'alert-error') + '"></div>';
  document.querySelector('#message-container .alert').textContent = text;
}
function checkPassword(e) {
  e.preventDefault();
  currentPassword = document.getElementById('password').value;
  fetch('/api/verify-password', {method: 'POST', headers: {'Content-Type': 'application/json'},
    body: JSON.stringify({password: currentPassword})})
  .then(r => r.json()).then(data => {
    if (data.valid) {
      document.getElementById('password-container').style.display = 'none';
      document.getElementById('brands-container').style.display = 'block';
      loadBrands();
    } else { alert('Invalid password'); }
  });
}
function loadBrands() {
  fetch('/api/get-brands', {headers: {'X-Password': currentPassword}})
  .then(r => r.json()).then(data => {
    document.getElementById('brands').value = (data.brands || []).join('\\n');
    document.getElementById('brand-count').textContent = (data.brands || []).length;
  });
}
function saveBrands(e) {
  e.preventDefault();
  const brands = document.getElementById('brands').value.split('\\n').map(b => b.trim()).filter(b => b);
  fetch('/api/save-brands', {method: 'POST',
    headers: {'Content-Type': 'application/json', 'X-Password': currentPassword},
    body: JSON.stringify({brands: brands})})
  .then(r => r.json()).then(data => {
    if (data.success) { showMessage('Saved ' + data.count + ' brands', true); loadBrands(); }
    else { showMessage(data.error || 'Save failed', false); }
  });
}
</script>
</body>
</html>
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class MonitorRequestHandler(BaseHTTPRequestHandler):
    server_version = "BrandStockMonitor/1.0"
    _body: Optional[bytes] = None

    @property
    def app(self) -> MonitorApp:
        return self.server.app  # type: ignore[attr-defined]

    def log_message(self, format, *args):
        """Route the access log through logging instead of stderr."""
        logger.info("%s - %s", self.address_string(), format % args)

    # ---- response helpers ----------------------------------------------------

    def _send_body(self, status: int, body: bytes, content_type: str) -> None:
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)
        self.wfile.flush()

    def _send_json(self, data, status: int = 200) -> None:
        body = json.dumps(data, indent=2, ensure_ascii=False).encode("utf-8")
        self._send_body(status, body, "application/json")

    def _send_text(self, text: str, status: int = 200) -> None:
        self._send_body(status, text.encode("utf-8"), "text/plain; charset=utf-8")

    def _read_body(self) -> bytes:
        if self._body is None:
            try:
                length = int(self.headers.get("Content-Length") or 0)
            except ValueError:
                length = 0
            self._body = self.rfile.read(min(length, MAX_BODY_BYTES)) if length > 0 else b""
        return self._body

    def _read_json(self) -> dict:
        try:
            data = json.loads(self._read_body() or b"{}")
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    def _authorized(self) -> bool:
        return self.headers.get("X-Password", "") == self.app.settings.settings_password

    # ---- dispatch ------------------------------------------------------------

    def do_GET(self):
        self._dispatch("GET")

    def do_POST(self):
        self._dispatch("POST")

    def _dispatch(self, method: str) -> None:
        parsed = urlparse(self.path)
        logger.info("Incoming request: %s %s", method, parsed.path)
        if method == "POST":
            # Body is consumed before any response is written.
            self._read_body()
        if self.app.config_error is not None:
            missing = self.app.config_error.missing[0]
            self._send_json({"error": f"Missing configuration: {missing}"}, status=500)
            return

        route = ROUTES.get((method, parsed.path))
        if route is None:
            logger.warning("404 Not Found: %s", parsed.path)
            self._send_json({"error": "Not Found"}, status=404)
            return
        try:
            route(self, parse_qs(parsed.query))
        except Exception:
            logger.exception("Error handling %s %s", method, parsed.path)
            self._send_json({"error": "Internal Server Error"}, status=500)

    # ---- routes --------------------------------------------------------------

    def index(self, query):
        self._send_json({
            "service": "Shopify Brand Inventory Monitor",
            "status": "running",
            "monitoring": f"{len(self.app.monitor.brands())} brands",
            "endpoints": {
                "health": "/health",
                "settings": "/settings (Password Protected)",
                "webhook": "/webhook/inventory (POST)",
                "manualCheck": "/check-now",
                "testEmail": "/test-email",
                "logs": "/logs?lines=100 (GET)",
                "debugConfig": "/debug-config (GET)",
                "listWebhooks": "/admin/webhooks",
                "registerWebhook": "/admin/register-webhook (POST)",
            },
        })

    def health(self, query):
        self._send_json({
            "status": "ok",
            "monitoring": f"{len(self.app.monitor.brands())} brands",
            "timestamp": _now(),
        })

    def check_now(self, query):
        self._send_json(self.app.monitor.check_all())

    def test_email(self, query):
        logger.info("Test email requested")
        dispatcher = self.app.monitor.dispatcher
        self._send_json(dispatcher.send(*build_test_message(self.app.settings, dispatcher.method or "none")))

    def webhook_inventory(self, query):
        raw = self._read_body()
        logger.info("Webhook received from Shopify")
        if not verify_shopify_hmac(raw, self.headers.get(SHOPIFY_HMAC_HEADER), self.app.settings.shopify_webhook_secret):
            logger.error("Invalid webhook signature - request rejected")
            self._send_text("Unauthorized", status=401)
            return

        self._send_text("OK")
        try:
            payload = json.loads(raw) if raw.strip() else None
        except ValueError:
            logger.warning("Webhook body is not valid JSON; treating it as a test ping")
            payload = None
        self.app.spawn(self.app.monitor.handle_inventory_event, payload)

    def register_webhook(self, query):
        logger.info("Webhook registration requested")
        base = self.app.settings.public_url or f"https://{self.headers.get('Host', '')}"
        address = f"{base.rstrip('/')}/webhook/inventory"
        self._send_json(self.app.monitor.client.register_webhook(address))

    def list_webhooks(self, query):
        logger.info("Webhook list requested")
        status, body = self.app.monitor.client.list_webhooks()
        self._send_body(status, body.encode("utf-8"), "application/json")

    def view_logs(self, query):
        path = self.app.settings.log_file
        try:
            lines = int(query.get("lines", ["100"])[0])
        except ValueError:
            lines = 100
        try:
            tail, total = tail_file(path, lines)
        except FileNotFoundError:
            self._send_text(
                "No log file found. Logs will be created when the system starts processing.\n"
                f"Log file location: {path}\n"
            )
            return
        header = (
            f"=== INVENTORY MONITOR LOGS (Last {lines} lines) ===\n"
            f"Total log entries: {total}\n"
            f"Log file: {path}\n"
            + "=" * 60 + "\n\n"
        )
        self._send_text(header + "".join(tail))

    def debug_config(self, query):
        s = self.app.settings
        brands = self.app.monitor.brands()
        info = config.redacted(s)
        info["monitoring"] = {"brands": brands, "total_brands": len(brands)}
        info["files"] = {
            "state_file": str(s.state_file),
            "state_file_exists": s.state_file.exists(),
            "brands_file": str(s.brands_file),
            "brands_file_exists": s.brands_file.exists(),
            "log_file": str(s.log_file),
            "log_file_exists": s.log_file.exists(),
            "log_file_size": f"{s.log_file.stat().st_size} bytes" if s.log_file.exists() else "N/A",
        }
        info["current_state"] = self.app.monitor.state_store.as_dict()
        info["timestamp"] = _now()
        logger.info("Debug config accessed")
        self._send_json(info)

    def settings_page(self, query):
        self._send_body(200, SETTINGS_PAGE.encode("utf-8"), "text/html; charset=utf-8")

    def verify_password(self, query):
        password = self._read_json().get("password", "")
        self._send_json({"valid": password == self.app.settings.settings_password})

    def get_brands(self, query):
        if not self._authorized():
            self._send_json({"error": "Unauthorized"}, status=401)
            return
        self._send_json({"brands": self.app.monitor.brands()})

    def save_brands(self, query):
        if not self._authorized():
            self._send_json({"error": "Unauthorized"}, status=401)
            return
        brands = self._read_json().get("brands") or []
        if not isinstance(brands, list) or not brands:
            self._send_json({"success": False, "error": "No brands provided"})
            return
        saved = self.app.monitor.brand_store.save(brands)
        logger.info("Brands updated via settings page. New count: %d", len(saved))
        self._send_json({"success": True, "count": len(saved)})


ROUTES = {
    ("GET", "/"): MonitorRequestHandler.index,
    ("GET", "/health"): MonitorRequestHandler.health,
    ("GET", "/check-now"): MonitorRequestHandler.check_now,
    ("GET", "/test-email"): MonitorRequestHandler.test_email,
    ("POST", "/webhook/inventory"): MonitorRequestHandler.webhook_inventory,
    ("POST", "/admin/register-webhook"): MonitorRequestHandler.register_webhook,
    ("GET", "/admin/webhooks"): MonitorRequestHandler.list_webhooks,
    ("GET", "/logs"): MonitorRequestHandler.view_logs,
    ("GET", "/view-logs"): MonitorRequestHandler.view_logs,
    ("GET", "/debug-config"): MonitorRequestHandler.debug_config,
    ("GET", "/settings"): MonitorRequestHandler.settings_page,
    ("POST", "/api/verify-password"): MonitorRequestHandler.verify_password,
    ("GET", "/api/get-brands"): MonitorRequestHandler.get_brands,
    ("POST", "/api/save-brands"): MonitorRequestHandler.save_brands,
}


class MonitorServer:
    """Owns the HTTP server and its serving thread."""

    def __init__(self, app: MonitorApp, host: Optional[str] = None, port: Optional[int] = None):
        self.app = app
        self.host = host if host is not None else app.settings.host
        self.port = port if port is not None else app.settings.port
        self.httpd: Optional[ThreadingHTTPServer] = None
        self.thread: Optional[threading.Thread] = None

    @property
    def base_url(self) -> str:
        host = "127.0.0.1" if self.host in ("", "0.0.0.0") else self.host
        return f"http://{host}:{self.port}"

    def bind(self) -> ThreadingHTTPServer:
        self.httpd = ThreadingHTTPServer((self.host, self.port), MonitorRequestHandler)
        self.httpd.daemon_threads = True
        self.httpd.app = self.app  # type: ignore[attr-defined]
        self.port = self.httpd.server_address[1]
        return self.httpd

    def start(self) -> str:
        """Serve on a background thread and return the base URL."""
        if self.httpd is None:
            self.bind()
        self.thread = threading.Thread(target=self.httpd.serve_forever, name="http-server", daemon=True)
        self.thread.start()
        logger.info("Inventory monitor listening at %s", self.base_url)
        return self.base_url

    def serve_forever(self) -> None:
        if self.httpd is None:
            self.bind()
        logger.info("Inventory monitor listening at %s", self.base_url)
        self.httpd.serve_forever()

    def stop(self) -> None:
        if self.httpd is not None:
            self.httpd.shutdown()
            self.httpd.server_close()
            self.httpd = None
            logger.info("Inventory monitor stopped")


__all__ = ["MonitorApp", "MonitorRequestHandler", "MonitorServer", "ROUTES"]
