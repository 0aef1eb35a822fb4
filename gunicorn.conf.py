"""Gunicorn config: bind from PORT and refresh records once the worker is up."""
import os
import threading
import time
import urllib.request

bind = f"0.0.0.0:{os.environ.get('PORT', '8070')}"
# Records live in process memory; keep a single worker so reloads reach every request
workers = 1
timeout = int(os.environ.get("API_TIMEOUT", "120")) + 30


def post_worker_init(worker):
    """After the worker starts, reload records from the API in the background."""
    def _reload():
        time.sleep(3)  # wait for server to be ready
        try:
            port = worker.cfg.bind[0].split(":")[-1] if worker.cfg.bind else "8070"
            url = f"http://127.0.0.1:{port}/api/reload"
            urllib.request.urlopen(url, timeout=300)
            worker.log.info("Auto-reloaded clinic records")
        except Exception as e:
            worker.log.warning(f"Auto-reload failed: {e}")

    t = threading.Thread(target=_reload, daemon=True)
    t.start()
