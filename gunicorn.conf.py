# gunicorn -c gunicorn.conf.py wsgi:app
import os


def _env_int(name: str, default: int) -> int:
    raw = str(os.getenv(name, "") or "").strip()
    return int(raw) if raw.isdigit() else default


bind = f"0.0.0.0:{_env_int('PORT', 8000)}"

worker_class = "gthread"
workers = max(1, _env_int("WEB_CONCURRENCY", 2))
threads = max(1, _env_int("PYTHON_THREADS", 4))

preload_app = False

timeout = max(10, _env_int("GUNICORN_TIMEOUT", 60))
graceful_timeout = 20

accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").strip().lower()

max_requests = _env_int("GUNICORN_MAX_REQUESTS", 1000)
max_requests_jitter = 50
