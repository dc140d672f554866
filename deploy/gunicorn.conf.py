"""
Gunicorn configuration for the Exam Tester API.

    gunicorn -c deploy/gunicorn.conf.py exam_tester.main:app

Workers share nothing in memory: attempts and submissions live in the
database and blob bytes under BLOB_STORAGE_DIR, so every worker must see
the same DATABASE_URL and storage directory.
"""
import os
import multiprocessing

wsgi_app = "exam_tester.main:app"

# Server socket
bind = os.environ.get("BIND", "0.0.0.0:8000")

# Worker processes
workers = int(os.environ.get("WEB_CONCURRENCY", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
# Uploads of up to 10MB on slow links
timeout = int(os.environ.get("GUNICORN_TIMEOUT", "120"))
graceful_timeout = 30
keepalive = 5

# Logging
accesslog = os.environ.get("GUNICORN_ACCESS_LOG", "-")
errorlog = os.environ.get("GUNICORN_ERROR_LOG", "-")
loglevel = os.environ.get("LOG_LEVEL", "info").lower()

proc_name = "exam-tester"

# Request header limits; bodies are bounded by MAX_UPLOAD_BYTES in the app
limit_request_line = 4094
limit_request_fields = 100
limit_request_field_size = 8190


def when_ready(server):
    server.log.info(f"Exam Tester API ready on {bind} with {workers} workers")
