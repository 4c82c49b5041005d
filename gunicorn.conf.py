"""
Gunicorn configuration for the SSM Compliance API.

Usage:
    gunicorn ssm_compliance.main:app -c gunicorn.conf.py

WEB_CONCURRENCY and PORT override the defaults. Sweeps triggered through
/internal/run_sweep run inside the request, so the worker timeout stays above
SWEEP_TIMEOUT_SECONDS.
"""

import multiprocessing
import os

bind = f"0.0.0.0:{os.getenv('PORT', '8000')}"
workers = int(os.getenv("WEB_CONCURRENCY", str(multiprocessing.cpu_count() * 2 + 1)))
worker_class = "uvicorn.workers.UvicornWorker"

timeout = int(os.getenv("SWEEP_TIMEOUT_SECONDS", "300")) + 30
graceful_timeout = 30
keepalive = 5

accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()
