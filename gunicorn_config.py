"""
Gunicorn configuration for the OnuStatusMap dashboard.

The call gate and status history live in process memory, so a single
worker keeps the hourly quotas honest. Threads serve concurrent requests.
"""

import os

# Server socket
bind = f"{os.getenv('DASH_HOST', '0.0.0.0')}:{os.getenv('DASH_PORT', '8050')}"
backlog = 2048

# Worker processes
# Each worker would have its own quota counters, so keep exactly one
workers = 1
worker_class = 'gthread'
threads = 8

# Worker timeout
# A cold map load waits for several spaced upstream calls
timeout = 180
graceful_timeout = 30
keepalive = 5

# Logging
accesslog = '-'  # Log to stdout
errorlog = '-'   # Log to stderr
loglevel = 'info'
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'

# Process naming
proc_name = 'onu-status-map'

# Server mechanics
daemon = False
pidfile = None
umask = 0
user = None
group = None
tmp_upload_dir = None

# The async event loop thread must start inside the worker, not the master
preload_app = False

# Worker restarts would reset the quota counters
max_requests = 0

# Debugging
reload = False
check_config = False


def on_starting(server):
    """Called just before the master process is initialized."""
    print("[GUNICORN] Starting OnuStatusMap dashboard")


def worker_int(worker):
    """Called when a worker receives SIGINT or SIGQUIT."""
    print(f"[GUNICORN] Worker {worker.pid} interrupted")


def worker_abort(worker):
    """Called when a worker receives SIGABRT."""
    print(f"[GUNICORN] Worker {worker.pid} aborted")
