# gunicorn.conf.py
# gunicorn -c gunicorn.conf.py mediaqueue.main:app
import os

bind = f"0.0.0.0:{os.getenv('PORT', '8080')}"
# de queue leeft in het geheugen van het proces: 1 worker = 1 gedeelde queue
workers = int(os.getenv("WEB_CONCURRENCY", "1"))
worker_class = "uvicorn.workers.UvicornWorker"
preload_app = False
# grote bestanden + trage media API
timeout = int(os.getenv("UPLOAD_TIMEOUT_SECONDS", "120")) + 30
graceful_timeout = 30
keepalive = 5
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()
