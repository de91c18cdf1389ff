"""
Gunicorn configuration for PostPurchase Pro.
"""
import os

bind = f"0.0.0.0:{os.getenv('PORT', '8080')}"

# Checkout requests are short; a few sync workers are enough
workers = int(os.getenv('GUNICORN_WORKERS', '2'))
worker_class = 'sync'
timeout = 60
keepalive = 5

# Logging
accesslog = '-'  # stdout
errorlog = '-'   # stderr
loglevel = os.getenv('LOG_LEVEL', 'info')
capture_output = True

proc_name = 'postpurchase-pro'

# Preload so the scheduler starts once in the master
preload_app = True

graceful_timeout = 30


def on_starting(server):
    server.log.info("Starting PostPurchase Pro server...")


def on_exit(server):
    server.log.info("PostPurchase Pro server shutting down...")
