import os

# Keep test runs from writing log files or starting the snapshot thread.
os.environ.setdefault("ENABLE_FILE_LOGGING", "0")
os.environ.setdefault("METRICS_SNAPSHOT_INTERVAL_SEC", "0")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
