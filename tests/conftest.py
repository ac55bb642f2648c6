import os

# Keep test runs from writing to ~/.commandgate/logs
os.environ.setdefault("COMMANDGATE_DISABLE_FILE_LOGGING", "1")
