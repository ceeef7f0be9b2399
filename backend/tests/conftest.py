import os

# Keep app.main's startup create_all off the working directory
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("LANGFUSE_TRACING_ENABLED", "false")
