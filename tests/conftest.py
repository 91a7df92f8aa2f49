import os
import tempfile


# Keep test runs from writing into the project's runtime/logs directory.
os.environ.setdefault("SPRINKLER_BRIDGE_LOG_DIR", os.path.join(tempfile.gettempdir(), "sprinkler_bridge_test_logs"))
