"""
Reduced server: greeting and API docs only, no static files, error pages or tracing
"""
import sys
from app.config import REDUCED_PROFILE
from app.services.server_loop import run_server


def main():
    return run_server(REDUCED_PROFILE)


if __name__ == "__main__":
    sys.exit(main())
