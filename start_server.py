#!/usr/bin/env python3
"""
Start the landing page server with static files, error pages and tracing
Usage: python start_server.py
"""

import sys
from app.config import FULL_PROFILE
from app.services.server_loop import run_server


def main():
    print("Starting landing page server...")
    print(f"Server will be available at: http://{FULL_PROFILE.address}")
    print(f"API documentation: http://{FULL_PROFILE.address}/api-docs")
    print("Press Ctrl+C to stop the server")
    return run_server(FULL_PROFILE)


if __name__ == "__main__":
    sys.exit(main())
