import argparse
import sys
from app.config import PROFILES, get_profile
from app.services.server_loop import run_server


def main(argv=None):
    parser = argparse.ArgumentParser(prog="landing-server", description="Run the landing page server")
    parser.add_argument("--profile", choices=sorted(PROFILES), default="full")
    args = parser.parse_args(argv)
    return run_server(get_profile(args.profile))


if __name__ == "__main__":
    sys.exit(main())
