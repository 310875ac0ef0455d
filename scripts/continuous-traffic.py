#!/usr/bin/env python3
"""
Continuous traffic generator for the storefront service.
Keeps shoppers running until stopped with Ctrl+C, which is enough
concurrency to show stock contention on the popular products.
"""
import argparse
import subprocess
import sys
import signal
import os

process = None


def signal_handler(sig, frame):
    print('\n\nStopping traffic generation...')
    if process:
        process.terminate()
        try:
            process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            process.kill()
    sys.exit(0)


def generator_command(users: int, url: str) -> list:
    """Command line for generate-traffic.py with a duration long enough to run until stopped."""
    script_dir = os.path.dirname(os.path.abspath(__file__))
    return [
        sys.executable, os.path.join(script_dir, "generate-traffic.py"),
        "--users", str(users),
        "--duration", "999999",
        "--url", url,
    ]


if __name__ == "__main__":
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    parser = argparse.ArgumentParser(description="Run the storefront traffic generator until stopped")
    parser.add_argument("--users", type=int, default=30, help="Concurrent shoppers (default: 30)")
    parser.add_argument("--url", type=str, default="http://localhost:8000", help="API URL")
    args = parser.parse_args()

    print("Starting continuous traffic generation...")
    print("Press Ctrl+C to stop")
    print(f"Using {args.users} concurrent shoppers against {args.url}\n")

    # Popen so the generator's output streams through
    process = subprocess.Popen(
        generator_command(args.users, args.url),
        cwd=os.path.dirname(os.path.abspath(__file__)),
        stdout=sys.stdout,
        stderr=sys.stderr
    )
    process.wait()
