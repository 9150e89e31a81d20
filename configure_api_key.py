#!/usr/bin/env python3
"""
Quick script to configure the YouTube API key used for channel features.

Usage: python configure_api_key.py <YOUR_API_KEY> [--db PATH]
"""

import argparse
import sys

from ytapp.config_manager import ConfigManager
from ytapp.database import Database


def main():
    parser = argparse.ArgumentParser(description="Store the YouTube Data API key for ytapp")
    parser.add_argument("api_key", nargs="?", help="YouTube Data API v3 key")
    parser.add_argument("--db", default=None, help="SQLite database path (default: ~/.ytapp/ytapp.db)")
    args = parser.parse_args()

    if not args.api_key:
        print("Usage: python configure_api_key.py <YOUR_API_KEY> [--db PATH]")
        print("\nTo get an API key:")
        print("1. Go to https://console.cloud.google.com/")
        print("2. Create a project and enable YouTube Data API v3")
        print("3. Create credentials (API key)")
        print("4. Copy the key and use it here")
        print("\nAlternatively set the YTAPP_YOUTUBE_API_KEY environment variable.")
        sys.exit(1)

    api_key = args.api_key.strip()

    print("Configuring YouTube API key...")
    db = Database(args.db)
    config = ConfigManager(db)
    config.set("youtube_api_key", api_key)

    # Verify against the stored row; the env var would mask a failed save
    entry = config.repository.get("youtube_api_key")
    if entry is not None and entry.value == api_key:
        print("✓ API key configured successfully!")
        print(f"  Key: {api_key[:6]}...{api_key[-4:]}")
    else:
        print("✗ Error: API key was not saved correctly")
        sys.exit(1)

    db.close()


if __name__ == "__main__":
    main()
