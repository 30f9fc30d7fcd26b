#!/usr/bin/env python3
"""
Generate the key that signs session cookies.
Run this and copy the output to your .env file.
"""

import secrets


def generate_secret_key(num_bytes=32):
    """Return a random hex key suitable for HS256 signing."""
    return secrets.token_hex(num_bytes)


if __name__ == "__main__":
    print("=" * 60)
    print("Session Cookie Signing Key")
    print("=" * 60)
    print("\nSessions issued with the old key stop validating once you switch.\n")

    print(f"JWT_SECRET_KEY={generate_secret_key()}")
    print("\n" + "=" * 60)
    print("Copy the line above to your .env file")
    print("=" * 60)
