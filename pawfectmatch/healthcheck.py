from __future__ import annotations

from .petfinder import build_client


def main() -> None:
    client = build_client()
    client.token_cache.get_token()
    print("OK")


if __name__ == "__main__":
    main()
