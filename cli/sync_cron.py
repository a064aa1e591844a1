"""Scheduled sync runner: trigger a board sync for every configured group.

Runs are sequential, so one board is never synced twice concurrently by this
runner. Rate limiting and server errors are retried with exponential backoff;
a group that still fails is reported and the remaining groups are processed.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

import httpx

if TYPE_CHECKING:
    from collections.abc import Callable

GROUPS_ENV = "BOARD_MIRROR_GROUPS"
TOKEN_ENV = "BOARD_MIRROR_API_TOKEN"
MAX_ATTEMPTS = 3
_LOCALHOST_HOSTS = {"localhost", "127.0.0.1", "::1"}


@dataclass
class GroupEntry:
    group_id: str
    board_id: str | None = None


class SyncFailedError(Exception):
    """Raised when a group could not be synced after all retries."""


def validate_server_url(server_url: str, allow_insecure_http: bool = False) -> str:
    """Validate server URL and enforce HTTPS for non-localhost hosts by default."""
    normalized = server_url.strip().rstrip("/")
    parsed = urlparse(normalized)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError("Server URL must include scheme and host (e.g. https://example.com)")

    hostname = parsed.hostname
    if parsed.scheme == "http" and not allow_insecure_http and hostname not in _LOCALHOST_HOSTS:
        raise ValueError(
            "HTTPS is required for non-localhost servers. "
            "Use --allow-insecure-http only on trusted networks."
        )

    return normalized


def parse_groups(raw: str) -> list[GroupEntry]:
    """Parse a JSON list of ``{"group_id": ..., "board_id": ...}`` objects."""
    try:
        data = json.loads(raw or "[]")
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid groups JSON: {exc.msg}") from exc
    if not isinstance(data, list):
        raise ValueError("Groups JSON must be a list")

    groups: list[GroupEntry] = []
    for entry in data:
        if not isinstance(entry, dict) or not entry.get("group_id"):
            raise ValueError(f"Invalid group entry: {entry!r}")
        board_id = entry.get("board_id")
        groups.append(GroupEntry(group_id=str(entry["group_id"]), board_id=board_id or None))
    return groups


def _is_retryable(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class SyncTrigger:
    """Calls the board mirror API on behalf of the scheduler."""

    def __init__(
        self,
        server_url: str,
        token: str | None = None,
        *,
        max_attempts: int = MAX_ATTEMPTS,
        sleep: Callable[[float], None] = time.sleep,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self.client = httpx.Client(
            base_url=server_url.rstrip("/"),
            headers=headers,
            timeout=300.0,
            transport=transport,
        )
        self.max_attempts = max_attempts
        self._sleep = sleep

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self) -> SyncTrigger:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def list_groups(self) -> list[GroupEntry]:
        """Discover groups from the mappings stored on the server."""
        resp = self.client.get("/api/board/mappings")
        resp.raise_for_status()
        return [
            GroupEntry(group_id=m["group_id"], board_id=m["board_id"]) for m in resp.json()
        ]

    def sync_group(self, entry: GroupEntry) -> dict[str, int]:
        """Trigger one sync, retrying 429 and 5xx responses. Returns the diff counts."""
        body: dict[str, Any] = {"group_id": entry.group_id}
        if entry.board_id:
            body["board_id"] = entry.board_id

        attempt = 1
        while True:
            try:
                resp = self.client.post("/api/board/sync", json=body)
            except httpx.TransportError as exc:
                status_code, detail = None, str(exc)
            else:
                if resp.is_success:
                    break
                status_code, detail = resp.status_code, resp.text

            retryable = status_code is None or _is_retryable(status_code)
            if attempt >= self.max_attempts or not retryable:
                raise SyncFailedError(
                    f"sync failed group={entry.group_id} status={status_code} detail={detail}"
                )
            backoff = float(2**attempt)
            print(
                f"[retry] group={entry.group_id} status={status_code} "
                f"wait={backoff:.0f}s detail={detail}"
            )
            self._sleep(backoff)
            attempt += 1

        try:
            payload = resp.json()
        except ValueError:
            payload = {}
        counts = payload.get("counts") if isinstance(payload, dict) else None
        if not isinstance(counts, dict):
            counts = {"added": 0, "updated": 0, "deleted": 0}
        return {key: int(counts.get(key, 0)) for key in ("added", "updated", "deleted")}


def run(trigger: SyncTrigger, groups: list[GroupEntry]) -> int:
    """Sync every group in order. Returns the number of groups that failed."""
    failures = 0
    for entry in groups:
        try:
            counts = trigger.sync_group(entry)
        except SyncFailedError as exc:
            failures += 1
            print(f"[error] {exc}")
            continue
        print(
            f"[ok] {entry.group_id} added={counts['added']} "
            f"updated={counts['updated']} deleted={counts['deleted']}"
        )
    return failures


def load_groups(groups_file: str | None) -> list[GroupEntry] | None:
    """Load groups from a file, then the environment. None means discover from the server."""
    if groups_file:
        return parse_groups(Path(groups_file).read_text(encoding="utf-8"))
    raw = os.environ.get(GROUPS_ENV)
    if raw:
        return parse_groups(raw)
    return None


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="board-mirror-cron",
        description="Trigger board mirror syncs for all configured groups",
    )
    parser.add_argument("--server", "-s", required=True, help="Board mirror server URL")
    parser.add_argument(
        "--allow-insecure-http",
        action="store_true",
        help="Allow http:// server URLs for non-localhost hosts",
    )
    parser.add_argument(
        "--groups",
        "-g",
        help=f"JSON file listing groups (default: ${GROUPS_ENV}, then server mappings)",
    )
    parser.add_argument("--token", help=f"API token (default: ${TOKEN_ENV})")
    args = parser.parse_args()

    try:
        server_url = validate_server_url(args.server, args.allow_insecure_http)
        groups = load_groups(args.groups)
    except (ValueError, OSError) as exc:
        print(f"Error: {exc}")
        sys.exit(1)

    token = args.token or os.environ.get(TOKEN_ENV)
    with SyncTrigger(server_url, token) as trigger:
        if groups is None:
            try:
                groups = trigger.list_groups()
            except httpx.HTTPError as exc:
                print(f"Error: could not list mappings: {exc}")
                sys.exit(1)
        if not groups:
            print("No groups configured.")
            return
        failures = run(trigger, groups)

    if failures:
        sys.exit(1)


if __name__ == "__main__":
    main()
