"""
Example torrent lifecycle callback.

To use callbacks:

1. Set CALLBACK_DIR in your environment or .env file to point to a directory
   containing your callback scripts:

   export CALLBACK_DIR="/path/to/callbacks"

2. Create Python files in that directory, each defining one or more classes
   that inherit from TorrentCallback.

3. The CallbackManager loads and instantiates all callback classes when the
   server starts.

Example usage:
    cp examples/example_callback.py /path/to/callbacks/
    export CALLBACK_DIR="/path/to/callbacks"
    torrent-bridge-server

Note that on_completed is part of the completion action: if it raises, the
torrent is not marked as cleaned. Use it for work that must succeed, and keep
best-effort notifications in the other hooks or swallow their errors.
"""

from torrent_bridge.callbacks import TorrentCallback, TorrentInfo


class LoggingCallback(TorrentCallback):
    """Prints every lifecycle event with what TorrentInfo carries."""

    async def on_added(self, torrent_info: TorrentInfo) -> None:
        print(f"[ADDED] {torrent_info.name}")
        print(f"  Key: {torrent_info.stable_id}")
        print(f"  Save path: {torrent_info.save_path}")
        print(f"  Category: {torrent_info.category or '-'}")

    async def on_started(self, torrent_info: TorrentInfo) -> None:
        print(f"[STARTED] {torrent_info.name} ({torrent_info.progress * 100:.1f}%)")

    async def on_stopped(self, torrent_info: TorrentInfo) -> None:
        print(f"[STOPPED] {torrent_info.name} ({torrent_info.progress * 100:.1f}%)")

    async def on_completed(self, torrent_info: TorrentInfo) -> None:
        print(f"[COMPLETED] {torrent_info.name}")
        print(f"  Size: {torrent_info.total_bytes / 1024 / 1024:.2f} MB")
        if torrent_info.metadata:
            meta = torrent_info.metadata
            print(f"  Matched: {meta.title} ({meta.year}) {meta.display_suffix or ''}")

    async def on_removed(self, torrent_info: TorrentInfo) -> None:
        print(f"[REMOVED] {torrent_info.name}")


class WebhookCallback(TorrentCallback):
    """
    Posts completions to a webhook.

    Failures are logged rather than raised so a flaky endpoint never blocks
    the cleaned marker.
    """

    WEBHOOK_URL = ""

    async def on_completed(self, torrent_info: TorrentInfo) -> None:
        if not self.WEBHOOK_URL:
            return

        import httpx
        from torrent_bridge.logger import logger

        try:
            async with httpx.AsyncClient(timeout=10) as client:
                await client.post(self.WEBHOOK_URL, json={
                    "event": "torrent_completed",
                    **torrent_info.to_dict(),
                })
        except httpx.HTTPError as e:
            logger.warning(f"Webhook failed for {torrent_info.name}: {e}")
