"""
Command-line interface for torrent-bridge.

Usage:
    torrent-bridge list
    torrent-bridge add <magnet> [--save-path DIR] [--category NAME]
    torrent-bridge pause|resume <key>
    torrent-bridge remove <key> [--delete-files]
    torrent-bridge category <key> [NAME]
    torrent-bridge uncleaned <key>
"""

import argparse
import sys

from .client import ClientError, TorrentBridgeClient
from .config import Config


def format_bytes(size):
    """Format bytes as human-readable string."""
    if size is None:
        return "N/A"
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size < 1024:
            return f"{size:.2f} {unit}"
        size /= 1024
    return f"{size:.2f} PB"


def main(argv=None):
    config = Config()
    parser = argparse.ArgumentParser(
        description="torrent-bridge CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s list
  %(prog)s add "magnet:?xt=urn:btih:..." --category movies
  %(prog)s pause 0123456789abcdef0123456789abcdef01234567
  %(prog)s remove 0123456789abcdef0123456789abcdef01234567 --delete-files
""",
    )
    parser.add_argument("--url", default=f"http://{config.HOST}:{config.PORT}", help="API URL")
    parser.add_argument("--username", default=config.RPC_USERNAME or None, help="Basic auth username")
    parser.add_argument("--password", default=config.RPC_PASSWORD or None, help="Basic auth password")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("ping", help="Check the server is up")
    subparsers.add_parser("list", help="List all torrents")

    add_parser = subparsers.add_parser("add", help="Add a magnet link")
    add_parser.add_argument("magnet", help="Magnet URI")
    add_parser.add_argument("--save-path", help="Download directory (default: server DOWNLOAD_DIR)")
    add_parser.add_argument("--category", help="Category label")

    for name, help_text in (("pause", "Pause a torrent"), ("resume", "Resume a torrent")):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("key", help="Torrent key (info hash)")

    rm_parser = subparsers.add_parser("remove", help="Remove a torrent")
    rm_parser.add_argument("key", help="Torrent key (info hash)")
    rm_parser.add_argument("--delete-files", action="store_true", help="Also delete downloaded data")

    cat_parser = subparsers.add_parser("category", help="Set or clear a torrent's category")
    cat_parser.add_argument("key", help="Torrent key (info hash)")
    cat_parser.add_argument("category", nargs="?", help="New category (omit to clear)")

    uncleaned_parser = subparsers.add_parser("uncleaned", help="Allow a completion action to run again")
    uncleaned_parser.add_argument("key", help="Torrent key (info hash)")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return

    auth = (args.username or "", args.password or "") if (args.username or args.password) else None
    client = TorrentBridgeClient(base_url=args.url, auth=auth)

    try:
        if args.command == "ping":
            res = client.ping()
            print(f"{res.get('status', 'unknown').upper()} (version {res.get('version', '?')})")

        elif args.command == "list":
            res = client.list_torrents()
            torrents = res.get("torrents", [])
            print(f"Phase: {res.get('phase', 'unknown')}")
            if not torrents:
                print("No torrents found.")
            else:
                print(f"{'KEY':<12} {'STATE':<8} {'PROGRESS':<10} {'SIZE':<12} {'CATEGORY':<10} {'NAME'}")
                print("-" * 90)
                for t in torrents:
                    key = t.get("stable_id", "")[:12]
                    state = "paused" if t.get("paused") else ("seeding" if t.get("seeding") else "active")
                    progress = f"{t.get('progress', 0) * 100:.1f}%"
                    size = format_bytes(t.get("total_bytes", 0))
                    category = (t.get("category") or "-")[:10]
                    name = (t.get("name") or "Unknown")[:40]
                    print(f"{key:<12} {state:<8} {progress:<10} {size:<12} {category:<10} {name}")

        elif args.command == "add":
            res = client.add_torrent(args.magnet, save_path=args.save_path, category=args.category)
            print(f"{res.get('message', 'Torrent added')}: {res.get('key', '')}")

        elif args.command == "pause":
            print(client.pause_torrent(args.key).get("message", "Torrent paused"))

        elif args.command == "resume":
            print(client.resume_torrent(args.key).get("message", "Torrent resumed"))

        elif args.command == "remove":
            print(client.remove_torrent(args.key, delete_files=args.delete_files).get("message", "Torrent removed"))

        elif args.command == "category":
            res = client.set_category(args.key, args.category)
            print(f"Category: {res.get('category') or '(none)'}")

        elif args.command == "uncleaned":
            print(client.unmark_cleaned(args.key).get("message", "Cleaned mark removed"))

    except ClientError as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
