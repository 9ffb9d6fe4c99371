"""Command line entrypoint for running Outfitly locally."""

import argparse
import contextlib
import json
import signal
import sys
import threading
from typing import Iterator, List, Optional

from outfitly_app.app import OutfitlyApp
from outfitly_app.errors import OutfitlyError


def _dump(payload) -> None:
    print(json.dumps(payload, indent=2))


@contextlib.contextmanager
def interrupt_cancels() -> Iterator[threading.Event]:
    """Turn Ctrl-C into a cancel event so an in-flight composition stops cleanly."""

    cancel_event = threading.Event()
    if threading.current_thread() is not threading.main_thread():
        yield cancel_event
        return
    previous = signal.signal(signal.SIGINT, lambda *_: cancel_event.set())
    try:
        yield cancel_event
    finally:
        signal.signal(signal.SIGINT, previous)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Outfitly closet and outfit generator")
    commands = parser.add_subparsers(dest="command", required=True)

    analyze = commands.add_parser("analyze", help="Describe a clothing photo and add it to the closet.")
    analyze.add_argument("image", help="Path, http(s) URL or data URL of the clothing photo.")

    commands.add_parser("generate", help="Pick an outfit from the closet and render it.")
    commands.add_parser("closet", help="List closet items, newest first.")
    commands.add_parser("outfits", help="List saved outfits, newest first.")

    photo = commands.add_parser("reference-photo", help="Set or clear the personal model photo.")
    photo.add_argument("image", nargs="?", help="Photo to use; omit with --clear.")
    photo.add_argument("--clear", action="store_true", help="Remove the stored photo.")
    return parser


def main(argv: Optional[List[str]] = None, app: Optional[OutfitlyApp] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        app = app or OutfitlyApp()
        if args.command == "analyze":
            _dump(app.analyze_item(args.image).to_dict())
        elif args.command == "generate":
            with interrupt_cancels() as cancel_event:
                outfit = app.generate_outfit(cancel_event=cancel_event)
            _dump(
                {
                    "id": outfit.id,
                    "items": [item.id for item in outfit.selected_items],
                    "description": outfit.selection_result.outfit_description,
                    "final_image": outfit.final_image,
                }
            )
        elif args.command == "closet":
            _dump([{"id": item.id, "description": item.description} for item in app.closet()])
        elif args.command == "outfits":
            _dump([{"id": outfit.id, "created_at": outfit.created_at.isoformat()} for outfit in app.outfits()])
        elif args.command == "reference-photo":
            if args.clear:
                app.clear_reference_photo()
                print("Reference photo cleared")
            elif args.image:
                print(f"Reference photo set to {app.set_reference_photo(args.image)}")
            else:
                print("Provide an image or --clear", file=sys.stderr)
                return 2
    except (OutfitlyError, FileNotFoundError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
