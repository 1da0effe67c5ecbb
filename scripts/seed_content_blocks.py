#!/usr/bin/env python3
"""Seed homepage content blocks and site settings into the JSON collections.

Existing blocks/settings are never overwritten. Dry run unless --apply is given.
"""

import argparse
import json
import os
import sys
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from services import storage  # noqa: E402
from services.content_blocks import CACHE  # noqa: E402

SEED_FILE = BASE_DIR / "scripts" / "seed_data.json"


def load_seed(path: Path = SEED_FILE) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


def seed_blocks(blocks, apply: bool) -> int:
    added = 0
    for block in blocks:
        label = f"{block['section']}.{block['blockKey']}"
        if storage.content_blocks.find_one(section=block["section"], blockKey=block["blockKey"]):
            print(f"- skip {label} (exists)")
            continue
        if apply:
            storage.content_blocks.create({
                "section": block["section"],
                "blockKey": block["blockKey"],
                "value": block.get("value", ""),
                "valueEn": block.get("valueEn", ""),
                "type": "text",
                "isActive": True,
                "sortOrder": 0,
            })
        print(f"+ {label}")
        added += 1
    if apply and added:
        CACHE.clear()
    return added


def seed_settings(settings, apply: bool) -> int:
    added = 0
    for setting in settings:
        if storage.settings.find_one(key=setting["key"]):
            print(f"- skip {setting['key']} (exists)")
            continue
        if apply:
            storage.settings.create({
                "key": setting["key"],
                "value": setting.get("value", ""),
                "category": setting.get("category") or "general",
            })
        print(f"+ {setting['key']}")
        added += 1
    return added


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--apply", action="store_true", help="write changes (default: dry run)")
    parser.add_argument("--data-folder", help="override DATA_FOLDER")
    args = parser.parse_args(argv)

    if args.data_folder:
        os.environ["DATA_FOLDER"] = args.data_folder
    elif not os.environ.get("DATA_FOLDER"):
        os.environ["DATA_FOLDER"] = str(BASE_DIR / "data")

    seed = load_seed()
    blocks = seed_blocks(seed.get("content_blocks", []), args.apply)
    settings = seed_settings(seed.get("settings", []), args.apply)
    mode = "applied" if args.apply else "dry run"
    print(f"{mode}: {blocks} content blocks, {settings} settings")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
