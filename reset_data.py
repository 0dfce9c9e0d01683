#!/usr/bin/env python3
"""
Reset or replace the registration data of the configured backend.

The backend is selected exactly as the API selects it: MongoDB when
``MONGODB_URI`` is set, otherwise the JSON file at ``DATA_FILE``.

Usage:
    python reset_data.py --reset
    python reset_data.py --replace ./catalog.json
    python reset_data.py --import ./catalog.json

``--reset`` deletes every registration and re-seeds the default
catalog.  ``--replace`` overwrites the catalog (and drops all
registrations); ``--import`` only adds statements with new ids.
"""

import argparse
import json
import sys

from hackathon_registration_api.app.core.config import settings
from hackathon_registration_api.app.core.db import init_storage
from hackathon_registration_api.app.core.exceptions import StorageError
from hackathon_registration_api.app.core.logging_config import setup_logging


def main() -> int:
    ap = argparse.ArgumentParser(description="Reset or replace hackathon registration data.")
    group = ap.add_mutually_exclusive_group(required=True)
    group.add_argument("--reset", action="store_true", help="Delete all data and re-seed the default catalog")
    group.add_argument("--replace", metavar="FILE", help="Overwrite the catalog from a JSON document")
    group.add_argument("--import", dest="import_file", metavar="FILE", help="Add new statements from a JSON document")
    ap.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    args = ap.parse_args()

    setup_logging(settings.log_level)

    if (args.reset or args.replace) and not args.yes:
        answer = input("This deletes all registrations. Continue? [y/N] ")
        if answer.strip().lower() not in {"y", "yes"}:
            print("[!] Aborted.", file=sys.stderr)
            return 1

    try:
        storage = init_storage(settings)
    except StorageError as e:
        print(f"[!] Storage unavailable: {e}", file=sys.stderr)
        return 2

    try:
        if args.reset:
            storage.reset_all()
            print(f"[+] Data reset on {storage.name} backend")
            return 0
        path = args.replace or args.import_file
        with open(path, encoding="utf-8") as f:
            document = json.load(f)
        if args.replace:
            count = storage.replace_from_json(document)
        else:
            count = storage.import_from_json(document)
        if count is None:
            print(f"[!] {path} has no problemStatements list", file=sys.stderr)
            return 1
        print(f"[+] {count} problem statements loaded into {storage.name} backend")
        return 0
    finally:
        storage.close()


if __name__ == "__main__":
    sys.exit(main())
