#!/usr/bin/env python3
"""Remove upload files that no user points at.

Two photo uploads for the same user racing each other can leave one file
behind. Run with --dry-run first to see what would go. Files younger than
--min-age=SECONDS (default 15 minutes) are never touched, so the sweep is
safe to run next to a live app.
"""
import sys

from profile_app import create_app
from profile_app.photos import ORPHAN_MIN_AGE, prune_orphan_photos
from profile_app.store import referenced_photo_paths


def main():
    args = sys.argv[1:]
    dry_run = '--dry-run' in args
    min_age = ORPHAN_MIN_AGE
    for arg in args:
        if arg.startswith('--min-age='):
            min_age = int(arg.split('=', 1)[1])

    app = create_app()
    with app.app_context():
        orphans, removed = prune_orphan_photos(app.config['UPLOAD_FOLDER'], referenced_photo_paths(),
                                               dry_run=dry_run, min_age=min_age)
    for photo_path in orphans:
        print(f"[{'dry-run' if dry_run else 'orphan'}] {photo_path}")
    print(f"Done. Orphans found: {len(orphans)}, deleted: {removed}")


if __name__ == '__main__':
    main()
