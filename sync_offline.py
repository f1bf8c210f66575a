"""
Push exams that were submitted offline to Supabase.

Run: python sync_offline.py           # sync queued exams, keep the ones that fail
     python sync_offline.py --list    # show what is queued
"""
import argparse
import logging
import sys

import engine
from edventure import config
from edventure.connectivity import ConnectivityMonitor
from edventure.offline_queue import OfflineExamQueue
from edventure.storage import JsonFileStore


def build_queue() -> OfflineExamQueue:
    return OfflineExamQueue(JsonFileStore(engine.OFFLINE_NAMESPACE, config.STORE_DIR))


def list_queue(queue: OfflineExamQueue) -> int:
    pending = queue.pending()
    if not pending:
        print("Offline queue is empty")
        return 0
    print(f"{len(pending)} exam(s) waiting to sync:")
    for entry in pending:
        record = entry.record
        print(
            f"  {record.id}  student={record.student_id}  {record.subject}/{record.mode.value}  "
            f"score={record.score}%  +{entry.xp_gained} XP  queued {entry.queued_at:%Y-%m-%d %H:%M}"
        )
    return len(pending)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Sync offline exam submissions to Supabase.")
    parser.add_argument("--list", action="store_true", help="List queued exams without syncing")
    args = parser.parse_args(argv)

    logging.basicConfig(level=config.LOG_LEVEL, format="%(levelname)s: %(message)s")
    queue = build_queue()

    if args.list:
        list_queue(queue)
        return 0

    connectivity = ConnectivityMonitor()
    if not connectivity.is_online():
        print("Backend unreachable; nothing synced. Check SUPABASE_URL and your connection.")
        return 1

    from edventure.database import DatabaseClient
    from edventure.submission import SubmissionPipeline

    pipeline = SubmissionPipeline(DatabaseClient(), queue, connectivity)
    result = pipeline.sync_offline()
    print(f"Synced {result['synced']}, failed {result['failed']}, remaining {result['remaining']}")
    return 0 if result["failed"] == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
