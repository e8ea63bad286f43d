"""
Archiver App - Bookmark Snapshot Archival

Responsibilities:
- Scheduled or one-shot execution (APScheduler cron / RUN_ONCE)
- Replay of previously failed URLs from the retry ledger (up to RETRY_CEILING failures)
- Resumable fetching of new bookmarks via the persistent fetch cursor
- Rendering each bookmark with an external command under a hard timeout

Output:
- OUTPUT_FOLDER/<hash>.<ARCHIVE_FORMAT>
- LOG_FOLDER/{archiver.log, archiver.error.log, retries.db, cursor.txt}
"""
