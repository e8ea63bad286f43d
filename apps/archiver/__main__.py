"""
Archiver Module Entry Point

Allows execution via: python -m apps.archiver

Delegates to the scheduler for all execution modes (cleanup, RUN_ONCE, scheduled).
"""

from apps.archiver.scheduler import run

if __name__ == "__main__":
    run()
