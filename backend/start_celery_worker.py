#!/usr/bin/env python3
"""Start the bulk job Celery worker for containerized environments."""

import sys
import warnings

from celery.bin import worker

# Containers often run as root; the superuser warning is noise there.
warnings.filterwarnings('ignore', category=UserWarning, message='.*superuser privileges.*')
warnings.filterwarnings('ignore', category=RuntimeWarning, message='.*superuser privileges.*')

from bulk_jobs.workers.celery_app import BULK_QUEUE, celery_app  # noqa: E402

if __name__ == '__main__':
    worker_app = worker.worker(app=celery_app)

    sys.argv = [
        'celery',
        '-A', 'bulk_jobs.workers.celery_app.celery_app',
        'worker',
        '--loglevel=info',
        f'--queues={BULK_QUEUE}',
        '--pool=solo',
        '--without-mingle',
        '--without-gossip',
    ] + sys.argv[1:]

    worker_app.run()
