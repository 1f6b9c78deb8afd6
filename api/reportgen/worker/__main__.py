import logging
import signal
import sys
import threading

from reportgen.core.aws import create_s3_client, create_sqs_client
from reportgen.core.config import settings
from reportgen.core.logging import configure_logging
from reportgen.features.reports.errors import QueueUnavailableError
from reportgen.features.reports.queue import SqsQueueClient
from reportgen.features.reports.storage import S3ArtifactStore
from reportgen.worker.pool import ReportWorkerPool
from reportgen.worker.tasks import ReportBuildTask

logger = logging.getLogger("reportgen.worker")


def main() -> int:
    configure_logging(settings.log_level, settings.log_json)

    stop_event = threading.Event()

    def _request_stop(signum, _frame) -> None:
        logger.info("Stop requested", extra={"signal": signal.Signals(signum).name})
        stop_event.set()

    signal.signal(signal.SIGINT, _request_stop)
    signal.signal(signal.SIGTERM, _request_stop)

    # The long poll must finish before botocore's read timeout fires.
    sqs = create_sqs_client(settings, read_timeout=settings.receive_wait_seconds + 10)
    artifacts = S3ArtifactStore(create_s3_client(settings), settings.s3_bucket)
    pool = ReportWorkerPool(
        SqsQueueClient(sqs, settings.sqs_queue),
        ReportBuildTask(settings, artifacts),
        concurrency=settings.worker_concurrency,
        job_timeout=settings.job_timeout_seconds,
        wait_seconds=settings.receive_wait_seconds,
        delete_malformed=settings.delete_malformed_messages,
    )

    try:
        pool.run(stop_event)
    except QueueUnavailableError:
        logger.exception("Cannot start report worker")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
