import logging
from dataclasses import dataclass
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

from reportgen.features.reports.errors import QueueTransportError, QueueUnavailableError
from reportgen.features.reports.schemas import ReportJobMessage

logger = logging.getLogger(__name__)

# SQS refuses receive requests above these limits.
MAX_RECEIVE_BATCH = 10
MAX_WAIT_SECONDS = 20


@dataclass(frozen=True)
class QueueMessage:
    message_id: str
    receipt_handle: str
    body: str


class SqsQueueClient:
    """Report job queue backed by SQS.

    The queue URL is looked up lazily by name and cached; the client is
    shared between the receive loop and the worker threads, which boto3
    clients allow.
    """

    def __init__(self, sqs_client, queue_name: str):
        self._sqs = sqs_client
        self._queue_name = queue_name
        self._queue_url: Optional[str] = None

    def resolve_queue_url(self) -> str:
        if self._queue_url is None:
            try:
                response = self._sqs.get_queue_url(QueueName=self._queue_name)
            except (BotoCoreError, ClientError) as exc:
                raise QueueUnavailableError(f"failed to get SQS queue URL for {self._queue_name}: {exc}") from exc
            self._queue_url = response["QueueUrl"]
        return self._queue_url

    def receive_batch(self, max_messages: int, wait_seconds: int) -> list[QueueMessage]:
        queue_url = self.resolve_queue_url()
        try:
            response = self._sqs.receive_message(
                QueueUrl=queue_url,
                MaxNumberOfMessages=max(1, min(max_messages, MAX_RECEIVE_BATCH)),
                WaitTimeSeconds=max(0, min(wait_seconds, MAX_WAIT_SECONDS)),
            )
        except (BotoCoreError, ClientError) as exc:
            raise QueueTransportError(f"failed to receive messages: {exc}") from exc
        return [
            QueueMessage(
                message_id=item.get("MessageId", ""),
                receipt_handle=item["ReceiptHandle"],
                body=item.get("Body") or "",
            )
            for item in response.get("Messages", [])
        ]

    def delete_message(self, receipt_handle: str) -> None:
        queue_url = self.resolve_queue_url()
        try:
            self._sqs.delete_message(QueueUrl=queue_url, ReceiptHandle=receipt_handle)
        except (BotoCoreError, ClientError) as exc:
            raise QueueTransportError(f"failed to delete message from SQS: {exc}") from exc

    def send_job(self, job: ReportJobMessage) -> str:
        queue_url = self.resolve_queue_url()
        try:
            response = self._sqs.send_message(
                QueueUrl=queue_url,
                MessageBody=job.model_dump_json(by_alias=True),
            )
        except (BotoCoreError, ClientError) as exc:
            raise QueueTransportError(f"failed to enqueue report {job.report_id}: {exc}") from exc
        logger.info("Enqueued report job", extra={"report_id": str(job.report_id), "message_id": response.get("MessageId")})
        return response.get("MessageId", "")
