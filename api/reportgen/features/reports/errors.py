"""Failure taxonomy for the report pipeline.

Build failures (subclasses of ``ReportBuildError``) are recorded on the report
and surfaced to the worker. Queue failures never touch report state.
"""

import uuid


class ReportError(Exception):
    pass


class ReportNotFoundError(ReportError):
    def __init__(self, user_id: uuid.UUID, report_id: uuid.UUID):
        super().__init__(f"report {report_id} not found for user {user_id}")
        self.user_id = user_id
        self.report_id = report_id


class ReportBuildError(ReportError):
    pass


class SourceDataError(ReportBuildError):
    pass


class EmptyDatasetError(SourceDataError):
    pass


class ReportEncodingError(ReportBuildError):
    pass


class ArtifactStoreError(ReportBuildError):
    pass


class ReportPersistenceError(ReportBuildError):
    pass


class MalformedJobError(ReportError):
    pass


class QueueTransportError(ReportError):
    pass


class QueueUnavailableError(QueueTransportError):
    pass
