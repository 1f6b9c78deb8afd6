from reportgen.features.reports.models import Report  # noqa: F401
