"""Generate machine-readable JSON documents from metrics reports."""

from __future__ import annotations

import json
import os
from typing import Union

from ..schema import MetricsReport, WebhookReport
from ..telemetry import get_logger

_logger = get_logger(__name__)


class JSONGenerator:
    """Serialize :class:`MetricsReport` or :class:`WebhookReport` to JSON.

    Args:
        indent: Indentation passed to :func:`json.dumps`.
    """

    def __init__(self, indent: int = 2) -> None:
        self.indent = indent

    def generate(self, report: Union[MetricsReport, WebhookReport]) -> str:
        """Convert *report* to a pretty-printed JSON string.

        Computed fields (``total``, ``success_rate``) are included.
        """
        data = report.model_dump(mode="json")
        return json.dumps(data, indent=self.indent)

    def save(self, report: Union[MetricsReport, WebhookReport], path: str) -> str:
        """Serialize and save the JSON report to *path*.

        Returns:
            Absolute path of saved file.
        """
        content = self.generate(report)
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(content)
        _logger.info("JSON report saved", extra={"path": path})
        return os.path.abspath(path)
