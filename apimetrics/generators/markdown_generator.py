"""Generate metrics summaries in Markdown using Jinja2 templates."""

from __future__ import annotations

import os
from typing import Optional, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..config import MetricsConfig
from ..schema import MetricsReport, WebhookReport
from ..telemetry import get_logger

_logger = get_logger(__name__)

_TEMPLATES = {
    MetricsReport: "metrics_report.md.j2",
    WebhookReport: "webhook_report.md.j2",
}


class MarkdownGenerator:
    """Render metrics reports as Markdown via Jinja2.

    Args:
        config: Engine configuration (for ``templates_dir``).
    """

    def __init__(self, config: Optional[MetricsConfig] = None) -> None:
        self.config = config or MetricsConfig()
        self._env = Environment(
            loader=FileSystemLoader(self.config.templates_dir),
            autoescape=select_autoescape([]),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def generate(self, report: Union[MetricsReport, WebhookReport]) -> str:
        """Render *report* as a Markdown string.

        Raises:
            FileNotFoundError: If the template file is missing.
        """
        template_name = _TEMPLATES[type(report)]
        template_path = os.path.join(self.config.templates_dir, template_name)
        if not os.path.isfile(template_path):
            raise FileNotFoundError(f"Template not found: {template_path}")
        template = self._env.get_template(template_name)
        return template.render(report=report, dimensions=report.dimensions())

    def save(self, report: Union[MetricsReport, WebhookReport], path: str) -> str:
        """Render and save the Markdown report to *path*.

        Returns:
            The absolute path where the file was saved.
        """
        content = self.generate(report)
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(content)
        _logger.info("Markdown report saved", extra={"path": path})
        return os.path.abspath(path)
