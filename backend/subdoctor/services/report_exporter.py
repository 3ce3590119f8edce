"""Serializes a combined subscription analysis into downloadable documents."""

from __future__ import annotations

import csv
import html
import io
import json
from string import Template
from typing import Any

from pydantic_core import to_jsonable_python

from subdoctor.core.security import EXPORT_FORMATS, validate_export_format
from subdoctor.schemas.analysis import ExportedReport

MIME_TYPES = {
    "csv": "text/csv",
    "html": "text/html",
    "json": "application/json",
    "pdf": "application/pdf",
}

_REPORT_TEMPLATE = Template("""\
<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>Subscription Report #${subscription_id}</title>
<style>
  body { font-family: Helvetica, Arial, sans-serif; font-size: 12px; color: #333; margin: 30px; }
  .header { background: #f0f0f0; padding: 20px; margin-bottom: 20px; }
  .section { margin-bottom: 30px; }
  .discrepancy { border: 1px solid #ddd; padding: 10px; margin: 10px 0; }
  .critical { border-left: 5px solid #dc3545; }
  .high { border-left: 5px solid #fd7e14; }
  .medium { border-left: 5px solid #ffc107; }
  .warning { border-left: 5px solid #17a2b8; }
  .info { border-left: 5px solid #6c757d; }
  table.events { width: 100%; border-collapse: collapse; }
  table.events th { text-align: left; border-bottom: 2px solid #333; padding: 4px 6px; }
  table.events td { padding: 4px 6px; border-bottom: 1px solid #ddd; }
  .status-failed { color: #c5221f; }
  .status-success { color: #137333; }
</style>
</head>
<body>
<div class="header">
  <h1>Subscription Troubleshooter Report</h1>
  <p><strong>Subscription ID:</strong> ${subscription_id}</p>
  <p><strong>Status:</strong> ${status}</p>
  <p><strong>Generated:</strong> ${generated_at}</p>
</div>
<div class="section">
  <h2>Summary</h2>
  <p><strong>Total Discrepancies:</strong> ${discrepancy_count}</p>
  <p><strong>Timeline Events:</strong> ${event_count}</p>
</div>
<div class="section">
  <h2>Discrepancies</h2>
  ${discrepancies}
</div>
<div class="section">
  <h2>Timeline</h2>
  ${timeline}
</div>
</body>
</html>
""")

_DISCREPANCY_TEMPLATE = Template(
    '<div class="discrepancy ${severity}">'
    "<h3>${type}</h3>"
    "<p><strong>Severity:</strong> ${severity}</p>"
    "<p><strong>Description:</strong> ${description}</p>"
    "${recommendation}"
    "</div>"
)

_EVENT_ROW_TEMPLATE = Template(
    "<tr><td>${timestamp}</td><td>${source}</td><td>${event_type}</td>"
    '<td class="status-${status}">${status}</td><td>${description}</td></tr>'
)


def _esc(value: Any) -> str:
    return html.escape("" if value is None else str(value))


def _status_of(report: dict[str, Any]) -> str:
    status = report.get("anatomy", {}).get("summary", {}).get("status", {})
    return str(status.get("value", "")) if isinstance(status, dict) else ""


class ReportExporter:
    """Renders a report produced by the diagnostics service.

    ``report`` holds ``subscription_id``, ``generated_at``, ``anatomy``,
    ``expected``, ``timeline`` and ``discrepancies``; models and datetimes
    are converted to plain JSON values before rendering.
    """

    def export(self, report: dict[str, Any], fmt: str) -> ExportedReport:
        fmt = validate_export_format(fmt, EXPORT_FORMATS)
        data = to_jsonable_python(report)
        renderers = {
            "csv": self.render_csv,
            "html": self.render_html,
            "json": self.render_json,
            "pdf": self.render_pdf,
        }
        return ExportedReport(
            format=fmt,
            filename=f"subscription-report-{data['subscription_id']}.{fmt}",
            content=renderers[fmt](data),
            mime_type=MIME_TYPES[fmt],
        )

    def render_csv(self, data: dict[str, Any]) -> bytes:
        discrepancies = data.get("discrepancies", [])
        events = data.get("timeline", {}).get("events", [])

        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(["Subscription Report", f"Generated: {data.get('generated_at', '')}"])
        writer.writerow([])
        writer.writerow(["Subscription ID", data["subscription_id"]])
        writer.writerow(["Status", _status_of(data)])
        writer.writerow([])
        writer.writerow(["Discrepancies Found", len(discrepancies)])
        writer.writerow(["type", "category", "severity", "description", "recommendation"])
        for finding in discrepancies:
            writer.writerow(
                [
                    finding["type"],
                    finding["category"],
                    finding["severity"],
                    finding["description"],
                    finding.get("recommendation", ""),
                ]
            )
        writer.writerow([])
        writer.writerow(["Timeline Events", len(events)])
        writer.writerow(["timestamp", "source", "event_type", "status", "description"])
        for event in events:
            writer.writerow(
                [
                    event["timestamp"],
                    event["source"],
                    event["event_type"],
                    event["status"],
                    event["description"],
                ]
            )
        return output.getvalue().encode("utf-8")

    def render_html(self, data: dict[str, Any]) -> bytes:
        return self._html(data).encode("utf-8")

    def render_json(self, data: dict[str, Any]) -> bytes:
        return json.dumps(data, indent=2, default=str).encode("utf-8")

    def render_pdf(self, data: dict[str, Any]) -> bytes:
        import weasyprint

        pdf_bytes: bytes = weasyprint.HTML(string=self._html(data)).write_pdf()
        return pdf_bytes

    def _html(self, data: dict[str, Any]) -> str:
        discrepancies = data.get("discrepancies", [])
        events = data.get("timeline", {}).get("events", [])

        if discrepancies:
            discrepancy_html = "\n  ".join(
                _DISCREPANCY_TEMPLATE.substitute(
                    severity=_esc(finding["severity"]),
                    type=_esc(finding["type"]),
                    description=_esc(finding["description"]),
                    recommendation=(
                        f"<p><strong>Recommendation:</strong> {_esc(finding['recommendation'])}</p>"
                        if finding.get("recommendation")
                        else ""
                    ),
                )
                for finding in discrepancies
            )
        else:
            discrepancy_html = "<p>No discrepancies found.</p>"

        if events:
            rows = "\n    ".join(
                _EVENT_ROW_TEMPLATE.substitute(
                    timestamp=_esc(event["timestamp"]),
                    source=_esc(event["source"]),
                    event_type=_esc(event["event_type"]),
                    status=_esc(event["status"]),
                    description=_esc(event["description"]),
                )
                for event in events
            )
            timeline_html = (
                '<table class="events"><thead><tr><th>Date</th><th>Source</th>'
                "<th>Event</th><th>Status</th><th>Description</th></tr></thead>"
                f"<tbody>\n    {rows}\n  </tbody></table>"
            )
        else:
            timeline_html = "<p>No timeline events.</p>"

        return _REPORT_TEMPLATE.substitute(
            subscription_id=_esc(data["subscription_id"]),
            status=_esc(_status_of(data)),
            generated_at=_esc(data.get("generated_at", "")),
            discrepancy_count=len(discrepancies),
            event_count=len(events),
            discrepancies=discrepancy_html,
            timeline=timeline_html,
        )
