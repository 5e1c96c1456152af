"""HTML report generator — a self-contained page with one card per journey."""

from __future__ import annotations

import base64
import html
import logging
from pathlib import Path

from journeyqa.dashboard.metrics import format_duration
from journeyqa.models.records import Journey, RunRecord, Step
from journeyqa.reporter.regression_detector import Regression

logger = logging.getLogger(__name__)

STATUS_COLORS = {"PASSED": "#22c55e", "FAILED": "#ef4444", "RUNNING": "#3b82f6", "PENDING": "#eab308"}


def _embed_image(path: str) -> str:
    """Read an image file and return a base64 data URI, or empty string on failure."""
    try:
        p = Path(path)
        if not p.exists() or p.stat().st_size == 0:
            return ""
        with open(p, "rb") as f:
            data = base64.b64encode(f.read()).decode()
        return f"data:image/png;base64,{data}"
    except OSError as e:
        logger.debug("Could not embed %s: %s", path, e)
        return ""


def _step_icon(status: str) -> str:
    if status == "PASSED":
        return '<span class="step-icon pass-icon">&#10003;</span>'
    elif status == "FAILED":
        return '<span class="step-icon fail-icon">&#10007;</span>'
    return '<span class="step-icon skip-icon">&#8212;</span>'


def _build_step_row(step: Step) -> str:
    error_html = ""
    if step.error_message:
        error_type = html.escape(step.error_type or "Error")
        error_html = f'<div class="step-error">{error_type}: {html.escape(step.error_message[:300])}</div>'

    api_html = ""
    failed_calls = [c for c in step.api_calls if c.status >= 400]
    if failed_calls:
        api_html = "".join(
            f'<div class="step-api"><code>{html.escape(c.method)} {c.status}</code> {html.escape(c.url)}</div>'
            for c in failed_calls[:5]
        )

    thumb_html = ""
    screenshot = step.metadata.get("screenshot_path")
    if screenshot:
        data_uri = _embed_image(screenshot)
        if data_uri:
            thumb_html = f'<img class="step-thumb" src="{data_uri}" alt="step screenshot" onclick="this.classList.toggle(\'zoomed\')"/>'

    return f'''
    <div class="step-row step-{step.status.lower()}">
      {_step_icon(step.status)}
      <div class="step-content">
        <span class="step-action">{step.step_number}. {html.escape(step.step_name)}</span>
        <span class="step-desc">{html.escape(step.step_category)} &middot; {format_duration(step.duration_ms)}</span>
        {error_html}
        {api_html}
      </div>
      {thumb_html}
    </div>'''


def _build_journey_card(journey: Journey) -> str:
    border_color = STATUS_COLORS.get(journey.status, "#94a3b8")
    card = f'''
    <div class="journey-card" data-status="{journey.status.lower()}">
      <div class="journey-header" style="border-left: 4px solid {border_color};" onclick="this.parentElement.classList.toggle('expanded')">
        <div class="journey-header-left">
          <span class="badge {journey.status.lower()}">{journey.status}</span>
          <strong>{journey.journey_number}. {html.escape(journey.journey_name)}</strong>
          <span class="journey-meta">{journey.passed_steps}/{journey.total_steps} steps &middot; {format_duration(journey.duration_ms)}</span>
        </div>
        <span class="expand-arrow">&#9660;</span>
      </div>
      <div class="journey-body">
    '''
    if journey.journey_description:
        card += f'<div class="journey-description">{html.escape(journey.journey_description)}</div>'
    if journey.failure_reason:
        card += f'<div class="failure-banner"><strong>Failure:</strong> {html.escape(journey.failure_reason)}</div>'
    if journey.steps:
        card += '<div class="section"><h4>Steps</h4>'
        card += "".join(_build_step_row(s) for s in journey.steps)
        card += '</div>'
    card += '</div></div>'
    return card


def generate_html_report(
    record: RunRecord,
    regressions: list[Regression],
    output_path: Path,
) -> None:
    run = record.run

    reg_section = ""
    if regressions:
        items = ""
        for r in regressions:
            reason = f": {html.escape(r.failure_reason)}" if r.failure_reason else ""
            items += f"<li><strong>{html.escape(r.journey_name)}</strong> {r.previous_status} &rarr; {r.current_status}{reason}</li>"
        reg_section = f'<div class="regressions"><h2>&#9888; Regressions ({len(regressions)})</h2><ul>{items}</ul></div>'

    loads = ""
    if record.page_loads:
        rows = "".join(
            f"<tr><td>{html.escape(p['label'])}</td><td>{format_duration(p['load_time_ms'])}</td></tr>"
            for p in record.page_loads
        )
        loads = f'<div class="section"><h4>Page Loads</h4><table class="loads">{rows}</table></div>'

    cards = "".join(_build_journey_card(j) for j in record.journeys)

    report_html = f'''<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>Journey Report &mdash; {html.escape(run.readable_run_id)}</title>
<style>
  :root {{ --pass: #22c55e; --fail: #ef4444; --bg: #f8fafc; --card: white; --border: #e2e8f0; --text: #1e293b; --muted: #64748b; --accent: #6366f1; }}
  * {{ margin: 0; padding: 0; box-sizing: border-box; }}
  body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; background: var(--bg); color: var(--text); line-height: 1.6; padding: 1.5rem; }}
  .container {{ max-width: 1200px; margin: 0 auto; }}
  h1 {{ font-size: 1.8rem; margin-bottom: 0.3rem; }}
  .meta {{ color: var(--muted); margin-bottom: 1.5rem; font-size: 0.9rem; }}
  .summary {{ display: grid; grid-template-columns: repeat(auto-fit, minmax(130px, 1fr)); gap: 0.8rem; margin-bottom: 1.5rem; }}
  .stat {{ background: var(--card); border-radius: 8px; padding: 1rem; box-shadow: 0 1px 3px rgba(0,0,0,0.08); text-align: center; }}
  .stat .value {{ font-size: 1.8rem; font-weight: 700; }}
  .stat .label {{ font-size: 0.8rem; color: var(--muted); }}
  .stat.pass .value {{ color: var(--pass); }}
  .stat.fail .value {{ color: var(--fail); }}
  .badge {{ display: inline-block; padding: 0.15rem 0.55rem; border-radius: 9999px; font-size: 0.7rem; font-weight: 600; }}
  .badge.passed {{ background: #dcfce7; color: #166534; }}
  .badge.failed {{ background: #fecaca; color: #991b1b; }}
  .badge.running {{ background: #dbeafe; color: #1e40af; }}
  .regressions {{ background: #fef2f2; border-radius: 8px; padding: 1.2rem; margin-bottom: 1.5rem; border-left: 4px solid var(--fail); }}
  .regressions h2 {{ color: var(--fail); font-size: 1rem; margin-bottom: 0.4rem; }}
  .regressions ul {{ margin-left: 1.2rem; font-size: 0.9rem; }}
  .journey-card {{ background: var(--card); border-radius: 8px; margin-bottom: 0.6rem; box-shadow: 0 1px 3px rgba(0,0,0,0.08); overflow: hidden; }}
  .journey-header {{ display: flex; justify-content: space-between; align-items: center; padding: 0.7rem 1rem; cursor: pointer; user-select: none; }}
  .journey-header-left {{ display: flex; align-items: center; gap: 0.5rem; flex-wrap: wrap; }}
  .journey-meta {{ font-size: 0.78rem; color: var(--muted); }}
  .expand-arrow {{ color: var(--muted); font-size: 0.7rem; }}
  .journey-body {{ display: none; padding: 0 1rem 1rem 1rem; }}
  .journey-card.expanded .journey-body {{ display: block; }}
  .journey-description {{ color: var(--muted); font-size: 0.88rem; margin-bottom: 0.8rem; }}
  .failure-banner {{ background: #fef2f2; border: 1px solid #fecaca; color: #991b1b; border-radius: 6px; padding: 0.6rem 0.8rem; margin-bottom: 0.8rem; font-size: 0.88rem; }}
  .section {{ margin-bottom: 1rem; }}
  .section h4 {{ font-size: 0.85rem; color: var(--muted); text-transform: uppercase; margin-bottom: 0.4rem; border-bottom: 1px solid var(--border); }}
  .step-row {{ display: flex; align-items: flex-start; gap: 0.5rem; padding: 0.35rem 0; border-bottom: 1px solid #f1f5f9; font-size: 0.85rem; }}
  .step-icon {{ width: 18px; height: 18px; display: inline-flex; align-items: center; justify-content: center; border-radius: 50%; font-size: 0.7rem; flex-shrink: 0; }}
  .pass-icon {{ background: #dcfce7; color: #166534; }}
  .fail-icon {{ background: #fecaca; color: #991b1b; }}
  .skip-icon {{ background: #f1f5f9; color: #64748b; }}
  .step-content {{ flex: 1; }}
  .step-action {{ font-weight: 600; }}
  .step-desc {{ color: var(--muted); font-size: 0.82rem; margin-left: 0.4rem; }}
  .step-error {{ color: var(--fail); font-size: 0.82rem; }}
  .step-api {{ color: var(--muted); font-size: 0.78rem; }}
  .step-thumb {{ width: 80px; height: 50px; object-fit: cover; border-radius: 4px; border: 1px solid var(--border); cursor: pointer; }}
  .step-thumb.zoomed {{ position: fixed; top: 5%; left: 5%; width: 90%; height: 90%; object-fit: contain; z-index: 1000; background: rgba(0,0,0,0.85); }}
  table.loads td {{ padding: 0.2rem 0.8rem 0.2rem 0; font-size: 0.85rem; }}
</style>
</head>
<body>
<div class="container">
  <h1>Journey Report</h1>
  <p class="meta">Run: {html.escape(run.readable_run_id)} &middot; {html.escape(run.environment)} &middot; {html.escape(run.executed_at)} &middot; Duration: {format_duration(run.total_runtime_ms)}</p>

  <div class="summary">
    <div class="stat"><div class="value">{run.total_journeys}</div><div class="label">Journeys</div></div>
    <div class="stat pass"><div class="value">{run.passed_journeys}</div><div class="label">Passed</div></div>
    <div class="stat fail"><div class="value">{run.failed_journeys}</div><div class="label">Failed</div></div>
    <div class="stat"><div class="value">{run.total_steps}</div><div class="label">Steps</div></div>
    <div class="stat"><div class="value">{run.success_rate:.2f}%</div><div class="label">Step Success</div></div>
  </div>

  {reg_section}
  {cards}
  {loads}
</div>
</body>
</html>'''

    with open(output_path, "w", encoding="utf-8") as f:
        f.write(report_html)
