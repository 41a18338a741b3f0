"""HTML pages served by the API: index, permit list and error view."""

import base64
from html import escape
from typing import Optional

from models import Permit

PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>
  body {{ font-family: -apple-system, BlinkMacSystemFont, sans-serif; margin: 2rem; }}
  table {{ border-collapse: collapse; margin-bottom: 1rem; }}
  th, td {{ border: 1px solid #ccc; padding: 0.3rem 0.6rem; text-align: left; }}
  #log {{ background: #111; color: #ddd; padding: 0.5rem; height: 14rem; overflow-y: auto;
          font-family: monospace; white-space: pre-wrap; }}
  .error {{ color: #b00; }}
  img.snapshot {{ max-width: 100%; border: 1px solid #ccc; }}
</style>
</head>
<body>
<h1>{title}</h1>
{body}
</body>
</html>
"""

INDEX_BODY = """
<p>Portal: <code>{base_url}</code></p>
<button id="load">Load permits</button>
<div id="result"></div>
<h2>Progress</h2>
<div id="log"></div>
<div id="screenshots"></div>
<script>
const sessionId = Math.random().toString(36).slice(2, 10);
const log = document.getElementById('log');
const events = new EventSource('/events/' + sessionId);
events.onmessage = (e) => {{
  log.textContent += JSON.parse(e.data).log + '\\n';
  log.scrollTop = log.scrollHeight;
}};
events.addEventListener('screenshot', (e) => {{
  const img = document.createElement('img');
  img.className = 'snapshot';
  img.src = 'data:image/png;base64,' + e.data;
  document.getElementById('screenshots').appendChild(img);
}});

document.getElementById('load').onclick = async () => {{
  const resp = await fetch('/dashboard?session_id=' + sessionId);
  document.getElementById('result').innerHTML = await resp.text();
  bindUpdateButtons();
}};

function bindUpdateButtons() {{
  document.querySelectorAll('form.update-plate').forEach((form) => {{
    form.onsubmit = async (e) => {{
      e.preventDefault();
      const body = {{
        detailPageUrl: form.dataset.detailPageUrl,
        currentPlate: form.dataset.currentPlate,
        plateToActivate: form.plateToActivate.value,
      }};
      const resp = await fetch('/update-plate?session_id=' + sessionId, {{
        method: 'POST',
        headers: {{ 'Content-Type': 'application/json' }},
        body: JSON.stringify(body),
      }});
      const result = await resp.json();
      log.textContent += (result.success ? 'Updated' : 'Failed: ' + result.message) + '\\n';
    }};
  }});
}}
</script>
"""


def render_index(base_url: str) -> str:
    return PAGE_TEMPLATE.format(
        title="PermitInfo Plate Manager",
        body=INDEX_BODY.format(base_url=escape(base_url)),
    )


def _current_plate(permit: Permit) -> str:
    """Best guess at the active plate: the vehicle summary starts with it."""
    for plate in permit.available_plates:
        if plate.plate and plate.plate in permit.vehicle:
            return plate.plate
    return ""


def _permit_section(permit: Permit) -> str:
    rows = "".join(
        f"<tr><td>{escape(p.plate)}</td><td>{escape(p.name)}</td></tr>"
        for p in permit.available_plates
    )
    options = "".join(
        f'<option value="{escape(p.plate)}">{escape(p.plate)}</option>'
        for p in permit.available_plates
    )
    form = ""
    if permit.detail_page_url and permit.available_plates:
        form = (
            f'<form class="update-plate" data-detail-page-url="{escape(permit.detail_page_url)}" '
            f'data-current-plate="{escape(_current_plate(permit))}">'
            f'<select name="plateToActivate">{options}</select> '
            f'<button type="submit">Activate</button></form>'
        )
    return (
        f"<h3>Permit {escape(permit.permit_no)} &middot; {escape(permit.status)}</h3>"
        f"<p>{escape(permit.description)}<br>"
        f"Valid {escape(permit.valid_from)} &ndash; {escape(permit.valid_to)}<br>"
        f"Holder: {escape(permit.holder)}<br>Vehicle: {escape(permit.vehicle)}</p>"
        f"<table><tr><th>Plate</th><th>Name</th></tr>{rows}</table>"
        f"{form}"
    )


def render_permits(permits: list[Permit]) -> str:
    """Fragment listing active permits and their plates."""
    if not permits:
        return "<p>No active permits.</p>"
    return "".join(_permit_section(p) for p in permits)


def render_error(message: str, snapshot: Optional[bytes] = None) -> str:
    image = ""
    if snapshot:
        encoded = base64.b64encode(snapshot).decode("ascii")
        image = f'<img class="snapshot" alt="Diagnostic snapshot" src="data:image/png;base64,{encoded}">'
    return f'<p class="error">Error: {escape(message)}</p>{image}'
