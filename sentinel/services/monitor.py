import math
from typing import List

from sentinel.schemas import Snapshot

def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")

def render_metrics(snapshot: Snapshot | None) -> str:
    lines: List[str] = [
        '# HELP service_up 1 si el servicio está UP, 0 si DOWN',
        '# TYPE service_up gauge',
        '# HELP service_latency_ms Latencia de la última lectura en ms',
        '# TYPE service_latency_ms gauge',
        '# HELP service_uptime_pct Uptime en % dentro de la ventana',
        '# TYPE service_uptime_pct gauge',
    ]
    if snapshot is None:
        return "\n".join(lines) + "\n"

    for site_id, st in snapshot.sites.items():
        last = st.statuses[0] if st.statuses else None
        up = 1 if last and last.reachable else 0
        lat = last.latency_ms if last else math.nan
        labels = f'service="{_escape(site_id)}",name="{_escape(st.site.name)}"'
        lines.append(f'service_up{{{labels}}} {up}')
        lines.append(f'service_latency_ms{{{labels}}} {lat}')
        lines.append(f'service_uptime_pct{{{labels}}} {st.uptime}')

    return "\n".join(lines) + "\n"
