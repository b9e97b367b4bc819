from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse

router = APIRouter()

@router.get("/", response_class=HTMLResponse)
def root(request: Request):
    settings = request.app.state.settings
    html = """<!DOCTYPE html>
<html lang='es'>
<head>
<meta charset='utf-8'/>
<meta name='viewport' content='width=device-width, initial-scale=1'/>
<title>__TITLE__ - Estado</title>
<style>
body{font-family:system-ui,sans-serif;margin:2rem;background:#0f172a;color:#e2e8f0}
table{border-collapse:collapse;width:100%}
th,td{padding:6px 10px;border-bottom:1px solid #334155;text-align:left}
.pill{padding:2px 8px;border-radius:10px;font-size:.85em}
.up{background:#059669}.down{background:#e11d48}.degraded{background:#ca8a04}
.bar{display:inline-block;width:4px;height:14px;margin-right:1px}
.muted{color:#94a3b8}
</style>
</head>
<body>
<h1>__TITLE__</h1>
<div class='muted'>Chequeo cada __INTERVAL__s · <span id='lastTs'>esperando datos…</span></div>
<table>
<thead><tr><th>Sitio</th><th>URL</th><th>Estado</th><th>Latencia</th><th>Uptime (__WINDOW__h)</th><th>Historial</th></tr></thead>
<tbody id='tbody'><tr><td colspan='6' class='muted'>Cargando...</td></tr></tbody>
</table>

<script>
function renderRows(data){
  const body = document.getElementById('tbody');
  body.innerHTML='';
  for(const [id, st] of Object.entries(data.sites||{})){
    const last = (st.statuses||[])[0];
    const tr = document.createElement('tr');

    const tdName=document.createElement('td'); tdName.textContent=st.site.name||id; tr.appendChild(tdName);

    const tdUrl=document.createElement('td');
    const a=document.createElement('a'); a.href=st.site.url; a.textContent=st.site.url; a.target='_blank'; tdUrl.appendChild(a);
    tr.appendChild(tdUrl);

    const tdStatus=document.createElement('td');
    const pill=document.createElement('span');
    const cls = !last ? 'down' : (!last.reachable ? 'down' : (st.degraded ? 'degraded' : 'up'));
    pill.className='pill '+cls;
    pill.textContent=last ? last.message : 'sin datos';
    tdStatus.appendChild(pill); tr.appendChild(tdStatus);

    const tdLat=document.createElement('td'); tdLat.textContent=last ? last.latency_ms+' ms' : '-'; tr.appendChild(tdLat);
    const tdUp=document.createElement('td'); tdUp.textContent=st.uptime.toFixed(2)+'%'; tr.appendChild(tdUp);

    // historial: más viejo a la izquierda
    const tdHist=document.createElement('td');
    for(const s of (st.statuses||[]).slice().reverse()){
      const b=document.createElement('span');
      b.className='bar '+(s.reachable ? 'up' : 'down');
      b.title=new Date(s.observed_at).toLocaleString()+' · '+s.message;
      tdHist.appendChild(b);
    }
    tr.appendChild(tdHist);
    body.appendChild(tr);
  }
}

const es = new EventSource('/status');
es.onmessage = (ev)=>{
  const data = JSON.parse(ev.data);
  document.getElementById('lastTs').textContent = 'Actualizado: '+new Date(data.generated_at).toLocaleTimeString();
  renderRows(data);
};
es.addEventListener('error', (ev)=>{
  if(ev.data){ document.getElementById('lastTs').textContent = 'Error: '+JSON.parse(ev.data).detail; }
});
</script>
</body>
</html>"""
    html = html.replace("__TITLE__", settings.APP_TITLE)
    html = html.replace("__INTERVAL__", f"{settings.CHECK_INTERVAL:g}")
    html = html.replace("__WINDOW__", f"{settings.UPTIME_WINDOW_HOURS:g}")
    return HTMLResponse(html)
