"""Browser client — render host and event channel for real pages.

Injects a small script into HTML responses that connects the page to the
duet SSE stream.  It mirrors ``duet.client`` in the browser:

1. Receives ``duet:session`` (session id for posting events back)
2. Applies ``duet:render`` envelopes to ``[data-duet-output=name]`` elements,
   dropping stale freshness tokens and buffering renders for surfaces that
   are not on the page yet
3. Calls ``renderer(payload, ctx)`` registered via ``duet.renderer(ref, fn)``
4. Posts ``ctx.setInput(name, value, mode)`` as event envelopes
5. Shows ``duet:error`` payloads as a dismissable toast
"""

from __future__ import annotations

import json
from dataclasses import replace
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from chirp.http.request import Request
    from chirp.http.response import Response, SSEResponse, StreamingResponse
    from chirp.middleware.protocol import Next

    from duet.config import DuetConfig

    type AnyResponse = Response | StreamingResponse | SSEResponse


# Native EventSource + fetch, no framework dependency.
_CLIENT_SCRIPT = """\
<script data-duet-client>
(function() {
  var STREAM = __STREAM__, EVENT = __EVENT__;
  var renderers = {}, tokens = {}, buffered = {}, rendered = {}, busy = {}, parked = {};
  var sessionId = null;
  var duet = window.duet = window.duet || {};
  duet.renderer = function(ref, fn) { renderers[ref] = fn; };
  duet.mount = function(name) { var m = buffered[name]; delete buffered[name]; if (m) apply(m); };
  function surface(name) {
    return document.querySelector('[data-duet-output="' + name + '"]');
  }
  function setInput(name, value, mode) {
    if (!sessionId) {
      _showError({type: 'DeliveryError', name: name, message: 'no session connected'});
      return false;
    }
    var env = JSON.stringify({type: 'event', name: name,
      deliveryMode: mode || 'VALUE', payload: value});
    var body = new FormData();
    body.append('envelope', env);
    body.append('session', sessionId);
    fetch(EVENT, {method: 'POST', body: body}).then(function(resp) {
      if (!resp.ok) _showError({type: 'DeliveryError', name: name,
        message: 'event rejected: HTTP ' + resp.status});
    }).catch(function(err) {
      _showError({type: 'DeliveryError', name: name, message: 'event not delivered: ' + err});
    });
    return true;
  }
  function invoke(m, el) {
    var fn = renderers[m.rendererRef];
    if (!fn) { _showError({type: 'ScriptInvocationError', message: m.name + ': no renderer ' + m.rendererRef}); return; }
    var ctx = {width: el.clientWidth || m.dimensions.width,
      height: el.clientHeight || m.dimensions.height,
      container: el, initialized: !!rendered[m.name], options: m.options || {},
      setInput: setInput};
    try { fn(m.payload, ctx); rendered[m.name] = true; }
    catch (err) { _showError({type: 'ScriptInvocationError', message: m.name + ': ' + err}); }
  }
  function apply(m) {
    var last = tokens[m.name] || 0;
    if (m.freshnessToken < last) return;
    var el = surface(m.name);
    if (!el) {
      var w = buffered[m.name];
      if (!w || w.freshnessToken <= m.freshnessToken) buffered[m.name] = m;
      return;
    }
    if (busy[m.name]) { parked[m.name] = m; return; }
    busy[m.name] = true;
    try {
      tokens[m.name] = m.freshnessToken;
      invoke(m, el);
      while (parked[m.name]) {
        var p = parked[m.name]; delete parked[m.name];
        if (p.freshnessToken < tokens[m.name]) continue;
        tokens[m.name] = p.freshnessToken;
        invoke(p, el);
      }
    } finally { busy[m.name] = false; }
  }
  var src = new EventSource(STREAM);
  src.addEventListener('duet:session', function(e) {
    try { sessionId = JSON.parse(e.data).session; } catch(x) {}
  });
  src.addEventListener('duet:render', function(e) {
    try { apply(JSON.parse(e.data)); } catch(x) {
      _showError({type: 'ProtocolError', message: 'bad render envelope: ' + x});
    }
  });
  src.addEventListener('duet:error', function(e) {
    try { _showError(JSON.parse(e.data)); } catch(x) {}
  });
  function _showError(d) {
    _dismissError();
    var el = document.createElement('div');
    el.id = 'duet-error-toast';
    el.style.cssText = 'position:fixed;bottom:1rem;right:1rem;max-width:480px;'
      + 'background:#2d1010;border:1px solid #e74c3c;border-radius:8px;'
      + 'padding:1rem 1.25rem;font-family:ui-monospace,monospace;font-size:0.85rem;'
      + 'color:#f0a0a0;z-index:99999;line-height:1.5;word-break:break-word';
    var title = document.createElement('strong');
    title.style.cssText = 'display:block;color:#e74c3c;margin-bottom:0.25rem';
    title.textContent = d.type || 'Error';
    var msg = document.createElement('div');
    msg.textContent = (d.name ? d.name + ': ' : '') + (d.message || '');
    var close = document.createElement('button');
    close.textContent = 'Dismiss';
    close.onclick = _dismissError;
    el.appendChild(title);
    el.appendChild(msg);
    el.appendChild(close);
    document.body.appendChild(el);
  }
  function _dismissError() {
    var old = document.getElementById('duet-error-toast');
    if (old) old.remove();
  }
})();
</script>
"""


def client_script(config: DuetConfig) -> str:
    """Return the ``<script>`` block wired to *config*'s endpoints."""
    return (
        _CLIENT_SCRIPT
        .replace("__STREAM__", json.dumps(config.stream_path))
        .replace("__EVENT__", json.dumps(config.event_path))
    )


def inject_script(body: str, script: str) -> str:
    """Insert *script* before ``</body>`` (or ``</html>``, or at the end)."""
    if "</body>" in body:
        return body.replace("</body>", script + "</body>", 1)
    if "</html>" in body:
        return body.replace("</html>", script + "</html>", 1)
    return body + script


def client_middleware(config: DuetConfig) -> Any:
    """Build a Chirp middleware that injects the client into HTML responses.

    Only modifies responses with ``text/html`` content type.  Streaming and
    SSE responses pass through untouched.

    """
    script = client_script(config)

    async def duet_client_middleware(request: Request, next: Next) -> AnyResponse:
        response = await next(request)

        if not hasattr(response, "body") or not hasattr(response, "content_type"):
            return response

        if "text/html" not in response.content_type:
            return response

        body = response.body
        if isinstance(body, bytes):
            body = body.decode("utf-8")

        return replace(response, body=inject_script(body, script))

    return duet_client_middleware
