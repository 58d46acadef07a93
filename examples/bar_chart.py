"""Bar chart demo: clicking a bar updates a detail panel.

Run with::

    python examples/bar_chart.py

then open http://127.0.0.1:8000/.
"""

from chirp.http.response import Response

from duet.app import create_server
from duet.config import DuetConfig

PAGE = """\
<!doctype html>
<html>
<body>
  <svg data-duet-output="chart" width="480" height="240"></svg>
  <pre data-duet-output="detail"></pre>
  <script>
  document.addEventListener("DOMContentLoaded", function() {
    duet.renderer("bars", function(values, ctx) {
      var svg = ctx.container, w = ctx.width / values.length;
      svg.innerHTML = "";
      values.forEach(function(v, i) {
        var bar = document.createElementNS("http://www.w3.org/2000/svg", "rect");
        bar.setAttribute("x", i * w + 4);
        bar.setAttribute("y", ctx.height * (1 - v));
        bar.setAttribute("width", w - 8);
        bar.setAttribute("height", ctx.height * v);
        bar.onclick = function() { ctx.setInput("bar_clicked", String(v), "EVENT"); };
        svg.appendChild(bar);
      });
    });
    duet.renderer("detail", function(data, ctx) {
      ctx.container.textContent = "selected: " + data.selected;
    });
  });
  </script>
</body>
</html>
"""


def setup(session):
    """Declare the chart and the panel that follows its clicks."""
    session.output("chart", lambda inputs: [0.3, 0.6, 0.8], renderer="bars")
    session.output(
        "detail",
        lambda inputs: {"selected": inputs.require("bar_clicked")},
        depends_on=("bar_clicked",),
    )


def main() -> None:
    config = DuetConfig(debug=True)
    server = create_server(setup, config)

    @server.app.route("/")
    async def index(request):
        return Response(body=PAGE, content_type="text/html; charset=utf-8")

    server.app.run(host=config.host, port=config.port)


if __name__ == "__main__":
    main()
