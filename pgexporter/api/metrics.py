"""HTTP server exposing collected metrics for scraping."""

import traceback
from typing import Optional

from aiohttp import web

from pgexporter.core.logging import logger
from pgexporter.core.protocols.metrics_renderer import MetricsRenderer

_INDEX = """<html>
<head><title>PostgreSQL Exporter</title></head>
<body>
<h1>PostgreSQL Exporter</h1>
<p><a href="/metrics">Metrics</a></p>
</body>
</html>
"""


class MetricsServer:
    """aiohttp server with a ``/metrics`` endpoint and a landing page.

    Collection failures never fail a scrape: metrics contain their own
    errors, so the handler only reports an error if rendering itself breaks.
    """

    def __init__(self, renderer: MetricsRenderer, port: int, host: str = "0.0.0.0") -> None:
        self._renderer = renderer
        self._port = port
        self._host = host
        self.app = web.Application()
        self.app.add_routes(
            [
                web.get("/", self.index_handler),
                web.get("/metrics", self.metrics_handler),
            ]
        )
        self.runner: Optional[web.AppRunner] = None
        self.site: Optional[web.TCPSite] = None
        self.logger = logger.with_context(context_base="api", operation="metrics_server")

    async def index_handler(self, request: web.Request) -> web.Response:
        return web.Response(text=_INDEX, content_type="text/html")

    async def metrics_handler(self, request: web.Request) -> web.Response:
        """Render every metric on each scrape."""
        try:
            body = await self._renderer.generate()
        except Exception as e:
            self.logger.error(f"Error rendering metrics: {e}\n{traceback.format_exc()}")
            return web.Response(text="Error\n", status=500)
        return web.Response(body=body, headers={"Content-Type": self._renderer.content_type})

    async def start(self) -> None:
        """Start listening; returns once the socket is bound."""
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        self.site = web.TCPSite(self.runner, host=self._host, port=self._port)
        await self.site.start()
        self.logger.info(f"Metrics server listening on http://{self._host}:{self._port}/metrics")

    async def stop(self) -> None:
        """Stops the server gracefully."""
        if self.site:
            await self.site.stop()
        if self.runner:
            await self.runner.cleanup()
