from aiohttp import web
from prometheus_client import generate_latest
import logging

from .metrics import PrometheusMetrics
from .monitor import BalanceMonitor

logger = logging.getLogger(__name__)

MONITOR_KEY = web.AppKey('monitor', BalanceMonitor)
METRICS_KEY = web.AppKey('metrics', PrometheusMetrics)


def create_web_app(monitor: BalanceMonitor, metrics: PrometheusMetrics) -> web.Application:
    app = web.Application()
    app[MONITOR_KEY] = monitor
    app[METRICS_KEY] = metrics
    app.router.add_get("/health", health_check_handler)
    app.router.add_get("/metrics", metrics_handler)
    return app


async def metrics_handler(request):
    metrics_data = generate_latest(request.app[METRICS_KEY].registry)
    return web.Response(
        body=metrics_data,
        headers={'Content-Type': 'text/plain; version=0.0.4; charset=utf-8'}
    )


async def health_check_handler(request):
    is_healthy = request.app[MONITOR_KEY].is_healthy()
    request.app[METRICS_KEY].set_health(is_healthy)

    if is_healthy:
        return web.Response(text="healthy", status=200)
    else:
        logger.warning("Health check failed: no completed tick within two loop intervals")
        return web.Response(text="unhealthy", status=500)
