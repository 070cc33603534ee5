"""
Prometheus metrics shared by the API and the background tasks
"""

from prometheus_client import Counter, Histogram, Gauge

REQUEST_COUNT = Counter('http_requests_total', 'Total HTTP requests', ['method', 'endpoint', 'status'])
REQUEST_DURATION = Histogram('http_request_duration_seconds', 'HTTP request duration', ['method', 'endpoint'])
ACTIVE_CONNECTIONS = Gauge('http_active_connections', 'Number of active HTTP connections')
SETTLEMENT_COUNT = Counter('contest_settlements_total', 'Total contest settlements', ['status'])
PAYOUT_COUNT = Counter('withdrawal_payouts_total', 'Total withdrawal payouts', ['status'])
ORDER_COUNT = Counter('contest_orders_total', 'Total contest orders', ['status'])
