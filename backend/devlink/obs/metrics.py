"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

REQUEST_COUNTER = Counter(
	"devlink_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"devlink_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

SOCKET_CLIENTS = Gauge(
	"devlink_socketio_clients",
	"Active Socket.IO clients per namespace",
	["namespace"],
)

SOCKET_EVENTS = Counter(
	"devlink_socketio_events_total",
	"Socket.IO events handled per namespace",
	["namespace", "event"],
)

SOCKET_HANDSHAKE_REJECTS = Counter(
	"devlink_socketio_handshake_rejects_total",
	"Socket.IO handshakes refused",
	["reason"],
)

CHAT_SEND = Counter(
	"devlink_chat_send_total",
	"Chat send attempts by outcome",
	["result"],
)

CHAT_NOTIFICATIONS = Counter(
	"devlink_chat_notifications_total",
	"Message notifications routed to idle peers",
)

CHAT_HISTORY_LOADS = Counter(
	"devlink_chat_history_loads_total",
	"Chat history replays by outcome",
	["result"],
)

PRESENCE_ONLINE = Gauge(
	"devlink_chat_presence_online",
	"Users with a registered chat session in this process",
)

DEPENDENCY_UP = Gauge(
	"devlink_dependency_up",
	"Dependency health (1 up, 0 down)",
	["dependency"],
)

DEPENDENCY_LATENCY = Histogram(
	"devlink_dependency_latency_seconds",
	"Dependency probe latency",
	["dependency"],
	buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5),
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def socket_connected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).inc()


def socket_disconnected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).dec()


def socket_event(namespace: str, event: str) -> None:
	SOCKET_EVENTS.labels(namespace=namespace, event=event).inc()


def inc_handshake_reject(reason: str) -> None:
	SOCKET_HANDSHAKE_REJECTS.labels(reason=reason).inc()


def inc_chat_send(result: str) -> None:
	CHAT_SEND.labels(result=result).inc()


def inc_chat_notification() -> None:
	CHAT_NOTIFICATIONS.inc()


def inc_chat_history(result: str) -> None:
	CHAT_HISTORY_LOADS.labels(result=result).inc()


def presence_online(count: int) -> None:
	PRESENCE_ONLINE.set(float(count))


def mark_dependency(name: str, ok: bool, *, latency_seconds: float | None = None) -> None:
	DEPENDENCY_UP.labels(dependency=name).set(1.0 if ok else 0.0)
	if latency_seconds is not None:
		DEPENDENCY_LATENCY.labels(dependency=name).observe(latency_seconds)
