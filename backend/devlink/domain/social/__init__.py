"""Social graph exports used by chat authorization."""

from .edges import ConnectionEdgeStore, InMemoryConnectionEdgeStore, PostgresConnectionEdgeStore  # noqa: F401
from .gate import SocialGraphGate  # noqa: F401
from .models import ConnectionEdge, ConnectionStatus  # noqa: F401
