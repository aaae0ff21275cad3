"""Chat domain exports."""

from .channels import derive_channel_id
from .container import ChatServices, build_services
from .controller import ChatSessionController
from .sockets import ChatNamespace

__all__ = [
	"ChatNamespace",
	"ChatServices",
	"ChatSessionController",
	"build_services",
	"derive_channel_id",
]
