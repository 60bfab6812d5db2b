from __future__ import annotations

# python imports:
from typing import Type

# cgpro_cli imports:
import cli_proto as proto
import cli_sync
from event_handling import close_if_oserror
from transport_socket import SocketTransport as Transport

class Client ( cli_sync.Client ):
	@classmethod
	def connect ( cls: Type[Client],
		hostname: str,
		port: int,
		uid: str,
		pwd: str,
		apop: bool = False,
		timeout: float = proto.DEFAULT_TIMEOUT,
		tls: bool = False,
	) -> Client:
		''' returns a session that is logged in and in INLINE mode '''
		with close_if_oserror():
			transport = Transport.connect ( hostname, port, tls, timeout )
		self = cls ( transport, tls, hostname )
		self.start ( uid, pwd, apop )
		return self
