from __future__ import annotations

# python imports:
from typing import Type

# cgpro_cli imports:
import cli_proto as proto
import cli_async
from event_handling import close_if_oserror
from transport_trio import TrioTransport as Transport

class Client ( cli_async.Client ):
	@classmethod
	async def connect ( cls: Type[Client],
		hostname: str,
		port: int,
		uid: str,
		pwd: str,
		apop: bool = False,
		timeout: float = proto.DEFAULT_TIMEOUT,
		tls: bool = False,
	) -> Client:
		with close_if_oserror():
			transport = await Transport.connect ( hostname, port, tls, timeout )
		self = cls ( transport, tls, hostname )
		await self.start ( uid, pwd, apop )
		return self
