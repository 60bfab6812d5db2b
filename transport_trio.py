from __future__ import annotations

# python imports:
import logging
import trio # pip install trio
from typing import Optional as Opt, Type

# cgpro_cli imports:
from transport import AsyncTransport

logger = logging.getLogger ( __name__ )


class TrioTransport ( AsyncTransport ):
	happy_eyeballs_delay: float = 0.25 # this is the same as trio's default circa version 0.16.0
	stream: trio.abc.Stream

	def __init__ ( self, stream: trio.abc.Stream, timeout: Opt[float] = None ) -> None:
		self.stream = stream
		self.timeout = timeout

	@classmethod
	async def connect ( cls: Type[TrioTransport],
		hostname: str,
		port: int,
		tls: bool,
		timeout: Opt[float] = None,
	) -> TrioTransport:
		log = logger.getChild ( 'TrioTransport.connect' )
		with trio.move_on_after ( timeout if timeout is not None else float ( 'inf' ) ):
			stream = await trio.open_tcp_stream ( hostname, port,
				happy_eyeballs_delay = cls.happy_eyeballs_delay,
			)
			self = cls ( stream, timeout )
			if tls:
				await self.starttls_client ( hostname )
			return self
		log.warning ( f'timeout connecting to {hostname=} {port=}' )
		raise TimeoutError ( f'Unable to connect to {hostname=} {port=} within {timeout} seconds' )

	async def read ( self ) -> bytes:
		#log = logger.getChild ( 'TrioTransport.read' )
		with trio.move_on_after ( self.deadline() ):
			try:
				return await self.stream.receive_some()
			except ( trio.BrokenResourceError, trio.ClosedResourceError ) as e:
				raise ConnectionError ( repr ( e ) ) from e
		raise TimeoutError ( f'{type(self).__module__}.{type(self).__name__} timeout waiting to read data' )

	async def write ( self, data: bytes ) -> None:
		#log = logger.getChild ( 'TrioTransport.write' )
		with trio.move_on_after ( self.deadline() ):
			try:
				await self.stream.send_all ( data )
			except ( trio.BrokenResourceError, trio.ClosedResourceError ) as e:
				raise ConnectionError ( repr ( e ) ) from e
			return
		raise TimeoutError ( f'{type(self).__module__}.{type(self).__name__} timeout waiting to write {bytes(data)=}' )

	async def starttls_client ( self, server_hostname: str ) -> None:
		context = self.ssl_context_or_default_client()

		self.stream = trio.SSLStream (
			self.stream,
			ssl_context = context,
			server_hostname = server_hostname,
		)

	async def close ( self ) -> None:
		#log = logger.getChild ( 'TrioTransport.close' )
		with trio.move_on_after ( 0.05 ):
			await self.stream.aclose()
