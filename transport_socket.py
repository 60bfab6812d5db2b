from __future__ import annotations

# python imports:
import logging
import socket
from typing import Optional as Opt, Type

# cgpro_cli imports:
from transport import SyncTransport

logger = logging.getLogger ( __name__ )


class SocketTransport ( SyncTransport ):
	sock: socket.socket

	def __init__ ( self, sock: socket.socket, timeout: Opt[float] = None ) -> None:
		self.sock = sock
		self.timeout = timeout
		if timeout is not None:
			sock.settimeout ( timeout )

	@classmethod
	def connect ( cls: Type[SocketTransport],
		hostname: str,
		port: int,
		tls: bool,
		timeout: Opt[float] = None,
	) -> SocketTransport:
		log = logger.getChild ( 'SocketTransport.connect' )

		for *params, _, address in socket.getaddrinfo ( hostname, port, type = socket.SOCK_STREAM ):
			sock = socket.socket ( *params )
			sock.settimeout ( timeout )
			try:
				sock.connect ( address )
			except OSError as e:
				log.warning ( f'Error connecting to {address=}: {e!r}' )
				sock.close()
				continue
			else:
				self = cls ( sock, timeout )
				if tls:
					try:
						self.starttls_client ( hostname )
					except OSError:
						sock.close()
						raise
				return self
		raise ConnectionError ( f'Unable to connect to {hostname=} {port=}' )

	def read ( self ) -> bytes:
		#log = logger.getChild ( 'SocketTransport.read' )
		return self.sock.recv ( 4096 )

	def write ( self, data: bytes ) -> None:
		#log = logger.getChild ( 'SocketTransport.write' )
		self.sock.sendall ( data )

	def starttls_client ( self, server_hostname: str ) -> None:
		context = self.ssl_context_or_default_client()

		self.sock = context.wrap_socket (
			self.sock,
			server_hostname = server_hostname,
		)

	def close ( self ) -> None:
		#log = logger.getChild ( 'SocketTransport.close' )
		self.sock.close()
