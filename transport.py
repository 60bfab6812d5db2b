# python imports:
from abc import ABCMeta, abstractmethod
import logging
import ssl
from typing import Optional as Opt

# cgpro_cli imports:
from util import BYTES

logger = logging.getLogger ( __name__ )


class Transport ( metaclass = ABCMeta ):
	'''
	A byte pipe to the CLI port.

	read() returns whatever bytes arrived, b'' meaning the server hung up.
	read() and write() each get `timeout` seconds. Running out of time or
	losing the connection raises OSError, which the drivers turn into
	base_proto.Closed.
	'''
	ssl_context: Opt[ssl.SSLContext] = None
	timeout: Opt[float] = None # None waits forever

	def deadline ( self ) -> float:
		''' seconds each read or write may take, as a number trio's cancel scopes accept '''
		return self.timeout if self.timeout is not None else float ( 'inf' )

	def ssl_context_or_default_client ( self ) -> ssl.SSLContext:
		if self.ssl_context is None:
			self.ssl_context = ssl.create_default_context ( ssl.Purpose.SERVER_AUTH )
		return self.ssl_context


class SyncTransport ( Transport ):
	@abstractmethod
	def read ( self ) -> bytes:
		cls = type ( self )
		raise NotImplementedError ( f'{cls.__module__}.{cls.__name__}.read()' )

	@abstractmethod
	def write ( self, data: BYTES ) -> None:
		cls = type ( self )
		raise NotImplementedError ( f'{cls.__module__}.{cls.__name__}.write()' )

	@abstractmethod
	def starttls_client ( self, server_hostname: str ) -> None:
		''' wraps the connection in TLS, verifying the certificate against server_hostname '''
		cls = type ( self )
		raise NotImplementedError ( f'{cls.__module__}.{cls.__name__}.starttls_client()' )

	@abstractmethod
	def close ( self ) -> None:
		''' must be safe to call more than once '''
		cls = type ( self )
		raise NotImplementedError ( f'{cls.__module__}.{cls.__name__}.close()' )


class AsyncTransport ( Transport ):
	@abstractmethod
	async def read ( self ) -> bytes:
		cls = type ( self )
		raise NotImplementedError ( f'{cls.__module__}.{cls.__name__}.read()' )

	@abstractmethod
	async def write ( self, data: BYTES ) -> None:
		cls = type ( self )
		raise NotImplementedError ( f'{cls.__module__}.{cls.__name__}.write()' )

	@abstractmethod
	async def starttls_client ( self, server_hostname: str ) -> None:
		cls = type ( self )
		raise NotImplementedError ( f'{cls.__module__}.{cls.__name__}.starttls_client()' )

	@abstractmethod
	async def close ( self ) -> None:
		cls = type ( self )
		raise NotImplementedError ( f'{cls.__module__}.{cls.__name__}.close()' )
