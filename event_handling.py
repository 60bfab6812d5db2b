from __future__ import annotations

# python imports:
from abc import ABCMeta
import contextlib
import logging
import sys
from types import TracebackType
from typing import Iterator, Optional as Opt, Type, TypeVar

# cgpro_cli imports:
from base_proto import (
	RequestType, ResponseType, Event, SendDataEvent, ClientProtocol, Closed,
	ProtocolError,
)
from transport import SyncTransport, AsyncTransport
from util import b2s

logger = logging.getLogger ( __name__ )

T = TypeVar ( 'T' )


@contextlib.contextmanager
def _event_exception_safety ( event: Event ) -> Iterator[None]:
	try:
		yield
	except Exception:
		event.exc_info = sys.exc_info()

@contextlib.contextmanager
def close_if_oserror() -> Iterator[None]:
	try:
		yield
	except OSError as e: # timeouts and connection resets are both OSError
		raise Closed ( repr ( e ) ) from e

def _log_send ( log: logging.Logger, event: SendDataEvent, chunk: bytes ) -> None:
	if event.secret:
		log.debug ( 'C><redacted>' )
	else:
		log.debug ( f'C>{b2s(chunk,errors="replace").rstrip()}' )


class SyncEventHandler:
	transport: SyncTransport

	def on_SendDataEvent ( self, event: SendDataEvent ) -> None:
		log = logger.getChild ( 'SyncEventHandler.on_SendDataEvent' )
		for chunk in event.chunks:
			_log_send ( log, event, chunk )
			self.transport.write ( chunk )

	def _on_event ( self, event: Event ) -> None:
		with _event_exception_safety ( event ):
			func = getattr ( self, f'on_{type(event).__name__}' )
			func ( event )

	def close ( self ) -> None:
		self.transport.close()


class AsyncEventHandler:
	transport: AsyncTransport

	async def on_SendDataEvent ( self, event: SendDataEvent ) -> None:
		log = logger.getChild ( 'AsyncEventHandler.on_SendDataEvent' )
		for chunk in event.chunks:
			_log_send ( log, event, chunk )
			await self.transport.write ( chunk )

	async def _on_event ( self, event: Event ) -> None:
		with _event_exception_safety ( event ):
			func = getattr ( self, f'on_{type(event).__name__}' )
			await func ( event )

	async def close ( self ) -> None:
		await self.transport.close()


class Client ( metaclass = ABCMeta ):
	protocls: Type[ClientProtocol]
	proto: ClientProtocol


class SyncClient ( SyncEventHandler, Client ):
	def __init__ ( self,
		transport: SyncTransport,
		tls: bool,
		server_hostname: str,
	) -> None:
		self.transport = transport
		self.server_hostname = server_hostname
		self.proto = self.protocls ( tls, server_hostname )

	def __enter__ ( self: T ) -> T:
		return self

	def __exit__ ( self,
		exc_type: Opt[Type[BaseException]],
		exc_value: Opt[BaseException],
		traceback: Opt[TracebackType],
	) -> None:
		self.close()

	def _request ( self, request: RequestType[ResponseType] ) -> ResponseType:
		log = logger.getChild ( 'SyncClient._request' )
		try:
			with close_if_oserror():
				for event in self.proto.send ( request ):
					self._on_event ( event )
				while not request.base_response:
					data: bytes = self.transport.read()
					log.debug ( f'S>{b2s(data,errors="replace").rstrip()}' )
					for event in self.proto.receive ( data ):
						self._on_event ( event )
		except Closed as e:
			self.proto.fault ( e )
			raise
		except ProtocolError as e:
			if self.proto.request is not None: # the reply was never fully read
				self.proto.fault ( e )
			raise
		assert (
			request.base_response is not None
		and
			request.base_response.is_success()
		), f'invalid {request.base_response=}'
		return request.response


class AsyncClient ( AsyncEventHandler, Client ):
	def __init__ ( self,
		transport: AsyncTransport,
		tls: bool,
		server_hostname: str,
	) -> None:
		self.transport = transport
		self.server_hostname = server_hostname
		self.proto = self.protocls ( tls, server_hostname )

	async def __aenter__ ( self: T ) -> T:
		return self

	async def __aexit__ ( self,
		exc_type: Opt[Type[BaseException]],
		exc_value: Opt[BaseException],
		traceback: Opt[TracebackType],
	) -> None:
		await self.close()

	async def _request ( self, request: RequestType[ResponseType] ) -> ResponseType:
		log = logger.getChild ( 'AsyncClient._request' )
		try:
			with close_if_oserror():
				for event in self.proto.send ( request ):
					await self._on_event ( event )
				while not request.base_response:
					data: bytes = await self.transport.read()
					log.debug ( f'S>{b2s(data,errors="replace").rstrip()}' )
					for event in self.proto.receive ( data ):
						await self._on_event ( event )
		except Closed as e:
			self.proto.fault ( e )
			raise
		except ProtocolError as e:
			if self.proto.request is not None: # the reply was never fully read
				self.proto.fault ( e )
			raise
		assert (
			request.base_response is not None
		and
			request.base_response.is_success()
		), f'invalid {request.base_response=}'
		return request.response
