from __future__ import annotations

# python imports:
from abc import ABCMeta, abstractmethod
import logging
from types import TracebackType
from typing import (
	Generator, Generic, Iterable, Iterator, Optional as Opt, Sequence as Seq,
	Tuple, Type, TypeVar, Union,
)

# cgpro_cli imports:
from util import bytes_types, BYTES, b2s, s2b

logger = logging.getLogger ( __name__ )

EXC_INFO = Opt[Union[
	Tuple[Type[BaseException],BaseException,TracebackType],
	Tuple[None,None,None],
]]


class Event ( Exception ):
	exc_info: EXC_INFO = None

	def go ( self ) -> Iterator[Event]:
		yield self

	def __repr__ ( self ) -> str:
		cls = type ( self )
		return f'{cls.__module__}.{cls.__name__}()'


class AnnotatedError ( Exception ):
	'''
	command, acceptable and raw get filled in by whoever knows them so the
	failure can be reproduced against a live server
	'''
	command: str = ''
	acceptable: Tuple[int,...] = ()
	raw: Opt[str] = None

	def annotate ( self,
		command: str,
		acceptable: Iterable[int] = (),
		raw: Opt[str] = None,
	) -> None:
		if not self.command:
			self.command = command
			self.acceptable = tuple ( int ( code ) for code in acceptable )
		if self.raw is None:
			self.raw = raw

	def __str__ ( self ) -> str:
		text = super().__str__()
		if self.command:
			text += f'; command: {self.command!r}'
		if self.acceptable:
			text += f'; acceptable: {list(self.acceptable)!r}'
		if self.raw is not None:
			text += f'; raw response: {self.raw!r}'
		return text


class Closed ( AnnotatedError ):
	''' the connection is gone, or the session can no longer be used '''
	def __init__ ( self, reason: str = '' ) -> None:
		super().__init__ ( reason or '(none given)' )


class ProtocolError ( AnnotatedError ):
	''' malformed or unexpected data on the wire '''


ResponseType = TypeVar ( 'ResponseType', bound = 'BaseResponse' )
class BaseResponse ( Exception, metaclass = ABCMeta ):
	@abstractmethod
	def is_success ( self ) -> bool:
		cls = self.__class__
		raise NotImplementedError ( f'{cls.__module__}.{cls.__name__}.is_success()' )


RequestProtocolGenerator = Generator[Event,None,None]


class BaseRequest ( metaclass = ABCMeta ):
	# 1) client uses __init__() to construct request
	# 2) _client_protocol() implements the client-side state machine and
	#    must finish by raising its response
	base_response: Opt[BaseResponse] = None

	def __repr__ ( self ) -> str:
		cls = type ( self )
		return f'{cls.__module__}.{cls.__name__}()'

	@abstractmethod
	def _client_protocol ( self, client: ClientProtocol ) -> RequestProtocolGenerator:
		cls = type ( self )
		raise NotImplementedError ( f'{cls.__module__}.{cls.__name__}._client_protocol()' )


class RequestT ( BaseRequest, Generic[ResponseType] ):
	responsecls: Type[ResponseType]

	@property
	def response ( self ) -> ResponseType:
		assert isinstance ( self.base_response, self.responsecls )
		return self.base_response
RequestType = RequestT[ResponseType]


class NeedDataEvent ( Event ):
	data: Opt[bytes] = None

	def reset ( self ) -> NeedDataEvent:
		self.data = None
		return self

	def go ( self ) -> Iterator[Event]:
		self.reset()
		yield from super().go()


class SendDataEvent ( Event ):

	def __init__ ( self, *chunks: bytes, secret: bool = False ) -> None:
		self.chunks: Seq[bytes] = chunks
		self.secret = secret # don't echo to the logs

	def __repr__ ( self ) -> str:
		cls = type ( self )
		if self.secret:
			return f'{cls.__module__}.{cls.__name__}(chunks=<redacted>)'
		return f'{cls.__module__}.{cls.__name__}(chunks={self.chunks!r})'


class Protocol ( metaclass = ABCMeta ):
	_buf: bytes = b''
	request: Opt[BaseRequest] = None
	request_protocol: Opt[Generator[Event,None,None]] = None
	need_data: Opt[NeedDataEvent] = None
	tls: bool # whether or not the connection is currently encrypted
	_MAXLINE: int

	def __init__ ( self, tls: bool ) -> None:
		self.tls = tls

	def receive ( self, data: bytes ) -> Iterator[Event]:
		#log = logger.getChild ( 'Protocol.receive' )
		assert isinstance ( data, bytes_types ), f'invalid {data=}'
		if not data: # EOF indicator
			# a partial line is left in _buf for diagnostics, never handed up as a response
			raise Closed ( 'EOF' )
		self._buf += data
		start = 0
		end = 0
		try:
			while ( end := ( self._buf.find ( b'\n', start ) + 1 ) ):
				line = memoryview ( self._buf )[start:end]
				start = end
				yield from self._receive_line ( line )
		finally:
			if start:
				self._buf = self._buf[start:]
		if len ( self._buf ) >= self._MAXLINE:
			raise ProtocolError ( 'maximum line length exceeded' )

	@abstractmethod
	def _receive_line ( self, line: BYTES ) -> Iterator[Event]:
		cls = type ( self )
		raise NotImplementedError ( f'{cls.__module__}.{cls.__name__}._receive_line()' )

	def _finish ( self ) -> None:
		self.request = None
		self.request_protocol = None

	def _run_protocol ( self ) -> Iterator[Event]:
		log = logger.getChild ( 'Protocol._run_protocol' )
		assert self.request is not None, f'invalid {self.request=}'
		assert self.request_protocol is not None, f'invalid {self.request_protocol=}'
		try:
			while True:
				event = next ( self.request_protocol )
				log.debug ( f'{event=}' )
				if isinstance ( event, NeedDataEvent ):
					if self.request.base_response is not None:
						log.warning ( f'INTERNAL ERROR - {self.request!r} pushed NeedDataEvent but has a response set - this can cause upstack deadlock ({self.request.base_response!r})' )
						self.request.base_response = None
					self.need_data = event.reset()
					return
				else:
					yield event
					if event.exc_info:
						self.request_protocol.throw ( *event.exc_info )
		except Closed:
			self._finish()
			raise
		except ProtocolError:
			self._finish()
			raise
		except BaseResponse as response:
			request = self.request
			self._finish()
			if not response.is_success():
				raise
			assert isinstance ( request, BaseRequest )
			request.base_response = response
		except StopIteration:
			# client protocol *must* raise its response
			# if not, the driver's _request() will get stuck waiting for data that never arrives
			request = self.request
			self._finish()
			if request is None or not request.base_response:
				log.warning (
					f'INTERNAL ERROR:'
					f' {type(request).__module__}.{type(request).__name__}'
					f'._client_protocol() exit w/o response - this can cause upstack deadlock'
				)
				raise Closed ( 'INTERNAL ERROR - CLIENT PROTOCOLS MUST THROW THEIR RESPONSE' )
		except Exception as e:
			self._finish()
			log.exception ( 'internal protocol error:' )
			raise Closed ( repr ( e ) ) from e


class ClientProtocol ( Protocol ):
	def __init__ ( self, tls: bool, server_hostname: str = '' ) -> None:
		super().__init__ ( tls )
		self.server_hostname = server_hostname

	def fault ( self, e: BaseException ) -> None:
		''' the driver lost the connection while a request was in flight '''

	def send ( self, request: BaseRequest ) -> Iterator[Event]:
		assert self.request is None, f'trying to send {request=} but not finished processing {self.request=}'
		self.request = request
		self.request_protocol = request._client_protocol ( self )
		yield from self._run_protocol()

	def _receive_line ( self, line: BYTES ) -> Iterator[Event]:
		assert self.need_data, f'not expecting data at this time ({bytes(line)!r})'
		self.need_data.data = bytes ( line )
		self.need_data = None
		yield from self._run_protocol()

#region client protocol helpers

class ClientUtil:
	''' line level send/receive steps for use inside _client_protocol() generators '''

	def send ( self, line: str, secret: bool = False ) -> Iterator[Event]:
		assert line.endswith ( '\r\n' ), f'invalid {line=}'
		yield from SendDataEvent ( s2b ( line ), secret = secret ).go()

	def recv_line ( self, event: Opt[NeedDataEvent] = None ) -> Generator[Event,None,str]:
		if event is None:
			event = NeedDataEvent()
		yield from event.go()
		return b2s ( event.data or b'', errors = 'replace' ).rstrip ( '\r\n' )

	def send_recv_line ( self, line: str, secret: bool = False ) -> Generator[Event,None,str]:
		yield from self.send ( line, secret )
		return ( yield from self.recv_line() )

client_util = ClientUtil()

#endregion client protocol helpers
