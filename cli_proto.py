#region PROLOGUE --------------------------------------------------------------
from __future__ import annotations

# python imports:
from abc import abstractmethod
import datetime
import enum
import hashlib
import logging
from typing import (
	Any, Dict, FrozenSet, Generator, Iterable, Iterator, Mapping,
	Optional as Opt, Tuple, Union,
)

# system imports:
import packaging.version # pip install packaging

# cgpro_cli imports:
from base_proto import (
	AnnotatedError, BaseResponse, ResponseType, BaseRequest, RequestT, Event, Closed,
	ProtocolError, RequestProtocolGenerator, ClientProtocol, client_util,
)
from cli_codec import encode_object, encode_string
from cli_lexer import ParseError
from cli_parser import parse_response
import cli_value
from cli_value import Data, Projector, Str
from util import b2s, s2b

__version__ = packaging.version.parse ( '0.1.0' )

logger = logging.getLogger ( __name__ )

DEFAULT_TIMEOUT = 100.0 # seconds, applied to both send and receive


class ResponseCode ( enum.IntEnum ):
	OK = 200
	OK_DATA_PROVIDED = 201
	OK_PLEASE_PROVIDE_DATA = 300
	DOMAIN_ALREADY_EXISTS = 500
	INSUFFICIENT_ACCESS_RIGHTS = 510
	UNKNOWN_DOMAIN = 512
	UNKNOWN_USER = 513
	ACCOUNT_ALREADY_EXISTS = 520
	GROUP_ALREADY_EXISTS = 523
	FORWARDER_ALREADY_EXISTS = 524
	MAILBOX_ALREADY_EXISTS = 532
	UNKNOWN_FORWARDER = 553
	ACCOUNT_IN_USE = 555

OK_CODES = ( ResponseCode.OK, ResponseCode.OK_DATA_PROVIDED )


class State ( enum.Enum ):
	DISCONNECTED = 'disconnected'
	CONNECTED = 'connected'
	AUTHENTICATED = 'authenticated'
	READY = 'ready'
	CLOSED = 'closed'
	FAULTED = 'faulted'


class SessionError ( ProtocolError ):
	''' the server refused the greeting, login or INLINE step, or a request came at the wrong time '''


class ExtractionError ( ProtocolError ):
	''' the response was acceptable but didn't carry the expected payload '''


def domain_of ( email: str ) -> Opt[str]:
	''' 'me@server.tld' => 'server.tld' '''
	if '@' not in email:
		return None
	return email.rsplit ( '@', 1 )[1].lower()


class SubmissionRecord:
	'''
	one request line and the line that answered it

	the session keeps only the most recent one; it is a diagnostic
	snapshot, copy it out before the next command if you need history
	'''
	received_at: Opt[datetime.datetime] = None
	response: Opt[str] = None

	def __init__ ( self,
		server_address: str,
		domain: Opt[str],
		command_label: str,
		request: str,
	) -> None:
		self.sent_at = datetime.datetime.now()
		self.server_address = server_address
		self.domain = domain
		self.command_label = command_label
		self.request = request

	def __repr__ ( self ) -> str:
		cls = type ( self )
		args = ', '.join ( f'{k}={getattr(self,k)!r}' for k in (
			'sent_at',
			'received_at',
			'server_address',
			'domain',
			'command_label',
			'request',
			'response',
		) )
		return f'{cls.__module__}.{cls.__name__}({args})'

#endregion
#region RESPONSES -------------------------------------------------------------

class Response ( BaseResponse ):
	def __init__ ( self, code: int, data: Data, raw: str ) -> None:
		self.code = code
		self.data = data
		self.raw = raw
		super().__init__()

	@staticmethod
	def parse ( line: str, acceptable: Iterable[int] = () ) -> Union[SuccessResponse,ErrorResponse]:
		# an empty acceptable set takes any code, -1 included
		parsed = parse_response ( line )
		acceptable = tuple ( acceptable )
		if acceptable and parsed.code not in acceptable:
			return ErrorResponse ( parsed.code, parsed.data, parsed.raw, acceptable )
		return SuccessResponse ( parsed.code, parsed.data, parsed.raw )

	def __repr__ ( self ) -> str:
		cls = type ( self )
		return f'{cls.__module__}.{cls.__name__}({self.code!r}, {self.raw!r})'


class SuccessResponse ( Response ):
	def is_success ( self ) -> bool:
		return True


class ErrorResponse ( Response ):
	'''
	the status code wasn't one the command accepts
	'''
	command: str = ''

	def __init__ ( self, code: int, data: Data, raw: str, acceptable: Tuple[int,...] ) -> None:
		self.acceptable = tuple ( int ( code ) for code in acceptable )
		super().__init__ ( code, data, raw )

	def is_success ( self ) -> bool:
		return False

	def __str__ ( self ) -> str:
		return (
			f'Response code unacceptable: {self.code}; command: {self.command!r};'
			f' acceptable: {list(self.acceptable)!r}; raw response: {self.raw!r}'
		)


class GreetingResponse ( SuccessResponse ):
	@property
	def session_id ( self ) -> Opt[str]:
		# ex: 200 mymail1.example CommuniGate Pro PWD Server 7.1.10 ready <50.1733950486@mymail1.example>
		for item in self.data:
			if isinstance ( item, Str ) and item.text.startswith ( '<' ):
				return item.text
		return None


class CommandResponse ( SuccessResponse ):
	result: Any = None

	@classmethod
	def from_response ( cls, response: Response, result: Any ) -> CommandResponse:
		self = cls ( response.code, response.data, response.raw )
		self.result = result
		return self


class QuitResponse ( BaseResponse ):
	''' QUIT gets no reply read back; this only marks the request finished '''
	def is_success ( self ) -> bool:
		return True

#endregion
#region REQUESTS --------------------------------------------------------------

class Request ( RequestT[ResponseType] ):
	states: FrozenSet[State] = frozenset ( { State.READY } )

	def _client_protocol ( self, client: ClientProtocol ) -> RequestProtocolGenerator:
		assert isinstance ( client, Client )
		yield from self.client_protocol ( client )

	@abstractmethod
	def client_protocol ( self, client: Client ) -> RequestProtocolGenerator:
		cls = self.__class__
		raise NotImplementedError ( f'{cls.__module__}.{cls.__name__}.client_protocol()' )


def apop_hash ( session_id: str, pwd: str ) -> str:
	return hashlib.md5 ( s2b ( f'{session_id}{pwd}' ) ).hexdigest()


class GreetingRequest ( Request[GreetingResponse] ):
	responsecls = GreetingResponse
	states = frozenset ( { State.CONNECTED } )

	def client_protocol ( self, client: Client ) -> RequestProtocolGenerator:
		line = yield from client_util.recv_line()
		try:
			response = Response.parse ( line, ( ResponseCode.OK, ) )
		except ParseError as e:
			raise SessionError ( f'Unparseable server greeting: {e}' ) from e
		if not response.is_success():
			raise SessionError ( f'Unexpected server greeting: {line}' )
		client.greeting = GreetingResponse ( response.code, response.data, response.raw )
		raise client.greeting


class LoginRequest ( Request[SuccessResponse] ):
	responsecls = SuccessResponse
	states = frozenset ( { State.CONNECTED } )

	def __init__ ( self, uid: str, pwd: str ) -> None:
		self.uid = str ( uid )
		self.pwd = str ( pwd )

	def __repr__ ( self ) -> str:
		cls = type ( self )
		return f'{cls.__module__}.{cls.__name__}(uid={self.uid!r})'

	def client_protocol ( self, client: Client ) -> RequestProtocolGenerator:
		try:
			yield from client.submit (
				f'USER {encode_string(self.uid)}',
				( ResponseCode.OK, ResponseCode.OK_PLEASE_PROVIDE_DATA ),
				label = 'USER',
			)
		except ErrorResponse as e:
			raise SessionError ( f'API user {self.uid} login not allowed: {e.raw}' ) from e
		try:
			response = yield from client.submit (
				f'PASS {encode_string(self.pwd)}',
				( ResponseCode.OK, ),
				label = 'PASS',
				secret = f'PASS {"*" * 8}',
			)
		except ErrorResponse as e:
			raise SessionError ( f'API user {self.uid} password not accepted: {e.raw}' ) from e
		client.state = State.AUTHENTICATED
		raise response


class ApopRequest ( Request[SuccessResponse] ):
	responsecls = SuccessResponse
	states = frozenset ( { State.CONNECTED } )

	def __init__ ( self, uid: str, pwd: str, session_id: str ) -> None:
		assert session_id[0:1] == '<' and session_id[-1:] == '>', f'invalid {session_id=}'
		self.uid = str ( uid )
		self.session_id = session_id
		self.digest = apop_hash ( session_id, pwd )

	def __repr__ ( self ) -> str:
		cls = type ( self )
		return f'{cls.__module__}.{cls.__name__}(uid={self.uid!r}, session_id={self.session_id!r})'

	def client_protocol ( self, client: Client ) -> RequestProtocolGenerator:
		uid = encode_string ( self.uid )
		try:
			response = yield from client.submit (
				f'APOP {uid} {encode_string(self.digest)}',
				( ResponseCode.OK, ),
				label = 'APOP',
				secret = f'APOP {uid} {"*" * 8}',
			)
		except ErrorResponse as e:
			raise SessionError ( f'API user {self.uid} APOP hash not accepted: {e.raw}' ) from e
		client.state = State.AUTHENTICATED
		raise response


class InlineRequest ( Request[SuccessResponse] ):
	responsecls = SuccessResponse
	states = frozenset ( { State.AUTHENTICATED } )

	def client_protocol ( self, client: Client ) -> RequestProtocolGenerator:
		try:
			response = yield from client.submit ( 'INLINE', ( ResponseCode.OK, ), label = 'INLINE' )
		except ErrorResponse as e:
			raise SessionError ( f'Inline command mode not accepted. Error: {e.raw}' ) from e
		client.state = State.READY
		raise response


class CommandRequest ( Request[CommandResponse] ):
	'''
	Sends one command line and turns the reply into a python value.

	acceptable: status codes that count as success; empty accepts anything
	projector: cli_value projector that finds and converts the payload,
	           None to skip extraction (result is None)
	required: raise ExtractionError when the projector finds nothing
	'''
	responsecls = CommandResponse

	def __init__ ( self,
		command: str,
		acceptable: Iterable[int] = (),
		projector: Opt[Projector] = None,
		*,
		required: bool = True,
		domain: Opt[str] = None,
		label: str = '',
	) -> None:
		self.command = command
		self.acceptable = tuple ( acceptable )
		self.projector = projector
		self.required = required
		self.domain = domain
		self.label = label or command.split ( ' ', 1 )[0]

	def __repr__ ( self ) -> str:
		cls = type ( self )
		return f'{cls.__module__}.{cls.__name__}({self.command!r})'

	def client_protocol ( self, client: Client ) -> RequestProtocolGenerator:
		response = yield from client.submit (
			self.command, self.acceptable, domain = self.domain, label = self.label,
		)
		try:
			result = self.project ( response )
		except ProtocolError as e:
			e.annotate ( self.command, self.acceptable, response.raw )
			raise
		raise CommandResponse.from_response ( response, result )

	def project ( self, response: Response ) -> Any:
		if self.projector is None:
			return None
		try:
			result = self.projector ( response.data )
		except ( TypeError, ValueError ) as e:
			raise ExtractionError ( f'Response payload not convertible to {self.projector.name}: {e}' ) from e
		if result is None and self.required:
			raise ExtractionError ( f'Response null or unexpected type (expected {self.projector.name})' )
		return result


class ListAccountsRequest ( CommandRequest ):
	def __init__ ( self, domain: str ) -> None:
		super().__init__ ( f'ListAccounts {encode_string(domain)}', OK_CODES, cli_value.as_mapping,
			domain = domain,
		)

	def project ( self, response: Response ) -> Dict[str,str]:
		# ex: {user=macnt;postmaster=macnt;}
		accounts = super().project ( response )
		return { name: str ( kind ) for name, kind in accounts.items() }


class GetAccountEffectiveSettingsRequest ( CommandRequest ):
	def __init__ ( self, email: str ) -> None:
		super().__init__ ( f'GetAccountEffectiveSettings {encode_string(email)}', OK_CODES, cli_value.as_mapping,
			domain = domain_of ( email ),
		)


class GetDomainEffectiveSettingsRequest ( CommandRequest ):
	def __init__ ( self, domain: str ) -> None:
		super().__init__ ( f'GetDomainEffectiveSettings {encode_string(domain)}', OK_CODES, cli_value.as_mapping,
			domain = domain,
		)


class GetDomainSettingsRequest ( CommandRequest ):
	''' result is None when the domain doesn't exist '''
	def __init__ ( self, domain: str ) -> None:
		super().__init__ ( f'GetDomainSettings {encode_string(domain)}',
			( ResponseCode.OK_DATA_PROVIDED, ResponseCode.UNKNOWN_DOMAIN ),
			cli_value.as_mapping,
			domain = domain,
		)

	def project ( self, response: Response ) -> Opt[Dict[str,Any]]:
		if response.code == ResponseCode.UNKNOWN_DOMAIN:
			return None
		return super().project ( response )


class RenameDomainRequest ( CommandRequest ):
	def __init__ ( self, domain: str, new_domain: str ) -> None:
		super().__init__ (
			f'RenameDomain {encode_string(domain)} into {encode_string(new_domain)}',
			( ResponseCode.OK, ), cli_value.as_string,
			domain = domain,
		)


class UpdateDomainSettingsRequest ( CommandRequest ):
	def __init__ ( self, domain: str, settings: Mapping[str,Any] ) -> None:
		super().__init__ (
			f'UpdateDomainSettings {encode_string(domain)} {encode_object(settings)}',
			( ResponseCode.OK, ), cli_value.as_string,
			domain = domain,
		)


class GetAccountRulesRequest ( CommandRequest ):
	def __init__ ( self, email: str ) -> None:
		super().__init__ ( f'GetAccountRules {encode_string(email)}', OK_CODES, cli_value.as_sequence,
			domain = domain_of ( email ),
		)


class GetAccountStorageUsedRequest ( CommandRequest ):
	def __init__ ( self, email: str ) -> None:
		super().__init__ ( f'GetAccountInfo {encode_string(email)} Key StorageUsed', OK_CODES, cli_value.as_integer,
			domain = domain_of ( email ),
			label = 'GetAccountInfo',
		)


class QuitRequest ( Request[QuitResponse] ):
	responsecls = QuitResponse
	states = frozenset ( { State.CONNECTED, State.AUTHENTICATED, State.READY } )

	def client_protocol ( self, client: Client ) -> RequestProtocolGenerator:
		yield from client_util.send ( 'QUIT\r\n' )
		client.state = State.CLOSED
		raise QuitResponse()

#endregion
#region CLIENT ----------------------------------------------------------------

class Client ( ClientProtocol ):
	_MAXLINE = 4 * 1024 * 1024 # settings dictionaries can get long; lines are never split
	state: State = State.DISCONNECTED
	greeting: Opt[GreetingResponse] = None
	last_submission: Opt[SubmissionRecord] = None

	@property
	def server_address ( self ) -> str:
		return self.server_hostname

	def connected ( self ) -> None:
		assert self.state is State.DISCONNECTED, f'invalid {self.state=}'
		self.state = State.CONNECTED

	def send ( self, request: BaseRequest ) -> Iterator[Event]:
		if self.state is State.FAULTED:
			raise Closed ( 'session faulted by an earlier error' )
		if self.state is State.CLOSED:
			raise Closed ( 'session closed' )
		assert isinstance ( request, Request ), f'invalid {request=}'
		if self.state not in request.states:
			raise SessionError ( f'{request!r} not allowed while session is {self.state.value}' )
		yield from super().send ( request )

	def fault ( self, e: BaseException ) -> None:
		''' marks the session unusable and notes the failure on the last submission '''
		if self.state in ( State.FAULTED, State.CLOSED ):
			return
		self.state = State.FAULTED
		record = self.last_submission
		if record is not None and record.received_at is None:
			partial = b2s ( self._buf, errors = 'replace' )
			record.response = f'{e!r}. Raw response: {partial}'
			if isinstance ( e, AnnotatedError ):
				e.annotate ( record.request, raw = partial )

	def submit ( self,
		line: str,
		acceptable: Iterable[int] = (),
		*,
		domain: Opt[str] = None,
		label: str = '',
		secret: Opt[str] = None,
	) -> Generator[Event,None,Response]:
		'''
		Sends one request line and parses the one line that answers it.
		Returns the parsed response, raises ErrorResponse if its code isn't
		acceptable and ParseError if the line is malformed. secret, when
		given, replaces the line in the record and the logs.
		'''
		log = logger.getChild ( 'Client.submit' )
		acceptable = tuple ( acceptable )
		record = SubmissionRecord (
			self.server_address, domain, label, line if secret is None else secret,
		)
		self.last_submission = record
		raw = yield from client_util.send_recv_line ( f'{line}\r\n', secret = secret is not None )
		record.response = raw
		record.received_at = datetime.datetime.now()
		try:
			response = Response.parse ( raw, acceptable )
		except ParseError as e:
			e.annotate ( record.request, acceptable, raw )
			log.error ( f'{self.server_address} {domain or ""} {label}: {e}' )
			raise
		if isinstance ( response, ErrorResponse ):
			response.command = record.request
			log.error ( f'{self.server_address} {domain or ""} {label}: {response}' )
			raise response
		if secret is None:
			log.info ( f'{self.server_address} {domain or ""} {label}: {raw}' )
		return response

#endregion
