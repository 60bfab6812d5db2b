# system imports:
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional as Opt

# cgpro_cli imports:
from base_proto import Closed
import cli_proto as proto
from cli_value import Projector, as_string
from event_handling import SyncClient
from transport import SyncTransport

logger = logging.getLogger ( __name__ )


class Client ( SyncClient ):
	protocls = proto.Client
	proto: proto.Client

	def __init__ ( self, transport: SyncTransport, tls: bool, server_hostname: str ) -> None:
		super().__init__ ( transport, tls, server_hostname )
		self.proto.connected()

	@property
	def state ( self ) -> proto.State:
		return self.proto.state

	@property
	def last_submission ( self ) -> Opt[proto.SubmissionRecord]:
		return self.proto.last_submission

	#region session

	def greeting ( self ) -> proto.GreetingResponse:
		return self._request ( proto.GreetingRequest() )

	def login ( self, uid: str, pwd: str ) -> proto.SuccessResponse:
		return self._request ( proto.LoginRequest ( uid, pwd ) )

	def apop ( self, uid: str, pwd: str, session_id: str ) -> proto.SuccessResponse:
		return self._request ( proto.ApopRequest ( uid, pwd, session_id ) )

	def inline ( self ) -> proto.SuccessResponse:
		return self._request ( proto.InlineRequest() )

	def quit ( self ) -> proto.QuitResponse:
		return self._request ( proto.QuitRequest() )

	def start ( self, uid: str, pwd: str, apop: bool = False ) -> None:
		''' greeting, authentication and INLINE; on any failure the session is faulted and the transport closed '''
		try:
			greeting = self.greeting()
			if apop:
				session_id = greeting.session_id
				if session_id is None:
					raise proto.SessionError ( f'APOP requested but the greeting has no session id: {greeting.raw}' )
				self.apop ( uid, pwd, session_id )
			else:
				self.login ( uid, pwd )
			self.inline()
		except Exception as e:
			self.proto.fault ( e )
			self.transport.close()
			raise

	def close ( self ) -> None:
		log = logger.getChild ( 'Client.close' )
		try:
			if self.proto.state in proto.QuitRequest.states:
				try:
					self.quit()
				except Closed as e:
					log.warning ( f'QUIT not delivered: {e}' )
		finally:
			super().close()

	#endregion session
	#region commands

	def send_command ( self,
		command: str,
		acceptable: Iterable[int] = (),
		projector: Opt[Projector] = None,
		*,
		required: bool = True,
		domain: Opt[str] = None,
		label: str = '',
	) -> proto.CommandResponse:
		return self._request ( proto.CommandRequest ( command, acceptable, projector,
			required = required,
			domain = domain,
			label = label,
		) )

	def send_command_get_string ( self,
		command: str,
		acceptable: Iterable[int] = (),
		*,
		domain: Opt[str] = None,
		label: str = '',
	) -> str:
		r = self.send_command ( command, acceptable, as_string, domain = domain, label = label )
		return r.result

	def list_accounts ( self, domain: str ) -> Dict[str,str]:
		return self._request ( proto.ListAccountsRequest ( domain ) ).result

	def get_account_effective_settings ( self, email: str ) -> Dict[str,Any]:
		return self._request ( proto.GetAccountEffectiveSettingsRequest ( email ) ).result

	def get_domain_effective_settings ( self, domain: str ) -> Dict[str,Any]:
		return self._request ( proto.GetDomainEffectiveSettingsRequest ( domain ) ).result

	def get_domain_settings ( self, domain: str ) -> Opt[Dict[str,Any]]:
		return self._request ( proto.GetDomainSettingsRequest ( domain ) ).result

	def rename_domain ( self, domain: str, new_domain: str ) -> proto.CommandResponse:
		return self._request ( proto.RenameDomainRequest ( domain, new_domain ) )

	def update_domain_settings ( self, domain: str, settings: Mapping[str,Any] ) -> proto.CommandResponse:
		return self._request ( proto.UpdateDomainSettingsRequest ( domain, settings ) )

	def get_account_rules ( self, email: str ) -> List[Any]:
		return self._request ( proto.GetAccountRulesRequest ( email ) ).result

	def get_account_storage_used ( self, email: str ) -> int:
		return self._request ( proto.GetAccountStorageUsedRequest ( email ) ).result

	#endregion commands
