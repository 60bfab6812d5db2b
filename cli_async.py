# system imports:
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional as Opt

# cgpro_cli imports:
from base_proto import Closed
import cli_proto as proto
from cli_value import Projector, as_string
from event_handling import AsyncClient
from transport import AsyncTransport

logger = logging.getLogger ( __name__ )


class Client ( AsyncClient ):
	protocls = proto.Client
	proto: proto.Client

	def __init__ ( self, transport: AsyncTransport, tls: bool, server_hostname: str ) -> None:
		super().__init__ ( transport, tls, server_hostname )
		self.proto.connected()

	@property
	def state ( self ) -> proto.State:
		return self.proto.state

	@property
	def last_submission ( self ) -> Opt[proto.SubmissionRecord]:
		return self.proto.last_submission

	#region session

	async def greeting ( self ) -> proto.GreetingResponse:
		return await self._request ( proto.GreetingRequest() )

	async def login ( self, uid: str, pwd: str ) -> proto.SuccessResponse:
		return await self._request ( proto.LoginRequest ( uid, pwd ) )

	async def apop ( self, uid: str, pwd: str, session_id: str ) -> proto.SuccessResponse:
		return await self._request ( proto.ApopRequest ( uid, pwd, session_id ) )

	async def inline ( self ) -> proto.SuccessResponse:
		return await self._request ( proto.InlineRequest() )

	async def quit ( self ) -> proto.QuitResponse:
		return await self._request ( proto.QuitRequest() )

	async def start ( self, uid: str, pwd: str, apop: bool = False ) -> None:
		try:
			greeting = await self.greeting()
			if apop:
				session_id = greeting.session_id
				if session_id is None:
					raise proto.SessionError ( f'APOP requested but the greeting has no session id: {greeting.raw}' )
				await self.apop ( uid, pwd, session_id )
			else:
				await self.login ( uid, pwd )
			await self.inline()
		except Exception as e:
			self.proto.fault ( e )
			await self.transport.close()
			raise

	async def close ( self ) -> None:
		log = logger.getChild ( 'Client.close' )
		try:
			if self.proto.state in proto.QuitRequest.states:
				try:
					await self.quit()
				except Closed as e:
					log.warning ( f'QUIT not delivered: {e}' )
		finally:
			await super().close()

	#endregion session
	#region commands

	async def send_command ( self,
		command: str,
		acceptable: Iterable[int] = (),
		projector: Opt[Projector] = None,
		*,
		required: bool = True,
		domain: Opt[str] = None,
		label: str = '',
	) -> proto.CommandResponse:
		return await self._request ( proto.CommandRequest ( command, acceptable, projector,
			required = required,
			domain = domain,
			label = label,
		) )

	async def send_command_get_string ( self,
		command: str,
		acceptable: Iterable[int] = (),
		*,
		domain: Opt[str] = None,
		label: str = '',
	) -> str:
		r = await self.send_command ( command, acceptable, as_string, domain = domain, label = label )
		return r.result

	async def list_accounts ( self, domain: str ) -> Dict[str,str]:
		return ( await self._request ( proto.ListAccountsRequest ( domain ) ) ).result

	async def get_account_effective_settings ( self, email: str ) -> Dict[str,Any]:
		return ( await self._request ( proto.GetAccountEffectiveSettingsRequest ( email ) ) ).result

	async def get_domain_effective_settings ( self, domain: str ) -> Dict[str,Any]:
		return ( await self._request ( proto.GetDomainEffectiveSettingsRequest ( domain ) ) ).result

	async def get_domain_settings ( self, domain: str ) -> Opt[Dict[str,Any]]:
		return ( await self._request ( proto.GetDomainSettingsRequest ( domain ) ) ).result

	async def rename_domain ( self, domain: str, new_domain: str ) -> proto.CommandResponse:
		return await self._request ( proto.RenameDomainRequest ( domain, new_domain ) )

	async def update_domain_settings ( self, domain: str, settings: Mapping[str,Any] ) -> proto.CommandResponse:
		return await self._request ( proto.UpdateDomainSettingsRequest ( domain, settings ) )

	async def get_account_rules ( self, email: str ) -> List[Any]:
		return ( await self._request ( proto.GetAccountRulesRequest ( email ) ) ).result

	async def get_account_storage_used ( self, email: str ) -> int:
		return ( await self._request ( proto.GetAccountStorageUsedRequest ( email ) ) ).result

	#endregion commands
