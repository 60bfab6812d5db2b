# python imports:
import logging
from pathlib import Path
import sys
from typing import Iterable, List
import unittest

if __name__ == '__main__': # pragma: no cover
	sys.path.append ( str ( Path ( __file__ ).parent.parent.absolute() ) )

# cgpro_cli imports:
import base_proto
import cli_proto as proto
import cli_value

logger = logging.getLogger ( __name__ )


def sent ( events: Iterable[base_proto.Event] ) -> List[bytes]:
	out: List[bytes] = []
	for evt in events:
		assert isinstance ( evt, base_proto.SendDataEvent ), f'invalid {evt=}'
		out.append ( b''.join ( evt.chunks ) )
	return out


def ready_client() -> proto.Client:
	cli = proto.Client ( False, 'mail.example' )
	cli.connected()
	cli.state = proto.State.READY
	return cli


class Tests ( unittest.TestCase ):
	def test_bring_up ( self ) -> None:
		cli = proto.Client ( False, 'mail.example' )
		self.assertEqual ( cli.state, proto.State.DISCONNECTED )
		cli.connected()
		self.assertEqual ( cli.state, proto.State.CONNECTED )

		greeting = proto.GreetingRequest()
		self.assertEqual ( sent ( cli.send ( greeting ) ), [] )
		self.assertEqual ( sent ( cli.receive (
			b'200 mail.example CommuniGate Pro PWD Server 7.1.10 ready <50.123@mail.example>\r\n'
		) ), [] )
		self.assertEqual ( greeting.response.code, 200 )
		self.assertEqual ( greeting.response.session_id, '<50.123@mail.example>' )
		self.assertIs ( cli.greeting, greeting.response )

		login = proto.LoginRequest ( 'postmaster', 'se cret' )
		self.assertEqual ( sent ( cli.send ( login ) ), [ b'USER postmaster\r\n' ] )
		self.assertEqual ( cli.last_submission.request, 'USER postmaster' )
		events = list ( cli.receive ( b'300 please send the password\r\n' ) )
		self.assertEqual ( sent ( events ), [ b'PASS "se cret"\r\n' ] )
		self.assertTrue ( events[0].secret )
		self.assertNotIn ( 'se cret', repr ( events[0] ) )
		self.assertEqual ( cli.last_submission.request, 'PASS ********' )
		self.assertEqual ( sent ( cli.receive ( b'200 login OK, proceed\r\n' ) ), [] )
		self.assertEqual ( cli.state, proto.State.AUTHENTICATED )
		self.assertEqual ( login.response.raw, '200 login OK, proceed' )

		inline = proto.InlineRequest()
		self.assertEqual ( sent ( cli.send ( inline ) ), [ b'INLINE\r\n' ] )
		self.assertEqual ( sent ( cli.receive ( b'200 OK\r\n' ) ), [] )
		self.assertEqual ( cli.state, proto.State.READY )

		self.assertEqual ( sent ( cli.send ( proto.QuitRequest() ) ), [ b'QUIT\r\n' ] )
		self.assertEqual ( cli.state, proto.State.CLOSED )
		with self.assertRaises ( base_proto.Closed ):
			list ( cli.send ( proto.InlineRequest() ) )

	def test_greeting_rejected ( self ) -> None:
		for line in ( b'500 go away\r\n', b'200 (unterminated\r\n' ):
			cli = proto.Client ( False )
			cli.connected()
			list ( cli.send ( proto.GreetingRequest() ) )
			with self.assertRaises ( proto.SessionError ):
				list ( cli.receive ( line ) )

	def test_user_rejected ( self ) -> None:
		cli = proto.Client ( False )
		cli.connected()
		list ( cli.send ( proto.LoginRequest ( 'nobody', 'x' ) ) )
		with self.assertRaises ( proto.SessionError ) as cm:
			list ( cli.receive ( b'513 Unknown user account\r\n' ) )
		self.assertIn ( 'API user nobody login not allowed', str ( cm.exception ) )

	def test_apop ( self ) -> None:
		# md5 ( '<1896.697170952@dbc.mtview.ca.us>tanstaaf' ), the RFC 1939 example
		self.assertEqual (
			proto.apop_hash ( '<1896.697170952@dbc.mtview.ca.us>', 'tanstaaf' ),
			'c4c9334bac560ecc979e58001b3e22fb',
		)
		cli = proto.Client ( False )
		cli.connected()
		apop = proto.ApopRequest ( 'mrose', 'tanstaaf', '<1896.697170952@dbc.mtview.ca.us>' )
		self.assertEqual ( sent ( cli.send ( apop ) ), [ b'APOP mrose c4c9334bac560ecc979e58001b3e22fb\r\n' ] )
		self.assertEqual ( cli.last_submission.request, 'APOP mrose ********' )
		list ( cli.receive ( b'200 login OK, proceed\r\n' ) )
		self.assertEqual ( cli.state, proto.State.AUTHENTICATED )

	def test_wrong_state ( self ) -> None:
		cli = proto.Client ( False )
		with self.assertRaises ( proto.SessionError ):
			list ( cli.send ( proto.GreetingRequest() ) )
		cli.connected()
		with self.assertRaises ( proto.SessionError ):
			list ( cli.send ( proto.InlineRequest() ) )
		with self.assertRaises ( proto.SessionError ):
			list ( cli.send ( proto.ListAccountsRequest ( 'example.com' ) ) )

	def test_classification ( self ) -> None:
		r = proto.Response.parse ( '512 Unknown domain', ( 200, ) )
		self.assertIsInstance ( r, proto.ErrorResponse )
		self.assertFalse ( r.is_success() )
		self.assertEqual ( r.code, proto.ResponseCode.UNKNOWN_DOMAIN )

		r = proto.Response.parse ( '512 Unknown domain', () )
		self.assertIsInstance ( r, proto.SuccessResponse )

		r = proto.Response.parse ( 'garbage here', () )
		self.assertEqual ( r.code, -1 )
		self.assertEqual ( r.data, cli_value.Data ( [ cli_value.Str ( 'garbage' ), cli_value.Str ( 'here' ) ] ) )

		r = proto.Response.parse ( 'garbage here', ( 200, ) )
		self.assertIsInstance ( r, proto.ErrorResponse )

	def test_command ( self ) -> None:
		cli = ready_client()
		req = proto.GetDomainSettingsRequest ( 'Example.com' )
		self.assertEqual ( sent ( cli.send ( req ) ), [ b'GetDomainSettings "Example.com"\r\n' ] )
		list ( cli.receive ( b'201 {MaxAccounts=#10;Aliases=(www,mail);}\r\n' ) )
		self.assertEqual ( req.response.result, { 'MaxAccounts': 10, 'Aliases': [ 'www', 'mail' ] } )
		self.assertEqual ( cli.last_submission.domain, 'Example.com' )
		self.assertEqual ( cli.last_submission.command_label, 'GetDomainSettings' )

		req = proto.GetDomainSettingsRequest ( 'nowhere.example' )
		list ( cli.send ( req ) )
		list ( cli.receive ( b'512 Unknown domain name\r\n' ) )
		self.assertIsNone ( req.response.result )

		req = proto.GetDomainSettingsRequest ( 'nowhere.example' )
		list ( cli.send ( req ) )
		with self.assertRaises ( proto.ErrorResponse ) as cm:
			list ( cli.receive ( b'200 OK\r\n' ) )
		self.assertIn ( "command: 'GetDomainSettings \"nowhere.example\"'", str ( cm.exception ) )
		self.assertIn ( 'acceptable: [201, 512]', str ( cm.exception ) )
		self.assertEqual ( cli.state, proto.State.READY )

	def test_extraction ( self ) -> None:
		cli = ready_client()
		list ( cli.send ( proto.GetAccountStorageUsedRequest ( 'me@Server.TLD' ) ) )
		self.assertEqual ( cli.last_submission.domain, 'server.tld' )
		with self.assertRaises ( proto.ExtractionError ) as cm:
			list ( cli.receive ( b'201 {StorageUsed=1;}\r\n' ) )
		e = cm.exception
		self.assertEqual ( e.command, 'GetAccountInfo "me@Server.TLD" Key StorageUsed' )
		self.assertEqual ( e.acceptable, ( 200, 201 ) )
		self.assertEqual ( e.raw, '201 {StorageUsed=1;}' )
		self.assertIn ( 'expected integer', str ( e ) )

		req = proto.CommandRequest ( 'GetAccountInfo me Key Count', (), cli_value.as_integer, required = False )
		list ( cli.send ( req ) )
		list ( cli.receive ( b'200\r\n' ) )
		self.assertIsNone ( req.response.result )

	def test_fault ( self ) -> None:
		cli = ready_client()
		list ( cli.send ( proto.ListAccountsRequest ( 'example.com' ) ) )
		list ( cli.receive ( b'201 {user=mac' ) )
		with self.assertRaises ( base_proto.Closed ) as cm:
			list ( cli.receive ( b'' ) )
		cli.fault ( cm.exception )
		self.assertEqual ( cli.state, proto.State.FAULTED )
		self.assertEqual ( cli.last_submission.response, "Closed('EOF'). Raw response: 201 {user=mac" )
		self.assertEqual ( cm.exception.command, 'ListAccounts "example.com"' )
		self.assertEqual ( cm.exception.raw, '201 {user=mac' )
		self.assertIsNone ( cli.last_submission.received_at )
		with self.assertRaises ( base_proto.Closed ):
			list ( cli.send ( proto.ListAccountsRequest ( 'example.com' ) ) )

	def test_domain_of ( self ) -> None:
		self.assertEqual ( proto.domain_of ( 'me@Server.TLD' ), 'server.tld' )
		self.assertEqual ( proto.domain_of ( 'postmaster' ), None )

	def test_record_repr ( self ) -> None:
		record = proto.SubmissionRecord ( 'mail.example', 'example.com', 'ListAccounts', 'ListAccounts "example.com"' )
		text = repr ( record )
		self.assertTrue ( text.startswith ( 'cli_proto.SubmissionRecord(sent_at=' ) )
		self.assertIn ( "command_label='ListAccounts'", text )
		self.assertIn ( 'response=None', text )

if __name__ == '__main__':
	logging.basicConfig ( level = logging.DEBUG )
	unittest.main()
