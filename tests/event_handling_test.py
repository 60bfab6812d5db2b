# python imports:
import logging
from pathlib import Path
import sys
from typing import List
import unittest

if __name__ == '__main__': # pragma: no cover
	sys.path.append ( str ( Path ( __file__ ).parent.parent.absolute() ) )

# cgpro_cli imports:
import base_proto
import event_handling
from transport import SyncTransport
from util import BYTES

logger = logging.getLogger ( __name__ )


class ScriptedTransport ( SyncTransport ):
	def __init__ ( self, *reads: bytes ) -> None:
		self.reads = list ( reads )
		self.written: List[bytes] = []
		self.closed = 0

	def read ( self ) -> bytes:
		if not self.reads:
			raise ConnectionResetError ( 'reset by peer' )
		return self.reads.pop ( 0 )

	def write ( self, data: BYTES ) -> None:
		self.written.append ( bytes ( data ) )

	def starttls_client ( self, server_hostname: str ) -> None:
		pass

	def close ( self ) -> None:
		self.closed += 1


class EchoResponse ( base_proto.BaseResponse ):
	def __init__ ( self, line: str ) -> None:
		super().__init__()
		self.line = line

	def is_success ( self ) -> bool:
		return True


class EchoRequest ( base_proto.RequestT[EchoResponse] ):
	responsecls = EchoResponse

	def _client_protocol ( self, client: base_proto.ClientProtocol ) -> base_proto.RequestProtocolGenerator:
		line = yield from base_proto.client_util.send_recv_line ( 'ECHO\r\n' )
		raise EchoResponse ( line )


class FaultRecordingProtocol ( base_proto.ClientProtocol ):
	_MAXLINE = 1024
	faults: List[BaseException]

	def fault ( self, e: BaseException ) -> None:
		self.faults.append ( e )


class Client ( event_handling.SyncClient ):
	protocls = FaultRecordingProtocol


class Tests ( unittest.TestCase ):
	def test_coverage ( self ) -> None:
		with self.assertRaises ( event_handling.Closed ):
			try:
				with event_handling.close_if_oserror():
					raise OSError ( 'foo' )
			except event_handling.Closed as e:
				self.assertEqual ( repr ( e ), '''Closed("OSError('foo')")''' )
				raise

	def test_request ( self ) -> None:
		xport = ScriptedTransport ( b'hel', b'lo\r\n' )
		with Client ( xport, False, 'localhost' ) as cli:
			cli.proto.faults = []
			self.assertEqual ( cli._request ( EchoRequest() ).line, 'hello' )
			self.assertEqual ( xport.written, [ b'ECHO\r\n' ] )
			self.assertEqual ( cli.proto.server_hostname, 'localhost' )
		self.assertEqual ( xport.closed, 1 )

	def test_fault ( self ) -> None:
		for reads in ( (), ( b'partial', b'' ) ):
			xport = ScriptedTransport ( *reads )
			cli = Client ( xport, False, 'localhost' )
			cli.proto.faults = []
			with self.assertRaises ( base_proto.Closed ):
				cli._request ( EchoRequest() )
			self.assertEqual ( len ( cli.proto.faults ), 1 )
			self.assertIsInstance ( cli.proto.faults[0], base_proto.Closed )
			cli.close()

	def test_line_too_long ( self ) -> None:
		cli = Client ( ScriptedTransport ( b'X' * 2000 ), False, 'localhost' )
		cli.proto.faults = []
		with self.assertRaises ( base_proto.ProtocolError ):
			cli._request ( EchoRequest() )
		self.assertEqual ( len ( cli.proto.faults ), 1 )

if __name__ == '__main__':
	logging.basicConfig ( level = logging.DEBUG )
	unittest.main()
