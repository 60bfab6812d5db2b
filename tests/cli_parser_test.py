# python imports:
import logging
from pathlib import Path
import sys
import unittest

if __name__ == '__main__': # pragma: no cover
	sys.path.append ( str ( Path ( __file__ ).parent.parent.absolute() ) )

# cgpro_cli imports:
from cli_lexer import LexError, ParseError
from cli_parser import parse, parse_response
from cli_value import (
	Array, Data, DataBlock, Dictionary, Int, IpAddress, Null, Str, Timestamp,
)

logger = logging.getLogger ( __name__ )


class Tests ( unittest.TestCase ):
	def test_shapes ( self ) -> None:
		self.assertEqual ( parse ( '(1,2,(3,4))' ), Data ( [
			Array ( [ Str ( '1' ), Str ( '2' ), Array ( [ Str ( '3' ), Str ( '4' ) ] ) ] ),
		] ) )
		self.assertEqual ( parse ( '{A=1;B=(1,2);}' ), Data ( [
			Dictionary ( [
				( 'A', Str ( '1' ) ),
				( 'B', Array ( [ Str ( '1' ), Str ( '2' ) ] ) ),
			] ),
		] ) )
		self.assertEqual ( parse ( '()' ), Data ( [ Array() ] ) )
		self.assertEqual ( parse ( '{}' ), Data ( [ Dictionary() ] ) )
		self.assertEqual ( parse ( '' ), Data() )
		self.assertEqual ( parse ( '  ( 1 , #2 )  ' ), Data ( [ Array ( [ Str ( '1' ), Int ( 2 ) ] ) ] ) )
		self.assertEqual ( parse ( '{ "Real Name" = "Zaphod" ; }' ), Data ( [
			Dictionary ( [ ( 'Real Name', Str ( 'Zaphod' ) ) ] ),
		] ) )

	def test_all_kinds ( self ) -> None:
		data = parse ( '(#NULL#,#TPAST,#I[10.0.0.1]:25,[aGk=],"x y",#0x10)' )
		self.assertEqual ( data, Data ( [ Array ( [
			Null(),
			Timestamp ( 'PAST' ),
			IpAddress ( '[10.0.0.1]:25' ),
			DataBlock ( b'hi' ),
			Str ( 'x y' ),
			Int ( 16 ),
		] ) ] ) )
		# timestamps are accepted at the top level as well as inside containers
		self.assertEqual ( parse ( '201 #T01-02-2024' ), Data ( [ Str ( '201' ), Timestamp ( '01-02-2024' ) ] ) )

	def test_status_code ( self ) -> None:
		r = parse_response ( '200 OK' )
		self.assertEqual ( r.code, 200 )
		self.assertEqual ( r.data, Data ( [ Str ( '200' ), Str ( 'OK' ) ] ) )
		self.assertEqual ( r.raw, '200 OK' )
		self.assertEqual ( parse_response ( '201 {a=b;}' ).code, 201 )
		self.assertEqual ( parse_response ( 'OK' ).code, -1 )
		self.assertEqual ( parse_response ( '' ).code, -1 )
		self.assertEqual ( parse_response ( '"200" OK' ).code, -1 )
		self.assertEqual ( parse_response ( '#200 OK' ).code, -1 )
		self.assertEqual ( parse_response ( '99999999999 OK' ).code, -1 )
		self.assertEqual ( parse_response ( '-5 odd' ).code, -5 )
		self.assertEqual ( parse_response ( '9' * 5000 + ' OK' ).code, -1 )
		self.assertEqual ( parse_response ( '0' * 5000 + '201 OK' ).code, 201 )

	def test_greeting ( self ) -> None:
		r = parse_response ( '200 mymail1.example CommuniGate Pro PWD Server 7.1.10 ready <50.123@mymail1.example>' )
		self.assertEqual ( r.code, 200 )
		self.assertEqual ( len ( r.data ), 9 )
		self.assertIn ( Str ( '<50.123@mymail1.example>' ), list ( r.data ) )
		r = parse_response ( '200 login OK, proceed' )
		self.assertEqual ( r.data, Data ( [ Str ( '200' ), Str ( 'login OK, proceed' ) ] ) )

	def test_errors ( self ) -> None:
		for text, message in (
			( '(1,2', 'unterminated array' ),
			( '201 (1,(2)', 'unterminated array' ),
			( '{A=1;', 'unterminated dictionary' ),
			( '{A=', 'unterminated dictionary' ),
			( '{A=1}', "expected ';'" ),
			( '{(1)=1;}', 'expected a dictionary key' ),
			( '(1 2)', "expected ')'" ),
			( '200(1)', 'expected whitespace' ),
			( ')', "unexpected ')'" ),
		):
			with self.assertRaises ( ParseError, msg = text ) as cm:
				parse ( text )
			self.assertIn ( message, str ( cm.exception ), text )
			self.assertNotIsInstance ( cm.exception, LexError, text )
		with self.assertRaises ( ParseError ) as cm:
			parse ( '(1,2' )
		self.assertEqual ( ( cm.exception.line, cm.exception.col ), ( 1, 5 ) )
		with self.assertRaises ( LexError ):
			parse ( '"unterminated' )
		with self.assertRaises ( ParseError ):
			parse_response ( '200 #' + '9' * 5000 )

if __name__ == '__main__':
	logging.basicConfig ( level = logging.DEBUG )
	unittest.main()
