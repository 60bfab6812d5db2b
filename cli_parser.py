from __future__ import annotations

# python imports:
import logging
import re
from typing import List, NamedTuple, Tuple

# cgpro_cli imports:
from cli_lexer import Kind, ParseError, Token, tokenize
from cli_value import (
	Array, Data, DataBlock, Dictionary, Int, IpAddress, Null, Str, Timestamp,
	Value,
)

logger = logging.getLogger ( __name__ )

INT32_MIN = -2**31
INT32_MAX = 2**31 - 1

_r_status_code = re.compile ( r'-?[0-9]+' )


class ParsedResponse ( NamedTuple ):
	code: int # -1 when the line doesn't start with a plain integer atom
	data: Data
	raw: str


class Parser:
	'''
	recursive descent over the token list from cli_lexer.tokenize()

	cliData   := WS? cliObject? ( WS cliObject )* WS? EOF
	cliObject := string | integer | null | timestamp | ip | datablock | array | dictionary
	array     := '(' ( cliObject ( ',' cliObject )* )? ')'
	dictionary:= '{' ( string '=' cliObject ';' )* '}'

	whitespace inside arrays and dictionaries is insignificant
	'''
	def __init__ ( self, text: str ) -> None:
		self.text = text
		self.tokens = tokenize ( text )
		self.index = 0

	@property
	def tok ( self ) -> Token:
		return self.tokens[self.index]

	def _advance ( self ) -> Token:
		tok = self.tokens[self.index]
		if tok.kind is not Kind.EOF:
			self.index += 1
		return tok

	def _skip_ws ( self ) -> bool:
		skipped = False
		while self.tok.kind is Kind.WS:
			self.index += 1
			skipped = True
		return skipped

	def _error ( self, message: str ) -> ParseError:
		return ParseError ( message, self.text, self.tok.pos )

	def _expect ( self, kind: Kind, context: str ) -> Token:
		if self.tok.kind is Kind.EOF:
			raise self._error ( f'unterminated {context}' )
		if self.tok.kind is not kind:
			raise self._error ( f"expected '{kind.value}' in {context}, got {self.tok.kind.value}" )
		return self._advance()

	def parse_data ( self ) -> Tuple[int,Data]:
		items: List[Value] = []
		code = -1
		self._skip_ws()
		if self.tok.kind is not Kind.EOF:
			first = self.tok
			items.append ( self.parse_object() )
			if first.kind is Kind.ATOM and _r_status_code.fullmatch ( first.text ):
				digits = first.text.lstrip ( '-' ).lstrip ( '0' )
				if len ( digits ) <= 10: # int32 never needs more
					value = int ( digits or '0' )
					if first.text.startswith ( '-' ):
						value = -value
					if INT32_MIN <= value <= INT32_MAX:
						code = value
			while True:
				separated = self._skip_ws()
				if self.tok.kind is Kind.EOF:
					break
				if not separated:
					raise self._error ( 'expected whitespace or end of input' )
				items.append ( self.parse_object() )
		return code, Data ( items )

	def parse_object ( self ) -> Value:
		tok = self.tok
		kind = tok.kind
		if kind in ( Kind.ATOM, Kind.STRING ):
			self._advance()
			return Str ( tok.value )
		if kind is Kind.INT:
			self._advance()
			return Int ( tok.value )
		if kind is Kind.NULL:
			self._advance()
			return Null()
		if kind is Kind.IP:
			self._advance()
			return IpAddress ( tok.value )
		if kind is Kind.TIMESTAMP:
			self._advance()
			return Timestamp ( tok.value )
		if kind is Kind.DATA:
			self._advance()
			return DataBlock ( tok.value )
		if kind is Kind.LPAREN:
			return self.parse_array()
		if kind is Kind.LBRACE:
			return self.parse_dictionary()
		if kind is Kind.EOF:
			raise self._error ( 'unexpected end of input, expected an object' )
		raise self._error ( f"unexpected '{tok.text}', expected an object" )

	def parse_array ( self ) -> Array:
		self._expect ( Kind.LPAREN, 'array' )
		items: List[Value] = []
		self._skip_ws()
		if self.tok.kind is Kind.RPAREN:
			self._advance()
			return Array ( items )
		while True:
			if self.tok.kind is Kind.EOF:
				raise self._error ( 'unterminated array' )
			items.append ( self.parse_object() )
			self._skip_ws()
			if self.tok.kind is Kind.COMMA:
				self._advance()
				self._skip_ws()
				continue
			self._expect ( Kind.RPAREN, 'array' )
			return Array ( items )

	def parse_dictionary ( self ) -> Dictionary:
		self._expect ( Kind.LBRACE, 'dictionary' )
		items: List[Tuple[str,Value]] = []
		while True:
			self._skip_ws()
			kind = self.tok.kind
			if kind is Kind.RBRACE:
				self._advance()
				return Dictionary ( items )
			if kind is Kind.EOF:
				raise self._error ( 'unterminated dictionary' )
			if kind not in ( Kind.ATOM, Kind.STRING ):
				raise self._error ( f"unexpected '{self.tok.text}', expected a dictionary key" )
			key = self._advance().value
			self._skip_ws()
			self._expect ( Kind.EQUALS, 'dictionary' )
			self._skip_ws()
			if self.tok.kind is Kind.EOF:
				raise self._error ( 'unterminated dictionary' )
			value = self.parse_object()
			self._skip_ws()
			self._expect ( Kind.SEMI, 'dictionary' )
			items.append ( ( key, value ) )


def parse ( text: str ) -> Data:
	return parse_response ( text ).data


def parse_response ( text: str ) -> ParsedResponse:
	''' Parses one response line; the whole line is rejected on any error. '''
	code, data = Parser ( text ).parse_data()
	return ParsedResponse ( code, data, text )
