from __future__ import annotations

# python imports:
import binascii
import enum
import logging
import re
from typing import Any, List, NamedTuple, Tuple

# cgpro_cli imports:
from base_proto import ProtocolError
import cli_codec
from util import b64_decode_bytes

logger = logging.getLogger ( __name__ )

INT64_MIN = -2**63
INT64_MAX = 2**63 - 1

_GREETING_ATOM = 'login OK, proceed' # the server sends this unquoted, comma and all

_r_ws = re.compile ( r'[ \t\r\n]+' )
_r_atom = re.compile ( '[A-Za-z0-9.\\-@_<>\u0080-\U0010FFFF]+' )
_r_quoted = re.compile ( r'"(?:[^"\\]|\\.)*"', re.S )
_r_null = re.compile ( r'#NULL#' )
_r_int = re.compile ( r'#(-?)(?:0x([0-9A-Fa-f]+)|0o([0-7]+)|0b([01]+)|([0-9]+))' )
_r_timestamp = re.compile ( r'#T(FUTURE|PAST|\d{2}-\d{2}-\d{4}(?:_\d{2}:\d{2}:\d{2})?)' )
_r_ip = re.compile (
	r'#I('
		r'\[[0-9A-Fa-f:.]+\](?::\d+)?' # bracketed v4 or v6, optional port
	r'|'
		r'\d{1,3}(?:\.\d{1,3}){3}(?::\d+)?' # dotted v4, optional port
	r'|'
		r'[0-9A-Fa-f]*:[0-9A-Fa-f:.]*' # colon-grouped v6 incl. the compressed :: form
	r')'
)
_r_datablock = re.compile ( r'\[([A-Za-z0-9+/=\s]*)\]' )
_r_ws_any = re.compile ( r'\s+' )


class Kind ( enum.Enum ):
	WS = 'whitespace'
	ATOM = 'atom'
	STRING = 'quoted string'
	INT = 'integer'
	NULL = 'null'
	TIMESTAMP = 'timestamp'
	IP = 'ip address'
	DATA = 'data block'
	LPAREN = '('
	RPAREN = ')'
	LBRACE = '{'
	RBRACE = '}'
	EQUALS = '='
	SEMI = ';'
	COMMA = ','
	EOF = 'end of input'

_punctuation = {
	'(': Kind.LPAREN,
	')': Kind.RPAREN,
	'{': Kind.LBRACE,
	'}': Kind.RBRACE,
	'=': Kind.EQUALS,
	';': Kind.SEMI,
	',': Kind.COMMA,
}


class Token ( NamedTuple ):
	kind: Kind
	text: str # exact lexeme
	pos: int
	value: Any = None # decoded payload: str, int, bytes or None


def line_col ( text: str, pos: int ) -> Tuple[int,int]:
	line = text.count ( '\n', 0, pos ) + 1
	col = pos - ( text.rfind ( '\n', 0, pos ) + 1 ) + 1
	return line, col


class ParseError ( ProtocolError ):
	stage = 'Parser'

	def __init__ ( self, message: str, text: str, pos: int ) -> None:
		self.line, self.col = line_col ( text, pos )
		self.pos = pos
		self.fragment = text[pos:pos + 20]
		super().__init__ (
			f'{self.stage} error on line {self.line} col {self.col}: {message}; Offending Symbol: {self.fragment!r}'
		)


class LexError ( ParseError ):
	stage = 'Lexer'


def _lex_hash ( text: str, pos: int ) -> Token:
	if ( m := _r_null.match ( text, pos ) ):
		return Token ( Kind.NULL, m.group(), pos )
	if ( m := _r_timestamp.match ( text, pos ) ):
		return Token ( Kind.TIMESTAMP, m.group(), pos, m.group ( 1 ) )
	if ( m := _r_ip.match ( text, pos ) ):
		return Token ( Kind.IP, m.group(), pos, m.group ( 1 ) )
	if ( m := _r_int.match ( text, pos ) ):
		sign, hexa, octal, binary, decimal = m.groups()
		if hexa:
			value = int ( hexa, 16 )
		elif octal:
			value = int ( octal, 8 )
		elif binary:
			value = int ( binary, 2 )
		else:
			decimal = decimal.lstrip ( '0' ) or '0'
			if len ( decimal ) > 19: # int64 never needs more
				raise LexError ( 'integer out of 64-bit range', text, pos )
			value = int ( decimal )
		if sign:
			value = -value
		if not INT64_MIN <= value <= INT64_MAX:
			raise LexError ( 'integer out of 64-bit range', text, pos )
		return Token ( Kind.INT, m.group(), pos, value )
	raise LexError ( "unrecognized '#' literal", text, pos )


def tokenize ( text: str ) -> List[Token]:
	''' Splits a response line into tokens, ending with an EOF token. '''
	tokens: List[Token] = []
	pos = 0
	end = len ( text )
	while pos < end:
		c = text[pos]
		if ( m := _r_ws.match ( text, pos ) ):
			tok = Token ( Kind.WS, m.group(), pos )
		elif c in _punctuation:
			tok = Token ( _punctuation[c], c, pos )
		elif c == '"':
			if not ( m := _r_quoted.match ( text, pos ) ):
				raise LexError ( 'unterminated quoted string', text, pos )
			tok = Token ( Kind.STRING, m.group(), pos, cli_codec.decode_string ( m.group() ) )
		elif c == '#':
			tok = _lex_hash ( text, pos )
		elif c == '[':
			if not ( m := _r_datablock.match ( text, pos ) ):
				raise LexError ( 'unterminated or malformed data block', text, pos )
			try:
				data = b64_decode_bytes ( _r_ws_any.sub ( '', m.group ( 1 ) ) )
			except binascii.Error as e:
				raise LexError ( f'invalid base64 in data block: {e}', text, pos ) from e
			tok = Token ( Kind.DATA, m.group(), pos, data )
		elif text.startswith ( _GREETING_ATOM, pos ):
			tok = Token ( Kind.ATOM, _GREETING_ATOM, pos, _GREETING_ATOM )
		elif ( m := _r_atom.match ( text, pos ) ):
			tok = Token ( Kind.ATOM, m.group(), pos, m.group() )
		else:
			raise LexError ( f'unexpected character {c!r}', text, pos )
		tokens.append ( tok )
		pos += len ( tok.text )
	tokens.append ( Token ( Kind.EOF, '', end ) )
	return tokens
