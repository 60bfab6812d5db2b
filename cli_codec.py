from __future__ import annotations

# python imports:
import logging
import re
from typing import Any, List, Mapping, Optional as Opt

# cgpro_cli imports:
from util import bytes_types, b64_encode_bytes

logger = logging.getLogger ( __name__ )

_r_atom_char = re.compile ( r'[A-Za-z0-9@_-]' )
_r_hex = re.compile ( r'[0-9A-Fa-f]{3,6}' )
_r_dec3 = re.compile ( r'[0-9]{3}' )

_simple_escapes = {
	'\\': '\\',
	'"': '"',
	'r': '\r',
	'n': '\n',
	'e': '\r\n',
	't': '\t',
}


def encode_string ( s: Opt[str] ) -> str:
	'''
	Encodes s as a CLI atom, quoting it only when it holds a character
	outside [A-Za-z0-9@_-].
	'''
	if not s:
		return ''
	out: List[str] = []
	quote = False
	after_cr = False
	for c in s:
		if not _r_atom_char.match ( c ):
			quote = True
		if c == '\r':
			out.append ( '\\r' )
			after_cr = True
			continue
		if c == '\n' and after_cr:
			out[-1] = '\\e' # CRLF pair collapses into the line break escape
		elif c == '\n':
			out.append ( '\\n' )
		elif c == '\\':
			out.append ( '\\\\' )
		elif c == '"':
			out.append ( '\\"' )
		elif c == '\t':
			out.append ( '\\t' )
		else:
			out.append ( c )
		after_cr = False
	text = ''.join ( out )
	return f'"{text}"' if quote else text


def decode_string ( s: Opt[str] ) -> str:
	'''
	Reverses encode_string(). Unrecognized or malformed escapes are passed
	through as-is rather than rejected.
	'''
	if not s:
		return ''
	if len ( s ) >= 2 and s[0] == '"' and s[-1] == '"':
		s = s[1:-1]
	out: List[str] = []
	i = 0
	n = len ( s )
	while i < n:
		c = s[i]
		if c != '\\' or i + 1 >= n:
			out.append ( c )
			i += 1
			continue
		esc = s[i + 1]
		if esc in _simple_escapes:
			out.append ( _simple_escapes[esc] )
			i += 2
			continue
		if esc == 'u' and s[i + 2:i + 3] == "'":
			end = s.find ( "'", i + 3 )
			if end != -1 and _r_hex.fullmatch ( s, i + 3, end ):
				cp = int ( s[i + 3:end], 16 )
				if cp <= 0x10FFFF:
					out.append ( chr ( cp ) )
					i = end + 1
					continue
		elif _r_dec3.match ( s, i + 1 ):
			out.append ( chr ( int ( s[i + 1:i + 4] ) ) )
			i += 4
			continue
		out.append ( c )
		out.append ( esc )
		i += 2
	return ''.join ( out )


def encode_object ( o: Any ) -> str:
	''' Encodes a command argument: mappings, sequences, bytes and scalars. '''
	if isinstance ( o, Mapping ):
		entries = ''.join (
			f'{encode_string(str(k))}={encode_object(v)};'
			for k, v in o.items()
		)
		return f'{{{entries}}}'
	if isinstance ( o, bytes_types ):
		return f'[{b64_encode_bytes(o)}]'
	if o is None:
		return ''
	if not isinstance ( o, str ) and hasattr ( o, '__iter__' ):
		return f'({",".join(encode_object(item) for item in o)})'
	return encode_string ( str ( o ) )
