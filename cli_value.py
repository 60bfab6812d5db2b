from __future__ import annotations

# python imports:
import datetime
import ipaddress
import logging
import re
from typing import (
	Any, Callable, Dict, Iterator, List, NamedTuple, Optional as Opt,
	Sequence as Seq, Tuple, Type, Union,
)

logger = logging.getLogger ( __name__ )

_r_timestamp = re.compile ( r'(\d{2})-(\d{2})-(\d{4})(?:_(\d{2}):(\d{2}):(\d{2}))?' )


#region VALUES ----------------------------------------------------------------

class _Frozen:
	''' each slot can be assigned once, in __init__ '''
	__slots__: Tuple[str,...] = ()

	def __setattr__ ( self, name: str, value: Any ) -> None:
		if hasattr ( self, name ):
			raise AttributeError ( f'{type(self).__name__}.{name} is read-only' )
		super().__setattr__ ( name, value )

	def __delattr__ ( self, name: str ) -> None:
		raise AttributeError ( f'{type(self).__name__}.{name} is read-only' )


class Value ( _Frozen ):
	'''
	base of the parsed wire values

	values are built once by the parser and never changed afterwards, so
	equality and hashing go by type and content
	'''
	__slots__: Tuple[str,...] = ()

	def _key ( self ) -> Tuple[Any,...]:
		return tuple ( getattr ( self, k ) for k in self.__slots__ )

	def __eq__ ( self, other: object ) -> bool:
		return type ( self ) is type ( other ) and self._key() == other._key() # type: ignore

	def __ne__ ( self, other: object ) -> bool:
		return not self == other

	def __hash__ ( self ) -> int:
		return hash ( ( type ( self ).__name__, self._key() ) )

	def __repr__ ( self ) -> str:
		cls = type ( self )
		args = ', '.join ( repr ( v ) for v in self._key() )
		return f'{cls.__module__}.{cls.__name__}({args})'


class Str ( Value ):
	__slots__ = ( 'text', )

	def __init__ ( self, text: str ) -> None:
		assert isinstance ( text, str ), f'invalid {text=}'
		self.text = text


class Int ( Value ):
	__slots__ = ( 'value', )

	def __init__ ( self, value: int ) -> None:
		assert isinstance ( value, int ), f'invalid {value=}'
		self.value = value


class Null ( Value ):
	__slots__ = ()


class IpAddress ( Value ):
	''' lexical form that followed #I, ex: '10.0.0.1', '[10.0.0.1]:25', '::1' '''
	__slots__ = ( 'text', )

	def __init__ ( self, text: str ) -> None:
		self.text = text

	def _split ( self ) -> Tuple[str,Opt[int]]:
		text = self.text
		if text.startswith ( '[' ):
			host, _, rest = text[1:].partition ( ']' )
			return host, int ( rest[1:] ) if rest.startswith ( ':' ) else None
		if text.count ( ':' ) == 1: # ipv4 with port; a bare ipv6 always has 2+ colons
			host, port = text.split ( ':' )
			return host, int ( port )
		return text, None

	@property
	def host ( self ) -> str:
		return self._split()[0]

	@property
	def port ( self ) -> Opt[int]:
		return self._split()[1]

	def address ( self ) -> Union[ipaddress.IPv4Address,ipaddress.IPv6Address]:
		return ipaddress.ip_address ( self.host )


class Timestamp ( Value ):
	''' lexical form that followed #T: FUTURE, PAST or DD-MM-YYYY[_HH:MM:SS] '''
	__slots__ = ( 'text', )

	def __init__ ( self, text: str ) -> None:
		self.text = text

	def datetime ( self ) -> Opt[datetime.datetime]:
		# FUTURE and PAST have no calendar equivalent
		m = _r_timestamp.fullmatch ( self.text )
		if not m:
			return None
		day, month, year, hh, mm, ss = m.groups()
		return datetime.datetime (
			int ( year ), int ( month ), int ( day ),
			int ( hh or 0 ), int ( mm or 0 ), int ( ss or 0 ),
		)


class DataBlock ( Value ):
	__slots__ = ( 'data', )

	def __init__ ( self, data: bytes ) -> None:
		self.data = bytes ( data )


class Array ( Value ):
	__slots__ = ( 'items', )

	def __init__ ( self, items: Seq[Value] = () ) -> None:
		self.items: Tuple[Value,...] = tuple ( items )

	def __len__ ( self ) -> int:
		return len ( self.items )

	def __iter__ ( self ) -> Iterator[Value]:
		return iter ( self.items )

	def __getitem__ ( self, index: int ) -> Value:
		return self.items[index]


class Dictionary ( Value ):
	'''
	entries in wire order; a repeated key stays repeated here and the
	last one wins when converting with to_mapping()
	'''
	__slots__ = ( 'items', )

	def __init__ ( self, items: Seq[Tuple[str,Value]] = () ) -> None:
		self.items: Tuple[Tuple[str,Value],...] = tuple ( items )

	def __len__ ( self ) -> int:
		return len ( self.items )

	def keys ( self ) -> List[str]:
		return [ k for k, _ in self.items ]

	def get ( self, key: str, default: Opt[Value] = None ) -> Opt[Value]:
		found = default
		for k, v in self.items:
			if k == key:
				found = v
		return found


class Data ( _Frozen ):
	''' the top-level sequence of a response line (status code first, if any) '''
	__slots__ = ( 'items', )

	def __init__ ( self, items: Seq[Value] = () ) -> None:
		self.items: Tuple[Value,...] = tuple ( items )

	def __len__ ( self ) -> int:
		return len ( self.items )

	def __iter__ ( self ) -> Iterator[Value]:
		return iter ( self.items )

	def __eq__ ( self, other: object ) -> bool:
		return isinstance ( other, Data ) and self.items == other.items

	def __repr__ ( self ) -> str:
		cls = type ( self )
		return f'{cls.__module__}.{cls.__name__}({", ".join(map(repr,self.items))})'

Node = Union[Value,Data]

#endregion
#region TRAVERSAL -------------------------------------------------------------

def first_of ( node: Opt[Node], kinds: Tuple[Type[Value],...] ) -> Opt[Value]:
	'''
	Returns the node itself if it is one of kinds, otherwise the first of
	its children after the first one that is. The first child is skipped
	because on a response line it holds the status code. Returns None if
	nothing matches.
	'''
	if node is None:
		return None
	if isinstance ( node, kinds ):
		return node
	if isinstance ( node, ( Data, Array ) ):
		for child in node.items[1:]:
			if isinstance ( child, kinds ):
				return child
	return None

#endregion
#region PROJECTORS ------------------------------------------------------------

def to_native ( value: Value ) -> Any:
	if isinstance ( value, Str ):
		return value.text
	if isinstance ( value, Int ):
		return value.value
	if isinstance ( value, Null ):
		return None
	if isinstance ( value, ( IpAddress, Timestamp ) ):
		return value.text
	if isinstance ( value, DataBlock ):
		return value.data
	if isinstance ( value, Array ):
		return to_sequence ( value )
	if isinstance ( value, Dictionary ):
		return to_mapping ( value )
	raise TypeError ( f'not a wire value: {value!r}' )


def to_string ( value: Value ) -> str:
	if isinstance ( value, Int ):
		return str ( value.value )
	if isinstance ( value, ( Str, IpAddress, Timestamp ) ):
		return value.text
	raise TypeError ( f'no string form for {value!r}' )


def to_integer ( value: Value ) -> int:
	if isinstance ( value, Int ):
		return value.value
	if isinstance ( value, Str ):
		return int ( value.text.strip() )
	raise TypeError ( f'no integer form for {value!r}' )


def to_mapping ( value: Dictionary ) -> Dict[str,Any]:
	result: Dict[str,Any] = {}
	for k, v in value.items:
		result[k] = to_native ( v )
	return result


def to_sequence ( value: Array ) -> List[Any]:
	return [ to_native ( v ) for v in value.items ]


class Projector ( NamedTuple ):
	name: str
	kinds: Tuple[Type[Value],...]
	convert: Callable[[Any],Any]

	def __call__ ( self, node: Opt[Node] ) -> Opt[Any]:
		found = first_of ( node, self.kinds )
		if found is None:
			return None
		return self.convert ( found )


as_string = Projector ( 'string', ( Str, ), to_string )
as_integer = Projector ( 'integer', ( Int, Str ), to_integer )
as_mapping = Projector ( 'mapping', ( Dictionary, ), to_mapping )
as_sequence = Projector ( 'sequence', ( Array, ), to_sequence )

#endregion
