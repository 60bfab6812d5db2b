import base64
from typing import Union

BYTES = Union[bytes,bytearray,memoryview]
bytes_types = ( bytes, bytearray, memoryview )
ENCODING = 'utf-8' # CommuniGate Pro passes non-ASCII through in atoms and quoted strings

def b2s ( b: BYTES, encoding: str = ENCODING, errors: str = 'strict' ) -> str:
	return bytes ( b ).decode ( encoding, errors )

def s2b ( s: str, encoding: str = ENCODING, errors: str = 'strict' ) -> bytes:
	return s.encode ( encoding, errors )

def b64_encode_bytes ( b: BYTES ) -> str:
	return b2s ( base64.b64encode ( bytes ( b ) ), 'us-ascii' )

def b64_decode_bytes ( s: str ) -> bytes:
	return base64.b64decode ( s2b ( s, 'us-ascii' ), validate = True )
