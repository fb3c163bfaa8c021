"""protolite runtime: wire codec, message base classes and conversion."""

from .convert import ConversionOptions as ConversionOptions
from .convert import HighLowPair as HighLowPair
from .convert import Int64Input as Int64Input
from .convert import coerce_int64 as coerce_int64
from .errors import *
from .message import Message as Message
from .message import ProtoEnum as ProtoEnum
from .message import proto_field as proto_field
from .reader import Reader as Reader
from .registry import SchemaRegistry as SchemaRegistry
from .stream import DelimitedStream as DelimitedStream
from .stream import StreamError as StreamError
from .types import Cardinality as Cardinality
from .types import EnumDescriptor as EnumDescriptor
from .types import FieldDescriptor as FieldDescriptor
from .types import MessageDescriptor as MessageDescriptor
from .varint import decode_varint as decode_varint
from .varint import encode_varint as encode_varint
from .varint import zigzag_decode as zigzag_decode
from .varint import zigzag_encode as zigzag_encode
from .wire import WireType as WireType
from .wire import make_tag as make_tag
from .wire import split_tag as split_tag
from .writer import Writer as Writer
