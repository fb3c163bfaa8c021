"""protolite schema compiler."""

from .parser import ValidationError as ValidationError
from .parser import parse as parse
from .parser import parse_file as parse_file
from .parser import parse_text as parse_text
from .parser import resolve as resolve
from .types import *
