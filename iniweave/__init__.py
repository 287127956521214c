"""
iniweave - INI configuration files that keep their formatting.

Comments, blank lines and indentation survive a read/modify/write cycle.
"""

import logging

__version__ = "0.1.0"

from iniweave.dialect import (
    CommentStarter, Dialect, DuplicatePolicy, KeyDelimiter, SectionWrapper,
    GLOBAL_SECTION_NAME,
)
from iniweave.errors import (
    IniError, ParseError, DuplicateNameError, EnvelopeError, DecryptionError, DecompressionError,
)
from iniweave.document import IniDocument, IniSection, IniKey, StyledLine
from iniweave.values import ValueMappings, try_parse, format_value
from iniweave.binding import BindingEvent, ValueBinding
from iniweave.mapper import FieldMapping, SectionSchema, ini_key, ini_exclude
from iniweave.reader import IniReader
from iniweave.writer import IniWriter

logging.getLogger(__name__).addHandler(logging.NullHandler())
