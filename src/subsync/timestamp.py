"""
Timestamp grammar for subtitle files and the offset/scale expressions
used to configure a retiming.

Five textual styles are recognised, all with four numeric fields:

    0  H:M:S,mmm   SubRip
    1  H:M:S.cc    SSA/ASS (centiseconds)
    2  H:M:S:mmm
    3  H.M.S.mmm
    4  H-M-S-mmm
"""
import math
import re
from enum import IntEnum
from typing import NamedTuple, Optional


class TimestampStyle( IntEnum ):
    SRT = 0
    ASS = 1
    COLON = 2
    DOT = 3
    DASH = 4


class ParsedTimestamp( NamedTuple ):
    ms: int              # signed milliseconds
    length: int          # characters consumed from the input
    style: TimestampStyle


# Field separators per style, in the order they are tried
_SEPARATORS = [
    ( TimestampStyle.SRT,   ":", ":", "," ),
    ( TimestampStyle.ASS,   ":", ":", "." ),
    ( TimestampStyle.COLON, ":", ":", ":" ),
    ( TimestampStyle.DOT,   ".", ".", "." ),
    ( TimestampStyle.DASH,  "-", "-", "-" ),
];

# \s is ASCII only: 0x85 and 0xA0 are text in latin-1 passthrough
_FIELD = r"\s*([+-]?[0-9]+)";


def _compile( separators ):
    pattern = _FIELD;
    for sep in separators:
        pattern += r"\s*" + re.escape( sep ) + _FIELD;
    return re.compile( pattern, re.ASCII );


_PATTERNS = [ ( style, _compile( seps ) ) for style, *seps in _SEPARATORS ];

# Named frame-rate conversions
SCALE_RATES = {
    "N-P": 1.1988,   # NTSC to PAL, 29.97/25
    "P-N": 0.83417,  # PAL to NTSC, 25/29.97
    "N-C": 1.25,     # NTSC to Cinematic, 29.97/23.976
    "C-N": 0.8,      # Cinematic to NTSC, 23.976/29.97
    "P-C": 1.04271,  # PAL to Cinematic, 25/23.976
    "C-P": 0.95904,  # Cinematic to PAL, 23.976/25
};


def parse_timestamp( text: str ) -> Optional[ParsedTimestamp]:
    """
    Parse a timestamp at the start of text.

    A '+' or '-' in the very first position is consumed as the sign of the
    whole value. Whitespace may precede each field and surround each
    separator. The first style whose separators match decides; its fields
    are then range checked and a failure there is final.

    Args:
        text: Text beginning with the timestamp

    Returns:
        ParsedTimestamp, or None if text does not start with a valid timestamp
    """
    sign = "";
    if text[:1] in ( "+", "-" ):
        sign = text[0];

    body = text[len( sign ):];
    for style, pattern in _PATTERNS:
        match = pattern.match( body );
        if match:
            break;
    else:
        return None;

    hours, minutes, seconds, fraction = ( int( field ) for field in match.groups() );
    if not ( 0 <= minutes <= 59 ) or not ( 0 <= seconds <= 59 ):
        return None;

    if style == TimestampStyle.ASS:
        if not ( 0 <= fraction <= 99 ):
            return None;
        fraction *= 10;
    elif not ( 0 <= fraction <= 999 ):
        return None;

    ms = ( ( hours * 60 + minutes ) * 60 + seconds ) * 1000 + fraction;
    if sign == "-":
        ms = -ms;
    return ParsedTimestamp( ms, len( sign ) + match.end(), style );


def format_timestamp( ms: int, style: int = TimestampStyle.SRT ) -> str:
    """
    Render milliseconds in the given timestamp style.

    ASS timestamps carry centiseconds, so the last millisecond digit is
    dropped for style 1.
    """
    sign = "";
    if ms < 0:
        sign = "-";
        ms = -ms;

    hh, ms = divmod( ms, 3600000 );
    mm, ms = divmod( ms, 60000 );
    ss, ms = divmod( ms, 1000 );

    if style == TimestampStyle.ASS:
        return f"{sign}{hh}:{mm:02d}:{ss:02d}.{ms // 10:02d}";
    if style == TimestampStyle.COLON:
        return f"{sign}{hh:02d}:{mm:02d}:{ss:02d}:{ms:03d}";
    if style == TimestampStyle.DOT:
        return f"{sign}{hh:02d}.{mm:02d}.{ss:02d}.{ms:03d}";
    if style == TimestampStyle.DASH:
        return f"{sign}{hh:02d}-{mm:02d}-{ss:02d}-{ms:03d}";
    return f"{sign}{hh:02d}:{mm:02d}:{ss:02d},{ms:03d}";


def _parse_int( text: str ) -> Optional[int]:
    """Integer with optional sign and 0x/0o/0b prefix."""
    try:
        return int( text, 0 );
    except ValueError:
        pass;
    try:
        return int( text, 10 );  # leading zeros, e.g. "+0100"
    except ValueError:
        return None;


def parse_offset( text: str ) -> Optional[int]:
    """
    Parse a time offset expression into milliseconds.

    Accepted forms:
        [+-]01:44:30,290              absolute timestamp
        [+-]01:44:31,660-01:44:30,290 expected minus actual
        [+-]134600                    plain milliseconds

    In the subtraction form the leading sign only marks the argument as an
    option; the direction comes from the difference itself.

    Args:
        text: Offset expression

    Returns:
        Offset in milliseconds, or None if text is not an offset
    """
    if not text or "/" in text:
        return None;  # ratios are scale expressions

    if "-" in text[1:]:
        body = text[1:];
        dash = body.find( "-" );
        expected = parse_timestamp( body );
        actual = parse_timestamp( body[dash + 1:] );
        if expected is None or actual is None:
            return None;
        return expected.ms - actual.ms;

    stamp = parse_timestamp( text );
    if stamp is not None:
        return stamp.ms;
    return _parse_int( text );


def parse_scale( text: str ) -> float:
    """
    Parse a time scale expression.

    Accepted forms (any leading '+' or '-' is ignored, a ratio has no sign):
        N-P, P-N, N-C, C-N, P-C, C-P  named frame-rate conversions
        01:44:30,290/01:44:31,660     expected divided by actual
        1.000955                      real number, must contain '.'

    Returns:
        The scale factor, or 0.0 if text is not a valid scale
    """
    if text[:1] in ( "+", "-" ):
        text = text[1:];

    if text in SCALE_RATES:
        return SCALE_RATES[text];

    if "/" in text:
        expected = parse_timestamp( text );
        actual = parse_timestamp( text[text.index( "/" ) + 1:] );
        if expected is None or actual is None or actual.ms == 0:
            return 0.0;
        try:
            factor = expected.ms / actual.ms;
        except OverflowError:
            return 0.0;
    elif "." in text:
        try:
            factor = float( text );
        except ValueError:
            return 0.0;
    else:
        return 0.0;

    if not math.isfinite( factor ) or factor <= 0.0:
        return 0.0;
    return factor;


def is_serial_number( text: str ) -> bool:
    """True if text is a run of ASCII digits ending the line or a word."""
    end = 0;
    while end < len( text ) and "0" <= text[end] <= "9":
        end += 1;
    if end == 0:
        return False;
    return end == len( text ) or text[end] <= " ";
