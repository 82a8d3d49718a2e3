"""
Retiming engine: rewrites the timestamps of SRT and SSA/ASS subtitle
streams line by line, leaving every other character untouched.

SRT:  00:02:17,440 --> 00:02:20,375
ASS:  Dialogue: Marked=0,0:02:42.42,0:02:44.15,Wolf main,autre,0000,0000,0000,,Toujours rien.
"""
from enum import Enum
from typing import BinaryIO, Callable, Dict, List, Optional, Tuple

from .codec import CodecBridge
from .codepage import Codepage, UTF8, detect_bom
from .logging import get_logger
from .reader import LineReader
from .timestamp import format_timestamp, is_serial_number, parse_timestamp
from .transform import Transform


DIALOGUE = "Dialogue:";
ASS_SECTIONS = ( "[Events]", "[Script Info]" );


class SubtitleFormat( Enum ):
    UNKNOWN = "unknown"
    SRT = "srt"
    ASS = "ass"


class DocumentState:
    """Per-stream state; a new one is created for every stream retimed."""

    def __init__( self, serial: Optional[int] = None ):
        self.format = SubtitleFormat.UNKNOWN;
        self.entry = 0;        # running subtitle entry counter, 1-based once seen
        self.serial = serial;  # next serial number to write, None if not renumbering
        self.timestamps = 0;
        self.serials = 0;
        self.chopped = 0;

    def settle( self, fmt: SubtitleFormat ):
        """Fix the document format; it is decided once and never reverted."""
        if self.format is SubtitleFormat.UNKNOWN:
            self.format = fmt;


class ChopFilter:
    """
    Removes subtitle entries whose 1-based position is in [first, last].

    Either bound may be None (or <= 0), meaning unbounded on that side.
    The filter is inactive when neither bound is set.
    """

    def __init__( self, first: Optional[int] = None, last: Optional[int] = None ):
        self.first = first if first is not None and first > 0 else None;
        self.last = last if last is not None and last > 0 else None;

    @property
    def active( self ) -> bool:
        return self.first is not None or self.last is not None;

    def _in_range( self, entry: int ) -> bool:
        if self.first is not None and entry < self.first:
            return False;
        if self.last is not None and entry > self.last:
            return False;
        return True;

    def should_remove( self, line: str, state: DocumentState ) -> bool:
        """
        Advance the entry counter for line and decide whether to drop it.

        In SRT every line belongs to the entry opened by the last serial
        number, so whole entries go. In ASS only the Dialogue lines are
        entries; section headers and styles are always kept.
        """
        if not self.active:
            return False;

        if state.format is SubtitleFormat.SRT:
            if is_serial_number( line ):
                state.entry += 1;
            return self._in_range( state.entry );

        if state.format is SubtitleFormat.ASS:
            if not line.startswith( DIALOGUE ):
                return False;
            state.entry += 1;
            return self._in_range( state.entry );

        if is_serial_number( line ) or parse_timestamp( line ) is not None:
            state.settle( SubtitleFormat.SRT );
        elif line.startswith( ASS_SECTIONS ):
            state.settle( SubtitleFormat.ASS );
            return False;
        elif line.startswith( DIALOGUE ):
            state.settle( SubtitleFormat.ASS );
        else:
            return False;
        state.entry += 1;
        return self._in_range( state.entry );


def _split_blank( text: str ) -> Tuple[str, str]:
    """Split off leading whitespace and control characters (0x01-0x20)."""
    end = 0;
    while end < len( text ) and "\x00" < text[end] <= " ":
        end += 1;
    return text[:end], text[end:];


LineHandler = Callable[[str, DocumentState], Optional[Tuple[str, str]]];


class Retimer:
    """
    Rewrite the timestamps of a subtitle stream.

    Each line is offered to an ordered list of handlers; the first one that
    recognises the line returns the text it produced and the unconsumed
    remainder, which is then copied through verbatim. Lines no handler
    recognises pass through unchanged.
    """

    def __init__( self, transform: Optional[Transform] = None, renumber_from: Optional[int] = None,
                  chop: Optional[ChopFilter] = None ):
        self.logger = get_logger();
        self.transform = transform or Transform();
        self.renumber_from = renumber_from if renumber_from is not None and renumber_from > 0 else None;
        self.chop = chop or ChopFilter();
        self.handlers: List[LineHandler] = [
            self._retime_dialogue,
            self._retime_srt_timing,
            self._renumber_serial,
        ];

    def new_state( self ) -> DocumentState:
        return DocumentState( serial=self.renumber_from );

    def _rewrite( self, text: str, state: DocumentState ) -> Optional[Tuple[str, str]]:
        """Rewrite the timestamp at the start of text."""
        stamp = parse_timestamp( text );
        if stamp is None:
            return None;
        state.timestamps += 1;
        return format_timestamp( self.transform.apply( stamp.ms ), stamp.style ), text[stamp.length:];

    def _retime_dialogue( self, text: str, state: DocumentState ) -> Optional[Tuple[str, str]]:
        """ASS/SSA: the 2nd and 3rd comma separated fields are start and end."""
        if not text.startswith( DIALOGUE ):
            return None;

        out = "";
        for _ in range( 2 ):
            comma = text.find( "," );
            if comma < 0:
                break;
            blank, rest = _split_blank( text[comma + 1:] );
            rewritten = self._rewrite( rest, state );
            if rewritten is None:
                break;  # malformed record, keep the rest as it is
            out += text[:comma + 1] + blank + rewritten[0];
            text = rewritten[1];
        return out, text;

    def _retime_srt_timing( self, text: str, state: DocumentState ) -> Optional[Tuple[str, str]]:
        """SRT: a line starting with a timestamp carries start and end."""
        first = self._rewrite( text, state );
        if first is None:
            return None;

        out, text = first;
        digit = 0;
        while digit < len( text ) and not "0" <= text[digit] <= "9":
            digit += 1;
        if digit == len( text ):
            return out, text;

        second = self._rewrite( text[digit:], state );
        if second is None:
            return out, text;
        return out + text[:digit] + second[0], second[1];

    def _renumber_serial( self, text: str, state: DocumentState ) -> Optional[Tuple[str, str]]:
        if state.serial is None or not is_serial_number( text ):
            return None;

        end = 0;
        while end < len( text ) and "0" <= text[end] <= "9":
            end += 1;
        serial = str( state.serial );
        state.serial += 1;
        state.serials += 1;
        return serial, text[end:];

    def retime_line( self, line: str, state: DocumentState ) -> Optional[str]:
        """
        Rewrite one decoded line.

        Args:
            line: Line text including its terminator
            state: State of the stream the line belongs to

        Returns:
            The rewritten line, or None if the chop filter removes it
        """
        if self.chop.should_remove( line, state ):
            state.chopped += 1;
            return None;

        blank, text = _split_blank( line );
        for handler in self.handlers:
            handled = handler( text, state );
            if handled is not None:
                return blank + handled[0] + handled[1];
        return blank + text;

    def retime_lines( self, lines, state: Optional[DocumentState] = None ):
        """Retime an iterable of text lines, yielding the lines to keep."""
        state = state or self.new_state();
        for line in lines:
            rewritten = self.retime_line( line, state );
            if rewritten is not None:
                yield rewritten;

    def run( self, fin: BinaryIO, fout: BinaryIO, encoding: Optional[Codepage] = None,
             output_encoding: Codepage = UTF8 ) -> Dict:
        """
        Retime a whole subtitle stream.

        The source codepage is sniffed from the BOM; a detected BOM takes
        precedence over the encoding supplied by the caller.

        Args:
            fin: Readable binary stream
            fout: Writable binary stream
            encoding: Declared source codepage, used when no BOM is found
            output_encoding: Codepage to write

        Returns:
            Dictionary with statistics about the retimed stream
        """
        probe = detect_bom( fin );
        source = probe.codepage or encoding;
        if probe.codepage is not None:
            self.logger.debug( f"Detected BOM: {probe.codepage.name}" );

        bridge = CodecBridge();
        bridge.open( source, output_encoding, fout );
        reader = LineReader( fin, bridge, probe.overflow );

        state = self.new_state();
        lines_read = 0;
        lines_written = 0;
        for line in reader:
            lines_read += 1;
            rewritten = self.retime_line( line, state );
            if rewritten is None:
                continue;
            fout.write( bridge.encode( rewritten ) );
            lines_written += 1;

        fout.write( bridge.finish() );
        fout.flush();

        stats = {
            'lines_read': lines_read,
            'lines_written': lines_written,
            'lines_chopped': state.chopped,
            'lines_truncated': reader.truncated,
            'timestamps': state.timestamps,
            'serials': state.serials,
            'format': state.format.value,
            'source_encoding': bridge.source.name if bridge.source else None,
            'degraded': bridge.degraded
        };
        self.logger.debug( f"Retimed {stats['timestamps']} timestamps in {lines_read} lines "
                           f"({state.chopped} chopped)" );
        return stats;
