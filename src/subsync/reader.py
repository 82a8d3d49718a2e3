"""
Forward-only line reader over a raw subtitle byte stream.
"""
from typing import BinaryIO, Iterator

from .codec import CodecBridge
from .logging import get_logger


MAX_LINE_UNITS = 4096;


class LineReader:
    """
    Split a byte stream into lines and decode them through a CodecBridge.

    Line terminators are located on raw bytes before decoding, so for
    UTF-16/UTF-32 sources the reader walks whole code units and compares
    each against 0x0A in the source width and byte order. Bytes left over
    from BOM probing are consumed ahead of the stream.

    The line limit counts code units, not bytes, so a UTF-32 line holds as
    many characters as a UTF-8 one. Longer lines are truncated.

    Iterating yields decoded lines (terminator included) until the stream
    is exhausted. The reader cannot be rewound.
    """

    def __init__( self, stream: BinaryIO, bridge: CodecBridge, overflow: bytes = b"",
                  max_line: int = MAX_LINE_UNITS ):
        self.logger = get_logger();
        self.stream = stream;
        self.bridge = bridge;
        self.max_line = max_line;
        self.truncated = 0;
        self._pending = bytearray( overflow );

    def __iter__( self ) -> Iterator[str]:
        while True:
            raw = self.read_raw_line();
            if not raw:
                break;
            text = self.bridge.decode( raw );
            if text:
                yield text;

        tail = self.bridge.decode( b"", final=True );
        if tail:
            yield tail;

    def read_raw_line( self ) -> bytes:
        """
        Read the next raw line, terminator included.

        Returns:
            The line bytes, or b"" at end of stream
        """
        if self.bridge.width == 1:
            line = self._read_narrow_line();
        else:
            line = self._read_wide_line();

        limit = self.max_line * self.bridge.width;
        if len( line ) >= limit and not line.endswith( self.bridge.line_feed ):
            line = line[:limit] + self._discard_rest_of_line();
            self.truncated += 1;
            self.logger.warning( f"Line longer than {self.max_line} code units truncated" );
        return line;

    def _read_narrow_line( self ) -> bytes:
        if self._pending:
            end = self._pending.find( b"\n" );
            if end >= 0:
                # a line feed stops BOM probing, so the overflow is a whole line
                line = bytes( self._pending[:end + 1] );
                del self._pending[:end + 1];
                return line;
            head = bytes( self._pending );
            self._pending.clear();
            return head + self.stream.readline( max( self.max_line - len( head ), 1 ) );
        return self.stream.readline( self.max_line );

    def _read_wide_line( self ) -> bytes:
        width = self.bridge.width;
        line_feed = self.bridge.line_feed;
        line = bytearray();

        while len( line ) < self.max_line * width:
            unit = self._read_unit( width );
            if not unit:
                break;
            line += unit;
            if unit == line_feed:
                break;
        return bytes( line );

    def _read_unit( self, width: int ) -> bytes:
        """Read one code unit, drawing on probe overflow first."""
        unit = bytes( self._pending[:width] );
        del self._pending[:width];
        if len( unit ) < width:
            unit += self.stream.read( width - len( unit ) );
        return unit;

    def _discard_rest_of_line( self ) -> bytes:
        """Skip the remainder of an overlong line, keeping its terminator."""
        width = self.bridge.width;
        line_feed = self.bridge.line_feed;

        if width == 1:
            while True:
                chunk = self.stream.readline( self.max_line );
                if not chunk:
                    return b"";
                if chunk.endswith( line_feed ):
                    return line_feed;

        while True:
            unit = self._read_unit( width );
            if len( unit ) < width:
                return b"";
            if unit == line_feed:
                return line_feed;
