"""
Codec bridge between the source codepage of a subtitle stream and the
codepage it is written back in.
"""
import codecs
from typing import BinaryIO, Optional

from .codepage import Codepage, UTF8
from .logging import get_logger


# latin-1 maps every byte to exactly one character and back, so text of an
# unknown encoding survives the round trip through str unchanged.
PASSTHROUGH_CODEC = "latin-1";


class CodecBridge:
    """
    Decodes raw lines from the source codepage and encodes rewritten lines
    into the target codepage.

    Three modes are possible once opened:
    - passthrough: source unknown (or degraded); bytes are copied verbatim
    - identity: source equals target; narrow pages copy bytes verbatim
    - transcoding: incremental decoder/encoder between the two encodings
    """

    def __init__( self ):
        self.logger = get_logger();
        self.source: Optional[Codepage] = None;
        self.target: Codepage = UTF8;
        self.degraded = False;
        self._decoder = None;
        self._encoder = None;

    @property
    def width( self ) -> int:
        """Code unit width of the bytes the reader has to split."""
        return self.source.width if self.source else 1;

    @property
    def line_feed( self ) -> bytes:
        return self.source.line_feed if self.source else b"\n";

    @property
    def mode( self ) -> str:
        if self.source is None:
            return "passthrough";
        if self.source == self.target:
            return "identity";
        return "transcoding";

    def open( self, source: Optional[Codepage], target: Codepage = UTF8, fout: Optional[BinaryIO] = None ) -> bool:
        """
        Establish the decode/encode context for one stream.

        Args:
            source: Detected or declared source codepage, None if unknown
            target: Codepage to write
            fout: Output stream; receives the target BOM when one is due

        Returns:
            True if the requested conversion is in place, False when the
            bridge fell back to passthrough of raw bytes
        """
        self.source = source;
        self.target = target;
        self.degraded = False;

        if source is None:
            self._build( PASSTHROUGH_CODEC, PASSTHROUGH_CODEC );
            return True;

        if source == target and source.width == 1:
            self._build( PASSTHROUGH_CODEC, PASSTHROUGH_CODEC );
        else:
            try:
                self._build( source.name, target.name );
            except LookupError as e:
                self.logger.warning( f"Cannot convert {source.name} to {target.name} ({e}), copying raw bytes" );
                self.source = None;
                self.degraded = True;
                self._build( PASSTHROUGH_CODEC, PASSTHROUGH_CODEC );
                return False;

        # UTF-8 output goes without BOM, and a user-defined page has none
        if target != UTF8 and not target.user_defined and target.signature and fout is not None:
            fout.write( target.signature );

        self.logger.debug( f"Codec bridge {self.mode}: {source.name} -> {target.name}" );
        return True;

    def _build( self, source_name: str, target_name: str ):
        decoder = codecs.getincrementaldecoder( source_name )( errors="replace" );
        encoder = codecs.getincrementalencoder( target_name )( errors="replace" );
        self._decoder = decoder;
        self._encoder = encoder;

    def decode( self, raw: bytes, final: bool = False ) -> str:
        """Decode one raw line; partial characters are held for the next call."""
        return self._decoder.decode( raw, final );

    def encode( self, text: str ) -> bytes:
        """Encode one rewritten line into the target codepage."""
        return self._encoder.encode( text );

    def finish( self ) -> bytes:
        """Flush any state the encoder still holds (e.g. UTF-7 shift state)."""
        return self._encoder.encode( "", True );
