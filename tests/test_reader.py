"""
Test cases for the codec bridge and the line reader.
"""
import io
import pytest
from pathlib import Path
import sys

# Add src directory to path for testing
sys.path.insert( 0, str( Path( __file__ ).parent.parent / "src" ) );

from subsync.codec import CodecBridge
from subsync.codepage import UTF8, lookup_codepage
from subsync.reader import LineReader


UTF16LE = lookup_codepage( "UTF-16LE" );
UTF16BE = lookup_codepage( "UTF-16BE" );
UTF32LE = lookup_codepage( "UTF-32LE" );


def read_lines( data: bytes, source=None, overflow: bytes = b"", **kwargs ):
    bridge = CodecBridge();
    bridge.open( source, UTF8 );
    reader = LineReader( io.BytesIO( data ), bridge, overflow, **kwargs );
    return list( reader ), reader;


class TestCodecBridge:
    """Test establishing the conversion between two codepages."""

    def test_passthrough_keeps_bytes( self ):
        """Test that unknown encodings survive decode and encode unchanged."""
        bridge = CodecBridge();
        assert bridge.open( None, UTF8 );
        assert bridge.mode == "passthrough";
        assert bridge.width == 1;

        raw = b"caf\xe9 \xff\x80\n";
        assert bridge.encode( bridge.decode( raw ) ) == raw;

    def test_identity_writes_no_utf8_bom( self ):
        fout = io.BytesIO();
        bridge = CodecBridge();
        assert bridge.open( UTF8, UTF8, fout );
        assert bridge.mode == "identity";
        assert fout.getvalue() == b"";

    def test_transcoding( self ):
        fout = io.BytesIO();
        bridge = CodecBridge();
        assert bridge.open( UTF16LE, UTF8, fout );
        assert bridge.mode == "transcoding";
        assert bridge.width == 2;
        assert bridge.line_feed == b"\n\x00";
        assert fout.getvalue() == b"";

        text = bridge.decode( "café\n".encode( "utf-16-le" ) );
        assert text == "café\n";
        assert bridge.encode( text ) == "café\n".encode( "utf-8" );

    def test_target_bom_written_once( self ):
        """Test that a UTF-16 target gets its BOM at the start of output."""
        fout = io.BytesIO();
        bridge = CodecBridge();
        assert bridge.open( UTF8, UTF16LE, fout );
        assert fout.getvalue() == b"\xFF\xFE";
        assert bridge.encode( "1\n" ) == "1\n".encode( "utf-16-le" );

    def test_user_defined_target_has_no_bom( self ):
        fout = io.BytesIO();
        bridge = CodecBridge();
        assert bridge.open( UTF8, lookup_codepage( "gbk" ), fout );
        assert fout.getvalue() == b"";

    def test_unknown_codec_degrades( self ):
        """Test that a missing converter falls back to raw bytes."""
        fout = io.BytesIO();
        bridge = CodecBridge();
        assert not bridge.open( lookup_codepage( "UTF-EBCDIC" ), UTF8, fout );
        assert bridge.degraded;
        assert bridge.mode == "passthrough";
        assert fout.getvalue() == b"";

        raw = b"\xdd\x73 raw\n";
        assert bridge.encode( bridge.decode( raw ) ) == raw;


class TestLineReader:
    """Test splitting raw streams into decoded lines."""

    def test_narrow_lines( self ):
        lines, _ = read_lines( b"1\n00:00:01,000 --> 00:00:02,000\r\nlast" );
        assert lines == [ "1\n", "00:00:01,000 --> 00:00:02,000\r\n", "last" ];

    def test_empty_stream( self ):
        lines, _ = read_lines( b"" );
        assert lines == [];

    def test_empty_lines_are_kept( self ):
        lines, _ = read_lines( b"\n\n" );
        assert lines == [ "\n", "\n" ];

    def test_overflow_prepended( self ):
        """Test that probe overflow becomes the head of the first line."""
        lines, _ = read_lines( b"2\n3\n", overflow=b"1" );
        assert lines == [ "12\n", "3\n" ];

    def test_overflow_ending_in_line_feed( self ):
        """Test that an overflow ending in a line feed is a line by itself."""
        lines, _ = read_lines( b"rest\n", overflow=b"1\n" );
        assert lines == [ "1\n", "rest\n" ];

    def test_utf16le_lines( self ):
        data = "1\n00:00:01,000\né".encode( "utf-16-le" );
        lines, _ = read_lines( data, source=UTF16LE );
        assert lines == [ "1\n", "00:00:01,000\n", "é" ];

    def test_utf16be_unit_alignment( self ):
        """Test that 0x0A inside a wider character is not a line end."""
        data = "Ċ\nਊ\n".encode( "utf-16-be" );
        lines, _ = read_lines( data, source=UTF16BE );
        assert lines == [ "Ċ\n", "ਊ\n" ];

    def test_utf32le_lines_with_overflow( self ):
        data = "a\nb\n".encode( "utf-32-le" );
        lines, _ = read_lines( data[2:], source=UTF32LE, overflow=data[:2] );
        assert lines == [ "a\n", "b\n" ];

    def test_overlong_line_truncated( self ):
        """Test that an overlong line is cut but keeps its terminator."""
        lines, reader = read_lines( b"0123456789abc\nxy\n", max_line=8 );
        assert lines == [ "01234567\n", "xy\n" ];
        assert reader.truncated == 1;

    def test_overlong_wide_line_truncated( self ):
        """Test that the limit counts code units, not bytes."""
        data = "0123456789\nxy\n".encode( "utf-16-le" );
        lines, reader = read_lines( data, source=UTF16LE, max_line=8 );
        assert lines == [ "01234567\n", "xy\n" ];
        assert reader.truncated == 1;

    def test_utf32_line_limit_matches_utf8( self ):
        text = "0123456789\nxy\n";
        narrow, _ = read_lines( text.encode( "utf-8" ), source=UTF8, max_line=8 );
        wide, reader = read_lines( text.encode( "utf-32-le" ), source=UTF32LE, max_line=8 );
        assert wide == narrow == [ "01234567\n", "xy\n" ];
        assert reader.truncated == 1;

    def test_line_filling_limit_not_truncated( self ):
        """Test that a line whose terminator is the last unit fits."""
        data = "0123456\n".encode( "utf-32-le" );
        lines, reader = read_lines( data, source=UTF32LE, max_line=8 );
        assert lines == [ "0123456\n" ];
        assert reader.truncated == 0;


if __name__ == '__main__':
    pytest.main( [ __file__ ] );
