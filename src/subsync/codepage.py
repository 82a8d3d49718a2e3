"""
Codepage descriptors and byte-order-mark detection.

A codepage couples an encoding name with the width and byte order of its
code units, which the line reader needs to find line terminators before
anything has been decoded.
"""
from typing import BinaryIO, List, NamedTuple, Optional


MAX_SIGNATURE = 4;


class Codepage:
    """A named encoding with its BOM signature and code unit layout."""

    def __init__( self, name: str, signature: bytes = b"", width: int = 1,
                  big_endian: bool = False, user_defined: bool = False ):
        self.name = name;
        self.signature = signature;
        self.width = width;
        self.big_endian = big_endian;
        self.user_defined = user_defined;

    @classmethod
    def from_name( cls, name: str ) -> "Codepage":
        """
        Build a codepage for an encoding named on the command line.

        The unit width and byte order cannot be looked up for arbitrary
        names, so they are guessed from the name itself: "16" means 2-byte
        units, "32" means 4-byte units, "BE"/"be" means big endian.
        """
        width = 1;
        if "16" in name:
            width = 2;
        elif "32" in name:
            width = 4;
        big_endian = "BE" in name or "be" in name;
        return cls( name, b"", width, big_endian, user_defined=True );

    @property
    def line_feed( self ) -> bytes:
        """The 0x0A code unit in this codepage's width and byte order."""
        pad = b"\x00" * ( self.width - 1 );
        return pad + b"\n" if self.big_endian else b"\n" + pad;

    def __eq__( self, other ):
        if not isinstance( other, Codepage ):
            return NotImplemented;
        return self.name.lower() == other.name.lower() and self.width == other.width;

    def __hash__( self ):
        return hash( ( self.name.lower(), self.width ) );

    def __repr__( self ):
        order = "BE" if self.big_endian else "LE";
        return f"Codepage({self.name!r}, width={self.width}, {order})";


CODEPAGES: List[Codepage] = [
    Codepage( "UTF-8",      b"\xEF\xBB\xBF",     1, False ),
    Codepage( "UTF-16BE",   b"\xFE\xFF",         2, True ),
    Codepage( "UTF-16LE",   b"\xFF\xFE",         2, False ),
    Codepage( "UTF-32BE",   b"\x00\x00\xFE\xFF", 4, True ),
    Codepage( "UTF-32LE",   b"\xFF\xFE\x00\x00", 4, False ),
    Codepage( "UTF-7",      b"\x2B\x2F\x76",     1, False ),
    Codepage( "UTF-1",      b"\xF7\x64\x4C",     1, False ),
    Codepage( "UTF-EBCDIC", b"\xDD\x73\x66\x73", 1, False ),
    Codepage( "GB18030",    b"\x84\x31\x95\x33", 1, False ),
];

UTF8 = CODEPAGES[0];


class BomProbe( NamedTuple ):
    """Outcome of sniffing the head of a stream."""
    codepage: Optional[Codepage]
    overflow: bytes  # bytes read while probing that belong to the text


def lookup_codepage( name: str ) -> Codepage:
    """
    Resolve an encoding name to a table codepage or a user-defined one.

    Args:
        name: Encoding name, matched case-insensitively against the table

    Returns:
        The matching table entry, or a new user-defined codepage
    """
    for codepage in CODEPAGES:
        if codepage.name.lower() == name.lower():
            return codepage;
    return Codepage.from_name( name );


def detect_bom( stream: BinaryIO ) -> BomProbe:
    """
    Probe up to four bytes of a stream for a known byte-order-mark.

    Bytes are read one at a time. A prefix that starts a longer signature
    keeps the probe going; the longest signature matched in full wins, so
    FF FE 00 00 is UTF-32LE while FF FE 41 00 is UTF-16LE. Bytes read past
    the winning signature, or every byte read when nothing matched, are
    handed back as overflow for the line reader.

    Args:
        stream: Readable binary stream positioned at its start

    Returns:
        BomProbe with the detected codepage (or None) and overflow bytes
    """
    probe = b"";
    best = None;

    while len( probe ) < MAX_SIGNATURE:
        byte = stream.read( 1 );
        if not byte:
            break;  # end of stream is no match
        probe += byte;

        partial = False;
        for codepage in CODEPAGES:
            if codepage.signature == probe:
                best = codepage;
            elif codepage.signature.startswith( probe ):
                partial = True;
        if not partial:
            break;

    if best is None:
        return BomProbe( None, probe );
    return BomProbe( best, probe[len( best.signature ):] );
