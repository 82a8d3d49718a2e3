"""
Linear time transform applied to every subtitle timestamp.
"""
from typing import Optional

from .timestamp import format_timestamp


class Transform:
    """
    Shift and/or stretch timestamps, optionally only within a time span.

    Order of application is fixed: span check, then offset, then scale.
    An offset of 0 and a scale of 0.0 both mean "not set".
    """

    def __init__( self, offset: int = 0, scale: float = 0.0,
                  span_start: Optional[int] = None, span_end: Optional[int] = None ):
        self.offset = offset;
        self.scale = scale;
        self.span_start = span_start;  # inclusive, milliseconds
        self.span_end = span_end;      # inclusive, milliseconds

    @property
    def is_identity( self ) -> bool:
        return self.offset == 0 and self.scale == 0.0;

    def in_span( self, ms: int ) -> bool:
        """True if ms lies inside the configured span (unset bounds never bind)."""
        if self.span_start is not None and ms < self.span_start:
            return False;
        if self.span_end is not None and ms > self.span_end:
            return False;
        return True;

    def apply( self, ms: int ) -> int:
        """
        Transform a timestamp.

        Args:
            ms: Timestamp in milliseconds

        Returns:
            Transformed timestamp, truncated toward zero after scaling;
            ms itself when it falls outside the span or cannot be scaled
            as a float
        """
        if not self.in_span( ms ):
            return ms;
        shifted = ms + self.offset;
        if self.scale == 0.0:
            return shifted;
        try:
            return int( shifted * self.scale );
        except ( OverflowError, ValueError ):
            return ms;

    def describe( self ) -> str:
        parts = [];
        if self.offset:
            parts.append( f"offset {'+' if self.offset > 0 else ''}{self.offset}ms" );
        if self.scale != 0.0:
            parts.append( f"scale {self.scale:g}" );
        if self.span_start is not None or self.span_end is not None:
            start = format_timestamp( self.span_start ) if self.span_start is not None else "start";
            end = format_timestamp( self.span_end ) if self.span_end is not None else "end";
            parts.append( f"span {start} to {end}" );
        return ", ".join( parts ) if parts else "no change";
