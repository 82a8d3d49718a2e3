"""
CLI entry point for SubSync with argument parsing and environment variable loading.
"""
import argparse
import os
import re
import sys
from pathlib import Path
from typing import List, Tuple
from dotenv import load_dotenv

from . import __version__
from .backup import BackupManager
from .codepage import UTF8, lookup_codepage
from .logging import setup_logging
from .retime import ChopFilter, Retimer
from .timestamp import parse_offset, parse_scale
from .transform import Transform


EXAMPLES = """\
time expressions:
  -/+OFFSET   shift by milliseconds (+19700), by a time stamp (-0:0:10,199)
              or by expected minus actual (+01:44:31,660-01:44:36,290)
  -SCALE      scale by a real number (-1.000955), a frame rate conversion
              (N-P, P-N, N-C, C-N, P-C, C-P) or expected divided by actual
              (-01:44:30,290/01:44:31,660)

examples:
  subsync +12000 source.ass > target.ass
  subsync -00:10:07,570 source.ass > target.ass
  subsync +00:00:52,570-0:11:00,140 -w target.ass source.ass
  subsync -01:35:32,160/1:35:26,690 source.ass > target.ass
  subsync -s 0:01:15.00 -00:01:38,880-0:03:02.50 source.ass > target.ass
  subsync -00:00:01,710-00:01:25,510 -o *.srt

environment variables: SUBSYNC_ENCODING, SUBSYNC_OUTPUT_ENCODING, SUBSYNC_LOG_DIR
"""

OVERWRITE_NO_BACKUP = 1;
OVERWRITE_KEEP_BACKUP = 2;


class SubSyncCLI:
    """
    Command line interface for SubSync subtitle retiming.

    Offsets and scales are given as free "+..." / "-..." arguments, which
    argparse cannot tell apart from options, so they are split off before
    the remaining arguments are parsed.
    """

    def __init__( self ):
        self.option_strings = set();
        self.parser = self._create_parser();
        self.args = None;
        self.logger = None;
        self.transform = Transform();
        self.chop = ChopFilter();
        self.renumber_from = None;
        self.default_encoding = None;
        self.default_output_encoding = None;
        self.log_dir = None;
        self.errors: List[str] = [];

    def _add( self, parser, *flags, **kwargs ):
        action = parser.add_argument( *flags, **kwargs );
        self.option_strings.update( action.option_strings );
        return action;

    def _create_parser( self ):
        """Create argument parser with all SubSync options."""
        parser = argparse.ArgumentParser(
            prog="subsync",
            description="Resync the time stamps of SRT and SSA/ASS subtitle files",
            epilog=EXAMPLES,
            formatter_class=argparse.RawDescriptionHelpFormatter,
            allow_abbrev=False
        );

        self._add( parser,
            "-c", "--chop",
            metavar="N:M",
            help="Chop the specified range of subtitles (counted from 1)"
        );

        self._add( parser,
            "-e", "--encoding",
            metavar="ENCODE",
            help="Encoding of the input when no BOM is present"
        );

        self._add( parser,
            "--output-encoding",
            metavar="ENCODE",
            help="Encoding of the output (default: UTF-8)"
        );

        self._add( parser,
            "-o",
            dest="overwrite",
            action="store_const",
            const=OVERWRITE_NO_BACKUP,
            default=0,
            help="Overwrite the original file (no backup file)"
        );

        self._add( parser,
            "--overwrite",
            dest="overwrite",
            action="store_const",
            const=OVERWRITE_KEEP_BACKUP,
            help="Overwrite the original file (keeps a .bak backup file)"
        );

        self._add( parser,
            "-r", "--reorder",
            nargs="?",
            const="1",
            metavar="NUM",
            help="Renumber the SRT serial numbers, starting from NUM (default: 1)"
        );

        self._add( parser,
            "-s", "--span",
            nargs="+",
            metavar="TIME",
            help="Only retime time stamps from TIME [to TIME]"
        );

        self._add( parser,
            "-w", "--write",
            type=Path,
            metavar="FILENAME",
            help="Write to the specified file instead of stdout"
        );

        self._add( parser,
            "--debug",
            action="store_true",
            help="Enable debug mode with verbose output"
        );

        self._add( parser,
            "-V", "--version",
            action="version",
            version=f"%(prog)s {__version__}"
        );

        parser.add_argument(
            "files",
            nargs="*",
            type=Path,
            help="Subtitle files (stdin when none given)"
        );

        return parser;

    def _split_time_expressions( self, argv: List[str] ) -> Tuple[List[str], List[str]]:
        """Separate "+..." / "-..." time expressions from the real arguments."""
        expressions = [];
        rest = [];
        for i, token in enumerate( argv ):
            if token == "--":
                rest.extend( argv[i:] );
                break;
            if token in self.option_strings or token.split( "=", 1 )[0] in self.option_strings:
                rest.append( token );
            elif len( token ) > 1 and token[0] in "+-":
                expressions.append( token );
            else:
                rest.append( token );
        return expressions, rest;

    def _apply_time_expression( self, token: str ):
        offset = parse_offset( token );
        if offset is not None:
            self.transform.offset = offset;
            return;
        scale = parse_scale( token );
        if scale != 0.0:
            self.transform.scale = scale;
            return;
        self.errors.append( f"{token}: unknown parameter" );

    def _load_environment( self ):
        """Load environment variables from .env file and system."""
        env_file = Path( ".env" );
        if env_file.exists():
            load_dotenv( env_file );

        self.default_encoding = os.getenv( "SUBSYNC_ENCODING" );
        self.default_output_encoding = os.getenv( "SUBSYNC_OUTPUT_ENCODING" );
        log_dir = os.getenv( "SUBSYNC_LOG_DIR" );
        self.log_dir = Path( log_dir ) if log_dir else None;

    def _resolve_optional_values( self ):
        """
        Return values swallowed by -r/-s that are really file names.

        -r takes a number only when one follows, -s takes a second time
        only when it starts with a digit.
        """
        spill = [];

        reorder = self.args.reorder;
        if reorder is not None and not reorder.isdigit():
            spill.append( Path( reorder ) );
            reorder = "1";
        self.renumber_from = int( reorder ) if reorder is not None else None;

        if self.args.span:
            start, extra = self.args.span[0], self.args.span[1:];
            end = None;
            if extra and extra[0][:1].isdigit():
                end, extra = extra[0], extra[1:];
            spill.extend( Path( value ) for value in extra );

            self.transform.span_start = parse_offset( start );
            if self.transform.span_start is None:
                self.errors.append( f"Invalid time span start: {start}" );
            if end is not None:
                self.transform.span_end = parse_offset( end );
                if self.transform.span_end is None:
                    self.errors.append( f"Invalid time span end: {end}" );

        self.args.files = spill + self.args.files;

    def _parse_chop( self ):
        if not self.args.chop:
            return;
        match = re.match( r"\s*([+-]?\d+)\s*:\s*([+-]?\d+)", self.args.chop );
        if match:
            self.chop = ChopFilter( int( match.group( 1 ) ), int( match.group( 2 ) ) );
        else:
            self.logger.warning( f"Ignoring chop range {self.args.chop!r}, expected N:M" );

    def _validate_arguments( self ):
        """Validate parsed arguments and environment setup."""
        errors = list( self.errors );

        for name in ( self.args.encoding, self.args.output_encoding ):
            if name is not None and not name.strip():
                errors.append( "Encoding name must not be empty" );

        if self.args.overwrite and not self.args.files:
            errors.append( "Overwriting needs at least one subtitle file" );

        if self.renumber_from is not None and self.renumber_from < 1:
            errors.append( "Serial numbers must start from 1 or above" );

        return errors;

    def parse_args( self, argv=None ):
        """Parse command line arguments and validate configuration."""
        if argv is None:
            argv = sys.argv[1:];
        expressions, rest = self._split_time_expressions( list( argv ) );
        self.args = self.parser.parse_args( rest );

        # Load environment variables
        self._load_environment();
        if self.args.encoding is None:
            self.args.encoding = self.default_encoding;
        if self.args.output_encoding is None:
            self.args.output_encoding = self.default_output_encoding;

        # Setup logging based on debug flag
        self.logger = setup_logging( debug=self.args.debug, log_dir=self.log_dir );

        for token in expressions:
            self._apply_time_expression( token );
        self._resolve_optional_values();
        self._parse_chop();

        errors = self._validate_arguments();
        if errors:
            self.logger.error( "Configuration errors:" );
            for error in errors:
                self.logger.error( f"  - {error}" );
            sys.exit( 1 );

        self.logger.debug( f"SubSync v{__version__}: {self.transform.describe()}" );
        if self.renumber_from is not None:
            self.logger.debug( f"Renumbering from {self.renumber_from}" );
        if self.chop.active:
            self.logger.debug( f"Chopping subtitles {self.chop.first or 1} to {self.chop.last or 'end'}" );

        return self.args;

    def has_work( self ) -> bool:
        """True if any retiming, renumbering or chopping was requested."""
        return not self.transform.is_identity or self.renumber_from is not None or self.chop.active;

    def create_retimer( self ) -> Retimer:
        return Retimer( self.transform, renumber_from=self.renumber_from, chop=self.chop );

    def _codepages( self ):
        source = lookup_codepage( self.args.encoding ) if self.args.encoding else None;
        target = lookup_codepage( self.args.output_encoding ) if self.args.output_encoding else UTF8;
        return source, target;

    def _retime_stream( self, retimer: Retimer, fin, fout, label: str ):
        source, target = self._codepages();
        stats = retimer.run( fin, fout, encoding=source, output_encoding=target );
        if stats['degraded']:
            self.logger.warning( f"{label}: encoding conversion unavailable, raw bytes copied" );
        self.logger.debug( f"{label}: {stats}" );

    def run( self ) -> int:
        """
        Retime the configured inputs.

        Returns:
            Process exit status
        """
        retimer = self.create_retimer();
        files = self.args.files;

        if not files:
            return self._run_stdin( retimer );
        if not self.args.overwrite:
            return self._run_batch( retimer, files );
        if self.args.write is not None:
            self.logger.warning( "Overwriting the originals, ignoring --write" );
        return self._run_overwrite( retimer, files );

    def _run_stdin( self, retimer: Retimer ) -> int:
        if self.args.write is None:
            self._retime_stream( retimer, sys.stdin.buffer, sys.stdout.buffer, "stdin" );
            return 0;
        with open( self.args.write, "wb" ) as fout:
            self._retime_stream( retimer, sys.stdin.buffer, fout, "stdin" );
        return 0;

    def _run_batch( self, retimer: Retimer, files: List[Path] ) -> int:
        """Retime every file into one output (stdout or --write)."""
        status = 0;
        fout = open( self.args.write, "wb" ) if self.args.write is not None else sys.stdout.buffer;
        try:
            for path in files:
                try:
                    with open( path, "rb" ) as fin:
                        self._retime_stream( retimer, fin, fout, str( path ) );
                except OSError as e:
                    self.logger.error( f"{path}: {e}" );
                    status = 1;
        finally:
            if fout is not sys.stdout.buffer:
                fout.close();
        return status;

    def _run_overwrite( self, retimer: Retimer, files: List[Path] ) -> int:
        """Retime every file in place, moving the original to <name>.bak."""
        status = 0;
        backups = BackupManager( keep=self.args.overwrite == OVERWRITE_KEEP_BACKUP );

        for path in files:
            try:
                backup = backups.create_backup( path );
            except OSError as e:
                self.logger.error( f"{path}: {e}" );
                status = 1;
                continue;

            try:
                with open( backup, "rb" ) as fin, open( path, "wb" ) as fout:
                    self._retime_stream( retimer, fin, fout, str( path ) );
            except BaseException as e:
                # partial output never survives under the original name
                backups.restore_backup( backup, path );
                if not isinstance( e, OSError ):
                    raise;
                self.logger.error( f"{path}: {e}" );
                status = 1;
                continue;

            backups.discard_backup( backup );
            self.logger.info( f"Retimed {path}" );

        return status;


def main( argv=None ):
    """Main entry point for the SubSync CLI."""
    cli = SubSyncCLI();
    args = cli.parse_args( argv );

    if not cli.has_work():
        cli.parser.print_help();
        return;

    try:
        status = cli.run();
    except KeyboardInterrupt:
        cli.logger.warning( "Interrupted by user" );
        sys.exit( 130 );
    except Exception as e:
        cli.logger.error( f"Unexpected error: {e}" );
        if args.debug:
            raise;
        sys.exit( 1 );

    if status:
        sys.exit( status );


if __name__ == "__main__":
    main();
