"""
Backup handling for retiming subtitle files in place.
"""
import os
from pathlib import Path

from .logging import get_logger


class BackupManager:
    """
    Moves an original subtitle file aside before it is overwritten.

    The original is renamed to "<name>.bak" and the retimed output is
    written under the original name. With keep=False the backup is deleted
    once the new file is complete; if retiming fails the backup is moved
    back so the original is never lost.
    """

    def __init__( self, suffix: str = ".bak", keep: bool = True ):
        self.logger = get_logger();
        self.suffix = suffix;
        self.keep = keep;

    def backup_path( self, original_file: Path ) -> Path:
        """Path the original file is moved to."""
        original_file = Path( original_file );
        return original_file.with_name( original_file.name + self.suffix );

    def create_backup( self, file_path: Path ) -> Path:
        """
        Move file_path aside to its backup path.

        Args:
            file_path: Path to file about to be overwritten

        Returns:
            Path to the backup file
        """
        file_path = Path( file_path );
        if not file_path.exists():
            raise FileNotFoundError( f"File to backup not found: {file_path}" );

        backup_path = self.backup_path( file_path );
        os.replace( file_path, backup_path );
        self.logger.debug( f"Moved {file_path.name} to {backup_path.name}" );
        return backup_path;

    def discard_backup( self, backup_path: Path ):
        """Remove the backup unless backups are kept."""
        if self.keep:
            self.logger.info( f"Created backup: {backup_path.name}" );
            return;
        try:
            Path( backup_path ).unlink();
        except OSError as e:
            self.logger.warning( f"Could not remove backup {backup_path}: {e}" );

    def restore_backup( self, backup_path: Path, file_path: Path ):
        """Put the original back after a failed rewrite."""
        os.replace( backup_path, file_path );
        self.logger.warning( f"Restored {Path( file_path ).name} from backup" );
