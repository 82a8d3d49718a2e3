"""
SubSync - Subtitle retiming utility.

Shifts and scales the time stamps of SRT and SSA/ASS subtitle files
in place of the original text, keeping everything else byte for byte.
"""

__version__ = "0.12.0";
__author__ = "SubSync Project";
__license__ = "GPL-3.0-or-later";
