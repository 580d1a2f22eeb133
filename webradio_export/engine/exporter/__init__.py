"""Exporter SPI and implementations."""

from .base import BaseExporter
from .file_exporter import FileExporter
from .ftp_exporter import FtpExporter, FtpSettings, normalize_ftp_settings, parse_ftp_server

__all__ = [
    "BaseExporter",
    "FileExporter",
    "FtpExporter",
    "FtpSettings",
    "normalize_ftp_settings",
    "parse_ftp_server",
]
