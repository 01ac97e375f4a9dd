"""Decision record rendering and file output."""

from concord.output.record import adr_filename, adr_number, render_record
from concord.output.writer import write_record

__all__ = ["adr_filename", "adr_number", "render_record", "write_record"]
