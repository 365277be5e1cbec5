"""Wire vocabulary, encoder and client projection."""

from .encoder import StreamEncoder
from .projection import ClientProjection
from .wire import Transport, WireMessage, dump_wire, load_wire

__all__ = ["ClientProjection", "StreamEncoder", "Transport", "WireMessage", "dump_wire", "load_wire"]
