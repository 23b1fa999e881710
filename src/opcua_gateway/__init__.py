"""OPC-UA gateway exposing an OPC-UA client to a host process over stdio."""

__version__ = "0.1.0"
