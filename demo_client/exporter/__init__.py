"""Exporters for delivering spans to backends."""

from demo_client.exporter.console_exporter import ConsoleExporter
from demo_client.exporter.otlp_exporter import OTLPExporter

__all__ = ["ConsoleExporter", "OTLPExporter"]
