"""Simulated plug-and-play thermostat and IoT Hub temperature relay."""

__version__ = "0.1.0"
