"""MQTT 3.1.1 client and codec, debounced push buttons, and uptime/epoch clock helpers."""

__version__ = "0.1.0"
__all__ = ["mqtt_codec", "mqtt_client", "button", "ntp"]