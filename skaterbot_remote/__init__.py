"""SkaterBot Remote: drive and tune a self-balancing robot over a BLE serial link."""

__version__ = "0.3.0"
