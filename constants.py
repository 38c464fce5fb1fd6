"""Shared constants for the plant watering client."""

# Appliance base address (fixed per build, override with --address)
DEVICE_ADDRESS = "http://192.168.130.154:5000"

# Appliance endpoints
HUMIDITY_PATH = "/humidity"
WATER_PATH = "/water"

# Raw sensor range: 0 = saturated, 1023 = dry
SENSOR_MAX = 1023

POLL_INTERVAL = 5.0   # Seconds between humidity polls
HTTP_TIMEOUT = 5.0    # Seconds per HTTP call (connect + read)

# Plain-text bodies accepted by POST /water
WATER_ON = "1"
WATER_OFF = "0"
