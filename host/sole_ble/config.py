# ---------------- BLE advertising names ----------------
# A peripheral is a candidate when its name starts with one of these
NAME_PREFIXES = ("ESP32", "FootPressure", "Foot")

SCAN_TIMEOUT_S = 5.0

# ---------------- Commands (ASCII, no acknowledgement) ----------------
CMD_START = b"START"
CMD_STOP = b"STOP"

# ---------------- Wire format ----------------
TAG_LEFT = "PRESSURE_LEFT:"
TAG_RIGHT = "PRESSURE_RIGHT:"

CHANNELS = 8
SAMPLE_MIN = 0
SAMPLE_MAX = 255

# Untagged CSV needs at least this many numeric entries to count as a frame
MIN_CSV_VALUES = 4

# Order here must match the order the firmware sends channels
CHANNEL_LABELS = ["P1", "P2", "P3", "P4", "P5", "P6", "P7", "P8"]

SIDES = ("left", "right")

# ---------------- Session timing ----------------
DEFAULT_DURATION = 20      # countdown units (one unit per tick)
TICK_INTERVAL_S = 1.0      # wall-clock length of one unit

# Summary flags a max channel average above this
HIGH_PRESSURE_WARN = 200

# ---------------- Simulator ----------------
SIM_INTERVAL_S = 0.5
SIM_BASELINE = (50, 100, 150, 200, 250, 255, 128, 64)
SIM_NOISE = 20             # uniform noise in [-SIM_NOISE, SIM_NOISE)

# ---------------- Demo devices ----------------
# Returned by discovery when no real peripheral can be found
DEMO_DEVICES = (
    ("demo-esp32-left", "ESP32-FootSensor-L"),
    ("demo-esp32-right", "ESP32-FootSensor-R"),
)
# Substituted by the link when connecting to a real device fails
DEMO_FALLBACK = ("demo-device", "Demo ESP32 Sensor")
