"""Internal constants shared across the library."""

# ------------------------------------------------------------------
# Adapter driver defaults (ELM327 over Bluetooth serial)
# ------------------------------------------------------------------

DEFAULT_BAUD_RATE = 38400
DEFAULT_PROTOCOL = "elm327"
DEFAULT_BUFFER_SIZE = 1024

# ------------------------------------------------------------------
# OBD-II mode 01 wire format
# ------------------------------------------------------------------

COMMAND_TERMINATOR = "\r"
MODE_01_POSITIVE_RESPONSE = "41"
#: ELM327 prints this prompt once it is ready for the next command.
ELM_PROMPT = ">"

DEFAULT_COMMAND_TIMEOUT = 5.0

# ------------------------------------------------------------------
# Polling cadences
# ------------------------------------------------------------------

DATA_SCREEN_INTERVAL = 1.0
GAUGE_SCREEN_INTERVAL = 0.1

# ------------------------------------------------------------------
# Preference record keys (kept compatible with the mobile app's
# ``userSettings`` record)
# ------------------------------------------------------------------

PREF_DARK_MODE = "darkMode"
PREF_KEEP_SCREEN_ON = "keepScreenOn"
PREF_AUTO_CONNECT = "autoBluetoothConnect"
PREF_LAST_DEVICE = "lastConnectedBluetoothDevice"
